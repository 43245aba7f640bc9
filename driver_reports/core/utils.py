"""
Core utility functions for telemetry processing.

This module provides reusable helpers for duration parsing, safe division,
period arithmetic, display formatting, filename sanitising and column
resolution.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

MONTH_NAMES: List[str] = [
    "Januar", "Februar", "Marts", "April", "Maj", "Juni",
    "Juli", "August", "September", "Oktober", "November", "December",
]

_DURATION_PATTERN = re.compile(r"^\s*(\d+):(\d+):(\d+)\s*$")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\s\-_]")
_WHITESPACE = re.compile(r"\s+")


class DurationUtils:
    """Utility class for ``hh:mm:ss`` duration strings."""

    @staticmethod
    def to_seconds(value: Any) -> int:
        """
        Convert an ``hh:mm:ss`` string to seconds.

        Args:
            value: Duration string. Hours may exceed 24.

        Returns:
            Total seconds, or 0 if the value is not exactly three
            colon-separated integer parts
        """
        if not isinstance(value, str):
            return 0
        match = _DURATION_PATTERN.match(value)
        if match is None:
            return 0
        hours, minutes, seconds = (int(part) for part in match.groups())
        return hours * 3600 + minutes * 60 + seconds

    @staticmethod
    def from_seconds(total: int) -> str:
        """Format seconds back to ``hh:mm:ss``."""
        total = max(int(total), 0)
        hours, rest = divmod(total, 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class NumberUtils:
    """Utility class for numeric conversions and display."""

    @staticmethod
    def to_float(value: Any) -> float:
        """Coerce a possibly missing value to float, treating gaps as 0."""
        if value is None:
            return 0.0
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        if pd.isna(number):
            return 0.0
        return number

    @staticmethod
    def safe_ratio(numerator: Any, denominator: Any, scale: float = 1.0) -> float:
        """
        Divide two values, returning 0 when the denominator is 0.

        Args:
            numerator: Dividend (missing counts as 0)
            denominator: Divisor (missing counts as 0)
            scale: Multiplier applied to the quotient (100 for percentages)

        Returns:
            numerator / denominator * scale, or 0.0
        """
        den = NumberUtils.to_float(denominator)
        if den == 0:
            return 0.0
        return NumberUtils.to_float(numerator) / den * scale

    @staticmethod
    def format_number(value: Optional[float], decimals: int) -> str:
        """Fixed-precision display of a raw value; missing renders as N/A."""
        if value is None or pd.isna(value):
            return "N/A"
        return f"{value:.{decimals}f}"

    @staticmethod
    def format_change(change: float) -> str:
        """Signed percent change with one decimal, e.g. ``+10.0%``."""
        sign = "+" if change >= 0 else ""
        return f"{sign}{change:.1f}%"


class PeriodUtils:
    """Utility class for (month, year) reporting periods."""

    @staticmethod
    def month_name(month: int) -> str:
        """Danish month name for a 1-based month number."""
        return MONTH_NAMES[month - 1]

    @staticmethod
    def label(month: int, year: int) -> str:
        """Human readable period label, e.g. ``Juni 2025``."""
        return f"{PeriodUtils.month_name(month)} {year}"

    @staticmethod
    def previous(month: int, year: int) -> Tuple[int, int]:
        """The calendar month before (month, year)."""
        if month == 1:
            return 12, year - 1
        return month - 1, year

    @staticmethod
    def key(month: int, year: int) -> int:
        """Sortable integer key for a period."""
        return year * 100 + month


class FilenameUtils:
    """Utility class for building filesystem-safe names."""

    @staticmethod
    def sanitize(text: str) -> str:
        """
        Strip characters that are unsafe in filenames.

        Keeps ASCII letters, digits, ``-`` and ``_``; whitespace runs become
        a single underscore.

        Args:
            text: Free text such as a driver or group name

        Returns:
            Sanitised name, e.g. "Hans Ole Müller" -> "Hans_Ole_Mller"
        """
        cleaned = _UNSAFE_FILENAME_CHARS.sub("", text or "")
        return _WHITESPACE.sub("_", cleaned.strip())


class ColumnResolver:
    """Utility class for resolving column names in DataFrames."""

    def __init__(self, dataframe: pd.DataFrame):
        """
        Initialize resolver with a DataFrame.

        Header matching ignores surrounding whitespace and case, since
        exported sheets are not consistent about either.

        Args:
            dataframe: DataFrame to resolve columns from
        """
        self._df = dataframe
        self._lookup = {
            str(column).strip().casefold(): column for column in dataframe.columns
        }

    def resolve(self, candidates: List[str]) -> Optional[str]:
        """
        Find the first matching column from a list of candidates.

        Args:
            candidates: List of possible column names in order of preference

        Returns:
            First matching column name, or None if no match found
        """
        for candidate in candidates:
            column = self._lookup.get(candidate.strip().casefold())
            if column is not None:
                return column
        return None

    def resolve_all(self, mappings: Dict[str, List[str]]) -> Dict[str, Optional[str]]:
        """
        Resolve multiple column mappings at once.

        Args:
            mappings: Dictionary with key as target name and value as list of candidates

        Returns:
            Dictionary with resolved column names
        """
        return {
            key: self.resolve(candidates)
            for key, candidates in mappings.items()
        }

    def has_column(self, column: str) -> bool:
        """Check if a column exists in the DataFrame."""
        return column.strip().casefold() in self._lookup
