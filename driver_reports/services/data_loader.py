"""
Data loading service for telemetry CSV files.

This module reads monthly driver exports, with robust handling of various
encodings, separators and column name variations, and turns each row into
a DriverPeriodRecord. It stands in for the storage layer: the engine itself
only ever receives already-loaded records.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging

import pandas as pd

from ..config import Settings, get_settings
from ..core.exceptions import DataLoadError
from ..core.models import DriverPeriodRecord
from ..core.utils import ColumnResolver

logger = logging.getLogger(__name__)

TEXT_FIELDS = {"driver_name", "vehicles", "group", "engine_runtime", "driving_time", "idle_standstill_time"}
PERIOD_FIELDS = {"month", "year"}


class DataLoaderService:
    """
    Service for loading driver telemetry from CSV files.

    Handles file reading, encoding detection, and column mapping to
    normalise data for the calculation services.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the data loader service.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        self._settings = settings or get_settings()
        self._resolved_columns: Dict[str, Optional[str]] = {}

    def load(self, file_path: Optional[Path] = None) -> pd.DataFrame:
        """
        Load a CSV export into a string-typed DataFrame.

        Args:
            file_path: Path to the CSV file. If None, uses default from settings.

        Returns:
            DataFrame with loaded data

        Raises:
            FileNotFoundError: If the specified file doesn't exist
            DataLoadError: If the file cannot be parsed
        """
        path = Path(file_path or self._settings.input_path)

        logger.info(f"Loading data from: {path}")

        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

        # Excel exports are often UTF-16 or UTF-8 with BOM
        with open(path, "rb") as handle:
            head = handle.read(2)
        if head in (b"\xff\xfe", b"\xfe\xff"):
            encodings_to_try = ["utf-16"]
        else:
            encodings_to_try = ["utf-8-sig", self._settings.files.encoding_input]

        df = None
        last_error: Optional[Exception] = None
        for encoding in encodings_to_try:
            try:
                df = pd.read_csv(
                    path,
                    dtype=str,
                    encoding=encoding,
                    sep=None,  # Auto-detect separator
                    engine="python",  # Required for sep=None
                    keep_default_na=False,
                )
                logger.info(f"Successfully loaded with encoding: {encoding}")
                break
            except (UnicodeError, pd.errors.ParserError, ValueError) as e:
                last_error = e
                continue

        if df is None:
            raise DataLoadError(f"Failed to parse CSV file {path}: {last_error}")

        logger.info(f"Loaded {len(df)} rows with {len(df.columns)} columns")

        resolver = ColumnResolver(df)
        self._resolved_columns = resolver.resolve_all(self._settings.columns.as_dict())
        logger.debug(f"Resolved columns: {self._resolved_columns}")
        return df

    def load_records(
        self,
        file_path: Optional[Path] = None,
        month: Optional[int] = None,
        year: Optional[int] = None
    ) -> List[DriverPeriodRecord]:
        """
        Load a CSV export as driver records.

        Args:
            file_path: Path to the CSV file
            month: Period to assign when the file has no month column
            year: Period to assign when the file has no year column

        Returns:
            One DriverPeriodRecord per row with a driver name

        Raises:
            DataLoadError: If required columns are missing
        """
        df = self.load(file_path)
        return self.to_records(df, month=month, year=year)

    def to_records(
        self,
        df: pd.DataFrame,
        month: Optional[int] = None,
        year: Optional[int] = None
    ) -> List[DriverPeriodRecord]:
        """
        Convert a loaded DataFrame to records.

        Args:
            df: DataFrame as returned by ``load``
            month: Fallback month for all rows
            year: Fallback year for all rows

        Returns:
            DriverPeriodRecord list in file order
        """
        if not self._resolved_columns:
            self._resolved_columns = ColumnResolver(df).resolve_all(self._settings.columns.as_dict())
        columns = self._resolved_columns

        missing = []
        if not columns.get("driver_name"):
            missing.append("driver_name")
        if not columns.get("month") and month is None:
            missing.append("month")
        if not columns.get("year") and year is None:
            missing.append("year")
        if missing:
            raise DataLoadError(f"Missing required columns: {', '.join(missing)}")

        numeric = {
            key: self._to_numeric(df[column])
            for key, column in columns.items()
            if column and key not in TEXT_FIELDS and key not in PERIOD_FIELDS
        }

        records: List[DriverPeriodRecord] = []
        skipped = 0
        for position, (_, row) in enumerate(df.iterrows()):
            driver_name = str(row[columns["driver_name"]]).strip()
            if not driver_name:
                skipped += 1
                continue
            row_month = self._to_int(row[columns["month"]]) if columns.get("month") else month
            row_year = self._to_int(row[columns["year"]]) if columns.get("year") else year
            if row_month is None or row_year is None:
                skipped += 1
                continue

            values: Dict[str, Any] = {
                "driver_name": driver_name,
                "month": row_month,
                "year": row_year,
            }
            for key in TEXT_FIELDS - {"driver_name"}:
                column = columns.get(key)
                if column:
                    text = str(row[column]).strip()
                    values[key] = text or None
            for key, series in numeric.items():
                value = series.iloc[position]
                values[key] = None if pd.isna(value) else float(value)
            records.append(DriverPeriodRecord(**values))

        if skipped:
            logger.warning(f"Skipped {skipped} rows without driver name or period")
        logger.info(f"Converted {len(records)} driver records")
        return records

    def load_groups(self, file_path: Optional[Path] = None) -> Dict[str, List[str]]:
        """
        Load group memberships.

        Args:
            file_path: JSON file mapping group name to a list of driver names

        Returns:
            Group name -> driver names; empty when the file does not exist
        """
        path = Path(file_path or self._settings.groups_path)
        if not path.exists():
            logger.info(f"No group file at {path}")
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise DataLoadError(f"Invalid group file {path}: {e}") from e
        if not isinstance(raw, dict):
            raise DataLoadError(f"Group file {path} must contain an object")
        groups = {str(name): [str(driver) for driver in drivers] for name, drivers in raw.items()}
        logger.info(f"Loaded {len(groups)} groups")
        return groups

    @staticmethod
    def _to_numeric(series: pd.Series) -> pd.Series:
        """Parse numbers that may use a decimal comma."""
        cleaned = series.astype(str).str.strip().str.replace(",", ".", regex=False)
        return pd.to_numeric(cleaned, errors="coerce")

    @staticmethod
    def _to_int(value: Any) -> Optional[int]:
        try:
            return int(float(str(value).strip().replace(",", ".")))
        except (ValueError, OverflowError):
            return None

    @property
    def resolved_columns(self) -> Dict[str, Optional[str]]:
        """Get the resolved column mappings."""
        return self._resolved_columns
