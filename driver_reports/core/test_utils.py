"""
Test core utilities.

Run with: pytest driver_reports/core/test_utils.py -v
"""
import pandas as pd
import pytest

from driver_reports.core.utils import (
    ColumnResolver,
    DurationUtils,
    FilenameUtils,
    NumberUtils,
    PeriodUtils,
)


@pytest.mark.parametrize("value, expected", [
    ("01:30:15", 5415),
    ("00:00:00", 0),
    ("120:00:00", 432000),
    (" 2:03:04 ", 7384),
])
def test_duration_to_seconds(value, expected):
    """Test parsing of well-formed durations, including hours above 24."""
    assert DurationUtils.to_seconds(value) == expected


@pytest.mark.parametrize("value", ["", "12:30", "1:2:3:4", "aa:bb:cc", None, 3600, "1.5:00:00"])
def test_malformed_duration_is_zero(value):
    """Test that anything but three integer parts counts as 0 seconds."""
    assert DurationUtils.to_seconds(value) == 0


def test_from_seconds():
    assert DurationUtils.from_seconds(5415) == "01:30:15"
    assert DurationUtils.from_seconds(-5) == "00:00:00"


def test_safe_ratio_zero_denominator():
    """Test that a zero or missing denominator gives 0."""
    assert NumberUtils.safe_ratio(10, 0) == 0.0
    assert NumberUtils.safe_ratio(10, None) == 0.0
    assert NumberUtils.safe_ratio(1, 4, 100.0) == 25.0


def test_to_float_gaps():
    assert NumberUtils.to_float(None) == 0.0
    assert NumberUtils.to_float("abc") == 0.0
    assert NumberUtils.to_float(float("nan")) == 0.0
    assert NumberUtils.to_float("2.5") == 2.5


def test_format_change_is_signed():
    assert NumberUtils.format_change(10.0) == "+10.0%"
    assert NumberUtils.format_change(-4.0) == "-4.0%"
    assert NumberUtils.format_change(0.0) == "+0.0%"


def test_format_number_missing():
    assert NumberUtils.format_number(None, 1) == "N/A"
    assert NumberUtils.format_number(3.14159, 2) == "3.14"


def test_period_helpers():
    """Test Danish labels and month arithmetic across a year boundary."""
    assert PeriodUtils.label(6, 2025) == "Juni 2025"
    assert PeriodUtils.month_name(3) == "Marts"
    assert PeriodUtils.previous(1, 2025) == (12, 2024)
    assert PeriodUtils.previous(7, 2025) == (6, 2025)
    assert PeriodUtils.key(12, 2024) < PeriodUtils.key(1, 2025)


def test_sanitize_filename():
    """Test that non-ASCII letters are dropped and spaces become underscores."""
    assert FilenameUtils.sanitize("Hans Ole Müller") == "Hans_Ole_Mller"
    assert FilenameUtils.sanitize("  Gruppe  Nord/Syd ") == "Gruppe_NordSyd"
    assert FilenameUtils.sanitize("a-b_c") == "a-b_c"


def test_column_resolver_ignores_case_and_whitespace():
    df = pd.DataFrame(columns=[" Chauffør ", "Kørestrækning [km]"])
    resolver = ColumnResolver(df)
    assert resolver.resolve(["driver_name", "chauffør"]) == " Chauffør "
    assert resolver.resolve(["missing"]) is None
    assert resolver.has_column("kørestrækning [km]")
    assert resolver.resolve_all({"distance": ["Kørestrækning [km]"]}) == {"distance": "Kørestrækning [km]"}
