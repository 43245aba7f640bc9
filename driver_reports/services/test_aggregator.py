"""
Test cohort selection, previous-period lookup and KPI history.

Run with: pytest driver_reports/services/test_aggregator.py -v
"""
from dataclasses import replace

import pytest

from driver_reports.config.settings import ReportSettings
from driver_reports.core.models import AggregationMode
from driver_reports.services.aggregator import AggregatorService


@pytest.fixture
def aggregator(settings):
    return AggregatorService(settings)


def test_for_period_keeps_first_duplicate(aggregator, make_record):
    records = [
        make_record("A", driving_distance=500.0),
        make_record("A", driving_distance=900.0),
        make_record("B", month=5),
    ]
    selected = aggregator.for_period(records, 6, 2025)
    assert len(selected) == 1
    assert selected[0].driving_distance == 500.0


def test_qualify_threshold_is_inclusive(aggregator, make_record):
    records = [
        make_record("A", driving_distance=100.0),
        make_record("B", driving_distance=99.9),
        make_record("C", driving_distance=None),
    ]
    assert [record.driver_name for record in aggregator.qualify(records, 100)] == ["A"]


def test_filter_group_by_membership(aggregator, make_record):
    records = [make_record("A"), make_record("B"), make_record("C", group="Nord")]
    members = {"Nord": ["B"]}
    assert [r.driver_name for r in aggregator.filter_group(records, "Nord", members)] == ["B"]
    # Without known memberships the record's own group decides
    assert [r.driver_name for r in aggregator.filter_group(records, "Nord")] == ["C"]


def test_find_previous_skips_gaps(aggregator, make_record):
    records = [make_record("A", month=3), make_record("A", month=1), make_record("B", month=5)]
    previous = aggregator.find_previous(records, "A", 6, 2025)
    assert (previous.month, previous.year) == (3, 2025)


def test_find_previous_across_year_boundary(aggregator, make_record):
    records = [make_record("A", month=12, year=2024)]
    assert aggregator.find_previous(records, "A", 1, 2025).year == 2024


def test_find_previous_respects_lookback(settings, make_record):
    short = AggregatorService(replace(settings, report=ReportSettings(previous_lookback_months=2)))
    records = [make_record("A", month=3)]
    assert short.find_previous(records, "A", 6, 2025) is None


def test_find_previous_stops_at_earliest_year(settings, make_record):
    strict = AggregatorService(replace(settings, report=ReportSettings(earliest_year=2025)))
    records = [make_record("A", month=12, year=2024)]
    assert strict.find_previous(records, "A", 2, 2025) is None


def test_previous_cohort_skips_new_drivers(aggregator, june_records):
    previous = aggregator.previous_cohort(june_records, ["Anna Jensen", "Bo Nielsen"], 6, 2025)
    assert [record.driver_name for record in previous] == ["Anna Jensen"]


def test_available_periods_newest_first(aggregator, june_records):
    assert aggregator.available_periods(june_records) == [(6, 2025), (5, 2025)]


def test_build_history(aggregator, june_records):
    history = aggregator.build_history(june_records, 100, AggregationMode.PER_DRIVER_AVERAGE)
    assert len(history) == 2
    assert history.latest.label == "Juni 2025"
    assert history.latest.driver_count == 3
    assert history.previous.driver_count == 2
    assert [label for label, _ in history.series("idle_percentage")] == ["Maj 2025", "Juni 2025"]


def test_build_history_limits_periods(aggregator, june_records):
    history = aggregator.build_history(june_records, 100, AggregationMode.SUM_THEN_DIVIDE, max_periods=1)
    assert len(history) == 1
    assert history.mode is AggregationMode.SUM_THEN_DIVIDE


def test_build_history_empty(aggregator):
    assert len(aggregator.build_history([], 100, AggregationMode.PER_DRIVER_AVERAGE)) == 0
