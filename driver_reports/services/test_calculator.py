"""
Test KPI calculation and cohort aggregation.

Run with: pytest driver_reports/services/test_calculator.py -v
"""
import pytest

from driver_reports.core.models import AggregationMode, CalculatedMetrics, DriverPeriodRecord
from driver_reports.services.calculator import MetricsCalculator


@pytest.fixture
def calculator(settings):
    return MetricsCalculator(settings)


def test_formulas(calculator, make_record):
    """Test every KPI formula on a complete record."""
    metrics = calculator.calculate(make_record())
    assert metrics.idle_percentage == pytest.approx(5.0)
    assert metrics.cruise_control_share == pytest.approx(75.0)
    assert metrics.engine_brake_share == pytest.approx(60.0)
    assert metrics.coasting_share == pytest.approx(8.0)
    assert metrics.diesel_efficiency == pytest.approx(1000 / 300)
    assert metrics.weight_adjusted_consumption == pytest.approx(0.75)
    assert metrics.overspeed_share == pytest.approx(0.5)
    assert metrics.co2_efficiency == pytest.approx(0.02)


def test_zero_distance(calculator, make_record):
    """Test that zero driving distance zeroes the distance-based KPIs."""
    metrics = calculator.calculate(make_record(driving_distance=0.0))
    assert metrics.coasting_share == 0.0
    assert metrics.overspeed_share == 0.0
    assert metrics.weight_adjusted_consumption == 0.0
    assert metrics.co2_efficiency == 0.0


def test_zero_runtime_gives_zero_idle(calculator, make_record):
    metrics = calculator.calculate(make_record(engine_runtime="00:00:00"))
    assert metrics.idle_percentage == 0.0


def test_malformed_runtime_gives_zero_idle(calculator, make_record):
    metrics = calculator.calculate(make_record(engine_runtime="ukendt"))
    assert metrics.idle_percentage == 0.0


def test_zero_consumption(calculator, make_record):
    """Test total_consumption 0 with distance 100: Diesel 0, Weight-Adjusted 0."""
    metrics = calculator.calculate(make_record(total_consumption=0.0, driving_distance=100.0))
    assert metrics.diesel_efficiency == 0.0
    assert metrics.weight_adjusted_consumption == 0.0


def test_shares_above_100_are_not_clamped(calculator, make_record):
    """Test that inconsistent raw data may push a share past 100%."""
    metrics = calculator.calculate(make_record(driving_distance=10.0, overspeed_km_without_coasting=25.0))
    assert metrics.overspeed_share == pytest.approx(250.0)
    assert metrics.coasting_share == pytest.approx(800.0)


def test_zero_weight(calculator, make_record):
    metrics = calculator.calculate(make_record(avg_total_weight=0.0))
    assert metrics.weight_adjusted_consumption == 0.0
    assert metrics.co2_efficiency == 0.0


def test_empty_record_is_all_zero(calculator):
    metrics = calculator.calculate(DriverPeriodRecord("Tom Post", 6, 2025))
    assert metrics == CalculatedMetrics()


def test_calculate_many_preserves_order(calculator, make_record):
    records = [make_record("B"), make_record("A")]
    assert [record.driver_name for record, _ in calculator.calculate_many(records)] == ["B", "A"]


def test_aggregation_modes_differ(calculator, make_record):
    """Test the per-driver average against the pooled sum on unequal weights."""
    records = [make_record("A", avg_total_weight=40.0), make_record("B", avg_total_weight=20.0)]

    average = calculator.aggregate(records, AggregationMode.PER_DRIVER_AVERAGE)
    pooled = calculator.aggregate(records, AggregationMode.SUM_THEN_DIVIDE)

    assert average.weight_adjusted_consumption == pytest.approx((0.75 + 1.5) / 2)
    # 600 l over 2000 km, divided by the summed average weights
    assert pooled.weight_adjusted_consumption == pytest.approx(30.0 / 60.0)
    assert pooled.cruise_control_share == pytest.approx(75.0)


def test_aggregate_empty_cohort(calculator):
    assert calculator.aggregate([], AggregationMode.SUM_THEN_DIVIDE) == CalculatedMetrics()


def test_aggregate_rejects_unknown_mode(calculator, make_record):
    with pytest.raises(ValueError):
        calculator.aggregate([make_record()], "median")
