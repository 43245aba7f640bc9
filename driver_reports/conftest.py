"""Shared pytest fixtures: settings and sample driver records."""

from dataclasses import replace
from datetime import datetime

import pytest

from driver_reports.config.settings import RenderSettings, Settings
from driver_reports.core.models import DriverPeriodRecord

# Defaults give Idle 5%, Cruise 75%, Engine brake 60%, Coasting 8%,
# Diesel 3.33 km/l, Overspeed 0.5% over 1000 km.
BASE_VALUES = dict(
    driving_distance=1000.0,
    cruise_distance_over_50=600.0,
    distance_over_50_without_cruise=200.0,
    engine_brake_distance=300.0,
    service_brake_km=200.0,
    active_coasting_km=50.0,
    coasting_distance=30.0,
    overspeed_km_without_coasting=5.0,
    kickdown_km=2.0,
    engine_runtime="10:00:00",
    driving_time="09:30:00",
    idle_standstill_time="00:30:00",
    total_consumption=300.0,
    avg_consumption_per_100km=30.0,
    avg_range_per_consumption=3.33,
    avg_consumption_driving=29.5,
    consumption_with_cruise=28.0,
    consumption_without_cruise=32.0,
    avg_total_weight=40.0,
    co2_emission=800.0,
    vehicles="AB12345",
)


@pytest.fixture
def settings():
    """Default settings rendering in-process."""
    return replace(Settings(), render=RenderSettings(timeout_seconds=60.0, isolate_process=False))


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2025, 7, 1, 8, 0, 0)


@pytest.fixture
def make_record():
    """Factory for DriverPeriodRecord with realistic defaults."""

    def _make(driver_name="Hans Ole Müller", month=6, year=2025, **overrides):
        values = dict(BASE_VALUES)
        values.update(overrides)
        return DriverPeriodRecord(driver_name=driver_name, month=month, year=year, **values)

    return _make


@pytest.fixture
def june_records(make_record):
    """
    Three June drivers (one below the km threshold) plus May records.

    June ranking: Anna wins outright on idle and cruise. Bo and Hans tie on
    total score (Bo gets the better engine-brake and coasting ranks by input
    order), and Hans's heavier load gives him the lower weight-adjusted
    consumption, so the tie-break puts Hans second and Bo third.
    """
    return [
        make_record("Anna Jensen", idle_standstill_time="00:12:00", avg_total_weight=38.0),
        make_record("Bo Nielsen", idle_standstill_time="01:00:00", cruise_distance_over_50=300.0,
                    distance_over_50_without_cruise=500.0),
        make_record("Hans Ole Müller", avg_total_weight=42.0),
        make_record("Kort Tur", driving_distance=40.0),
        make_record("Anna Jensen", month=5, idle_standstill_time="00:30:00"),
        make_record("Hans Ole Müller", month=5, cruise_distance_over_50=400.0),
    ]
