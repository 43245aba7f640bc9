"""
Calculator service for computing driver KPIs.

This module contains the business logic that turns one raw monthly driver
record into its derived KPIs, and the two cohort aggregation modes.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

from ..config import Settings, get_settings
from ..core.kpis import ALL_KPIS
from ..core.models import AggregationMode, CalculatedMetrics, DriverPeriodRecord
from ..core.utils import DurationUtils, NumberUtils

logger = logging.getLogger(__name__)

# Raw fields that feed the formulas; durations are converted to seconds.
DISTANCE_FIELDS: List[str] = [
    "driving_distance",
    "cruise_distance_over_50",
    "distance_over_50_without_cruise",
    "engine_brake_distance",
    "service_brake_km",
    "active_coasting_km",
    "coasting_distance",
    "overspeed_km_without_coasting",
    "total_consumption",
    "avg_total_weight",
    "co2_emission",
]
DURATION_FIELDS: List[str] = ["engine_runtime", "idle_standstill_time"]


class MetricsCalculator:
    """
    Service for calculating driver KPIs.

    Every calculation is a pure, total function of its input: missing
    values count as 0, malformed durations count as 0 seconds and any ratio
    with a zero denominator is 0.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the calculator service.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        self._settings = settings or get_settings()

    def calculate(self, record: DriverPeriodRecord) -> CalculatedMetrics:
        """
        Calculate the KPIs of one driver record.

        Args:
            record: Raw monthly aggregate

        Returns:
            CalculatedMetrics for the record
        """
        return self._compute(self._inputs(record))

    def calculate_many(
        self,
        records: Iterable[DriverPeriodRecord]
    ) -> List[Tuple[DriverPeriodRecord, CalculatedMetrics]]:
        """Calculate KPIs for several records, preserving input order."""
        return [(record, self.calculate(record)) for record in records]

    def aggregate(
        self,
        records: Sequence[DriverPeriodRecord],
        mode: AggregationMode
    ) -> CalculatedMetrics:
        """
        Calculate cohort-level KPIs.

        Args:
            records: The cohort, one record per driver
            mode: PER_DRIVER_AVERAGE averages each driver's KPIs;
                SUM_THEN_DIVIDE sums all raw inputs first and applies the
                formulas once. The weight denominator is then the sum of
                the drivers' average weights.

        Returns:
            Cohort CalculatedMetrics (all zero for an empty cohort)
        """
        if not records:
            return CalculatedMetrics()

        if mode is AggregationMode.PER_DRIVER_AVERAGE:
            frame = pd.DataFrame([self.calculate(record).to_dict() for record in records])
            means = frame[ALL_KPIS].mean()
            return CalculatedMetrics.from_mapping(means.to_dict())

        if mode is AggregationMode.SUM_THEN_DIVIDE:
            frame = pd.DataFrame([self._inputs(record) for record in records])
            totals = frame.sum(numeric_only=True)
            return self._compute(totals.to_dict())

        raise ValueError(f"Unsupported aggregation mode: {mode!r}")

    def _inputs(self, record: DriverPeriodRecord) -> Dict[str, float]:
        """Numeric formula inputs of a record."""
        values = {name: NumberUtils.to_float(getattr(record, name)) for name in DISTANCE_FIELDS}
        for name in DURATION_FIELDS:
            values[f"{name}_seconds"] = float(DurationUtils.to_seconds(getattr(record, name)))
        return values

    def _compute(self, v: Dict[str, float]) -> CalculatedMetrics:
        """Apply the KPI formulas to a set of numeric inputs."""
        ratio = NumberUtils.safe_ratio
        distance = v.get("driving_distance", 0.0)
        consumption = v.get("total_consumption", 0.0)
        weight = v.get("avg_total_weight", 0.0)
        cruise = v.get("cruise_distance_over_50", 0.0)
        engine_brake = v.get("engine_brake_distance", 0.0)

        if distance == 0 or weight == 0:
            weight_adjusted = 0.0
        else:
            weight_adjusted = ratio(consumption, distance, 100.0) / weight

        metrics = CalculatedMetrics(
            idle_percentage=ratio(
                v.get("idle_standstill_time_seconds", 0.0),
                v.get("engine_runtime_seconds", 0.0),
                100.0,
            ),
            cruise_control_share=ratio(
                cruise, cruise + v.get("distance_over_50_without_cruise", 0.0), 100.0
            ),
            engine_brake_share=ratio(
                engine_brake, engine_brake + v.get("service_brake_km", 0.0), 100.0
            ),
            coasting_share=ratio(
                v.get("active_coasting_km", 0.0) + v.get("coasting_distance", 0.0),
                distance,
                100.0,
            ),
            diesel_efficiency=ratio(distance, consumption),
            weight_adjusted_consumption=weight_adjusted,
            overspeed_share=ratio(v.get("overspeed_km_without_coasting", 0.0), distance, 100.0),
            co2_efficiency=(
                ratio(v.get("co2_emission", 0.0), distance) / weight if weight else 0.0
            ),
        )
        return self._sanitize(metrics)

    @staticmethod
    def _sanitize(metrics: CalculatedMetrics) -> CalculatedMetrics:
        """Replace any non-finite value with 0."""
        values = metrics.to_dict()
        if all(np.isfinite(value) for value in values.values()):
            return metrics
        logger.debug("Non-finite KPI value replaced with 0")
        return CalculatedMetrics.from_mapping(
            {key: (value if np.isfinite(value) else 0.0) for key, value in values.items()}
        )
