"""
Aggregation service for cohort selection and period history.

This module handles qualification filtering, group selection, the
previous-period lookup used for month-over-month comparison and the
historical KPI series of the KPI overview.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

import pandas as pd

from ..config import Settings, get_settings
from ..core.models import AggregationMode, DriverPeriodRecord, HistoricalSeries, HistoryPoint
from ..core.utils import NumberUtils, PeriodUtils
from .calculator import MetricsCalculator

logger = logging.getLogger(__name__)


class AggregatorService:
    """
    Service for selecting cohorts and aggregating them over time.

    Records arrive already fetched; this service never reads storage.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        calculator: Optional[MetricsCalculator] = None
    ):
        """
        Initialize the aggregator service.

        Args:
            settings: Application settings. If None, uses default settings.
            calculator: KPI calculator. Created from settings if None.
        """
        self._settings = settings or get_settings()
        self._calculator = calculator or MetricsCalculator(self._settings)

    def for_period(
        self,
        records: Iterable[DriverPeriodRecord],
        month: int,
        year: int
    ) -> List[DriverPeriodRecord]:
        """
        Records of one period, one per driver.

        A driver appearing twice in a period keeps the first record.
        """
        selected: Dict[str, DriverPeriodRecord] = {}
        for record in records:
            if record.month != month or record.year != year:
                continue
            if record.driver_name in selected:
                logger.warning(
                    f"Duplicate record for {record.driver_name} in "
                    f"{PeriodUtils.label(month, year)}, keeping the first"
                )
                continue
            selected[record.driver_name] = record
        return list(selected.values())

    def qualify(
        self,
        records: Iterable[DriverPeriodRecord],
        min_km: float
    ) -> List[DriverPeriodRecord]:
        """
        Keep drivers whose driving distance reaches the threshold.

        Args:
            records: Candidate records
            min_km: Minimum driving distance, inclusive

        Returns:
            Qualified records in input order
        """
        records = list(records)
        qualified = [
            record for record in records
            if NumberUtils.to_float(record.driving_distance) >= min_km
        ]
        logger.info(f"Qualified drivers: {len(qualified)} of {len(records)} (min {min_km:g} km)")
        return qualified

    def filter_group(
        self,
        records: Iterable[DriverPeriodRecord],
        group: str,
        group_members: Optional[Mapping[str, Sequence[str]]] = None
    ) -> List[DriverPeriodRecord]:
        """
        Restrict records to one driver group.

        Args:
            records: Candidate records
            group: Group name
            group_members: Group name -> driver names. When absent, the
                record's own ``group`` field decides membership.

        Returns:
            Records of the group's drivers
        """
        if group_members is not None and group in group_members:
            members = set(group_members[group])
            return [record for record in records if record.driver_name in members]
        return [record for record in records if record.group == group]

    def find_previous(
        self,
        records: Sequence[DriverPeriodRecord],
        driver_name: str,
        month: int,
        year: int
    ) -> Optional[DriverPeriodRecord]:
        """
        Latest record of a driver before (month, year).

        Searches backwards month by month for at most the configured
        lookback, never earlier than the configured earliest year.

        Args:
            records: All available records
            driver_name: Driver to look up
            month: Current month
            year: Current year

        Returns:
            The previous record, or None for a new driver
        """
        by_period = {
            (record.month, record.year): record
            for record in records
            if record.driver_name == driver_name
        }
        search_month, search_year = month, year
        for _ in range(self._settings.report.previous_lookback_months):
            search_month, search_year = PeriodUtils.previous(search_month, search_year)
            if search_year < self._settings.report.earliest_year:
                break
            record = by_period.get((search_month, search_year))
            if record is not None:
                return record
        return None

    def previous_cohort(
        self,
        records: Sequence[DriverPeriodRecord],
        drivers: Iterable[str],
        month: int,
        year: int
    ) -> List[DriverPeriodRecord]:
        """Previous-period records for a set of drivers; new drivers are skipped."""
        previous = []
        for driver_name in drivers:
            record = self.find_previous(records, driver_name, month, year)
            if record is not None:
                previous.append(record)
        return previous

    def available_periods(self, records: Iterable[DriverPeriodRecord]) -> List[Tuple[int, int]]:
        """Distinct (month, year) pairs, newest first."""
        periods = {(record.month, record.year) for record in records}
        return sorted(periods, key=lambda p: PeriodUtils.key(*p), reverse=True)

    def build_history(
        self,
        records: Sequence[DriverPeriodRecord],
        min_km: float,
        mode: AggregationMode,
        max_periods: Optional[int] = None
    ) -> HistoricalSeries:
        """
        Cohort KPIs per period.

        Args:
            records: Records of any number of periods
            min_km: Qualification threshold applied within each period
            mode: Aggregation mode, passed explicitly
            max_periods: Keep only the newest N periods

        Returns:
            HistoricalSeries, newest period first
        """
        if not records:
            return HistoricalSeries(points=(), mode=mode)

        frame = pd.DataFrame(
            [{"month": r.month, "year": r.year, "index": i} for i, r in enumerate(records)]
        )
        points: List[HistoryPoint] = []
        grouped = frame.groupby(["year", "month"], sort=True)
        for (year, month), group in grouped:
            period_records = self.for_period(
                (records[i] for i in group["index"]), int(month), int(year)
            )
            qualified = self.qualify(period_records, min_km)
            if not qualified:
                continue
            points.append(HistoryPoint(
                month=int(month),
                year=int(year),
                metrics=self._calculator.aggregate(qualified, mode),
                driver_count=len(qualified),
                total_distance=sum(NumberUtils.to_float(r.driving_distance) for r in qualified),
            ))

        points.reverse()
        if max_periods is not None:
            points = points[:max_periods]
        logger.info(f"Built KPI history with {len(points)} periods ({mode.value})")
        return HistoricalSeries(points=tuple(points), mode=mode)
