"""
Ranking service for ordering a cohort of drivers.

Each of the four ranking KPIs is ranked independently (1..N, no shared
ranks); the overall order is by the summed ranks, then by weight-adjusted
consumption. Python's sort is stable, so equal values keep input order.
"""

from dataclasses import replace
from typing import List, Optional, Sequence, Tuple
import logging

from ..config import Settings, get_settings
from ..core.kpis import RANKING_KPIS, WEIGHT_ADJUSTED, get_kpi
from ..core.models import CalculatedMetrics, RankingEntry

logger = logging.getLogger(__name__)

Cohort = Sequence[Tuple[str, CalculatedMetrics]]


class RankingEngine:
    """Service producing deterministic rankings for one period's cohort."""

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the ranking engine.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        self._settings = settings or get_settings()

    def metric_ranking(self, cohort: Cohort, kpi: str) -> List[Tuple[int, str, CalculatedMetrics]]:
        """
        Rank the cohort on a single KPI.

        Args:
            cohort: (driver_name, metrics) pairs in input order
            kpi: KPI catalogue key

        Returns:
            (rank, driver_name, metrics) tuples, best first
        """
        return [
            (rank, cohort[index][0], cohort[index][1])
            for rank, index in enumerate(self._order(cohort, kpi), start=1)
        ]

    def rank(self, cohort: Cohort) -> List[RankingEntry]:
        """
        Produce the overall ranking.

        Args:
            cohort: (driver_name, metrics) pairs for one period

        Returns:
            RankingEntry list ordered by total score, then weight-adjusted
            consumption, with 1-based positions assigned
        """
        if not cohort:
            return []

        ranks_by_index = [dict() for _ in cohort]
        for kpi in RANKING_KPIS:
            for rank, index in enumerate(self._order(cohort, kpi), start=1):
                ranks_by_index[index][kpi] = rank

        entries = [
            RankingEntry(
                driver_name=driver_name,
                metrics=metrics,
                ranks=ranks_by_index[index],
                total_score=sum(ranks_by_index[index].values()),
                weight_adjusted_consumption=metrics.get(WEIGHT_ADJUSTED),
            )
            for index, (driver_name, metrics) in enumerate(cohort)
        ]
        ordered = sorted(entries, key=lambda e: (e.total_score, e.weight_adjusted_consumption))

        result = [
            replace(entry, position=position)
            for position, entry in enumerate(ordered, start=1)
        ]
        logger.debug(f"Ranked {len(result)} drivers")
        return result

    @staticmethod
    def _order(cohort: Cohort, kpi: str) -> List[int]:
        """Cohort indexes sorted best-first on one KPI; ties keep input order."""
        higher_is_better = get_kpi(kpi).higher_is_better

        def sort_key(index: int) -> float:
            value = cohort[index][1].get(kpi)
            return -value if higher_is_better else value

        return sorted(range(len(cohort)), key=sort_key)
