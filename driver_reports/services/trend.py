"""
Trend and target evaluation service.

Compares a driver's KPIs with the previous period and classifies values
against the company target bands. The classification functions are
shared by the JSON preview, the mail summary and every document renderer.
"""

from typing import Dict, Optional
import logging

from ..config import Settings, get_settings
from ..core.kpis import ALL_KPIS, RANKING_KPIS, get_kpi
from ..core.models import CalculatedMetrics, TargetBand, TargetStatus, TrendResult, TrendStatus
from ..core.utils import NumberUtils

logger = logging.getLogger(__name__)

TREND_LABELS: Dict[TrendStatus, str] = {
    TrendStatus.NEW_DRIVER: "Ny chauffør",
    TrendStatus.NOT_MEASURABLE: "Ikke målbar",
}


def classify(value: float, band: TargetBand) -> TargetStatus:
    """
    Position a value relative to a target band.

    Args:
        value: KPI value
        band: Inclusive target band; an open side never fails

    Returns:
        BELOW if under the minimum, ABOVE if over the maximum, otherwise OK
    """
    if band.minimum is not None and value < band.minimum:
        return TargetStatus.BELOW
    if band.maximum is not None and value > band.maximum:
        return TargetStatus.ABOVE
    return TargetStatus.OK


def within_target(value: float, band: Optional[TargetBand]) -> bool:
    """True when a band exists and the value lies inside it."""
    return band is not None and classify(value, band) is TargetStatus.OK


def describe_band(kpi: str, band: Optional[TargetBand]) -> str:
    """Display text of a target band, e.g. ``Under 5.0%`` or ``Over 66.5%``."""
    if band is None:
        return "-"
    definition = get_kpi(kpi)
    if band.minimum is not None and band.maximum is not None:
        return f"{definition.format_value(band.minimum)} - {definition.format_value(band.maximum)}"
    if band.maximum is not None:
        return f"Under {definition.format_value(band.maximum)}"
    return f"Over {definition.format_value(band.minimum)}"


class TrendAnalyzer:
    """
    Service for month-over-month comparison and target evaluation.

    Stateless apart from the injected target configuration.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the trend analyzer.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        self._settings = settings or get_settings()

    def compare_value(self, kpi: str, current: float, previous: Optional[float]) -> TrendResult:
        """
        Compare one KPI between two periods.

        Args:
            kpi: KPI catalogue key
            current: Current-period value
            previous: Previous-period value, None for a new driver

        Returns:
            TrendResult with percent change and classification
        """
        if previous is None:
            return TrendResult(kpi, current, None, None, TrendStatus.NEW_DRIVER)
        if previous == 0:
            return TrendResult(kpi, current, previous, None, TrendStatus.NOT_MEASURABLE)

        change = (current - previous) / previous * 100.0
        if change == 0:
            status = TrendStatus.NEUTRAL
        elif (change > 0) == get_kpi(kpi).higher_is_better:
            status = TrendStatus.IMPROVEMENT
        else:
            status = TrendStatus.REGRESSION
        return TrendResult(kpi, current, previous, change, status)

    def compare(
        self,
        current: CalculatedMetrics,
        previous: Optional[CalculatedMetrics]
    ) -> Dict[str, TrendResult]:
        """
        Compare every KPI between two periods.

        Args:
            current: Current-period metrics
            previous: Previous-period metrics, None for a new driver

        Returns:
            TrendResult per KPI key
        """
        return {
            kpi: self.compare_value(
                kpi,
                current.get(kpi),
                previous.get(kpi) if previous is not None else None,
            )
            for kpi in ALL_KPIS
        }

    def change_text(self, trend: TrendResult) -> str:
        """Display text of a trend: signed change or a status label."""
        if trend.change_pct is None:
            return TREND_LABELS[trend.status]
        return NumberUtils.format_change(trend.change_pct)

    def band(self, kpi: str) -> Optional[TargetBand]:
        """Configured target band of a KPI."""
        return self._settings.targets.band_for(kpi)

    def target_status(self, kpi: str, value: float) -> Optional[TargetStatus]:
        """Target classification, or None when the KPI has no target."""
        band = self.band(kpi)
        if band is None:
            return None
        return classify(value, band)

    def evaluate_goals(self, metrics: CalculatedMetrics) -> Dict[str, bool]:
        """
        Goal pass/fail for the four ranking KPIs.

        Args:
            metrics: A driver's metrics

        Returns:
            KPI key -> True when the value meets its target
        """
        return {kpi: within_target(metrics.get(kpi), self.band(kpi)) for kpi in RANKING_KPIS}
