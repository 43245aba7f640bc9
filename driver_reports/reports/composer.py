"""
Report composer.

Assembles the format-independent ReportDocument for a fleet, group or
individual report: qualification, rankings over the qualified cohort,
per-metric breakdowns and one detail section per reported driver.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence
import logging

from ..config import Settings, get_settings
from ..core.kpis import METRICS_TABLE_KPIS, RANKING_KPIS, RANKING_TITLES, get_kpi
from ..core.models import (
    AggregationMode,
    CalculatedMetrics,
    DataTable,
    DriverPeriodRecord,
    DriverSection,
    MetricRanking,
    MetricRankingRow,
    MetricRow,
    ReportDocument,
    ReportRequest,
    ReportType,
)
from ..core.utils import NumberUtils, PeriodUtils
from ..services.aggregator import AggregatorService
from ..services.calculator import MetricsCalculator
from ..services.ranking import RankingEngine
from ..services.trend import TREND_LABELS, TrendAnalyzer, describe_band, within_target

logger = logging.getLogger(__name__)

# Cohort summary mode used when the request does not name one
DEFAULT_AGGREGATION: Dict[ReportType, AggregationMode] = {
    ReportType.FLEET: AggregationMode.SUM_THEN_DIVIDE,
    ReportType.GROUP: AggregationMode.SUM_THEN_DIVIDE,
    ReportType.INDIVIDUAL: AggregationMode.SUM_THEN_DIVIDE,
}

RANKING_DESCRIPTIONS: Dict[str, str] = {
    "idle_percentage": (
        "Procentdel af total motordriftstid brugt i tomgang. "
        "Lavere værdi indikerer mere effektiv kørsel."
    ),
    "cruise_control_share": (
        "Procentdel af kørsel over 50 km/t hvor fartpilot er anvendt. "
        "Højere værdi betyder mere økonomisk kørsel."
    ),
    "engine_brake_share": (
        "Procentdel af bremsning udført med motorbremse frem for driftsbremse. "
        "Højere værdi er mere effektivt."
    ),
    "coasting_share": (
        "Procentdel af kørestrækningen i påløbsdrift hvor køretøjet ruller frit. "
        "Højere værdi sparer brændstof."
    ),
}

TARGET_PURPOSES: Dict[str, str] = {
    "idle_percentage": "Minimering af unødvendig tomgangskørsel",
    "cruise_control_share": "Optimal brug af fartpilot ved højere hastigheder",
    "engine_brake_share": "Effektiv brug af motorbremsning",
    "coasting_share": "Udnyttelse af køretøjets momentum",
}

# (label, record attribute, decimals); decimals None means a duration string
OPERATING_ROWS = [
    ("Ø Forbrug [l/100km]", "avg_consumption_per_100km", 1),
    ("Ø Rækkevidde ved forbrug [km/l]", "avg_range_per_consumption", 2),
    ("Ø Forbrug ved kørsel [l/100km]", "avg_consumption_driving", 1),
    ("Forbrug [l]", "total_consumption", 0),
    ("Kørestrækning [km]", "driving_distance", 0),
    ("Ø totalvægt [t]", "avg_total_weight", 1),
]
DRIVING_ROWS = [
    ("Aktiv påløbsdrift (km) [km]", "active_coasting_km", 0),
    ("Afstand i påløbsdrift [km]", "coasting_distance", 0),
    ("Kickdown (km) [km]", "kickdown_km", 0),
    ("Afstand med fartpilot (> 50 km/h) [km]", "cruise_distance_over_50", 0),
    ("Afstand > 50 km/h uden fartpilot [km]", "distance_over_50_without_cruise", 0),
    ("Forbrug med fartpilot [l/100km]", "consumption_with_cruise", 1),
    ("Forbrug uden fartpilot [l/100km]", "consumption_without_cruise", 1),
    ("Driftsbremse (km) [km]", "service_brake_km", 0),
    ("Afstand motorbremse [km]", "engine_brake_distance", 0),
    ("Overspeed (km uden påløbsdrift) [km]", "overspeed_km_without_coasting", 0),
]
IDLE_ROWS = [
    ("Motordriftstid [hh:mm:ss]", "engine_runtime", None),
    ("Køretid [hh:mm:ss]", "driving_time", None),
    ("Tomgang / stilstandstid [hh:mm:ss]", "idle_standstill_time", None),
]


class ReportComposer:
    """
    Composer for the semantic report document.

    Pure assembly: the same inputs and clock always give the same document.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        calculator: Optional[MetricsCalculator] = None,
        ranking: Optional[RankingEngine] = None,
        trend: Optional[TrendAnalyzer] = None,
        aggregator: Optional[AggregatorService] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the composer.

        Args:
            settings: Application settings. If None, uses default settings.
            calculator: KPI calculator
            ranking: Ranking engine
            trend: Trend analyzer
            aggregator: Cohort selection service
            clock: Source of the generation timestamp
        """
        self._settings = settings or get_settings()
        self._calculator = calculator or MetricsCalculator(self._settings)
        self._ranking = ranking or RankingEngine(self._settings)
        self._trend = trend or TrendAnalyzer(self._settings)
        self._aggregator = aggregator or AggregatorService(self._settings, self._calculator)
        self._clock = clock

    def compose(
        self,
        report_type: ReportType,
        cohort_current: Sequence[DriverPeriodRecord],
        cohort_previous: Sequence[DriverPeriodRecord],
        config: ReportRequest
    ) -> ReportDocument:
        """
        Compose a report document.

        Args:
            report_type: Fleet, group or individual
            cohort_current: Records of the reporting period
            cohort_previous: Each driver's previous-period record, where one exists
            config: The validated request (period, min km, selectors)

        Returns:
            ReportDocument; ``no_data`` is set when nothing qualified
        """
        report_type = ReportType.parse(report_type) or config.parsed_type
        mode = config.aggregation_mode or DEFAULT_AGGREGATION[report_type]
        min_km = float(config.min_km)

        current = self._aggregator.for_period(cohort_current, config.month, config.year)
        if report_type is ReportType.GROUP:
            current = self._aggregator.filter_group(current, config.group, config.group_members)
            logger.info(f"Group '{config.group}' has {len(current)} drivers in period")

        qualified = self._aggregator.qualify(current, min_km)
        metrics_by_driver = {
            record.driver_name: metrics
            for record, metrics in self._calculator.calculate_many(qualified)
        }
        cohort = [(record.driver_name, metrics_by_driver[record.driver_name]) for record in qualified]

        overall = self._ranking.rank(cohort)
        metric_rankings = [self._metric_ranking(cohort, kpi) for kpi in RANKING_KPIS]

        records_by_driver = {record.driver_name: record for record in qualified}
        previous_by_driver = {record.driver_name: record for record in cohort_previous}
        position_by_driver = {entry.driver_name: entry.position for entry in overall}

        if report_type is ReportType.INDIVIDUAL:
            detail_drivers = [config.driver] if config.driver in records_by_driver else []
        else:
            detail_drivers = [entry.driver_name for entry in overall]

        sections = [
            self._driver_section(
                records_by_driver[name],
                metrics_by_driver[name],
                previous_by_driver.get(name),
                position_by_driver.get(name),
            )
            for name in detail_drivers
        ]

        no_data = not sections
        if no_data:
            logger.warning(
                f"No qualified drivers for {report_type.value} report "
                f"{PeriodUtils.label(config.month, config.year)}"
            )

        subject = None
        if report_type is ReportType.GROUP:
            subject = config.group
        elif report_type is ReportType.INDIVIDUAL:
            subject = config.driver

        org_name = self._settings.report.org_name
        title = f"{org_name} Chaufførrapport"
        if subject:
            title = f"{title} - {subject}"

        return ReportDocument(
            report_type=report_type,
            org_name=org_name,
            title=title,
            subject=subject,
            month=config.month,
            year=config.year,
            generated_at=self._clock(),
            min_km=min_km,
            total_drivers=len(current),
            qualified_drivers=len(qualified),
            aggregation_mode=mode,
            cohort_summary=self._calculator.aggregate(qualified, mode) if qualified else None,
            overall_ranking=overall,
            metric_rankings=metric_rankings,
            driver_sections=sections,
            target_notes=self.target_notes(),
            no_data=no_data,
        )

    def target_notes(self) -> List[str]:
        """One explanatory line per ranking target."""
        notes = []
        for kpi in RANKING_KPIS:
            definition = get_kpi(kpi)
            band_text = describe_band(kpi, self._trend.band(kpi))
            notes.append(f"{definition.short_label}: Mål {band_text.lower()} - {TARGET_PURPOSES[kpi]}")
        return notes

    def _metric_ranking(self, cohort, kpi: str) -> MetricRanking:
        definition = get_kpi(kpi)
        band = self._trend.band(kpi)
        rows = [
            MetricRankingRow(
                position=rank,
                driver_name=driver_name,
                value=metrics.get(kpi),
                value_text=definition.format_value(metrics.get(kpi)),
                within_target=within_target(metrics.get(kpi), band),
            )
            for rank, driver_name, metrics in self._ranking.metric_ranking(cohort, kpi)
        ]
        return MetricRanking(
            kpi=kpi,
            title=RANKING_TITLES[kpi],
            description=RANKING_DESCRIPTIONS[kpi],
            rows=rows,
        )

    def _driver_section(
        self,
        record: DriverPeriodRecord,
        metrics: CalculatedMetrics,
        previous_record: Optional[DriverPeriodRecord],
        position: Optional[int]
    ) -> DriverSection:
        previous_metrics = (
            self._calculator.calculate(previous_record) if previous_record is not None else None
        )
        trends = self._trend.compare(metrics, previous_metrics)

        metric_rows = []
        for kpi in METRICS_TABLE_KPIS:
            definition = get_kpi(kpi)
            trend = trends[kpi]
            if previous_metrics is None:
                previous_text = TREND_LABELS[trend.status]
            else:
                previous_text = definition.format_value(previous_metrics.get(kpi))
            metric_rows.append(MetricRow(
                kpi=kpi,
                label=definition.label,
                explanation=definition.explanation,
                current_text=definition.format_value(metrics.get(kpi)),
                previous_text=previous_text,
                target_text=describe_band(kpi, self._trend.band(kpi)),
                change_text=self._trend.change_text(trend),
                trend=trend,
                target_status=self._trend.target_status(kpi, metrics.get(kpi)),
            ))

        return DriverSection(
            driver_name=record.driver_name,
            vehicles=record.vehicles,
            position=position,
            data_tables=[
                self._data_table("Driftsdata", record, OPERATING_ROWS),
                self._data_table("Kørselsdata", record, DRIVING_ROWS),
                self._data_table("Tomgangsdata", record, IDLE_ROWS),
            ],
            metric_rows=metric_rows,
            previous_period_label=previous_record.period_label if previous_record else None,
        )

    @staticmethod
    def _data_table(title: str, record: DriverPeriodRecord, layout) -> DataTable:
        rows = []
        for label, attribute, decimals in layout:
            value = getattr(record, attribute)
            if decimals is None:
                text = value or "N/A"
            else:
                text = NumberUtils.format_number(value, decimals)
            rows.append((label, text))
        return DataTable(title=title, rows=rows)

