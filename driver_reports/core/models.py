"""
Domain models and data transfer objects.

This module defines the core data structures used throughout the application:
raw monthly driver records, derived KPIs, rankings, trends, the composed
report document and the request/result envelopes of the pipeline.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import math

from .kpis import ALL_KPIS
from .utils import PeriodUtils


class ReportType(Enum):
    """The three report variants."""

    FLEET = "fleet"
    GROUP = "group"
    INDIVIDUAL = "individual"

    @classmethod
    def parse(cls, value: Any) -> Optional["ReportType"]:
        """
        Parse a report type, accepting the Danish names used by the UI.

        Returns:
            The ReportType, or None if the value is not recognised
        """
        if isinstance(value, ReportType):
            return value
        aliases = {"samlet": cls.FLEET, "gruppe": cls.GROUP, "individuel": cls.INDIVIDUAL}
        text = str(value or "").strip().lower()
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            return None


class OutputFormat(Enum):
    """Rendered output formats."""

    PDF = "pdf"
    WORD = "word"
    EXCEL = "excel"

    @classmethod
    def parse(cls, value: Any) -> Optional["OutputFormat"]:
        if isinstance(value, OutputFormat):
            return value
        text = str(value or "").strip().lower()
        if text == "docx":
            return cls.WORD
        if text == "xlsx":
            return cls.EXCEL
        try:
            return cls(text)
        except ValueError:
            return None


class AggregationMode(Enum):
    """How cohort-level KPIs are derived from individual records."""

    PER_DRIVER_AVERAGE = "per_driver_average"
    SUM_THEN_DIVIDE = "sum_then_divide"


class TrendStatus(Enum):
    """Month-over-month classification of a KPI."""

    IMPROVEMENT = "improvement"
    REGRESSION = "regression"
    NEUTRAL = "neutral"
    NEW_DRIVER = "new_driver"
    NOT_MEASURABLE = "not_measurable"


class TargetStatus(Enum):
    """Position of a value relative to its target band."""

    OK = "ok"
    BELOW = "below"
    ABOVE = "above"


@dataclass(frozen=True)
class DriverPeriodRecord:
    """
    One driver's raw telemetry aggregate for one month.

    Identity is (driver_name, month, year). Numeric fields are None when
    the source had no value; calculations treat them as 0. Durations are
    ``hh:mm:ss`` strings as exported by the telematics portal.
    """

    driver_name: str
    month: int
    year: int

    # Distances [km]
    driving_distance: Optional[float] = None
    cruise_distance_over_50: Optional[float] = None
    distance_over_50_without_cruise: Optional[float] = None
    engine_brake_distance: Optional[float] = None
    service_brake_km: Optional[float] = None
    active_coasting_km: Optional[float] = None
    coasting_distance: Optional[float] = None
    overspeed_km_without_coasting: Optional[float] = None
    kickdown_km: Optional[float] = None

    # Durations [hh:mm:ss]
    engine_runtime: Optional[str] = None
    driving_time: Optional[str] = None
    idle_standstill_time: Optional[str] = None

    # Consumption
    total_consumption: Optional[float] = None
    avg_consumption_per_100km: Optional[float] = None
    avg_range_per_consumption: Optional[float] = None
    avg_consumption_driving: Optional[float] = None
    consumption_with_cruise: Optional[float] = None
    consumption_without_cruise: Optional[float] = None

    avg_total_weight: Optional[float] = None
    co2_emission: Optional[float] = None

    vehicles: Optional[str] = None
    group: Optional[str] = None

    @property
    def period_key(self) -> int:
        """Sortable (year, month) key."""
        return PeriodUtils.key(self.month, self.year)

    @property
    def period_label(self) -> str:
        return PeriodUtils.label(self.month, self.year)

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary representation."""
        return asdict(self)


@dataclass(frozen=True)
class CalculatedMetrics:
    """
    Derived KPIs for one record (or one cohort aggregate).

    Percentages are in [0, inf); every value is 0 when its denominator was 0.
    """

    idle_percentage: float = 0.0
    cruise_control_share: float = 0.0
    engine_brake_share: float = 0.0
    coasting_share: float = 0.0
    diesel_efficiency: float = 0.0
    weight_adjusted_consumption: float = 0.0
    overspeed_share: float = 0.0
    co2_efficiency: float = 0.0

    def get(self, kpi: str) -> float:
        """Value of a KPI by catalogue key."""
        return getattr(self, kpi)

    def to_dict(self) -> Dict[str, float]:
        return {kpi: self.get(kpi) for kpi in ALL_KPIS}

    @classmethod
    def from_mapping(cls, values: Dict[str, float]) -> "CalculatedMetrics":
        names = {f.name for f in fields(cls)}
        return cls(**{key: float(value) for key, value in values.items() if key in names})


@dataclass(frozen=True)
class TargetBand:
    """Acceptable range for a KPI; either bound may be open. Bounds are inclusive."""

    minimum: Optional[float] = None
    maximum: Optional[float] = None


@dataclass(frozen=True)
class RankingEntry:
    """
    A driver's place in an overall ranking.

    Attributes:
        driver_name: Driver identity
        metrics: The driver's KPIs for the period
        ranks: Per-metric rank (1..N) keyed by KPI
        total_score: Sum of the per-metric ranks, lower is better
        weight_adjusted_consumption: Final tie-break, lower is better
        position: 1-based final position in the ranking
    """

    driver_name: str
    metrics: CalculatedMetrics
    ranks: Dict[str, int]
    total_score: int
    weight_adjusted_consumption: float
    position: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "driver_name": self.driver_name,
            "total_score": self.total_score,
            "ranks": dict(self.ranks),
            "weight_adjusted_consumption": self.weight_adjusted_consumption,
        }


@dataclass(frozen=True)
class MetricRankingRow:
    """One row of a single-metric ranking table."""

    position: int
    driver_name: str
    value: float
    value_text: str
    within_target: bool


@dataclass(frozen=True)
class MetricRanking:
    """Ranking of the qualified cohort on one KPI."""

    kpi: str
    title: str
    description: str
    rows: List[MetricRankingRow] = field(default_factory=list)


@dataclass(frozen=True)
class TrendResult:
    """Month-over-month comparison of one KPI for one driver."""

    kpi: str
    current: float
    previous: Optional[float]
    change_pct: Optional[float]
    status: TrendStatus

    @property
    def is_improvement(self) -> bool:
        return self.status is TrendStatus.IMPROVEMENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kpi": self.kpi,
            "current": self.current,
            "previous": self.previous,
            "change_pct": self.change_pct,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class HistoryPoint:
    """Cohort KPIs for one period of a historical series."""

    month: int
    year: int
    metrics: CalculatedMetrics
    driver_count: int
    total_distance: float

    @property
    def label(self) -> str:
        return PeriodUtils.label(self.month, self.year)


@dataclass(frozen=True)
class HistoricalSeries:
    """
    Cohort KPIs across consecutive periods.

    Points are stored newest-first, the order used for month-over-month
    comparison; charting reads them oldest-first.
    """

    points: Tuple[HistoryPoint, ...]
    mode: AggregationMode

    def newest_first(self) -> List[HistoryPoint]:
        return list(self.points)

    def oldest_first(self) -> List[HistoryPoint]:
        return list(reversed(self.points))

    @property
    def latest(self) -> Optional[HistoryPoint]:
        return self.points[0] if self.points else None

    @property
    def previous(self) -> Optional[HistoryPoint]:
        return self.points[1] if len(self.points) > 1 else None

    def series(self, kpi: str) -> List[Tuple[str, float]]:
        """(label, value) pairs for one KPI, oldest first."""
        return [(point.label, point.metrics.get(kpi)) for point in self.oldest_first()]

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class DataTable:
    """A titled two-column (parameter, value) table of raw figures."""

    title: str
    rows: List[Tuple[str, str]]


@dataclass(frozen=True)
class MetricRow:
    """One row of a driver's metrics table."""

    kpi: str
    label: str
    explanation: str
    current_text: str
    previous_text: str
    target_text: str
    change_text: str
    trend: TrendResult
    target_status: Optional[TargetStatus]

    @property
    def within_target(self) -> bool:
        return self.target_status is TargetStatus.OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kpi": self.kpi,
            "label": self.label,
            "current": self.current_text,
            "previous": self.previous_text,
            "target": self.target_text,
            "change": self.change_text,
            "trend": self.trend.to_dict(),
            "target_status": self.target_status.value if self.target_status else None,
        }


@dataclass(frozen=True)
class DriverSection:
    """Detail section for one driver."""

    driver_name: str
    vehicles: Optional[str]
    position: Optional[int]
    data_tables: List[DataTable]
    metric_rows: List[MetricRow]
    previous_period_label: Optional[str]

    @property
    def is_new_driver(self) -> bool:
        return self.previous_period_label is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "driver_name": self.driver_name,
            "vehicles": self.vehicles,
            "position": self.position,
            "previous_period": self.previous_period_label,
            "data_tables": [
                {"title": table.title, "rows": [list(row) for row in table.rows]}
                for table in self.data_tables
            ],
            "metrics": [row.to_dict() for row in self.metric_rows],
        }


@dataclass(frozen=True)
class ReportDocument:
    """
    The composed, format-independent report.

    Produced once per request by the composer and discarded after rendering.
    """

    report_type: ReportType
    org_name: str
    title: str
    subject: Optional[str]
    month: int
    year: int
    generated_at: datetime
    min_km: float
    total_drivers: int
    qualified_drivers: int
    aggregation_mode: AggregationMode
    cohort_summary: Optional[CalculatedMetrics]
    overall_ranking: List[RankingEntry]
    metric_rankings: List[MetricRanking]
    driver_sections: List[DriverSection]
    target_notes: List[str] = field(default_factory=list)
    no_data: bool = False

    @property
    def period_label(self) -> str:
        return PeriodUtils.label(self.month, self.year)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable preview of the document."""
        return {
            "report_type": self.report_type.value,
            "org_name": self.org_name,
            "title": self.title,
            "subject": self.subject,
            "period": {"month": self.month, "year": self.year, "label": self.period_label},
            "generated_at": self.generated_at.isoformat(),
            "min_km": self.min_km,
            "total_drivers": self.total_drivers,
            "qualified_drivers": self.qualified_drivers,
            "no_data": self.no_data,
            "aggregation_mode": self.aggregation_mode.value,
            "cohort_summary": self.cohort_summary.to_dict() if self.cohort_summary else None,
            "overall_ranking": [entry.to_dict() for entry in self.overall_ranking],
            "metric_rankings": [
                {
                    "kpi": ranking.kpi,
                    "title": ranking.title,
                    "rows": [asdict(row) for row in ranking.rows],
                }
                for ranking in self.metric_rankings
            ],
            "drivers": [section.to_dict() for section in self.driver_sections],
            "target_notes": list(self.target_notes),
        }


@dataclass
class ReportRequest:
    """
    A report-generation request as supplied by the CLI or a web layer.

    Attributes:
        report_type: "fleet"/"group"/"individual" (Danish aliases accepted)
        month: Reporting month, 1-12
        year: Reporting year
        min_km: Minimum driving distance for a driver to qualify
        output_format: "pdf", "word" or "excel"
        group: Group name, required for group reports
        driver: Driver name, required for individual reports
        aggregation_mode: Cohort summary mode; None picks the report default
        group_members: Known group memberships, group name -> driver names
    """

    report_type: Any
    month: int
    year: int
    min_km: float = 100.0
    output_format: Any = "pdf"
    group: Optional[str] = None
    driver: Optional[str] = None
    aggregation_mode: Optional[AggregationMode] = None
    group_members: Optional[Dict[str, List[str]]] = None

    def validate(self) -> List[str]:
        """
        Check the request before any computation starts.

        Returns:
            List of validation messages; empty when the request is valid
        """
        errors: List[str] = []
        report_type = ReportType.parse(self.report_type)
        if report_type is None:
            errors.append(f"Ukendt rapporttype: {self.report_type!r}")
        if OutputFormat.parse(self.output_format) is None:
            errors.append(f"Ukendt outputformat: {self.output_format!r}")
        if not isinstance(self.month, int) or not 1 <= self.month <= 12:
            errors.append(f"Måned skal være mellem 1 og 12, fik {self.month!r}")
        if not isinstance(self.year, int) or self.year < 2000:
            errors.append(f"Ugyldigt år: {self.year!r}")
        try:
            min_km = float(self.min_km)
        except (TypeError, ValueError):
            min_km = 0.0
        if not (math.isfinite(min_km) and min_km > 0):
            errors.append("Minimum km skal være større end 0")

        if report_type is ReportType.GROUP:
            if not (self.group or "").strip():
                errors.append("Gruppe skal vælges for grupperapport")
            elif self.group_members is not None and self.group not in self.group_members:
                errors.append(f"Ukendt gruppe: {self.group}")
        if report_type is ReportType.INDIVIDUAL and not (self.driver or "").strip():
            errors.append("Chauffør skal vælges for individuel rapport")
        return errors

    @property
    def parsed_type(self) -> ReportType:
        report_type = ReportType.parse(self.report_type)
        if report_type is None:
            raise ValueError(f"Unknown report type: {self.report_type!r}")
        return report_type

    @property
    def parsed_format(self) -> OutputFormat:
        output_format = OutputFormat.parse(self.output_format)
        if output_format is None:
            raise ValueError(f"Unknown output format: {self.output_format!r}")
        return output_format


@dataclass
class ReportResult:
    """
    Result container for one report-generation run.

    Encapsulates the composed document, the rendered bytes and the
    status information the request layer needs to answer the caller.
    """

    document: Optional[ReportDocument] = None
    content: Optional[bytes] = None
    filename: Optional[str] = None
    content_type: Optional[str] = None

    success: bool = False
    message: str = ""
    errors: List[str] = field(default_factory=list)
    retryable: bool = False

    @property
    def has_content(self) -> bool:
        return self.content is not None and len(self.content) > 0

    @property
    def content_disposition(self) -> Optional[str]:
        if not self.filename:
            return None
        return f'attachment; filename="{self.filename}"'
