"""Core module containing domain models, the KPI catalogue and utilities."""

from .exceptions import (
    DataLoadError,
    DriverReportError,
    MailDeliveryError,
    RenderError,
    ReportConfigError,
)
from .models import (
    AggregationMode,
    CalculatedMetrics,
    DriverPeriodRecord,
    OutputFormat,
    RankingEntry,
    ReportDocument,
    ReportRequest,
    ReportResult,
    ReportType,
    TargetBand,
    TargetStatus,
    TrendResult,
    TrendStatus,
)
from .utils import ColumnResolver, DurationUtils, NumberUtils

__all__ = [
    "AggregationMode",
    "CalculatedMetrics",
    "ColumnResolver",
    "DataLoadError",
    "DriverPeriodRecord",
    "DriverReportError",
    "DurationUtils",
    "MailDeliveryError",
    "NumberUtils",
    "OutputFormat",
    "RankingEntry",
    "RenderError",
    "ReportConfigError",
    "ReportDocument",
    "ReportRequest",
    "ReportResult",
    "ReportType",
    "TargetBand",
    "TargetStatus",
    "TrendResult",
    "TrendStatus",
]
