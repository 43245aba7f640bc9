"""
Driver performance analytics and report rendering.

Computes fuel-efficiency and driving-behaviour KPIs from monthly telematics
records, ranks drivers and renders fleet, group and individual reports.
"""

__version__ = "1.0.0"

from .config import Settings, get_settings, load_settings
from .core import DriverPeriodRecord, ReportDocument, ReportRequest, ReportResult
from .services import AggregatorService, DataLoaderService, MetricsCalculator, RankingEngine, TrendAnalyzer
from .reports import DocumentRenderer, LayoutPlanner, ReportComposer
from .services.pipeline import ReportPipeline

__all__ = [
    "AggregatorService",
    "DataLoaderService",
    "DocumentRenderer",
    "DriverPeriodRecord",
    "LayoutPlanner",
    "MetricsCalculator",
    "RankingEngine",
    "ReportComposer",
    "ReportDocument",
    "ReportPipeline",
    "ReportRequest",
    "ReportResult",
    "Settings",
    "TrendAnalyzer",
    "get_settings",
    "load_settings",
]
