"""Services module containing business logic implementations."""

from .data_loader import DataLoaderService
from .calculator import MetricsCalculator
from .ranking import RankingEngine
from .trend import TrendAnalyzer, classify, within_target
from .aggregator import AggregatorService
from .excel_formatter import ExcelFormatter
from .mail import MailService, MailjetTransport, SmtpTransport, create_transport

# ReportPipeline depends on the reports package; import it from
# driver_reports.services.pipeline.

__all__ = [
    "AggregatorService",
    "DataLoaderService",
    "ExcelFormatter",
    "MailService",
    "MailjetTransport",
    "MetricsCalculator",
    "RankingEngine",
    "SmtpTransport",
    "TrendAnalyzer",
    "classify",
    "create_transport",
    "within_target",
]
