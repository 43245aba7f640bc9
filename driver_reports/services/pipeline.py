"""
Report pipeline that orchestrates all services.

This module coordinates request validation, cohort selection, document
composition and rendering, plus the KPI history and the report mail flow.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import logging

import pandas as pd

from ..config import Settings, get_settings
from ..core.exceptions import DataLoadError, RenderError, ReportConfigError
from ..core.kpis import ALL_KPIS, get_kpi
from ..core.models import (
    AggregationMode,
    DriverPeriodRecord,
    HistoricalSeries,
    ReportDocument,
    ReportRequest,
    ReportResult,
    ReportType,
)
from ..reports.composer import ReportComposer
from ..reports.renderer import DocumentRenderer
from .aggregator import AggregatorService
from .calculator import MetricsCalculator
from .data_loader import DataLoaderService
from .excel_formatter import ExcelFormatter
from .mail import DeliveryResult, MailAttachment, MailService, build_driver_summary_html, report_subject
from .trend import TrendAnalyzer

logger = logging.getLogger(__name__)


def _step(title: str) -> None:
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)


class ReportPipeline:
    """
    Main pipeline for driver performance reports.

    Runs a validated request from raw records to a rendered document and
    reports the outcome as a ReportResult instead of raising.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        composer: Optional[ReportComposer] = None,
        renderer: Optional[DocumentRenderer] = None
    ):
        """
        Initialize the report pipeline.

        Args:
            settings: Application settings. If None, uses default settings.
            composer: Report composer. Created from settings if None.
            renderer: Document renderer. Created from settings if None.
        """
        self._settings = settings or get_settings()

        # Initialize services
        self._loader = DataLoaderService(self._settings)
        self._calculator = MetricsCalculator(self._settings)
        self._trend = TrendAnalyzer(self._settings)
        self._aggregator = AggregatorService(self._settings, self._calculator)
        self._composer = composer or ReportComposer(
            self._settings,
            calculator=self._calculator,
            trend=self._trend,
            aggregator=self._aggregator,
        )
        self._renderer = renderer or DocumentRenderer(self._settings)
        self._excel_formatter = ExcelFormatter()

    def validate(self, request: ReportRequest) -> None:
        """
        Validate a request up front.

        Raises:
            ReportConfigError: Carrying every validation message
        """
        errors = request.validate()
        if errors:
            raise ReportConfigError(errors)

    def compose(self, request: ReportRequest, records: Sequence[DriverPeriodRecord]) -> ReportDocument:
        """
        Select the cohorts of a validated request and compose its document.

        Args:
            request: The report request
            records: Records of all available periods

        Returns:
            The composed ReportDocument
        """
        records = list(records)
        current = self._aggregator.for_period(records, request.month, request.year)
        previous = self._aggregator.previous_cohort(
            records,
            [record.driver_name for record in current],
            request.month,
            request.year,
        )
        logger.info(f"Current period: {len(current)} drivers, {len(previous)} with a previous record")
        return self._composer.compose(request.parsed_type, current, previous, request)

    def run(
        self,
        request: ReportRequest,
        records: Sequence[DriverPeriodRecord],
        preview: bool = False
    ) -> ReportResult:
        """
        Execute the full report pipeline.

        Args:
            request: The report request
            records: Records of all available periods
            preview: Stop after composition, without rendering

        Returns:
            ReportResult with the document and, unless previewing, the file
        """
        result = ReportResult()

        try:
            _step("STEP 1: Validating request")
            self.validate(request)

            _step("STEP 2: Composing report")
            document = self.compose(request, records)
            result.document = document

            if preview:
                result.success = True
                result.message = "Preview composed"
                return result

            _step("STEP 3: Rendering document")
            output_format = request.parsed_format
            result.content = self._renderer.render(document, output_format)
            result.filename = self._renderer.filename(document, output_format)
            result.content_type = self._renderer.content_type(output_format)

            result.success = True
            result.message = f"Report generated: {result.filename}"

        except ReportConfigError as e:
            result.success = False
            result.message = "Invalid report request"
            result.errors = list(e.errors)
            logger.error(f"{result.message}: {'; '.join(e.errors)}")

        except RenderError as e:
            result.success = False
            result.message = f"Rendering failed: {e}"
            result.errors.append(str(e))
            result.retryable = e.retryable
            logger.error(result.message)

        except Exception as e:
            result.success = False
            result.message = f"Report generation failed: {e}"
            result.errors.append(str(e))
            logger.exception("Report pipeline failed")

        return result

    def preview(self, request: ReportRequest, records: Sequence[DriverPeriodRecord]) -> Dict[str, Any]:
        """
        JSON-serialisable preview of a report.

        Returns:
            The document's ``to_dict()``, or an error object
        """
        result = self.run(request, records, preview=True)
        if not result.success:
            return {"success": False, "message": result.message, "errors": result.errors}
        return {"success": True, "document": result.document.to_dict()}

    def load_records(self, input_path: Optional[Path] = None, **period) -> List[DriverPeriodRecord]:
        """
        Load driver records from the CSV export.

        Args:
            input_path: CSV path. Uses the configured input if None.
            **period: Optional ``month``/``year`` for files without period columns

        Raises:
            FileNotFoundError: If the file does not exist
            DataLoadError: If the file cannot be parsed
        """
        return self._loader.load_records(input_path, **period)

    def load_groups(self, groups_path: Optional[Path] = None) -> Dict[str, List[str]]:
        return self._loader.load_groups(groups_path)

    # =========================================================================
    # KPI history
    # =========================================================================

    def kpi_history(
        self,
        records: Sequence[DriverPeriodRecord],
        min_km: Optional[float] = None,
        mode: AggregationMode = AggregationMode.PER_DRIVER_AVERAGE,
        max_periods: Optional[int] = None
    ) -> HistoricalSeries:
        """
        Cohort KPIs per period.

        Args:
            records: Records of all available periods
            min_km: Qualification threshold; the configured default if None
            mode: Aggregation mode
            max_periods: Keep only the newest N periods

        Returns:
            HistoricalSeries, newest first
        """
        threshold = self._settings.report.default_min_km if min_km is None else min_km
        return self._aggregator.build_history(list(records), threshold, mode, max_periods)

    def kpi_overview(self, history: HistoricalSeries) -> pd.DataFrame:
        """
        Tabular KPI history with month-over-month change.

        One row per period, newest first. Each KPI has a value column and a
        change column comparing with the period below it.
        """
        points = history.newest_first()
        rows = []
        for index, point in enumerate(points):
            previous = points[index + 1].metrics if index + 1 < len(points) else None
            trends = self._trend.compare(point.metrics, previous)
            row: Dict[str, Any] = {
                "Periode": point.label,
                "Chauffører": point.driver_count,
                "Kørestrækning [km]": round(point.total_distance),
            }
            for kpi in ALL_KPIS:
                definition = get_kpi(kpi)
                row[definition.label] = round(point.metrics.get(kpi), definition.decimals)
                row[f"{definition.short_label} udvikling"] = self._trend.change_text(trends[kpi])
            rows.append(row)
        return pd.DataFrame(rows)

    def export_kpi_overview(self, history: HistoricalSeries, path: Optional[Path] = None) -> bool:
        """
        Write the KPI history to a formatted Excel file.

        Returns:
            True if the file was written
        """
        target = Path(path or self._settings.kpi_overview_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        df = self.kpi_overview(history)
        bands = {}
        decimals = {}
        for kpi in ALL_KPIS:
            definition = get_kpi(kpi)
            decimals[definition.label] = definition.decimals
            band = self._trend.band(kpi)
            if band is not None:
                bands[definition.label] = band
        return self._excel_formatter.export(df, target, sheet_name="KPI Oversigt", bands=bands, decimals=decimals)

    # =========================================================================
    # Report mail
    # =========================================================================

    def mail_driver_report(
        self,
        mail_service: MailService,
        records: Sequence[DriverPeriodRecord],
        driver: str,
        month: int,
        year: int,
        recipient: str,
        min_km: Optional[float] = None
    ) -> DeliveryResult:
        """
        Render a driver's individual PDF report and mail it with a goal summary.

        Raises:
            ReportConfigError: If the request is invalid
            RenderError: If the report cannot be rendered
            DataLoadError: If the driver has no qualified record in the period
        """
        request = ReportRequest(
            report_type=ReportType.INDIVIDUAL,
            month=month,
            year=year,
            min_km=self._settings.report.default_min_km if min_km is None else min_km,
            output_format="pdf",
            driver=driver,
        )
        self.validate(request)
        document = self.compose(request, records)
        if document.no_data:
            raise DataLoadError(f"No qualified record for {driver} in {document.period_label}")

        current = self._aggregator.for_period(records, month, year)
        record = next(r for r in current if r.driver_name == driver)
        metrics = self._calculator.calculate(record)

        content = self._renderer.render(document, request.parsed_format)
        attachment = MailAttachment(
            filename=self._renderer.filename(document, request.parsed_format),
            content=content,
            content_type=self._renderer.content_type(request.parsed_format),
        )
        html_body = build_driver_summary_html(
            driver,
            document.period_label,
            metrics,
            self._trend.evaluate_goals(metrics),
            {kpi: self._trend.band(kpi) for kpi in ALL_KPIS},
            org_name=self._settings.report.org_name,
            sender_name=self._settings.mail.sender_name,
        )
        return mail_service.send_report(
            recipient,
            report_subject(driver, document.period_label),
            html_body,
            attachment,
        )

    @property
    def loader(self) -> DataLoaderService:
        """Get the data loader service."""
        return self._loader

    @property
    def aggregator(self) -> AggregatorService:
        """Get the aggregator service."""
        return self._aggregator

    @property
    def renderer(self) -> DocumentRenderer:
        """Get the document renderer."""
        return self._renderer
