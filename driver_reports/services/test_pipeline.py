"""
Test the end-to-end report pipeline.

Run with: pytest driver_reports/services/test_pipeline.py -v
"""
from dataclasses import replace

import pytest
from openpyxl import load_workbook

from driver_reports.core.exceptions import RenderError
from driver_reports.core.models import AggregationMode, ReportRequest
from driver_reports.reports.composer import ReportComposer
from driver_reports.reports.renderer import DocumentRenderer
from driver_reports.services.mail import MailService, MailTransport
from driver_reports.services.pipeline import ReportPipeline


@pytest.fixture
def pipeline(settings, fixed_clock):
    return ReportPipeline(settings, composer=ReportComposer(settings, clock=fixed_clock))


def test_fleet_pdf(pipeline, june_records):
    result = pipeline.run(ReportRequest("fleet", 6, 2025), june_records)

    assert result.success, result.errors
    assert result.content.startswith(b"%PDF")
    assert result.filename == "Fiskelogistik_Chaufforrapport_Juni_2025_20250701T080000.pdf"
    assert result.content_type == "application/pdf"
    assert result.document.qualified_drivers == 3
    assert result.document.total_drivers == 4


def test_individual_word(pipeline, june_records):
    request = ReportRequest("individuel", 6, 2025, output_format="word", driver="Hans Ole Müller")
    result = pipeline.run(request, june_records)

    assert result.success, result.errors
    assert result.content[:2] == b"PK"
    assert "Hans_Ole_Mller" in result.filename
    assert " " not in result.filename
    assert result.filename.endswith(".docx")


def test_invalid_request_reports_errors(pipeline, june_records):
    result = pipeline.run(ReportRequest("group", 0, 2025, min_km=-5), june_records)

    assert not result.success
    assert len(result.errors) == 3
    assert result.content is None


def test_render_failure_is_retryable(settings, fixed_clock, june_records):
    class BrokenRenderer(DocumentRenderer):
        def render(self, doc, fmt):
            raise RenderError("worker crashed")

    pipeline = ReportPipeline(
        settings,
        composer=ReportComposer(settings, clock=fixed_clock),
        renderer=BrokenRenderer(settings),
    )
    result = pipeline.run(ReportRequest("fleet", 6, 2025), june_records)

    assert not result.success
    assert result.retryable


def test_preview(pipeline, june_records):
    preview = pipeline.preview(ReportRequest("fleet", 6, 2025), june_records)

    assert preview["success"]
    document = preview["document"]
    assert document["period"]["label"] == "Juni 2025"
    assert [entry["position"] for entry in document["overall_ranking"]] == [1, 2, 3]
    assert document["aggregation_mode"] == AggregationMode.SUM_THEN_DIVIDE.value


def test_preview_of_empty_period_is_no_data(pipeline, june_records):
    preview = pipeline.preview(ReportRequest("fleet", 1, 2025), june_records)
    assert preview["success"]
    assert preview["document"]["no_data"]


def test_kpi_overview(pipeline, june_records):
    history = pipeline.kpi_history(june_records)
    df = pipeline.kpi_overview(history)

    assert list(df["Periode"]) == ["Juni 2025", "Maj 2025"]
    assert df.loc[1, "Tomgang udvikling"] == "Ny chauffør"
    assert df.loc[0, "Chauffører"] == 3


def test_export_kpi_overview(pipeline, june_records, tmp_path):
    path = tmp_path / "kpi.xlsx"
    assert pipeline.export_kpi_overview(pipeline.kpi_history(june_records), path)

    sheet = load_workbook(path).active
    assert sheet.title == "KPI Oversigt"
    assert sheet["A2"].value == "Juni 2025"


def test_mail_driver_report(pipeline, june_records):
    class RecordingTransport(MailTransport):
        def __init__(self):
            self.sent = []

        def send(self, message):
            self.sent.append(message)

    transport = RecordingTransport()
    service = MailService(transport, pipeline._settings, sleep=lambda _: None)

    result = pipeline.mail_driver_report(
        service, june_records, "Hans Ole Müller", 6, 2025, "hans@example.dk"
    )

    assert result.success
    message = transport.sent[0]
    assert message.subject == "Chauffør Rapport - Hans Ole Müller - Juni 2025"
    assert "Kære Hans," in message.html_body
    assert message.attachments[0].content.startswith(b"%PDF")
