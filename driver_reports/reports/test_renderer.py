"""
Test document rendering to PDF, Word and Excel.

Run with: pytest driver_reports/reports/test_renderer.py -v
"""
from dataclasses import replace
from io import BytesIO

import pytest
from docx import Document
from openpyxl import load_workbook

from driver_reports.config.settings import RenderSettings
from driver_reports.core.exceptions import RenderError
from driver_reports.core.models import OutputFormat, ReportRequest
from driver_reports.reports.composer import ReportComposer
from driver_reports.reports.renderer import DocumentRenderer
from driver_reports.services.pipeline import ReportPipeline


@pytest.fixture
def pipeline(settings, fixed_clock):
    return ReportPipeline(settings, composer=ReportComposer(settings, clock=fixed_clock))


@pytest.fixture
def fleet_doc(pipeline, june_records):
    return pipeline.compose(ReportRequest("fleet", 6, 2025), june_records)


@pytest.fixture
def driver_doc(pipeline, june_records):
    request = ReportRequest("individual", 6, 2025, driver="Hans Ole Müller")
    return pipeline.compose(request, june_records)


def test_render_pdf(settings, fleet_doc):
    content = DocumentRenderer(settings).render(fleet_doc, "pdf")
    assert content.startswith(b"%PDF")


def test_render_word(settings, driver_doc):
    content = DocumentRenderer(settings).render(driver_doc, OutputFormat.WORD)

    assert content[:2] == b"PK"
    text = "\n".join(p.text for p in Document(BytesIO(content)).paragraphs)
    assert "Hans Ole Müller" in text


def test_render_excel_one_sheet_per_page(settings, fleet_doc):
    content = DocumentRenderer(settings).render(fleet_doc, "xlsx")

    workbook = load_workbook(BytesIO(content))
    assert workbook.sheetnames[0] == "Forside"
    assert len(workbook.sheetnames) == 6
    assert "Anna Jensen" in workbook.sheetnames


def test_render_no_data(settings, pipeline, june_records):
    doc = pipeline.compose(ReportRequest("fleet", 1, 2025), june_records)
    assert DocumentRenderer(settings).render(doc, "pdf").startswith(b"%PDF")


def test_unknown_format(settings, fleet_doc):
    with pytest.raises(RenderError) as excinfo:
        DocumentRenderer(settings).render(fleet_doc, "odt")
    assert not excinfo.value.retryable


def test_filename(settings, fleet_doc, driver_doc):
    renderer = DocumentRenderer(settings)

    assert renderer.filename(fleet_doc, "pdf") == (
        "Fiskelogistik_Chaufforrapport_Juni_2025_20250701T080000.pdf"
    )
    assert renderer.filename(driver_doc, "excel") == (
        "Fiskelogistik_Chauffor_Hans_Ole_Mller_Juni_2025_20250701T080000.xlsx"
    )


def test_download_headers(settings, fleet_doc):
    renderer = DocumentRenderer(settings)

    assert renderer.content_type("word") == (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    )
    assert renderer.content_disposition(fleet_doc, "pdf") == (
        'attachment; filename="Fiskelogistik_Chaufforrapport_Juni_2025_20250701T080000.pdf"'
    )


def test_isolated_render(settings, driver_doc):
    isolated = replace(settings, render=RenderSettings(timeout_seconds=120.0, isolate_process=True))
    assert DocumentRenderer(isolated).render(driver_doc, "pdf").startswith(b"%PDF")


def test_isolated_render_timeout(settings, fleet_doc):
    isolated = replace(settings, render=RenderSettings(timeout_seconds=1e-6, isolate_process=True))
    with pytest.raises(RenderError) as excinfo:
        DocumentRenderer(isolated).render(fleet_doc, "pdf")
    assert excinfo.value.retryable
