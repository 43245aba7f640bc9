"""
Test domain models and the KPI catalogue.

Run with: pytest driver_reports/core/test_models.py -v
"""
from driver_reports.core.kpis import ALL_KPIS, METRICS_TABLE_KPIS, RANKING_KPIS, format_kpi, get_kpi
from driver_reports.core.models import (
    CalculatedMetrics,
    OutputFormat,
    ReportRequest,
    ReportResult,
    ReportType,
)


def test_report_type_parse_accepts_danish_names():
    assert ReportType.parse("samlet") is ReportType.FLEET
    assert ReportType.parse("Gruppe") is ReportType.GROUP
    assert ReportType.parse("individual") is ReportType.INDIVIDUAL
    assert ReportType.parse("weekly") is None


def test_output_format_parse_accepts_extensions():
    assert OutputFormat.parse("docx") is OutputFormat.WORD
    assert OutputFormat.parse("XLSX") is OutputFormat.EXCEL
    assert OutputFormat.parse("pdf") is OutputFormat.PDF
    assert OutputFormat.parse("odt") is None


def test_kpi_precision():
    """Test catalogue precision: percentages 1, diesel 2, weight-adjusted 3, CO2 4."""
    assert format_kpi("idle_percentage", 4.56) == "4.6%"
    assert format_kpi("diesel_efficiency", 3.3333) == "3.33 km/l"
    assert format_kpi("weight_adjusted_consumption", 0.75) == "0.750 l/100km/t"
    assert format_kpi("co2_efficiency", 0.02) == "0.0200 kg/km/t"
    assert format_kpi("idle_percentage", None) == "N/A"


def test_kpi_lists():
    assert len(METRICS_TABLE_KPIS) == 7
    assert RANKING_KPIS == ["idle_percentage", "cruise_control_share", "engine_brake_share", "coasting_share"]
    assert not get_kpi("idle_percentage").higher_is_better
    assert set(RANKING_KPIS) <= set(ALL_KPIS)


def test_metrics_from_mapping_ignores_unknown_keys():
    metrics = CalculatedMetrics.from_mapping({"idle_percentage": 3, "unknown": 1})
    assert metrics.idle_percentage == 3.0
    assert metrics.to_dict()["cruise_control_share"] == 0.0


def test_valid_request_has_no_errors():
    request = ReportRequest(report_type="fleet", month=6, year=2025)
    assert request.validate() == []
    assert request.parsed_format is OutputFormat.PDF


def test_validation_collects_every_error():
    """Test that all problems are reported together, before any computation."""
    request = ReportRequest(report_type="group", month=13, year=1999, min_km=0, output_format="odt")
    errors = request.validate()
    assert len(errors) == 5
    assert any("Måned" in error for error in errors)
    assert any("Gruppe" in error for error in errors)

    for min_km in (float("nan"), float("inf"), -5):
        errors = ReportRequest(report_type="fleet", month=6, year=2025, min_km=min_km).validate()
        assert errors == ["Minimum km skal være større end 0"]


def test_validation_unknown_type_and_missing_driver():
    assert len(ReportRequest(report_type="weekly", month=6, year=2025).validate()) == 1
    errors = ReportRequest(report_type="individual", month=6, year=2025).validate()
    assert errors == ["Chauffør skal vælges for individuel rapport"]


def test_validation_unknown_group_when_memberships_known():
    request = ReportRequest(
        report_type="group", month=6, year=2025, group="Syd", group_members={"Nord": ["Anna"]}
    )
    assert request.validate() == ["Ukendt gruppe: Syd"]


def test_result_content_disposition():
    result = ReportResult(filename="rapport.pdf", content=b"%PDF")
    assert result.has_content
    assert result.content_disposition == 'attachment; filename="rapport.pdf"'
    assert ReportResult().content_disposition is None
