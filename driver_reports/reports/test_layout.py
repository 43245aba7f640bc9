"""
Test the deterministic layout plan.

Run with: pytest driver_reports/reports/test_layout.py -v
"""
import pytest

from driver_reports.core.models import ReportRequest
from driver_reports.reports.composer import ReportComposer
from driver_reports.reports.layout import (
    Cover,
    Heading,
    LayoutPlanner,
    Marking,
    PageBreak,
    Paragraph,
    Table,
    count_pages,
)
from driver_reports.reports.styles import ReportTheme, style_for
from driver_reports.services.pipeline import ReportPipeline


@pytest.fixture
def compose(settings, fixed_clock, june_records):
    pipeline = ReportPipeline(settings, composer=ReportComposer(settings, clock=fixed_clock))

    def _compose(request):
        return pipeline.compose(request, june_records)

    return _compose


@pytest.fixture
def fleet_blocks(compose):
    return LayoutPlanner().plan(compose(ReportRequest("fleet", 6, 2025)))


def test_cover_first(fleet_blocks):
    assert isinstance(fleet_blocks[0], Cover)
    assert isinstance(fleet_blocks[1], PageBreak)
    assert fleet_blocks[0].generated_text == "Genereret: 01.07.2025 08:00"


def test_page_breaks_are_never_doubled_or_trailing(fleet_blocks):
    for first, second in zip(fleet_blocks, fleet_blocks[1:]):
        assert not (isinstance(first, PageBreak) and isinstance(second, PageBreak))
    assert not isinstance(fleet_blocks[-1], PageBreak)


def test_each_driver_starts_a_page(fleet_blocks):
    for name in ["Anna Jensen", "Hans Ole Müller", "Bo Nielsen"]:
        index = next(i for i, b in enumerate(fleet_blocks) if isinstance(b, Heading) and b.text == name)
        assert isinstance(fleet_blocks[index - 1], PageBreak)
    # cover, overall, per-metric, three drivers
    assert count_pages(fleet_blocks) == 6


def test_top_positions_are_marked(fleet_blocks):
    overall = next(b for b in fleet_blocks if isinstance(b, Table) and b.headers[0] == "Placering")
    assert all(Marking.TOP3 in row[0].markings for row in overall.rows)


def test_top_marking_respects_limit(compose):
    blocks = LayoutPlanner(top_marked=2).plan(compose(ReportRequest("fleet", 6, 2025)))
    overall = next(b for b in blocks if isinstance(b, Table) and b.headers[0] == "Placering")
    marked = [Marking.TOP3 in row[0].markings for row in overall.rows]
    assert marked == [True, True, False]


def test_metric_tables_mark_only_top_positions(settings, fixed_clock, make_record):
    records = [
        make_record(name, idle_standstill_time=idle)
        for name, idle in [("A", "00:06:00"), ("B", "00:12:00"), ("C", "00:18:00"), ("D", "00:24:00")]
    ]
    pipeline = ReportPipeline(settings, composer=ReportComposer(settings, clock=fixed_clock))
    blocks = LayoutPlanner().plan(pipeline.compose(ReportRequest("fleet", 6, 2025), records))

    metric_tables = [b for b in blocks if isinstance(b, Table) and b.headers[-1].startswith("Score")]
    assert len(metric_tables) == 4
    for table in metric_tables:
        marked = [Marking.TOP3 in row[1].markings for row in table.rows]
        assert marked == [True, True, True, False]


def test_metrics_table_markings(compose):
    request = ReportRequest("individual", 6, 2025, driver="Hans Ole Müller")
    blocks = LayoutPlanner().plan(compose(request))
    table = next(b for b in blocks if isinstance(b, Table) and b.headers[-1] == "Udvikling siden sidst")

    assert table.headers[1] == "Tidligere (Maj 2025)"
    idle, cruise = table.rows[0], table.rows[1]
    assert Marking.TARGET_MET in idle[2].markings
    assert Marking.NEUTRAL in idle[4].markings
    assert Marking.IMPROVEMENT in cruise[4].markings


def test_new_driver_header(compose):
    request = ReportRequest("individual", 6, 2025, driver="Bo Nielsen")
    blocks = LayoutPlanner().plan(compose(request))
    table = next(b for b in blocks if isinstance(b, Table) and b.headers[-1] == "Udvikling siden sidst")

    assert table.headers[1] == "Tidligere (Ny chauffør)"
    assert all(Marking.NEW_DRIVER in row[4].markings for row in table.rows)


def test_no_data_plan(compose):
    blocks = LayoutPlanner().plan(compose(ReportRequest("fleet", 1, 2025)))

    assert [type(b) for b in blocks] == [Cover, PageBreak, Heading, Paragraph]
    assert "minimum 100 km" in blocks[-1].text


def test_style_for_markings():
    assert style_for([]).background is None
    top = style_for([Marking.TOP3])
    assert top.background == ReportTheme.TOP3_BG
    assert top.background != ReportTheme.TARGET_BG
    assert top.text_color != ReportTheme.TARGET_FG
    assert top.bold
    assert style_for([Marking.TOP3, Marking.TARGET_MET]).background == ReportTheme.TARGET_BG
    assert style_for([Marking.REGRESSION]).text_color == ReportTheme.REGRESSION_FG
