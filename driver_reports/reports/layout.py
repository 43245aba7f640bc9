"""
Deterministic document layout.

Turns a ReportDocument into an ordered list of layout blocks shared by
every output format. Pagination rules live here, not in the format
builders:

- the cover page comes first and is followed by a page break
- the overall and per-metric ranking sections each start on a fresh page
- every driver section starts on a fresh page
- never two consecutive page breaks, never a trailing one
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence, Union

from ..core.kpis import ALL_KPIS, RANKING_KPIS, get_kpi
from ..core.models import DriverSection, ReportDocument, TrendStatus


class Marking(Enum):
    """Visual markings a cell can carry; styles.py maps them to colours."""

    TOP3 = "top3"
    TARGET_MET = "target_met"
    IMPROVEMENT = "improvement"
    REGRESSION = "regression"
    NEUTRAL = "neutral"
    NEW_DRIVER = "new_driver"
    NOT_MEASURABLE = "not_measurable"
    EMPHASIS = "emphasis"


TREND_MARKINGS = {
    TrendStatus.IMPROVEMENT: Marking.IMPROVEMENT,
    TrendStatus.REGRESSION: Marking.REGRESSION,
    TrendStatus.NEUTRAL: Marking.NEUTRAL,
    TrendStatus.NEW_DRIVER: Marking.NEW_DRIVER,
    TrendStatus.NOT_MEASURABLE: Marking.NOT_MEASURABLE,
}


@dataclass(frozen=True)
class Cell:
    text: str
    markings: FrozenSet[Marking] = frozenset()


@dataclass(frozen=True)
class Cover:
    title: str
    subtitle: Optional[str]
    period_label: str
    generated_text: str


@dataclass(frozen=True)
class Heading:
    text: str
    level: int = 1


@dataclass(frozen=True)
class Paragraph:
    text: str
    bold_prefix: Optional[str] = None
    italic: bool = False


@dataclass(frozen=True)
class BulletList:
    items: List[str]


@dataclass(frozen=True)
class Table:
    headers: List[str]
    rows: List[List[Cell]]
    # Relative column widths, summing to 1
    widths: Optional[List[float]] = None


@dataclass(frozen=True)
class PageBreak:
    pass


Block = Union[Cover, Heading, Paragraph, BulletList, Table, PageBreak]

RANKING_INTRO = (
    "Hver chauffør får points baseret på deres placering i hver kategori. "
    "Lavere samlet score er bedre, da det betyder bedre placeringer på tværs af kategorierne. "
    "De tre bedste chauffører er markeret med grøn. Målene er sat af virksomheden og bruges "
    "som reference for optimal kørsel."
)
PERFORMANCE_INTRO = (
    "Nedenstående tabeller viser rangeringen af chauffører på hver performancemåling. "
    "Chauffører der opfylder målet er markeret."
)
NO_DATA_TEXT = (
    "Der er ingen chauffører der opfylder kravet om minimum {min_km:g} km "
    "i den valgte periode."
)


def _with(cell_text: str, *markings: Optional[Marking]) -> Cell:
    return Cell(cell_text, frozenset(m for m in markings if m is not None))


@dataclass
class _Plan:
    blocks: List[Block] = field(default_factory=list)

    def add(self, block: Block) -> None:
        self.blocks.append(block)

    def new_page(self) -> None:
        if self.blocks and not isinstance(self.blocks[-1], PageBreak):
            self.blocks.append(PageBreak())

    def finish(self) -> List[Block]:
        while self.blocks and isinstance(self.blocks[-1], PageBreak):
            self.blocks.pop()
        return self.blocks


class LayoutPlanner:
    """Builds the block sequence for a report document."""

    def __init__(self, top_marked: int = 3):
        """
        Args:
            top_marked: Number of leading ranking rows marked TOP3
        """
        self._top_marked = top_marked

    def plan(self, doc: ReportDocument) -> List[Block]:
        """
        Lay out a document.

        Args:
            doc: The composed report

        Returns:
            Ordered blocks, starting with the cover
        """
        plan = _Plan()
        plan.add(Cover(
            title=doc.title,
            subtitle=doc.subject,
            period_label=doc.period_label,
            generated_text=f"Genereret: {doc.generated_at.strftime('%d.%m.%Y %H:%M')}",
        ))
        plan.new_page()

        if doc.no_data:
            plan.add(Heading("Ingen data"))
            plan.add(Paragraph(NO_DATA_TEXT.format(min_km=doc.min_km)))
            return plan.finish()

        self._overall_section(plan, doc)
        plan.new_page()
        self._performance_section(plan, doc)
        for section in doc.driver_sections:
            plan.new_page()
            self._driver_section(plan, doc, section)
        return plan.finish()

    def _overall_section(self, plan: _Plan, doc: ReportDocument) -> None:
        plan.add(Heading("Samlet Rangering"))
        plan.add(Paragraph(
            f"{doc.qualified_drivers} af {doc.total_drivers} chauffører har kørt "
            f"mindst {doc.min_km:g} km i {doc.period_label}."
        ))
        plan.add(BulletList(list(doc.target_notes)))
        plan.add(Paragraph(RANKING_INTRO))

        headers = ["Placering", "Chauffør", "Samlet Score"]
        headers += [get_kpi(kpi).short_label for kpi in RANKING_KPIS]
        rows = []
        for entry in doc.overall_ranking:
            top = Marking.TOP3 if entry.position <= self._top_marked else None
            cells = [
                _with(str(entry.position), top),
                _with(entry.driver_name, top),
                _with(str(entry.total_score), top),
            ]
            cells += [_with(str(entry.ranks[kpi]), top) for kpi in RANKING_KPIS]
            rows.append(cells)
        plan.add(Table(headers, rows, widths=[0.11, 0.29, 0.12, 0.12, 0.12, 0.12, 0.12]))

        if doc.cohort_summary is not None:
            plan.add(Heading("Nøgletal for hele gruppen", level=2))
            summary_rows = [
                [Cell(get_kpi(kpi).label), Cell(get_kpi(kpi).format_value(doc.cohort_summary.get(kpi)))]
                for kpi in ALL_KPIS
            ]
            plan.add(Table(["Nøgletal", "Værdi"], summary_rows, widths=[0.6, 0.4]))

    def _performance_section(self, plan: _Plan, doc: ReportDocument) -> None:
        plan.add(Heading("Performance Rangering"))
        plan.add(Paragraph(PERFORMANCE_INTRO))
        for ranking in doc.metric_rankings:
            definition = get_kpi(ranking.kpi)
            plan.add(Heading(ranking.title, level=2))
            plan.add(Paragraph(ranking.description, italic=True))
            rows = []
            for row in ranking.rows:
                top = Marking.TOP3 if row.position <= self._top_marked else None
                met = Marking.TARGET_MET if row.within_target else None
                rows.append([
                    _with(str(row.position), top),
                    _with(row.driver_name, top),
                    _with(row.value_text, top, met),
                ])
            plan.add(Table(
                ["Placering", "Chauffør", f"Score ({definition.unit})"],
                rows,
                widths=[0.2, 0.5, 0.3],
            ))

    def _driver_section(self, plan: _Plan, doc: ReportDocument, section: DriverSection) -> None:
        plan.add(Heading(section.driver_name))
        details = []
        if section.position is not None:
            details.append(f"Placering: {section.position} af {len(doc.overall_ranking)}")
        if section.vehicles:
            details.append(f"Køretøjer: {section.vehicles}")
        details.append(f"Periode: {doc.period_label}")
        plan.add(Paragraph(" | ".join(details)))

        for table in section.data_tables:
            plan.add(Heading(table.title, level=2))
            plan.add(Table(
                ["Parameter", "Værdi"],
                [[Cell(label), _with(value, Marking.EMPHASIS)] for label, value in table.rows],
                widths=[0.65, 0.35],
            ))

        previous_header = section.previous_period_label or "Ny chauffør"
        plan.add(Heading("Nøgletal", level=2))
        rows = []
        for row in section.metric_rows:
            met = Marking.TARGET_MET if row.within_target else None
            rows.append([
                Cell(f"{row.label}: {row.explanation}"),
                Cell(row.previous_text),
                _with(row.current_text, Marking.EMPHASIS, met),
                Cell(row.target_text),
                _with(row.change_text, TREND_MARKINGS[row.trend.status]),
            ])
        plan.add(Table(
            ["Parameter", f"Tidligere ({previous_header})", "Nuværende", "Mål", "Udvikling siden sidst"],
            rows,
            widths=[0.4, 0.16, 0.14, 0.14, 0.16],
        ))
        plan.add(Heading("Forklaring af nøgletal", level=2))
        plan.add(BulletList(list(doc.target_notes)))


def count_pages(blocks: Sequence[Block]) -> int:
    """Number of pages implied by the page breaks of a plan."""
    return 1 + sum(1 for block in blocks if isinstance(block, PageBreak))
