"""
PDF document builder.

Renders layout blocks to PDF with reportlab. Defines the colour palette,
paragraph styles and the page template (header and page number on every
page after the cover).
"""

from io import BytesIO
from typing import List, Optional, Sequence
from xml.sax.saxutils import escape
import logging

from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import ListFlowable, ListItem, PageBreak as RLPageBreak
from reportlab.platypus import Paragraph as RLParagraph
from reportlab.platypus import SimpleDocTemplate, Spacer
from reportlab.platypus import Table as RLTable
from reportlab.platypus import TableStyle

from .layout import Block, BulletList, Cell, Cover, Heading, PageBreak, Paragraph, Table
from .styles import ReportTheme, style_for

logger = logging.getLogger(__name__)

# ============================================================================
# PAGE DIMENSIONS
# ============================================================================
PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN_LEFT = 1.8 * cm
MARGIN_RIGHT = 1.8 * cm
MARGIN_TOP = 2.2 * cm
MARGIN_BOTTOM = 2.0 * cm
CONTENT_WIDTH = PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT


def _hex(value: str) -> HexColor:
    return HexColor(f"#{value}")


COLORS = {
    "primary": _hex(ReportTheme.HEADER_BG),
    "header_text": _hex(ReportTheme.HEADER_FG),
    "row_even": _hex(ReportTheme.ROW_EVEN),
    "border": _hex(ReportTheme.BORDER),
    "text_dark": _hex(ReportTheme.TEXT),
    "text_light": _hex(ReportTheme.MUTED),
}

FONT_BODY = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

# ============================================================================
# PARAGRAPH STYLES
# ============================================================================
base_styles = getSampleStyleSheet()

style_cover_title = ParagraphStyle(
    "CoverTitle",
    parent=base_styles["Title"],
    fontName=FONT_BOLD,
    fontSize=26,
    leading=32,
    textColor=COLORS["primary"],
    alignment=TA_CENTER,
    spaceAfter=0.6 * cm,
)

style_cover_text = ParagraphStyle(
    "CoverText",
    parent=base_styles["Normal"],
    fontName=FONT_BODY,
    fontSize=16,
    leading=22,
    textColor=COLORS["text_dark"],
    alignment=TA_CENTER,
    spaceAfter=0.4 * cm,
)

style_h1 = ParagraphStyle(
    "Heading1",
    parent=base_styles["Heading1"],
    fontName=FONT_BOLD,
    fontSize=18,
    textColor=COLORS["primary"],
    spaceBefore=0.2 * cm,
    spaceAfter=0.4 * cm,
    alignment=TA_LEFT,
)

style_h2 = ParagraphStyle(
    "Heading2",
    parent=base_styles["Heading2"],
    fontName=FONT_BOLD,
    fontSize=13,
    textColor=COLORS["text_dark"],
    spaceBefore=0.4 * cm,
    spaceAfter=0.2 * cm,
    alignment=TA_LEFT,
)

style_body = ParagraphStyle(
    "Body",
    parent=base_styles["Normal"],
    fontName=FONT_BODY,
    fontSize=10,
    leading=14,
    textColor=COLORS["text_dark"],
    spaceAfter=0.25 * cm,
)

style_cell = ParagraphStyle(
    "Cell",
    parent=style_body,
    fontSize=8.5,
    leading=11,
    spaceAfter=0,
)

style_header_cell = ParagraphStyle(
    "HeaderCell",
    parent=style_cell,
    fontName=FONT_BOLD,
    textColor=COLORS["header_text"],
)


class PdfBuilder:
    """Builder collecting reportlab flowables for a report."""

    def __init__(self, header_text: str = ""):
        """
        Args:
            header_text: Running header printed on every page after the cover
        """
        self._story: List = []
        self._header_text = header_text

    @classmethod
    def from_blocks(cls, blocks: Sequence[Block], header_text: str = "") -> "PdfBuilder":
        """
        Build a PDF story from a layout plan.

        Args:
            blocks: Blocks as produced by LayoutPlanner.plan
            header_text: Running header text

        Returns:
            The populated builder
        """
        builder = cls(header_text)
        for block in blocks:
            if isinstance(block, Cover):
                builder.add_cover(block)
            elif isinstance(block, Heading):
                builder.add_heading(block.text, block.level)
            elif isinstance(block, Paragraph):
                builder.add_paragraph(block.text, block.bold_prefix, block.italic)
            elif isinstance(block, BulletList):
                builder.add_bullet_list(block.items)
            elif isinstance(block, Table):
                builder.add_table(block.headers, block.rows, block.widths)
            elif isinstance(block, PageBreak):
                builder.add_page_break()
            else:
                raise TypeError(f"Unsupported layout block: {block!r}")
        return builder

    def add_cover(self, cover: Cover) -> "PdfBuilder":
        self._story.append(Spacer(1, 7 * cm))
        self._story.append(RLParagraph(escape(cover.title), style_cover_title))
        if cover.subtitle:
            self._story.append(RLParagraph(escape(cover.subtitle), style_cover_text))
        self._story.append(RLParagraph(f"<b>{escape(cover.period_label)}</b>", style_cover_text))
        self._story.append(Spacer(1, 1 * cm))
        self._story.append(RLParagraph(
            f'<font size="11" color="#{ReportTheme.MUTED}">{escape(cover.generated_text)}</font>',
            style_cover_text,
        ))
        return self

    def add_heading(self, text: str, level: int = 1) -> "PdfBuilder":
        style = style_h1 if level <= 1 else style_h2
        self._story.append(RLParagraph(escape(text), style))
        return self

    def add_paragraph(
        self,
        text: str,
        bold_prefix: Optional[str] = None,
        italic: bool = False
    ) -> "PdfBuilder":
        markup = escape(text)
        if italic:
            markup = f"<i>{markup}</i>"
        if bold_prefix:
            markup = f"<b>{escape(bold_prefix)}</b>{markup}"
        self._story.append(RLParagraph(markup, style_body))
        return self

    def add_bullet_list(self, items: List[str]) -> "PdfBuilder":
        self._story.append(ListFlowable(
            [ListItem(RLParagraph(escape(item), style_body), leftIndent=12) for item in items],
            bulletType="bullet",
            start="•",
            leftIndent=12,
        ))
        return self

    def add_table(
        self,
        headers: List[str],
        rows: List[List[Cell]],
        widths: Optional[List[float]] = None
    ) -> "PdfBuilder":
        """
        Add a styled table.

        Header row in the primary colour, alternating row backgrounds and
        per-cell backgrounds/text colours resolved from the cell markings.
        """
        data = [[RLParagraph(escape(header), style_header_cell) for header in headers]]
        style_commands = [
            ("BACKGROUND", (0, 0), (-1, 0), COLORS["primary"]),
            ("GRID", (0, 0), (-1, -1), 0.5, COLORS["border"]),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("LEFTPADDING", (0, 0), (-1, -1), 5),
            ("RIGHTPADDING", (0, 0), (-1, -1), 5),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ]

        for row_idx, row in enumerate(rows, start=1):
            if row_idx % 2 == 0:
                style_commands.append(("BACKGROUND", (0, row_idx), (-1, row_idx), COLORS["row_even"]))
            cells = []
            for col_idx, cell in enumerate(row):
                look = style_for(cell.markings)
                markup = escape(cell.text)
                if look.bold:
                    markup = f"<b>{markup}</b>"
                if look.text_color:
                    markup = f'<font color="#{look.text_color}">{markup}</font>'
                cells.append(RLParagraph(markup, style_cell))
                if look.background:
                    style_commands.append(
                        ("BACKGROUND", (col_idx, row_idx), (col_idx, row_idx), _hex(look.background))
                    )
            data.append(cells)

        col_widths = [CONTENT_WIDTH * ratio for ratio in widths] if widths else None
        table = RLTable(data, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle(style_commands))
        self._story.append(table)
        self._story.append(Spacer(1, 0.4 * cm))
        return self

    def add_page_break(self) -> "PdfBuilder":
        self._story.append(RLPageBreak())
        return self

    def to_bytes(self, title: str = "") -> bytes:
        """Build the PDF and return its bytes."""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=MARGIN_LEFT,
            rightMargin=MARGIN_RIGHT,
            topMargin=MARGIN_TOP,
            bottomMargin=MARGIN_BOTTOM,
            title=title,
        )
        doc.build(self._story, onFirstPage=self._cover_page, onLaterPages=self._content_page)
        return buffer.getvalue()

    @staticmethod
    def _cover_page(canvas_obj, doc) -> None:
        """The cover carries no running header."""

    def _content_page(self, canvas_obj, doc) -> None:
        """Running header line and page number."""
        canvas_obj.saveState()
        canvas_obj.setStrokeColor(COLORS["border"])
        canvas_obj.setLineWidth(0.5)
        canvas_obj.line(
            MARGIN_LEFT,
            PAGE_HEIGHT - MARGIN_TOP + 0.5 * cm,
            PAGE_WIDTH - MARGIN_RIGHT,
            PAGE_HEIGHT - MARGIN_TOP + 0.5 * cm,
        )
        canvas_obj.setFont(FONT_BODY, 8)
        canvas_obj.setFillColor(COLORS["text_light"])
        canvas_obj.drawString(MARGIN_LEFT, PAGE_HEIGHT - MARGIN_TOP + 0.7 * cm, self._header_text)
        canvas_obj.drawCentredString(PAGE_WIDTH / 2, MARGIN_BOTTOM - 0.8 * cm, f"Side {doc.page}")
        canvas_obj.restoreState()
