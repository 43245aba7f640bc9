"""
Word output.

Replays a layout plan into a python-docx Document: cover, headings,
shaded tables and explicit page breaks.
"""

from io import BytesIO
from typing import List, Optional, Sequence
import logging

from docx import Document
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor

from .layout import Block, BulletList, Cell, Cover, Heading, PageBreak, Paragraph, Table
from .styles import ReportTheme, style_for

logger = logging.getLogger(__name__)

CONTENT_WIDTH_INCHES = 8.27 - 2 * 0.79


class DocxBuilder:
    """
    Fluent builder for report documents.

    Every add_* method returns the builder; ``from_blocks`` replays a
    complete layout plan.
    """

    def __init__(self):
        self._doc = Document()
        self._configure_page()

    def _configure_page(self) -> None:
        """Configure an A4 page with 20 mm margins."""
        section = self._doc.sections[0]
        section.page_height = Inches(11.69)  # A4: 297mm
        section.page_width = Inches(8.27)    # A4: 210mm
        section.left_margin = Inches(0.79)   # 20mm
        section.right_margin = Inches(0.79)
        section.top_margin = Inches(0.79)
        section.bottom_margin = Inches(0.79)

        normal = self._doc.styles["Normal"]
        normal.font.name = "Calibri"
        normal.font.size = Pt(10)

    @classmethod
    def from_blocks(cls, blocks: Sequence[Block]) -> "DocxBuilder":
        """
        Build a document from a layout plan.

        Args:
            blocks: Blocks as produced by LayoutPlanner.plan

        Returns:
            The populated builder
        """
        builder = cls()
        for block in blocks:
            if isinstance(block, Cover):
                builder.add_cover(block.title, block.subtitle, block.period_label, block.generated_text)
            elif isinstance(block, Heading):
                builder.add_heading(block.text, block.level)
            elif isinstance(block, Paragraph):
                builder.add_paragraph(block.text, bold_prefix=block.bold_prefix, italic=block.italic)
            elif isinstance(block, BulletList):
                builder.add_bullet_list(block.items)
            elif isinstance(block, Table):
                builder.add_table(block.headers, block.rows, widths=block.widths)
            elif isinstance(block, PageBreak):
                builder.add_page_break()
            else:
                raise TypeError(f"Unsupported layout block: {block!r}")
        return builder

    def add_cover(
        self,
        title: str,
        subtitle: Optional[str],
        period_label: str,
        generated_text: str
    ) -> "DocxBuilder":
        """
        Add the cover page content.

        Args:
            title: Report title
            subtitle: Group or driver name, if any
            period_label: Reporting period
            generated_text: Generation timestamp line

        Returns:
            Self for method chaining
        """
        for _ in range(8):
            self._doc.add_paragraph()
        heading = self._doc.add_heading(title, 0)
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER

        if subtitle:
            para = self._doc.add_paragraph()
            para.alignment = WD_ALIGN_PARAGRAPH.CENTER
            run = para.add_run(subtitle)
            run.font.size = Pt(16)

        para = self._doc.add_paragraph()
        para.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = para.add_run(period_label)
        run.bold = True
        run.font.size = Pt(18)

        para = self._doc.add_paragraph()
        para.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = para.add_run(generated_text)
        run.italic = True
        run.font.color.rgb = RGBColor.from_string(ReportTheme.MUTED)
        return self

    def add_heading(self, text: str, level: int = 1) -> "DocxBuilder":
        """Add a section heading (level 1-3)."""
        self._doc.add_heading(text, level=level)
        return self

    def add_paragraph(
        self,
        text: str,
        bold_prefix: Optional[str] = None,
        italic: bool = False
    ) -> "DocxBuilder":
        """
        Add body text, optionally led by a bold label.
        """
        para = self._doc.add_paragraph()

        if bold_prefix:
            para.add_run(bold_prefix).bold = True

        run = para.add_run(text)
        run.italic = italic

        return self

    def add_bullet_list(self, items: List[str]) -> "DocxBuilder":
        """Add a bulleted list, one paragraph per item."""
        for item in items:
            self._doc.add_paragraph(item, style="List Bullet")
        return self

    def add_table(
        self,
        headers: List[str],
        rows: List[List[Cell]],
        widths: Optional[List[float]] = None,
        style: str = "Table Grid"
    ) -> "DocxBuilder":
        """
        Add a table with a coloured header row.

        Cell markings are resolved through ``style_for``.

        Args:
            headers: Column headers
            rows: Rows of marked cells
            widths: Fractions of the content width per column
            style: Word table style

        Returns:
            Self for method chaining
        """
        table = self._doc.add_table(rows=1, cols=len(headers))
        table.style = style
        table.alignment = WD_TABLE_ALIGNMENT.CENTER

        for target, header in zip(table.rows[0].cells, headers):
            self._write_cell(target, header, bold=True, color=ReportTheme.HEADER_FG)
            self._shade(target, ReportTheme.HEADER_BG)

        for cells in rows:
            for target, cell in zip(table.add_row().cells, cells):
                look = style_for(cell.markings)
                self._write_cell(target, cell.text, bold=look.bold, color=look.text_color)
                if look.background:
                    self._shade(target, look.background)

        if widths:
            for row in table.rows:
                for i, ratio in enumerate(widths[:len(row.cells)]):
                    row.cells[i].width = Inches(CONTENT_WIDTH_INCHES * ratio)

        self._doc.add_paragraph()
        return self

    def add_page_break(self) -> "DocxBuilder":
        self._doc.add_page_break()
        return self

    def to_bytes(self) -> bytes:
        """Serialise the document to .docx bytes."""
        buffer = BytesIO()
        self._doc.save(buffer)
        logger.debug(f"Word document serialised: {buffer.tell()} bytes")
        return buffer.getvalue()

    @staticmethod
    def _write_cell(cell, text: str, bold: bool = False, color: Optional[str] = None) -> None:
        cell.text = ""
        run = cell.paragraphs[0].add_run(text)
        run.bold = bold
        run.font.size = Pt(9)
        if color:
            run.font.color.rgb = RGBColor.from_string(color)

    @staticmethod
    def _shade(cell, fill: str) -> None:
        """Set a solid background on a table cell."""
        shading = OxmlElement("w:shd")
        shading.set(qn("w:val"), "clear")
        shading.set(qn("w:color"), "auto")
        shading.set(qn("w:fill"), fill)
        cell._tc.get_or_add_tcPr().append(shading)
