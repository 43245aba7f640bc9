"""
Excel workbook builder.

Replays a layout plan into an openpyxl workbook: every page of the plan
becomes one worksheet, named after its first heading.
"""

from io import BytesIO
from typing import Dict, List, Sequence, Set
import logging

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..services.excel_formatter import SHEET_TITLE_MAX, ExcelStyles, sheet_title
from .layout import Block, BulletList, Cell, Cover, Heading, PageBreak, Paragraph, Table
from .styles import ReportTheme, style_for

logger = logging.getLogger(__name__)


def split_pages(blocks: Sequence[Block]) -> List[List[Block]]:
    """Split a plan at its page breaks."""
    pages: List[List[Block]] = [[]]
    for block in blocks:
        if isinstance(block, PageBreak):
            pages.append([])
        else:
            pages[-1].append(block)
    return [page for page in pages if page]


class XlsxBuilder:
    """Builder for report workbooks."""

    def __init__(self):
        self._wb = Workbook()
        self._wb.remove(self._wb.active)
        self._styles = ExcelStyles()
        self._used_titles: Set[str] = set()

    @classmethod
    def from_blocks(cls, blocks: Sequence[Block]) -> "XlsxBuilder":
        """
        Build a workbook from a layout plan.

        Args:
            blocks: Blocks as produced by LayoutPlanner.plan

        Returns:
            The populated builder
        """
        builder = cls()
        for page in split_pages(blocks):
            builder.add_page(page)
        if not builder.workbook.worksheets:
            builder.workbook.create_sheet("Rapport")
        return builder

    def add_page(self, page: List[Block]) -> Worksheet:
        """Write one page of blocks to a new worksheet."""
        ws = self._wb.create_sheet(self._unique_title(page))
        row = 1
        widths: Dict[int, int] = {}

        for block in page:
            if isinstance(block, Cover):
                ws.cell(row=row, column=1, value=block.title).font = Font(
                    bold=True, size=18, color=ReportTheme.HEADER_BG
                )
                row += 1
                for line in (block.subtitle, block.period_label, block.generated_text):
                    if line:
                        ws.cell(row=row, column=1, value=line)
                        row += 1
                row += 1
            elif isinstance(block, Heading):
                size = 14 if block.level <= 1 else 12
                ws.cell(row=row, column=1, value=block.text).font = Font(bold=True, size=size)
                row += 1
            elif isinstance(block, Paragraph):
                text = f"{block.bold_prefix or ''}{block.text}"
                ws.cell(row=row, column=1, value=text).font = Font(italic=block.italic)
                row += 1
            elif isinstance(block, BulletList):
                for item in block.items:
                    ws.cell(row=row, column=1, value=f"• {item}")
                    row += 1
                row += 1
            elif isinstance(block, Table):
                row = self._write_table(ws, row, block.headers, block.rows, widths) + 1
            else:
                raise TypeError(f"Unsupported layout block: {block!r}")

        # Free text overflows column A; only tables drive the widths
        for col_idx, width in widths.items():
            ws.column_dimensions[get_column_letter(col_idx)].width = width
        return ws

    def _write_table(
        self,
        ws: Worksheet,
        start_row: int,
        headers: List[str],
        rows: List[List[Cell]],
        widths: Dict[int, int]
    ) -> int:
        """Write one table and return the next free row."""
        border = self._styles.get_thin_border()

        for col_idx, header in enumerate(headers, 1):
            cell = ws.cell(row=start_row, column=col_idx, value=header)
            cell.font = self._styles.get_header_font()
            cell.fill = self._styles.get_header_fill()
            cell.alignment = self._styles.get_header_alignment()
            cell.border = border
            widths[col_idx] = max(widths.get(col_idx, 10), min(len(header) + 3, 50))
        ws.row_dimensions[start_row].height = 30

        for row_idx, row_cells in enumerate(rows):
            excel_row = start_row + 1 + row_idx
            for col_idx, marked in enumerate(row_cells, 1):
                look = style_for(marked.markings)
                cell = ws.cell(row=excel_row, column=col_idx, value=marked.text)
                if look.background:
                    cell.fill = self._styles.solid(look.background)
                else:
                    cell.fill = self._styles.get_row_fill(row_idx)
                cell.font = Font(bold=look.bold, color=look.text_color, size=11)
                cell.alignment = Alignment(horizontal="left", vertical="center", wrap_text=True)
                cell.border = border
                widths[col_idx] = max(widths.get(col_idx, 10), min(len(marked.text) + 3, 50))

        return start_row + 1 + len(rows)

    def _unique_title(self, page: List[Block]) -> str:
        title = "Side"
        for block in page:
            if isinstance(block, Cover):
                title = "Forside"
                break
            if isinstance(block, Heading):
                title = block.text
                break

        base = sheet_title(title)
        candidate = base
        counter = 2
        while candidate.lower() in self._used_titles:
            suffix = f" ({counter})"
            candidate = base[:SHEET_TITLE_MAX - len(suffix)] + suffix
            counter += 1
        self._used_titles.add(candidate.lower())
        return candidate

    def to_bytes(self) -> bytes:
        """Serialise the workbook to .xlsx bytes."""
        buffer = BytesIO()
        self._wb.save(buffer)
        return buffer.getvalue()

    @property
    def workbook(self) -> Workbook:
        return self._wb
