"""
openpyxl styling shared by every workbook the package writes.

The KPI overview export lives here; the report workbook builder in
``reports.xlsx_builder`` reuses ExcelStyles so both look the same.
"""

from pathlib import Path
from typing import Dict, List, Optional
import logging
import re

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..core.models import TargetBand
from .trend import within_target

logger = logging.getLogger(__name__)

# Characters Excel rejects in worksheet titles
SHEET_TITLE_INVALID = re.compile(r"[\[\]:*?/\\]")
SHEET_TITLE_MAX = 31


class ExcelTheme:
    """RGB colours used in workbooks."""

    HEADER_BG = "0268AB"
    HEADER_FG = "FFFFFF"

    ROW_EVEN = "F4F8FB"
    ROW_ODD = "FFFFFF"

    TARGET_BG = "E3F4EA"
    TARGET_FG = "1F7D3A"

    BORDER_COLOR = "B4C6E7"


class ExcelStyles:
    """Factories for the fonts, fills and borders of a workbook."""

    @staticmethod
    def solid(color: str) -> PatternFill:
        """Solid fill in the given RGB colour."""
        return PatternFill(start_color=color, end_color=color, fill_type="solid")

    @staticmethod
    def get_header_font() -> Font:
        return Font(bold=True, color=ExcelTheme.HEADER_FG, size=11)

    @staticmethod
    def get_header_fill() -> PatternFill:
        return ExcelStyles.solid(ExcelTheme.HEADER_BG)

    @staticmethod
    def get_header_alignment() -> Alignment:
        return Alignment(horizontal="center", vertical="center", wrap_text=True)

    @staticmethod
    def get_data_alignment() -> Alignment:
        return Alignment(horizontal="center", vertical="center")

    @staticmethod
    def get_row_fill(row_idx: int) -> PatternFill:
        """Zebra striping; ``row_idx`` counts data rows from 0."""
        return ExcelStyles.solid(ExcelTheme.ROW_ODD if row_idx % 2 == 0 else ExcelTheme.ROW_EVEN)

    @staticmethod
    def get_target_fill() -> PatternFill:
        return ExcelStyles.solid(ExcelTheme.TARGET_BG)

    @staticmethod
    def get_target_font() -> Font:
        return Font(bold=True, color=ExcelTheme.TARGET_FG, size=11)

    @staticmethod
    def get_thin_border() -> Border:
        side = Side(style="thin", color=ExcelTheme.BORDER_COLOR)
        return Border(left=side, right=side, top=side, bottom=side)

    @staticmethod
    def get_number_format(decimals: int = 2) -> str:
        """Number format with the given number of decimals."""
        if decimals <= 0:
            return "#,##0"
        return "#,##0." + "0" * decimals


def sheet_title(text: str) -> str:
    """A worksheet title Excel accepts."""
    return SHEET_TITLE_INVALID.sub("", text).strip()[:SHEET_TITLE_MAX] or "Ark"


class ExcelFormatter:
    """
    Writes a DataFrame such as the KPI overview to a styled workbook.

    The header row is coloured and frozen, data rows are striped, numeric
    columns get a fixed number of decimals, and values inside their KPI
    target band are highlighted.
    """

    def __init__(self):
        self._styles = ExcelStyles()

    def build(
        self,
        df: pd.DataFrame,
        sheet_name: str = "Nøgletal",
        bands: Optional[Dict[str, TargetBand]] = None,
        decimals: Optional[Dict[str, int]] = None,
        freeze_header: bool = True
    ) -> Workbook:
        """
        Build the workbook in memory.

        Args:
            df: Table to write, one worksheet row per DataFrame row
            sheet_name: Worksheet title, cleaned with ``sheet_title``
            bands: Column name -> target band to highlight against
            decimals: Column name -> displayed decimals for numeric columns
            freeze_header: Keep the header visible while scrolling

        Returns:
            The styled Workbook
        """
        wb = Workbook()
        ws = wb.active
        ws.title = sheet_title(sheet_name)

        self._write_header(ws, list(df.columns))
        self._write_rows(ws, df, bands or {}, decimals or {})
        self._fit_columns(ws, df)
        if freeze_header:
            ws.freeze_panes = ws["A2"]
        return wb

    def export(self, df: pd.DataFrame, path: Path, **options) -> bool:
        """
        Write a DataFrame to an .xlsx file.

        Args:
            df: Table to write
            path: Target file
            **options: Passed on to ``build``

        Returns:
            True when the file was written, False on an I/O or value error
        """
        logger.info(f"Writing {len(df)} rows to workbook {path}")
        try:
            self.build(df, **options).save(path)
        except (OSError, ValueError) as e:
            logger.error(f"Could not write workbook {path}: {e}")
            return False
        logger.info(f"Workbook written: {path}")
        return True

    def _write_header(self, ws: Worksheet, columns: List[str]) -> None:
        border = self._styles.get_thin_border()
        for col_idx, name in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col_idx, value=name)
            cell.font = self._styles.get_header_font()
            cell.fill = self._styles.get_header_fill()
            cell.alignment = self._styles.get_header_alignment()
            cell.border = border
        ws.row_dimensions[1].height = 30

    def _write_rows(
        self,
        ws: Worksheet,
        df: pd.DataFrame,
        bands: Dict[str, TargetBand],
        decimals: Dict[str, int]
    ) -> None:
        """Write values with striping, number formats and target highlighting."""
        border = self._styles.get_thin_border()
        alignment = self._styles.get_data_alignment()
        numeric = {name: pd.api.types.is_numeric_dtype(df[name].dtype) for name in df.columns}

        for offset, values in enumerate(df.itertuples(index=False)):
            # Header occupies row 1
            for col_idx, (name, value) in enumerate(zip(df.columns, values), 1):
                cell = ws.cell(row=offset + 2, column=col_idx, value=None if pd.isna(value) else value)
                cell.fill = self._styles.get_row_fill(offset)
                cell.alignment = alignment
                cell.border = border
                if not numeric[name] or cell.value is None:
                    continue

                cell.number_format = self._styles.get_number_format(decimals.get(name, 2))
                if within_target(float(cell.value), bands.get(name)):
                    cell.fill = self._styles.get_target_fill()
                    cell.font = self._styles.get_target_font()

    @staticmethod
    def _fit_columns(ws: Worksheet, df: pd.DataFrame) -> None:
        """Size each column to its longest value, between 10 and 50 characters."""
        for col_idx, name in enumerate(df.columns, 1):
            longest = max([len(str(name))] + [len(str(v)) for v in df[name] if pd.notna(v)])
            ws.column_dimensions[get_column_letter(col_idx)].width = max(10, min(longest + 3, 50))
