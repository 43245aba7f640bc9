"""
Presentation mapping from layout markings to colours.

The only place that knows what a marking looks like. Colours are bare
RGB hex strings as used by openpyxl and python-docx; the PDF builder adds
the ``#`` prefix reportlab expects.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .layout import Marking


class ReportTheme:
    """Colour theme shared by all output formats."""

    # Header colors
    HEADER_BG = "0268AB"
    HEADER_FG = "FFFFFF"

    # Alternating row colors
    ROW_EVEN = "F4F8FB"
    ROW_ODD = "FFFFFF"

    # Top-3 ranking rows
    TOP3_BG = "FFE699"
    TOP3_FG = "7F6000"

    # Values within target
    TARGET_BG = "E3F4EA"
    TARGET_FG = "1F7D3A"

    # Trend colors
    IMPROVEMENT_FG = "008000"
    REGRESSION_FG = "FF0000"
    NOT_MEASURABLE_FG = "808080"
    NEW_DRIVER_FG = "0066CC"

    TEXT = "1F2933"
    MUTED = "6B7280"
    BORDER = "B4C6E7"


@dataclass(frozen=True)
class CellStyle:
    """Resolved look of one table cell."""

    background: Optional[str] = None
    text_color: Optional[str] = None
    bold: bool = False


_TREND_COLORS = {
    Marking.IMPROVEMENT: ReportTheme.IMPROVEMENT_FG,
    Marking.REGRESSION: ReportTheme.REGRESSION_FG,
    Marking.NOT_MEASURABLE: ReportTheme.NOT_MEASURABLE_FG,
    Marking.NEW_DRIVER: ReportTheme.NEW_DRIVER_FG,
}


def style_for(markings: Iterable[Marking]) -> CellStyle:
    """
    Resolve the style of a cell from its markings.

    Target and top-3 markings set the background; a trend marking sets the
    text colour and wins over the top-3 text colour.

    Args:
        markings: Markings of the cell

    Returns:
        CellStyle, empty for an unmarked cell
    """
    marks = set(markings)
    background = None
    text_color = None
    bold = False

    if Marking.TOP3 in marks:
        background = ReportTheme.TOP3_BG
        text_color = ReportTheme.TOP3_FG
        bold = True
    if Marking.TARGET_MET in marks:
        background = ReportTheme.TARGET_BG
        text_color = ReportTheme.TARGET_FG
    for marking, color in _TREND_COLORS.items():
        if marking in marks:
            text_color = color
    if marks & {Marking.EMPHASIS, Marking.IMPROVEMENT, Marking.REGRESSION}:
        bold = True
    return CellStyle(background=background, text_color=text_color, bold=bold)
