"""Reports module for composing and rendering report documents."""

from .composer import ReportComposer
from .layout import LayoutPlanner
from .renderer import DocumentRenderer
from .docx_builder import DocxBuilder
from .pdf_builder import PdfBuilder
from .xlsx_builder import XlsxBuilder

__all__ = [
    "DocumentRenderer",
    "DocxBuilder",
    "LayoutPlanner",
    "PdfBuilder",
    "ReportComposer",
    "XlsxBuilder",
]
