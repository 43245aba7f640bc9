"""
Document renderer.

Turns a composed ReportDocument into PDF, Word or Excel bytes through the
shared layout plan. Rendering runs in a worker process bounded by the
configured timeout; it is never retried here.
"""

from typing import Any, Optional
import logging
import multiprocessing
import time

from ..config import Settings, get_settings
from ..core.exceptions import RenderError
from ..core.models import OutputFormat, ReportDocument, ReportType
from ..core.utils import FilenameUtils, PeriodUtils
from .docx_builder import DocxBuilder
from .layout import LayoutPlanner
from .pdf_builder import PdfBuilder
from .xlsx_builder import XlsxBuilder

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {
    OutputFormat.PDF: "pdf",
    OutputFormat.WORD: "docx",
    OutputFormat.EXCEL: "xlsx",
}

CONTENT_TYPES = {
    OutputFormat.PDF: "application/pdf",
    OutputFormat.WORD: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    OutputFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _parse_format(fmt: Any) -> OutputFormat:
    parsed = OutputFormat.parse(fmt)
    if parsed is None:
        raise RenderError(f"Unsupported output format: {fmt}", retryable=False)
    return parsed


def build_document(doc: ReportDocument, fmt: OutputFormat, top_marked: int = 3) -> bytes:
    """
    Lay out and serialise a document in the current process.

    Args:
        doc: The composed report
        fmt: Target format
        top_marked: Number of ranking rows marked as top positions

    Returns:
        The file content
    """
    blocks = LayoutPlanner(top_marked=top_marked).plan(doc)
    if fmt is OutputFormat.PDF:
        header = f"{doc.title} | {doc.period_label}"
        return PdfBuilder.from_blocks(blocks, header_text=header).to_bytes(title=doc.title)
    if fmt is OutputFormat.WORD:
        return DocxBuilder.from_blocks(blocks).to_bytes()
    return XlsxBuilder.from_blocks(blocks).to_bytes()


def _render_worker(doc: ReportDocument, fmt_value: str, top_marked: int) -> bytes:
    # Module level so the pool can pickle it
    return build_document(doc, OutputFormat(fmt_value), top_marked)


class DocumentRenderer:
    """
    Service rendering report documents to bytes.

    The only component touching an external resource (a worker process);
    everything else in the report chain is pure.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the renderer.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        self._settings = settings or get_settings()

    def render(self, doc: ReportDocument, fmt: Any) -> bytes:
        """
        Render a document.

        Args:
            doc: The composed report
            fmt: OutputFormat or one of "pdf", "word", "excel" (or "docx", "xlsx")

        Returns:
            The file content

        Raises:
            RenderError: On timeout, worker failure or an unsupported format
        """
        output_format = _parse_format(fmt)
        render_settings = self._settings.render
        top_marked = self._settings.report.top_marked
        started = time.monotonic()

        if render_settings.isolate_process:
            content = self._render_isolated(doc, output_format, top_marked, render_settings.timeout_seconds)
        else:
            try:
                content = build_document(doc, output_format, top_marked)
            except Exception as e:
                raise RenderError(f"Rendering {output_format.value} failed: {e}") from e

        logger.info(
            f"Rendered {output_format.value} for '{doc.title}' "
            f"({len(content)} bytes in {time.monotonic() - started:.2f}s)"
        )
        return content

    @staticmethod
    def _render_isolated(
        doc: ReportDocument,
        fmt: OutputFormat,
        top_marked: int,
        timeout: float
    ) -> bytes:
        pool = multiprocessing.Pool(processes=1)
        try:
            pending = pool.apply_async(_render_worker, (doc, fmt.value, top_marked))
            return pending.get(timeout=timeout)
        except multiprocessing.TimeoutError as e:
            logger.error(f"Rendering {fmt.value} timed out after {timeout:g}s")
            raise RenderError(f"Rendering {fmt.value} timed out after {timeout:g}s") from e
        except Exception as e:
            logger.error(f"Rendering {fmt.value} failed in worker: {e}")
            raise RenderError(f"Rendering {fmt.value} failed: {e}") from e
        finally:
            pool.terminate()
            pool.join()

    def filename(self, doc: ReportDocument, fmt: Any) -> str:
        """
        Download filename for a rendered document.

        Format: ``<Org>_<Kind>_<Month>_<Year>_<YYYYMMDDTHHMMSS>.<ext>``, e.g.
        ``Fiskelogistik_Chauffor_Hans_Ole_Mller_Juni_2025_20250701T080000.pdf``.
        """
        output_format = _parse_format(fmt)
        if doc.report_type is ReportType.GROUP:
            kind = f"Gruppe_{FilenameUtils.sanitize(doc.subject or '')}"
        elif doc.report_type is ReportType.INDIVIDUAL:
            kind = f"Chauffor_{FilenameUtils.sanitize(doc.subject or '')}"
        else:
            kind = "Chaufforrapport"

        parts = [
            FilenameUtils.sanitize(doc.org_name),
            kind,
            PeriodUtils.month_name(doc.month),
            str(doc.year),
            doc.generated_at.strftime("%Y%m%dT%H%M%S"),
        ]
        return f"{'_'.join(parts)}.{FILE_EXTENSIONS[output_format]}"

    @staticmethod
    def content_type(fmt: Any) -> str:
        """MIME type of a format."""
        return CONTENT_TYPES[_parse_format(fmt)]

    def content_disposition(self, doc: ReportDocument, fmt: Any) -> str:
        """``Content-Disposition`` header value for a download."""
        return f'attachment; filename="{self.filename(doc, fmt)}"'
