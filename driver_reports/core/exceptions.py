"""
Exception hierarchy for the driver report engine.

Degenerate telemetry (malformed durations, zero denominators, missing
previous-period records) is never an error; these exceptions cover
configuration, ingestion, rendering and delivery failures only.
"""

from typing import Iterable, List


class DriverReportError(Exception):
    """Base class for all driver report errors."""


class ReportConfigError(DriverReportError, ValueError):
    """Raised when a report request or settings value fails validation."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid configuration")


class DataLoadError(DriverReportError, ValueError):
    """Raised when an input file cannot be read or mapped."""


class RenderError(DriverReportError):
    """
    Raised when a document cannot be rendered.

    Rendering is never retried internally; ``retryable`` tells the caller
    whether trying again may succeed (timeouts, worker crashes).
    """

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class MailDeliveryError(DriverReportError):
    """Raised by a mail transport when a message could not be delivered."""
