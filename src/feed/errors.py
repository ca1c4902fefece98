"""
Error taxonomy for the feed engine.

Callers must be able to tell these apart: ``AllSourcesFailedError`` is
retryable, ``MalformedCursorError`` means pagination must restart from the
first page, and ``SourceUnavailableError`` only degrades a SourceStatus.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.ingestion.schemas import SourceStatus


class FeedError(Exception):
    """Base exception for feed engine errors."""


class SourceUnavailableError(FeedError):
    """Raised when one source could not be fetched."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class SourceTimeoutError(SourceUnavailableError):
    """Raised when a source did not answer within the fetch timeout."""

    def __init__(self, source: str, timeout_seconds: float):
        super().__init__(source, f"timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class AllSourcesFailedError(FeedError):
    """Raised when every item source failed for a request."""

    retryable = True

    def __init__(self, statuses: list["SourceStatus"]):
        names = ", ".join(s.name for s in statuses) or "none configured"
        super().__init__(f"All sources failed ({names})")
        self.statuses = statuses


class MalformedCursorError(FeedError):
    """Raised when a pagination cursor was not produced by this engine."""

    retryable = False


class UnknownSourceError(FeedError):
    """Raised when a query names a source that is not configured."""

    def __init__(self, source: str):
        super().__init__(f"Unknown source: {source}")
        self.source = source
