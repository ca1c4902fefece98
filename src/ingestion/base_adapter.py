"""
Base adapter interface and shared functionality for source adapters.

Each source adapter implements _fetch_raw() and _transform(). The base
class provides:
- The fetch() boundary: every failure becomes SourceUnavailableError
- Per-item filtering and error isolation
- Run statistics and logging
- Common normalization utilities
"""

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.feed.errors import SourceUnavailableError
from src.ingestion.http_client import HTTPClient, RetryConfig
from src.ingestion.schemas import Comment, Highlight, NormalizedItem, SourceKind

logger = logging.getLogger(__name__)


@dataclass
class AdapterStats:
    """Statistics for an adapter run."""

    items_fetched: int = 0
    items_filtered: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
        - kind: SourceKind enum value
        - _fetch_raw(): Async generator yielding raw source records
        - _transform(): Convert a raw record to the normalized shape

    The base class handles:
        - Converting any failure into SourceUnavailableError
        - Skipping records that fail to transform
        - Logging and statistics

    Adapters never cache and never rank.
    """

    def __init__(
        self,
        name: str | None = None,
        retry_config: RetryConfig | None = None,
        request_timeout: float = 10.0,
    ):
        """
        Initialize adapter.

        Args:
            name: Source name reported in SourceStatus (defaults to the kind)
            retry_config: HTTP retry policy (defaults from settings)
            request_timeout: Per-request HTTP timeout in seconds
        """
        self._name = name
        self._retry_config = retry_config
        self._request_timeout = request_timeout
        self._stats = AdapterStats()

    @property
    @abstractmethod
    def kind(self) -> SourceKind:
        """Return the source kind this adapter produces."""
        ...

    @property
    def name(self) -> str:
        """Source name used for cache keys, cursors and SourceStatus."""
        return self._name or self.kind.value

    @property
    def supports_comments(self) -> bool:
        return False

    def _http_client(self) -> HTTPClient:
        return HTTPClient(
            retry_config=self._retry_config,
            timeout=self._request_timeout,
        )

    @abstractmethod
    def _fetch_raw(self, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        """
        Fetch raw records from the source API.

        Yields:
            Raw source records as dictionaries

        Errors raised here abort the whole fetch and are reported as
        SourceUnavailableError by fetch().
        """
        ...

    @abstractmethod
    def _transform(self, raw: dict[str, Any]) -> NormalizedItem | Highlight | None:
        """
        Transform one raw record to the normalized shape.

        Returns:
            The normalized value, or None if the record should be filtered
            (removed, dead, untitled, wrong type).
        """
        ...

    async def fetch(self) -> list[NormalizedItem | Highlight]:
        """
        Fetch and normalize all current items of the source.

        This is the adapter boundary: an empty list means the source has no
        items, a failure always raises.

        Returns:
            Normalized items in source order

        Raises:
            SourceUnavailableError: If the source could not be fetched
        """
        self._stats = AdapterStats()
        items: list[NormalizedItem | Highlight] = []

        logger.info(f"Starting fetch for {self.name}")

        try:
            async with self._http_client() as client:
                async for raw in self._fetch_raw(client):
                    try:
                        item = self._transform(raw)
                    except Exception as e:
                        self._stats.errors += 1
                        logger.warning(f"Error transforming record in {self.name}: {e}")
                        continue

                    if item is None:
                        self._stats.items_filtered += 1
                        continue

                    self._stats.items_fetched += 1
                    items.append(item)

        except asyncio.CancelledError:
            raise
        except SourceUnavailableError:
            self._stats.errors += 1
            raise
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"Error in {self.name} fetch: {e}", exc_info=True)
            raise SourceUnavailableError(self.name, str(e) or type(e).__name__) from e

        finally:
            logger.info(
                f"{self.name} completed: "
                f"fetched={self._stats.items_fetched}, "
                f"filtered={self._stats.items_filtered}, "
                f"errors={self._stats.errors}, "
                f"elapsed={self._stats.elapsed_seconds:.2f}s"
            )

        return items

    async def fetch_comments(self, post_ref: str) -> list[Comment]:
        """
        Fetch the comment tree of one post.

        Raises:
            SourceUnavailableError: If comments cannot be fetched
        """
        raise SourceUnavailableError(self.name, "comments are not supported")

    @property
    def stats(self) -> AdapterStats:
        """Get statistics of the latest run."""
        return self._stats

    async def health_check(self) -> bool:
        """
        Check if the adapter can reach its source.

        Override in subclasses for source-specific health checks.
        """
        return True


# Common normalization utilities used across adapters

def clean_text(text: str) -> str:
    """
    Clean text content by removing excessive whitespace and control characters.

    Args:
        text: Raw text content

    Returns:
        Cleaned text
    """
    text = " ".join(text.split())
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    return text.strip()


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a unix timestamp (seconds) or ISO-8601 string into a UTC datetime.

    Returns None for missing or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    return None
