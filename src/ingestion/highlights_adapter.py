"""
Curated highlights adapter.

Reads a JSON document of editor- or AI-curated highlights (title plus a
one-line summary of a notable post) from a configured URL. Accepts either a
bare array or an object with a "highlights" array; both camelCase and
snake_case field names are understood.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from src.config.settings import get_settings
from src.ingestion.base_adapter import BaseAdapter, clean_text, parse_timestamp
from src.ingestion.http_client import HTTPClient
from src.ingestion.schemas import EngagementCounts, Highlight, SourceKind

logger = logging.getLogger(__name__)

_SOURCE_ALIASES = {
    "tabnews": SourceKind.TABNEWS,
    "hackernews": SourceKind.HACKERNEWS,
    "hacker news": SourceKind.HACKERNEWS,
    "hn": SourceKind.HACKERNEWS,
}


def _count(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return None


class HighlightsAdapter(BaseAdapter):
    """Adapter for the curated highlight stream used by the mix feed."""

    def __init__(self, url: str | None = None, **kwargs: Any):
        """
        Initialize highlights adapter.

        Args:
            url: Highlights JSON endpoint (defaults to HIGHLIGHTS_URL)
        """
        super().__init__(**kwargs)
        self._url = url or get_settings().highlights_url
        if not self._url:
            logger.warning("Highlights URL not configured. Adapter will not be able to fetch data.")

    @property
    def kind(self) -> SourceKind:
        return SourceKind.HIGHLIGHTS

    async def _fetch_raw(self, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        if not self._url:
            raise ValueError("highlights URL not configured")

        data = await client.get_json(self._url)
        if isinstance(data, dict):
            data = data.get("highlights")
        if not isinstance(data, list):
            raise ValueError("Highlights document has no highlight array")

        for record in data:
            if isinstance(record, dict):
                yield record

    def _transform(self, raw: dict[str, Any]) -> Highlight | None:
        """Transform a curated record to Highlight."""
        title = clean_text(raw.get("title") or "")
        url = raw.get("url")
        highlight_id = raw.get("id")
        published_at = parse_timestamp(raw.get("publishedAt") or raw.get("published_at"))
        if not title or not url or highlight_id is None or published_at is None:
            return None

        source = str(raw.get("source") or raw.get("source_kind") or "").strip().lower()
        engagement = raw.get("engagement") or {}

        return Highlight(
            id=str(highlight_id),
            title=title,
            summary=clean_text(raw.get("summary") or ""),
            source_kind=_SOURCE_ALIASES.get(source, SourceKind.HIGHLIGHTS),
            author=raw.get("author") or "unknown",
            url=url,
            engagement=EngagementCounts(
                likes=_count(engagement.get("likes")),
                comments=_count(engagement.get("comments")) or 0,
                shares=_count(engagement.get("shares")),
                upvotes=_count(engagement.get("upvotes")),
            ),
            published_at=published_at,
        )
