"""
TabNews API adapter.

Fetches the relevant-posts listing of the TabNews community platform and
maps it into NormalizedItem:
- tabcoins -> points
- children_deep_count -> comment_count
- owner_username/slug -> slug_info (used to fetch the comment tree)
Unpublished, deleted and untitled contents are filtered out.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from src.config.settings import get_settings
from src.feed.errors import SourceUnavailableError
from src.ingestion.base_adapter import BaseAdapter, clean_text, parse_timestamp
from src.ingestion.http_client import HTTPClient
from src.ingestion.schemas import Comment, NormalizedItem, SlugInfo, SourceKind

logger = logging.getLogger(__name__)

TABNEWS_WEB_BASE = "https://www.tabnews.com.br"


class TabNewsAdapter(BaseAdapter):
    """
    TabNews adapter for community posts.

    Content Handling:
        - Only root contents (no parent) with status "published"
        - Link posts keep their source_url as external_url
        - Comment trees come from the /children endpoint
    """

    def __init__(
        self,
        api_url: str | None = None,
        per_page: int | None = None,
        strategy: str | None = None,
        **kwargs: Any,
    ):
        """
        Initialize TabNews adapter.

        Args:
            api_url: API base URL (e.g. https://www.tabnews.com.br/api/v1)
            per_page: Posts to request per listing
            strategy: Listing strategy: relevant, new or old
        """
        super().__init__(**kwargs)

        settings = get_settings()
        self._api_url = (api_url or settings.tabnews_api_url).rstrip("/")
        self._per_page = per_page or settings.tabnews_per_page
        self._strategy = strategy or settings.tabnews_strategy

    @property
    def kind(self) -> SourceKind:
        return SourceKind.TABNEWS

    @property
    def supports_comments(self) -> bool:
        return True

    async def _fetch_raw(self, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        """Yield raw contents from the listing endpoint."""
        data = await client.get_json(
            f"{self._api_url}/contents",
            params={
                "page": 1,
                "per_page": self._per_page,
                "strategy": self._strategy,
            },
        )

        if not isinstance(data, list):
            raise ValueError("TabNews listing is not a JSON array")

        logger.debug(f"Fetched {len(data)} contents from TabNews")
        for content in data:
            if isinstance(content, dict):
                yield content

    def _transform(self, raw: dict[str, Any]) -> NormalizedItem | None:
        """Transform a TabNews content to NormalizedItem."""
        if raw.get("status", "published") != "published" or raw.get("deleted_at"):
            return None

        # Root posts only; comments are contents with a parent
        if raw.get("parent_id"):
            return None

        title = clean_text(raw.get("title") or "")
        content_id = raw.get("id")
        owner = raw.get("owner_username")
        slug = raw.get("slug")
        if not title or not content_id or not owner or not slug:
            return None

        published_at = parse_timestamp(raw.get("published_at") or raw.get("created_at"))
        if published_at is None:
            return None

        return NormalizedItem(
            id=str(content_id),
            title=title,
            author=owner,
            points=int(raw.get("tabcoins") or 0),
            comment_count=max(0, int(raw.get("children_deep_count") or 0)),
            published_at=published_at,
            source_kind=SourceKind.TABNEWS,
            external_url=raw.get("source_url") or f"{TABNEWS_WEB_BASE}/{owner}/{slug}",
            body=raw.get("body"),
            slug_info=SlugInfo(owner_username=owner, slug=slug),
        )

    async def fetch_comments(self, post_ref: str) -> list[Comment]:
        """
        Fetch the comment tree of a post.

        Args:
            post_ref: "{owner_username}/{slug}"
        """
        owner, _, slug = post_ref.strip("/").partition("/")
        if not owner or not slug:
            raise SourceUnavailableError(self.name, f"invalid post reference {post_ref!r}")

        try:
            async with self._http_client() as client:
                data = await client.get_json(
                    f"{self._api_url}/contents/{owner}/{slug}/children"
                )
        except Exception as e:
            logger.error(f"TabNews comments failed for {post_ref}: {e}")
            raise SourceUnavailableError(self.name, str(e) or type(e).__name__) from e

        if not isinstance(data, list):
            raise SourceUnavailableError(self.name, "comment listing is not a JSON array")

        return [c for c in (self._transform_comment(raw) for raw in data) if c is not None]

    def _transform_comment(self, raw: Any) -> Comment | None:
        """Recursively map a TabNews child content to Comment."""
        if not isinstance(raw, dict) or raw.get("deleted_at"):
            return None

        created_at = parse_timestamp(raw.get("published_at") or raw.get("created_at"))
        if created_at is None or not raw.get("id"):
            return None

        children = [
            c
            for c in (self._transform_comment(child) for child in raw.get("children") or [])
            if c is not None
        ]
        return Comment(
            id=str(raw["id"]),
            parent_id=raw.get("parent_id"),
            author_handle=raw.get("owner_username") or "unknown",
            body=raw.get("body") or "",
            created_at=created_at,
            children=children,
            engagement_score=raw.get("tabcoins"),
        )

    async def health_check(self) -> bool:
        """Check if the TabNews API answers."""
        try:
            async with self._http_client() as client:
                await client.get(
                    f"{self._api_url}/contents",
                    params={"page": 1, "per_page": 1},
                )
            return True
        except Exception:
            return False
