"""
Hacker News adapter using the official Firebase API.

Fetches the top-stories id list, then each story's details concurrently
(bounded by a semaphore). Maps:
- score -> points
- descendants -> comment_count
- time (unix seconds) -> published_at (UTC)
Dead, deleted, untitled and non-story items are filtered out.
"""

import asyncio
import html
import logging
import re
from collections.abc import AsyncIterator
from typing import Any

from src.config.settings import get_settings
from src.feed.errors import SourceUnavailableError
from src.ingestion.base_adapter import BaseAdapter, clean_text, parse_timestamp
from src.ingestion.http_client import HTTPClient
from src.ingestion.schemas import Comment, NormalizedItem, SourceKind

logger = logging.getLogger(__name__)

HN_ITEM_URL = "https://news.ycombinator.com/item?id={id}"
STORY_TYPES = {"story", "poll"}


def _html_to_text(value: str) -> str:
    """Convert HN's minimal HTML (paragraphs, links, entities) to plain text."""
    text = re.sub(r"<p>", "\n\n", value, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return html.unescape(text).strip()


class HackerNewsAdapter(BaseAdapter):
    """
    Hacker News adapter for link-aggregator stories.

    Rate Limits:
        - None documented; concurrency is capped by max_concurrency

    Content Handling:
        - Stories and polls only; jobs and comments are skipped
        - Ask/Show HN text becomes the body
    """

    def __init__(
        self,
        api_url: str | None = None,
        story_limit: int | None = None,
        max_concurrency: int | None = None,
        comment_depth: int | None = None,
        comment_limit: int | None = None,
        listing: str = "topstories",
        **kwargs: Any,
    ):
        """
        Initialize Hacker News adapter.

        Args:
            api_url: Firebase API base URL
            story_limit: Stories to fetch from the listing
            max_concurrency: Parallel item requests
            comment_depth: Maximum depth of fetched comment trees
            comment_limit: Maximum number of comments fetched per tree
            listing: Listing endpoint: topstories, beststories or newstories
        """
        super().__init__(**kwargs)

        settings = get_settings()
        self._api_url = (api_url or settings.hackernews_api_url).rstrip("/")
        self._story_limit = story_limit or settings.hackernews_story_limit
        self._max_concurrency = max_concurrency or settings.hackernews_max_concurrency
        self._comment_depth = comment_depth or settings.hackernews_comment_depth
        self._comment_limit = comment_limit or settings.hackernews_comment_limit
        self._listing = listing

    @property
    def kind(self) -> SourceKind:
        return SourceKind.HACKERNEWS

    @property
    def supports_comments(self) -> bool:
        return True

    async def _request_item(
        self,
        client: HTTPClient,
        semaphore: asyncio.Semaphore,
        item_id: int | str,
    ) -> dict[str, Any] | None:
        async with semaphore:
            data = await client.get_json(f"{self._api_url}/item/{item_id}.json")
        return data if isinstance(data, dict) else None

    async def _get_item(
        self,
        client: HTTPClient,
        semaphore: asyncio.Semaphore,
        item_id: int | str,
    ) -> dict[str, Any] | None:
        """Fetch one comment; a single failed comment does not fail the tree."""
        try:
            return await self._request_item(client, semaphore, item_id)
        except Exception as e:
            logger.warning(f"Hacker News item {item_id} failed: {e}")
            return None

    async def _fetch_raw(self, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        """
        Yield raw story records for the top of the listing.

        A single failed story is skipped. If every story request fails the
        fetch fails instead of reporting an empty listing.
        """
        ids = await client.get_json(f"{self._api_url}/{self._listing}.json")
        if not isinstance(ids, list):
            raise ValueError(f"Hacker News {self._listing} is not a JSON array")

        semaphore = asyncio.Semaphore(self._max_concurrency)
        results = await asyncio.gather(
            *(
                self._request_item(client, semaphore, item_id)
                for item_id in ids[: self._story_limit]
            ),
            return_exceptions=True,
        )

        failures = []
        for result in results:
            if isinstance(result, Exception):
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result

        if failures and len(failures) == len(results):
            first = failures[0]
            raise SourceUnavailableError(
                self.name,
                f"all {len(results)} item requests failed: {str(first) or type(first).__name__}",
            )

        logger.debug(f"Fetched {len(results) - len(failures)} items from Hacker News")
        for result in results:
            if isinstance(result, Exception):
                logger.warning(f"Hacker News item failed: {result}")
            elif result is not None:
                yield result

    def _transform(self, raw: dict[str, Any]) -> NormalizedItem | None:
        """Transform a Hacker News item to NormalizedItem."""
        if raw.get("dead") or raw.get("deleted"):
            return None

        if raw.get("type", "story") not in STORY_TYPES:
            return None

        title = clean_text(html.unescape(raw.get("title") or ""))
        item_id = raw.get("id")
        published_at = parse_timestamp(raw.get("time"))
        if not title or item_id is None or published_at is None:
            return None

        text = raw.get("text")
        return NormalizedItem(
            id=str(item_id),
            title=title,
            author=raw.get("by") or "unknown",
            points=int(raw.get("score") or 0),
            comment_count=max(0, int(raw.get("descendants") or 0)),
            published_at=published_at,
            source_kind=SourceKind.HACKERNEWS,
            external_url=raw.get("url") or HN_ITEM_URL.format(id=item_id),
            body=_html_to_text(text) if text else None,
        )

    async def fetch_comments(self, post_ref: str) -> list[Comment]:
        """
        Fetch the comment tree of a story, bounded in depth and size.

        Args:
            post_ref: Story id
        """
        story_id = post_ref.strip()
        if not story_id.isdigit():
            raise SourceUnavailableError(self.name, f"invalid story id {post_ref!r}")

        semaphore = asyncio.Semaphore(self._max_concurrency)
        budget = [self._comment_limit]

        try:
            async with self._http_client() as client:
                story = await client.get_json(f"{self._api_url}/item/{story_id}.json")
                if not isinstance(story, dict):
                    raise SourceUnavailableError(self.name, f"story {story_id} not found")
                return await self._fetch_children(
                    client, semaphore, story.get("kids") or [], 1, budget
                )
        except SourceUnavailableError:
            raise
        except Exception as e:
            logger.error(f"Hacker News comments failed for {story_id}: {e}")
            raise SourceUnavailableError(self.name, str(e) or type(e).__name__) from e

    async def _fetch_children(
        self,
        client: HTTPClient,
        semaphore: asyncio.Semaphore,
        kid_ids: list[int],
        depth: int,
        budget: list[int],
    ) -> list[Comment]:
        if depth > self._comment_depth or budget[0] <= 0:
            return []

        kid_ids = kid_ids[: budget[0]]
        budget[0] -= len(kid_ids)

        raws = await asyncio.gather(
            *(self._get_item(client, semaphore, kid) for kid in kid_ids)
        )

        comments = []
        for raw in raws:
            if raw is None or raw.get("dead") or raw.get("deleted") or raw.get("id") is None:
                continue
            created_at = parse_timestamp(raw.get("time"))
            if created_at is None:
                continue

            children = await self._fetch_children(
                client, semaphore, raw.get("kids") or [], depth + 1, budget
            )
            comments.append(
                Comment(
                    id=str(raw["id"]),
                    parent_id=str(raw["parent"]) if raw.get("parent") else None,
                    author_handle=raw.get("by") or "unknown",
                    body=_html_to_text(raw.get("text") or ""),
                    created_at=created_at,
                    children=children,
                )
            )
        return comments

    async def health_check(self) -> bool:
        """Check if the Firebase API answers."""
        try:
            async with self._http_client() as client:
                await client.get(f"{self._api_url}/maxitem.json")
            return True
        except Exception:
            return False
