"""
Mock adapter for testing and development.

Either serves a fixed list of items or generates synthetic posts that
mimic real source data. Useful for:
- Running the API without network access (``feed-mix serve --mock``)
- Exercising failures, timeouts and coalescing in tests
- Development and debugging
"""

import asyncio
import random
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any

from src.ingestion.base_adapter import BaseAdapter
from src.ingestion.http_client import HTTPClient
from src.ingestion.schemas import (
    EngagementCounts,
    Highlight,
    NormalizedItem,
    SourceKind,
)

TITLE_TEMPLATES = [
    "Show: a {adj} {thing} written in {lang}",
    "Why {lang} developers keep rewriting their {thing}",
    "The {adj} guide to {thing} internals",
    "Ask: how do you test your {thing}?",
    "{lang} {version} released with a {adj} {thing}",
    "Lessons from running a {thing} in production for {years} years",
]

FILLERS = {
    "adj": ["tiny", "fast", "boring", "practical", "minimal", "distributed"],
    "thing": ["parser", "cache", "scheduler", "compiler", "database", "queue"],
    "lang": ["Python", "Rust", "Go", "TypeScript", "Elixir", "Zig"],
}

SAMPLE_AUTHORS = ["filipedeschamps", "pg", "dang", "rafael", "tptacek", "ana_dev", "lucas"]


class MockAdapter(BaseAdapter):
    """
    Mock adapter serving fixed or synthetic items.

    Args:
        kind: Source kind to mimic
        items: Fixed items to serve; synthetic items are generated when None
        items_per_fetch: Number of synthetic items per fetch
        fail_with: Exception raised on every fetch (simulates an outage)
        delay: Seconds to sleep before answering (simulates latency)
        name: Source name (defaults to the kind)
    """

    def __init__(
        self,
        kind: SourceKind = SourceKind.HACKERNEWS,
        items: list[NormalizedItem | Highlight] | None = None,
        items_per_fetch: int = 10,
        fail_with: Exception | None = None,
        delay: float = 0.0,
        name: str | None = None,
        seed: int | None = None,
    ):
        super().__init__(name=name)
        self._kind = kind
        self._items = items
        self._items_per_fetch = items_per_fetch
        self.fail_with = fail_with
        self.delay = delay
        self.fetch_calls = 0
        self._random = random.Random(seed)

    @property
    def kind(self) -> SourceKind:
        return self._kind

    async def _fetch_raw(self, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        """Serve fixed items or generate synthetic ones."""
        self.fetch_calls += 1

        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

        if self._items is not None:
            for item in self._items:
                yield {"item": item}
            return

        now = datetime.now(timezone.utc)
        for index in range(self._items_per_fetch):
            yield self._generate(index, now)

    def _generate(self, index: int, now: datetime) -> dict[str, Any]:
        rng = self._random
        title = rng.choice(TITLE_TEMPLATES).format(
            version=f"{rng.randint(1, 4)}.{rng.randint(0, 12)}",
            years=rng.randint(2, 10),
            **{key: rng.choice(values) for key, values in FILLERS.items()},
        )
        return {
            "id": f"{self.name}-{index + 1}",
            "title": title,
            "author": rng.choice(SAMPLE_AUTHORS),
            "points": rng.randint(0, 400),
            "comments": rng.randint(0, 150),
            "published_at": now - timedelta(minutes=rng.randint(5, 48 * 60)),
        }

    def _transform(self, raw: dict[str, Any]) -> NormalizedItem | Highlight | None:
        """Pass fixed items through; build synthetic ones for the mimicked kind."""
        if "item" in raw:
            return raw["item"]

        if self._kind == SourceKind.HIGHLIGHTS:
            return Highlight(
                id=raw["id"],
                title=raw["title"],
                summary=f"Why people are talking about: {raw['title'].lower()}",
                source_kind=SourceKind.HIGHLIGHTS,
                author=raw["author"],
                url=f"https://example.com/highlights/{raw['id']}",
                engagement=EngagementCounts(comments=raw["comments"], upvotes=raw["points"]),
                published_at=raw["published_at"],
            )

        return NormalizedItem(
            id=raw["id"],
            title=raw["title"],
            author=raw["author"],
            points=raw["points"],
            comment_count=raw["comments"],
            published_at=raw["published_at"],
            source_kind=self._kind,
            external_url=f"https://example.com/{self.name}/{raw['id']}",
        )


def create_mock_adapters(items_per_fetch: int = 20) -> dict[SourceKind, MockAdapter]:
    """
    Create mock adapters for every source kind.

    Args:
        items_per_fetch: Items per fetch for item sources (highlights get a fifth)

    Returns:
        Dictionary mapping source kind to mock adapter
    """
    return {
        SourceKind.TABNEWS: MockAdapter(
            kind=SourceKind.TABNEWS, items_per_fetch=items_per_fetch, seed=1
        ),
        SourceKind.HACKERNEWS: MockAdapter(
            kind=SourceKind.HACKERNEWS, items_per_fetch=items_per_fetch, seed=2
        ),
        SourceKind.HIGHLIGHTS: MockAdapter(
            kind=SourceKind.HIGHLIGHTS,
            items_per_fetch=max(1, items_per_fetch // 5),
            seed=3,
        ),
    }
