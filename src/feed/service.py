"""
Feed query service - the facade over adapters, cache, ranking and merging.

Per request: resolve the cursor, fetch every source concurrently through the
single-flight cache, rank each snapshot, merge under the requested policy,
slice one page and encode the cursor for the next one.

Features:
- Partial failure tolerance (a failed source contributes zero items)
- Per-source health report in every response
- Per-source fetch timeout
- Metrics and tracing around every fetch
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from src.config.settings import get_settings
from src.feed.cache import SingleFlightCache
from src.feed.config import FeedConfig
from src.feed.cursor import Cursor, decode_cursor, encode_cursor
from src.feed.errors import (
    AllSourcesFailedError,
    MalformedCursorError,
    SourceTimeoutError,
    SourceUnavailableError,
    UnknownSourceError,
)
from src.feed.merge import (
    FeedItem,
    InterleaveEngine,
    InterleavePolicy,
    RankedSource,
    order_highlights,
)
from src.feed.ranking import rank_items
from src.ingestion.base_adapter import BaseAdapter
from src.ingestion.hackernews_adapter import HackerNewsAdapter
from src.ingestion.highlights_adapter import HighlightsAdapter
from src.ingestion.mock_adapter import create_mock_adapters
from src.ingestion.schemas import (
    Comment,
    Highlight,
    NormalizedItem,
    SourceKind,
    SourceStatus,
    WireModel,
)
from src.ingestion.tabnews_adapter import TabNewsAdapter
from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer, traced

logger = structlog.get_logger(__name__)


class FeedResponse(WireModel):
    """One page of the feed."""

    items: list[FeedItem]
    next_cursor: str | None = None
    sources: list[SourceStatus]


@dataclass(frozen=True)
class SourceSnapshot:
    """Normalized output of one adapter fetch and the wall-clock time it was taken."""

    items: tuple[NormalizedItem | Highlight, ...]
    fetched_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedService:
    """
    Aggregates several sources into one ranked, paginated feed.

    Item sources are merged in the order given; that order is also the
    round-robin rotation order. The highlights source, when present, only
    feeds the banded policy and never fails a request.

    Usage:
        service = FeedService.from_settings()
        page = await service.get_mix(page_size=10)
        more = await service.get_mix(page_size=10, cursor=page.next_cursor)
    """

    def __init__(
        self,
        sources: list[BaseAdapter],
        highlights: BaseAdapter | None = None,
        config: FeedConfig | None = None,
        cache: SingleFlightCache | None = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize feed service.

        Args:
            sources: Item source adapters, in merge order
            highlights: Optional highlight stream adapter
            config: Ranking, banding, cache and timeout settings
            cache: Snapshot cache (created from config when omitted)
            now: Wall clock used to stamp snapshots
        """
        names = [adapter.name for adapter in sources]
        if highlights is not None:
            names.append(highlights.name)
        if len(set(names)) != len(names):
            raise ValueError(f"Source names must be unique, got {names}")

        self._sources = list(sources)
        self._highlights = highlights
        self._config = config or FeedConfig()
        self._cache = cache or SingleFlightCache(ttl_seconds=self._config.cache_ttl_seconds)
        self._engine = InterleaveEngine(self._config)
        self._now = now
        self._metrics = get_metrics()
        self._tracer = get_tracer("feed")

        logger.info(
            "Feed service initialized",
            sources=[adapter.name for adapter in self._sources],
            highlights=highlights.name if highlights else None,
            cache_ttl=self._cache.ttl_seconds,
        )

    @classmethod
    def from_settings(cls, use_mock: bool = False) -> "FeedService":
        """
        Build the service with the configured adapters.

        Args:
            use_mock: Serve synthetic data instead of calling upstream APIs
        """
        if use_mock:
            mocks = create_mock_adapters()
            return cls(
                sources=[mocks[SourceKind.TABNEWS], mocks[SourceKind.HACKERNEWS]],
                highlights=mocks[SourceKind.HIGHLIGHTS],
            )

        settings = get_settings()
        highlights = HighlightsAdapter() if settings.highlights_configured else None
        if highlights is None:
            logger.info("Highlights URL not configured, banded feed will carry no highlights")

        return cls(
            sources=[TabNewsAdapter(), HackerNewsAdapter()],
            highlights=highlights,
        )

    @property
    def config(self) -> FeedConfig:
        return self._config

    @property
    def cache(self) -> SingleFlightCache:
        return self._cache

    @property
    def source_names(self) -> list[str]:
        return [adapter.name for adapter in self._sources]

    def clamp_page_size(self, page_size: int | None) -> int:
        """Apply the default and maximum page size."""
        if page_size is None:
            return self._config.default_page_size
        return max(1, min(page_size, self._config.max_page_size))

    # Queries

    async def get_mix(self, page_size: int | None = None, cursor: str | None = None) -> FeedResponse:
        """Ranked feed with highlights banded in."""
        return await self.get_feed(page_size, cursor, InterleavePolicy.HIGHLIGHT_BANDED)

    async def get_feed(
        self,
        page_size: int | None = None,
        cursor: str | None = None,
        policy: InterleavePolicy = InterleavePolicy.HIGHLIGHT_BANDED,
    ) -> FeedResponse:
        """
        Produce one page of the merged feed.

        Args:
            page_size: Items per page (clamped to the configured maximum)
            cursor: Token from a previous page's ``next_cursor``
            policy: Interleave policy

        Returns:
            FeedResponse with the page, next cursor and per-source status

        Raises:
            MalformedCursorError: If the cursor was not issued by this service
            AllSourcesFailedError: If every item source failed
        """
        policy = InterleavePolicy(policy)
        started = time.perf_counter()
        size = self.clamp_page_size(page_size)

        try:
            position = decode_cursor(cursor) if cursor else Cursor()
        except MalformedCursorError:
            self._metrics.record_feed_request(policy.value, "malformed_cursor")
            logger.info("Rejected malformed cursor", policy=policy.value)
            raise

        with traced(self._tracer, "feed_query", {"policy": policy.value, "page_size": size}):
            adapters = list(self._sources)
            use_highlights = (
                policy == InterleavePolicy.HIGHLIGHT_BANDED and self._highlights is not None
            )
            if use_highlights:
                adapters.append(self._highlights)

            results = await asyncio.gather(
                *(self._fetch_source(adapter) for adapter in adapters),
                return_exceptions=True,
            )

            statuses: list[SourceStatus] = []
            snapshots: dict[str, SourceSnapshot] = {}
            for adapter, result in zip(adapters, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, BaseException):
                    statuses.append(SourceStatus(name=adapter.name, ok=False, error=str(result)))
                    continue
                snapshots[adapter.name] = result
                statuses.append(
                    SourceStatus(name=adapter.name, ok=True, item_count=len(result.items))
                )

            item_statuses = statuses[: len(self._sources)]
            if not any(status.ok for status in item_statuses):
                self._metrics.record_feed_request(
                    policy.value, "all_sources_failed", time.perf_counter() - started
                )
                logger.warning(
                    "All sources failed",
                    sources={s.name: s.error for s in item_statuses},
                )
                raise AllSourcesFailedError(item_statuses)

            ranked, highlights = self._rank(snapshots)
            result = self._engine.paginate(ranked, highlights, position, size, policy)

        self._metrics.record_duplicates(result.duplicates_dropped)
        self._metrics.record_feed_request(policy.value, "ok", time.perf_counter() - started)

        logger.debug(
            "Feed page served",
            policy=policy.value,
            items=len(result.items),
            emitted=result.cursor.emitted_count,
            exhausted=result.exhausted,
        )

        return FeedResponse(
            items=result.items,
            next_cursor=None if result.exhausted else encode_cursor(result.cursor),
            sources=statuses,
        )

    async def get_source(self, source: SourceKind | str) -> list[NormalizedItem]:
        """
        Ranked items of one source, unpaginated.

        Raises:
            UnknownSourceError: If no item source has that name or kind
            SourceUnavailableError: If the source failed
        """
        adapter = self._resolve(source)
        snapshot = await self._fetch_source(adapter)
        items = [item for item in snapshot.items if isinstance(item, NormalizedItem)]
        return [entry.item for entry in rank_items(items, snapshot.fetched_at, self._config)]

    async def get_comments(self, source: SourceKind | str, post_ref: str) -> list[Comment]:
        """
        Comment tree of one post. Not cached.

        Args:
            source: Item source name or kind
            post_ref: Source-specific reference ("owner/slug" or a story id)

        Raises:
            UnknownSourceError: If no item source has that name or kind
            SourceUnavailableError: If comments could not be fetched
        """
        adapter = self._resolve(source)
        if not adapter.supports_comments:
            raise SourceUnavailableError(adapter.name, "comments are not supported")
        timeout = self._config.fetch_timeout_seconds

        with traced(self._tracer, "fetch_comments", {"source": adapter.name}):
            try:
                async with asyncio.timeout(timeout):
                    return await adapter.fetch_comments(post_ref)
            except TimeoutError as e:
                raise SourceTimeoutError(adapter.name, timeout) from e

    # Internals

    def _resolve(self, source: SourceKind | str) -> BaseAdapter:
        wanted = source.value if isinstance(source, SourceKind) else str(source).lower()
        for adapter in self._sources:
            if adapter.name == wanted:
                return adapter
        for adapter in self._sources:
            if adapter.kind.value == wanted:
                return adapter
        raise UnknownSourceError(wanted)

    async def _fetch_source(self, adapter: BaseAdapter) -> SourceSnapshot:
        """Fetch one source through the cache; concurrent callers share one fetch."""
        return await self._cache.fetch_or_join(adapter.name, lambda: self._load(adapter))

    async def _load(self, adapter: BaseAdapter) -> SourceSnapshot:
        timeout = self._config.fetch_timeout_seconds
        started = time.perf_counter()

        with traced(self._tracer, "fetch_source", {"source": adapter.name}):
            try:
                async with asyncio.timeout(timeout):
                    items = await adapter.fetch()
            except TimeoutError as e:
                error: SourceUnavailableError = SourceTimeoutError(adapter.name, timeout)
                self._record_failure(adapter, started, error)
                raise error from e
            except SourceUnavailableError as e:
                self._record_failure(adapter, started, e)
                raise

        self._metrics.record_source_fetch(
            adapter.name,
            latency=time.perf_counter() - started,
            ok=True,
            item_count=len(items),
        )
        return SourceSnapshot(items=tuple(items), fetched_at=self._now())

    def _record_failure(self, adapter: BaseAdapter, started: float, error: Exception) -> None:
        logger.warning("Source fetch failed", source=adapter.name, error=str(error))
        self._metrics.record_source_fetch(
            adapter.name,
            latency=time.perf_counter() - started,
            ok=False,
            error_type=type(error).__name__,
        )

    def _rank(
        self, snapshots: dict[str, SourceSnapshot]
    ) -> tuple[list[RankedSource], list[Highlight]]:
        """
        Rank every item snapshot against one reference instant.

        The reference is the newest snapshot time, so the order only changes
        when a snapshot is refreshed and pages of one lineage stay consistent
        while the cache holds.
        """
        reference = max(snapshot.fetched_at for snapshot in snapshots.values())

        ranked = []
        for adapter in self._sources:
            snapshot = snapshots.get(adapter.name)
            items = [
                item for item in (snapshot.items if snapshot else ()) if isinstance(item, NormalizedItem)
            ]
            ranked.append(
                RankedSource(name=adapter.name, entries=rank_items(items, reference, self._config))
            )

        highlights: list[Highlight] = []
        if self._highlights is not None and self._highlights.name in snapshots:
            highlights = order_highlights(
                [h for h in snapshots[self._highlights.name].items if isinstance(h, Highlight)]
            )
        return ranked, highlights
