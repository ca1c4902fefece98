"""Tests for the feed query facade."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.feed.config import FeedConfig
from src.feed.cursor import Cursor, encode_cursor
from src.feed.errors import (
    AllSourcesFailedError,
    MalformedCursorError,
    SourceTimeoutError,
    SourceUnavailableError,
    UnknownSourceError,
)
from src.feed.merge import InterleavePolicy
from src.feed.service import FeedService
from src.ingestion.mock_adapter import MockAdapter
from src.ingestion.schemas import SourceKind
from tests.factories import NOW, make_highlight, make_item


class _CommentingAdapter(MockAdapter):
    @property
    def supports_comments(self) -> bool:
        return True


def _tabnews(*points: int, **kwargs) -> MockAdapter:
    items = [
        make_item(f"t{n}", kind=SourceKind.TABNEWS, points=p)
        for n, p in enumerate(points, start=1)
    ]
    return MockAdapter(kind=SourceKind.TABNEWS, items=items, **kwargs)


def _hackernews(*points: int, **kwargs) -> MockAdapter:
    items = [
        make_item(f"n{n}", kind=SourceKind.HACKERNEWS, points=p)
        for n, p in enumerate(points, start=1)
    ]
    return MockAdapter(kind=SourceKind.HACKERNEWS, items=items, **kwargs)


def _highlights(count: int = 2, **kwargs) -> MockAdapter:
    items = [make_highlight(f"x{n}", age_hours=n) for n in range(1, count + 1)]
    return MockAdapter(kind=SourceKind.HIGHLIGHTS, items=items, **kwargs)


def _service(sources, highlights=None, **config) -> FeedService:
    config.setdefault("fetch_timeout_seconds", 0.5)
    return FeedService(
        sources=sources,
        highlights=highlights,
        config=FeedConfig(**config),
        now=lambda: NOW,
    )


def _ids(page) -> list[str]:
    return [entry.id for entry in page.items]


class TestMixFeed:
    """Banded feed over several sources."""

    @pytest.mark.asyncio
    async def test_first_page(self):
        service = _service([_tabnews(100, 10), _hackernews(50, 5)], _highlights())

        page = await service.get_mix(page_size=10)

        assert _ids(page) == ["t1", "n1", "x1", "t2", "n2"]
        assert page.items[2].kind == "highlight"
        assert page.next_cursor is None
        assert [(s.name, s.ok, s.item_count) for s in page.sources] == [
            ("tabnews", True, 2),
            ("hackernews", True, 2),
            ("highlights", True, 2),
        ]

    @pytest.mark.asyncio
    async def test_follow_cursor_to_the_end(self):
        service = _service([_tabnews(100, 10), _hackernews(50, 5)], _highlights())

        seen = []
        cursor = None
        for _ in range(10):
            page = await service.get_mix(page_size=2, cursor=cursor)
            assert len(page.items) <= 2
            seen.extend(_ids(page))
            cursor = page.next_cursor
            if cursor is None:
                break

        assert seen == ["t1", "n1", "x1", "t2", "n2"]
        assert cursor is None

    @pytest.mark.asyncio
    async def test_two_page_scenario(self):
        """A [100, 1] one hour old, B [50] ten hours old, two items per page."""
        tabnews = MockAdapter(
            kind=SourceKind.TABNEWS,
            items=[
                make_item("A1", kind=SourceKind.TABNEWS, points=100, age_hours=1),
                make_item("A2", kind=SourceKind.TABNEWS, points=1, age_hours=1),
            ],
        )
        hackernews = MockAdapter(items=[make_item("B1", points=50, age_hours=10)])
        service = _service([tabnews, hackernews])

        first = await service.get_mix(page_size=2)
        second = await service.get_mix(page_size=2, cursor=first.next_cursor)

        assert _ids(first) == ["A1", "B1"]
        assert first.next_cursor is not None
        assert _ids(second) == ["A2"]
        assert second.next_cursor is None

    @pytest.mark.asyncio
    async def test_single_highlight_lands_at_third_position(self):
        service = _service([_hackernews(*range(100, 0, -10))], _highlights(count=1))

        page = await service.get_mix(page_size=20)

        kinds = [entry.kind for entry in page.items]
        assert len(page.items) == 11
        assert kinds.index("highlight") == 2
        assert kinds.count("highlight") == 1

    @pytest.mark.asyncio
    async def test_round_robin(self):
        service = _service([_tabnews(30, 20, 10), _hackernews(5)], _highlights())

        page = await service.get_feed(page_size=10, policy=InterleavePolicy.ROUND_ROBIN)

        assert _ids(page) == ["t1", "n1", "t2", "t3"]
        # Highlights are not fetched for round-robin
        assert [s.name for s in page.sources] == ["tabnews", "hackernews"]

    @pytest.mark.asyncio
    async def test_without_highlights_source(self):
        service = _service([_tabnews(3, 2, 1)])

        page = await service.get_mix(page_size=10)

        assert _ids(page) == ["t1", "t2", "t3"]

    @pytest.mark.asyncio
    async def test_page_size_is_clamped(self):
        service = _service([_tabnews(*range(20, 0, -1))], max_page_size=5)

        page = await service.get_mix(page_size=500)

        assert len(page.items) == 5
        assert page.next_cursor is not None


class TestPartialFailure:
    """A failed source contributes no items and a failed status."""

    @pytest.mark.asyncio
    async def test_one_source_down(self):
        service = _service(
            [_tabnews(3, 2), _hackernews(9, fail_with=RuntimeError("boom"))],
        )

        page = await service.get_mix(page_size=10)

        assert _ids(page) == ["t1", "t2"]
        assert page.next_cursor is None
        failed = page.sources[1]
        assert failed.name == "hackernews"
        assert failed.ok is False
        assert "boom" in failed.error

    @pytest.mark.asyncio
    async def test_all_sources_down(self):
        service = _service(
            [
                _tabnews(3, fail_with=RuntimeError("tabnews down")),
                _hackernews(9, fail_with=RuntimeError("hn down")),
            ],
            _highlights(),
        )

        with pytest.raises(AllSourcesFailedError) as exc_info:
            await service.get_mix()

        assert [s.name for s in exc_info.value.statuses] == ["tabnews", "hackernews"]
        assert not any(s.ok for s in exc_info.value.statuses)

    @pytest.mark.asyncio
    async def test_highlights_failure_never_fails_request(self):
        service = _service(
            [_tabnews(3, 2, 1)],
            _highlights(fail_with=RuntimeError("curation offline")),
        )

        page = await service.get_mix(page_size=10)

        assert _ids(page) == ["t1", "t2", "t3"]
        assert page.sources[-1].name == "highlights"
        assert page.sources[-1].ok is False

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self):
        service = _service(
            [_tabnews(3), _hackernews(9, delay=5.0)],
            fetch_timeout_seconds=0.05,
        )

        page = await service.get_mix(page_size=10)

        assert _ids(page) == ["t1"]
        assert page.sources[1].ok is False
        assert "timed out" in page.sources[1].error

    @pytest.mark.asyncio
    async def test_failures_are_retried_on_next_request(self):
        flaky = _hackernews(9, fail_with=RuntimeError("blip"))
        service = _service([_tabnews(3), flaky])

        await service.get_mix()
        flaky.fail_with = None
        page = await service.get_mix()

        assert page.sources[1].ok is True
        assert flaky.fetch_calls == 2


class TestCursorHandling:
    """Cursor validation at the facade."""

    @pytest.mark.asyncio
    async def test_malformed_cursor(self):
        service = _service([_tabnews(3)])

        with pytest.raises(MalformedCursorError):
            await service.get_mix(cursor="not-a-cursor")

    @pytest.mark.asyncio
    async def test_cursor_from_another_configuration_is_clamped(self):
        service = _service([_tabnews(3, 2, 1)])
        token = encode_cursor(Cursor(source_offsets={"tabnews": 1, "lobsters": 7}, emitted_count=1))

        page = await service.get_mix(page_size=10, cursor=token)

        assert _ids(page) == ["t2", "t3"]


class TestCoalescing:
    """Concurrent requests share one upstream fetch per source."""

    @pytest.mark.asyncio
    async def test_concurrent_requests_fetch_once(self):
        tabnews = _tabnews(3, 2, delay=0.02)
        hackernews = _hackernews(9, delay=0.02)
        service = _service([tabnews, hackernews])

        pages = await asyncio.gather(*(service.get_mix(page_size=10) for _ in range(8)))

        assert all(_ids(page) == _ids(pages[0]) for page in pages)
        assert tabnews.fetch_calls == 1
        assert hackernews.fetch_calls == 1

    @pytest.mark.asyncio
    async def test_cached_snapshot_serves_later_requests(self):
        tabnews = _tabnews(3, 2)
        service = _service([tabnews])

        first = await service.get_mix(page_size=1)
        await service.get_mix(page_size=1, cursor=first.next_cursor)
        await service.get_source("tabnews")

        assert tabnews.fetch_calls == 1
        assert len(service.cache) == 1


class TestSingleSource:
    """get_source and get_comments."""

    @pytest.mark.asyncio
    async def test_ranked_items(self):
        service = _service([_tabnews(1, 50, 7), _hackernews(9)])

        items = await service.get_source(SourceKind.TABNEWS)

        assert [item.id for item in items] == ["t2", "t3", "t1"]

    @pytest.mark.asyncio
    async def test_lookup_by_name(self):
        service = _service([_hackernews(9, name="hn-top")])

        items = await service.get_source("HN-TOP")

        assert [item.id for item in items] == ["n1"]

    @pytest.mark.asyncio
    async def test_unknown_source(self):
        service = _service([_tabnews(3)], _highlights())

        with pytest.raises(UnknownSourceError):
            await service.get_source("lobsters")
        # The highlight stream is not an item source
        with pytest.raises(UnknownSourceError):
            await service.get_source("highlights")

    @pytest.mark.asyncio
    async def test_failed_source_raises(self):
        service = _service([_tabnews(3, fail_with=RuntimeError("down"))])

        with pytest.raises(SourceUnavailableError):
            await service.get_source("tabnews")

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self):
        service = _service([_tabnews(3, delay=5.0)], fetch_timeout_seconds=0.05)

        with pytest.raises(SourceTimeoutError):
            await service.get_source("tabnews")

    @pytest.mark.asyncio
    async def test_comments_not_supported(self):
        adapter = _tabnews(3)
        adapter.fetch_comments = AsyncMock(return_value=[])
        service = _service([adapter])

        with pytest.raises(SourceUnavailableError, match="not supported"):
            await service.get_comments("tabnews", "someone/some-post")
        adapter.fetch_comments.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_comments_delegated_when_supported(self):
        adapter = _CommentingAdapter(kind=SourceKind.HACKERNEWS, items=[])
        adapter.fetch_comments = AsyncMock(return_value=[])
        service = _service([adapter])

        assert await service.get_comments("hackernews", "42") == []
        adapter.fetch_comments.assert_awaited_once_with("42")


class TestConstruction:
    """Service wiring."""

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            FeedService(sources=[_tabnews(1), _tabnews(2)])

    def test_clamp_page_size(self):
        service = _service([_tabnews(1)])

        assert service.clamp_page_size(None) == 10
        assert service.clamp_page_size(0) == 1
        assert service.clamp_page_size(500) == 50

    @pytest.mark.asyncio
    async def test_mock_configuration(self):
        service = FeedService.from_settings(use_mock=True)

        page = await service.get_mix(page_size=10)

        assert service.source_names == ["tabnews", "hackernews"]
        assert len(page.items) == 10
        assert page.items[2].kind == "highlight"
        assert page.next_cursor is not None
