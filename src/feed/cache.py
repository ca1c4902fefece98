"""
In-memory snapshot cache with single-flight request coalescing.

Sits in front of the source adapters. A value is fresh for ``ttl_seconds``
after it was fetched and is treated as a miss afterwards (never served
stale). While a producer for a key is running, every other caller for that
key awaits the same task instead of starting a new remote call.

Invariant: for any key, the number of producers started while an equal-key
producer is outstanding is zero.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which it was fetched."""

    value: T
    fetched_at: float


class SingleFlightCache:
    """
    Time-boxed cache with at most one in-flight producer per key.

    The producer runs in its own task and waiters attach through
    ``asyncio.shield``, so cancelling one waiter (e.g. a disconnected
    client) never cancels the fetch other requests are waiting on. Failed
    fetches are not cached; the next call retries immediately.

    Args:
        ttl_seconds: Freshness window of an entry.
        clock: Monotonic clock in seconds; injectable for tests.
        name: Label used in logs and metrics.

    Usage:
        cache = SingleFlightCache(ttl_seconds=180)
        items = await cache.fetch_or_join("hackernews", adapter.fetch)
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "feed",
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = ttl_seconds
        self._clock = clock
        self._name = name
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._inflight: dict[str, asyncio.Task[Any]] = {}
        self._metrics = get_metrics()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def inflight_count(self) -> int:
        """Number of producers currently running."""
        return len(self._inflight)

    def get(self, key: str) -> Any | None:
        """Return the fresh value for ``key``, or None on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.fetched_at >= self._ttl:
            # Expired entries are evicted, not served
            del self._entries[key]
            return None

        return entry.value

    def entry(self, key: str) -> CacheEntry[Any] | None:
        """Return the raw entry for ``key`` if it is still fresh."""
        if self.get(key) is None:
            return None
        return self._entries.get(key)

    async def fetch_or_join(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return a cached value, join an in-flight fetch, or start a new one.

        Args:
            key: Cache key.
            producer: Zero-argument coroutine function producing the value.

        Returns:
            The cached or freshly produced value.

        Raises:
            Whatever the producer raised; all joined callers see the same error.
        """
        cached = self.get(key)
        if cached is not None:
            self._metrics.record_cache_event(self._name, "hit")
            return cached

        task = self._inflight.get(key)
        if task is not None:
            self._metrics.record_cache_event(self._name, "join")
            logger.debug("Joining in-flight fetch for %s", key)
        else:
            self._metrics.record_cache_event(self._name, "miss")
            task = asyncio.create_task(
                self._produce(key, producer),
                name=f"cache_fill_{key}",
            )
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._settle(k, t))

        return await asyncio.shield(task)

    async def _produce(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        value = await producer()
        self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())
        return value

    def _settle(self, key: str, task: asyncio.Task[Any]) -> None:
        """Drop the in-flight registration once the producer task finishes."""
        if self._inflight.get(key) is task:
            del self._inflight[key]

        if task.cancelled():
            logger.debug("Fetch for %s was cancelled", key)
        elif task.exception() is not None:
            # Retrieve the exception so an unawaited failure is not reported as lost
            logger.debug("Fetch for %s failed: %s", key, task.exception())

    def invalidate(self, key: str) -> None:
        """Forget the cached value for ``key`` (in-flight fetches continue)."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Forget all cached values."""
        self._entries.clear()
