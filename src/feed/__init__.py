"""Feed aggregation core - ranking, merging, pagination cursors and caching.

Usage:
    from src.feed.service import FeedService

    service = FeedService.from_settings()
    page = await service.get_mix(page_size=10)

FeedService lives in src.feed.service and is not re-exported here.
"""

from src.feed.cache import SingleFlightCache
from src.feed.config import FeedConfig
from src.feed.cursor import Cursor, decode_cursor, encode_cursor
from src.feed.errors import (
    AllSourcesFailedError,
    FeedError,
    MalformedCursorError,
    SourceTimeoutError,
    SourceUnavailableError,
    UnknownSourceError,
)
from src.feed.merge import FeedItem, InterleaveEngine, InterleavePolicy, RankedSource
from src.feed.ranking import RankedEntry, rank_items, score

__all__ = [
    "AllSourcesFailedError",
    "Cursor",
    "FeedConfig",
    "FeedError",
    "FeedItem",
    "InterleaveEngine",
    "InterleavePolicy",
    "MalformedCursorError",
    "RankedEntry",
    "RankedSource",
    "SingleFlightCache",
    "SourceTimeoutError",
    "SourceUnavailableError",
    "UnknownSourceError",
    "decode_cursor",
    "encode_cursor",
    "rank_items",
    "score",
]
