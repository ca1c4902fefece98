"""Recency/engagement ranking for normalized items.

Scores items with a gravity-decay model:
  score = (points + comment_count * comment_weight + 1) / (age_hours + 2) ** gravity

The +1 keeps brand-new items with no engagement above zero; age is clamped
at 0 so clock skew never yields a negative age. The score is non-increasing
in age and non-decreasing in points and comments. All functions here are
pure and side-effect-free.

Components:
- RankedEntry: an item with its score
- score(): the scoring formula
- rank_items(): score a list and sort it deterministically
"""

from dataclasses import dataclass
from datetime import datetime

from src.feed.config import FeedConfig
from src.ingestion.schemas import NormalizedItem

SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class RankedEntry:
    """A normalized item paired with its ranking score."""

    item: NormalizedItem
    score: float

    @property
    def sort_key(self) -> tuple[float, float, tuple[str, str]]:
        """Ascending sort key: score desc, newest first, then composite key asc."""
        return (-self.score, -self.item.published_at.timestamp(), self.item.key)


def age_hours(item: NormalizedItem, now: datetime) -> float:
    """Age of an item in hours, clamped at zero."""
    return max(0.0, (now - item.published_at).total_seconds() / SECONDS_PER_HOUR)


def score(
    item: NormalizedItem,
    now: datetime,
    config: FeedConfig | None = None,
) -> float:
    """Compute the ranking score for a single item.

    Args:
        item: Item to score.
        now: Reference instant (timezone-aware).
        config: Ranking constants; defaults to ``FeedConfig()``.

    Returns:
        Positive score, higher ranks first.
    """
    config = config or FeedConfig()
    engagement = max(0, item.points) + max(0, item.comment_count) * config.comment_weight
    return (engagement + 1.0) / (age_hours(item, now) + 2.0) ** config.gravity


def rank_items(
    items: list[NormalizedItem],
    now: datetime,
    config: FeedConfig | None = None,
) -> list[RankedEntry]:
    """Score and sort items.

    Equal scores are ordered by most recent ``published_at`` first, then by
    ``(source_kind, id)`` ascending, so the order is reproducible across
    requests.
    """
    config = config or FeedConfig()
    ranked = [RankedEntry(item=item, score=score(item, now, config)) for item in items]
    ranked.sort(key=lambda entry: entry.sort_key)
    return ranked
