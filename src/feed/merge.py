"""Multi-source merge and interleave engine.

Combines per-source ranked lists and a highlight stream into one ordered
feed under one of two policies:

- ``round_robin``: best remaining item of each source in rotation, skipping
  exhausted sources, so no single source dominates the head of the feed.
- ``highlight_banded``: every item globally ranked (k-way merge of the
  ranked lists), with a highlight spliced at a fixed position and then at a
  fixed interval while highlights remain.

The whole state of a pagination lineage is the per-source offsets, the
highlight offset and the number of emitted positions, which is exactly what
a ``Cursor`` carries. Keys already consumed earlier in the lineage are
rebuilt from the consumed prefixes, so a page never repeats an item emitted
on a previous page.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import Field

from src.feed.config import FeedConfig
from src.feed.cursor import Cursor
from src.feed.ranking import RankedEntry
from src.ingestion.schemas import Highlight, NormalizedItem

logger = logging.getLogger(__name__)


class InterleavePolicy(str, Enum):
    """How ranked source lists are combined into one feed."""

    ROUND_ROBIN = "round_robin"
    HIGHLIGHT_BANDED = "highlight_banded"


class ItemEntry(NormalizedItem):
    """Feed variant wrapping a normalized source item."""

    kind: Literal["item"] = "item"


class HighlightEntry(Highlight):
    """Feed variant wrapping a curated highlight."""

    kind: Literal["highlight"] = "highlight"


FeedItem = Annotated[Union[ItemEntry, HighlightEntry], Field(discriminator="kind")]


def to_feed_item(value: NormalizedItem | Highlight) -> ItemEntry | HighlightEntry:
    """Wrap an adapter value in its tagged feed variant."""
    if isinstance(value, Highlight):
        return HighlightEntry(**value.model_dump())
    return ItemEntry(**value.model_dump())


def order_highlights(highlights: list[Highlight]) -> list[Highlight]:
    """Order a highlight stream newest first, ties broken by composite key."""
    return sorted(highlights, key=lambda h: (-h.published_at.timestamp(), h.key))


@dataclass
class RankedSource:
    """One source's ranked snapshot, in the order sources are configured."""

    name: str
    entries: list[RankedEntry]


@dataclass
class MergeResult:
    """One page of merged output and the position to resume from."""

    items: list[ItemEntry | HighlightEntry]
    cursor: Cursor
    exhausted: bool
    duplicates_dropped: int = 0


@dataclass
class _MergeState:
    offsets: dict[str, int]
    highlight_offset: int
    position: int
    seen: set[tuple[str, str]] = field(default_factory=set)
    seen_highlights: set[tuple[str, str]] = field(default_factory=set)
    duplicates_dropped: int = 0


class InterleaveEngine:
    """Pages through ranked sources under an interleave policy.

    Stateless between calls; everything needed to resume lives in the
    ``Cursor`` passed in and returned.
    """

    def __init__(self, config: FeedConfig | None = None) -> None:
        self._config = config or FeedConfig()

    def is_band_position(self, position: int) -> bool:
        """Whether 0-based feed position ``position`` is reserved for a highlight."""
        first = self._config.highlight_first_position - 1
        if position < first:
            return False
        return (position - first) % self._config.highlight_interval == 0

    def paginate(
        self,
        sources: list[RankedSource],
        highlights: list[Highlight],
        cursor: Cursor,
        page_size: int,
        policy: InterleavePolicy,
    ) -> MergeResult:
        """Produce the next page of the feed.

        Args:
            sources: Ranked snapshots, in configured source order.
            highlights: Ordered highlight stream (ignored for round-robin).
            cursor: Resume position; ``Cursor()`` for the first page.
            page_size: Maximum number of feed items to emit.
            policy: Interleave policy.

        Returns:
            MergeResult with the page, the next cursor and whether every
            source list has been fully consumed.
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        if policy == InterleavePolicy.ROUND_ROBIN:
            highlights = []

        state = self._restore(sources, highlights, cursor)
        page: list[ItemEntry | HighlightEntry] = []

        while len(page) < page_size:
            index = self._next_unseen_source(sources, state, policy)
            if index is None:
                break

            if policy == InterleavePolicy.HIGHLIGHT_BANDED and self.is_band_position(
                state.position
            ):
                highlight = self._next_unseen_highlight(highlights, state)
                if highlight is not None:
                    page.append(to_feed_item(highlight))
                    state.position += 1
                    continue

            source = sources[index]
            entry = source.entries[state.offsets[source.name]]
            state.offsets[source.name] += 1
            state.seen.add(entry.item.key)
            page.append(to_feed_item(entry.item))
            state.position += 1

        # Skip trailing duplicates so an exhausted lineage reports no cursor
        self._next_unseen_source(sources, state, policy)
        exhausted = all(state.offsets[s.name] >= len(s.entries) for s in sources)

        return MergeResult(
            items=page,
            cursor=Cursor(
                source_offsets=dict(state.offsets),
                highlight_offset=state.highlight_offset,
                emitted_count=state.position,
            ),
            exhausted=exhausted,
            duplicates_dropped=state.duplicates_dropped,
        )

    def merge_all(
        self,
        sources: list[RankedSource],
        highlights: list[Highlight],
        policy: InterleavePolicy,
    ) -> list[ItemEntry | HighlightEntry]:
        """Merge every source to exhaustion in one sequence."""
        total = sum(len(s.entries) for s in sources) + len(highlights)
        if total == 0:
            return []
        return self.paginate(sources, highlights, Cursor(), total, policy).items

    def _restore(
        self,
        sources: list[RankedSource],
        highlights: list[Highlight],
        cursor: Cursor,
    ) -> _MergeState:
        """Rebuild merge state from a cursor against the current snapshots.

        Offsets beyond a (shrunken) snapshot are clamped; offsets for sources
        that are no longer configured are ignored.
        """
        offsets = {
            s.name: min(cursor.offset_for(s.name), len(s.entries)) for s in sources
        }
        state = _MergeState(
            offsets=offsets,
            highlight_offset=min(cursor.highlight_offset, len(highlights)),
            position=cursor.emitted_count,
        )
        for s in sources:
            state.seen.update(e.item.key for e in s.entries[: offsets[s.name]])
        state.seen_highlights.update(h.key for h in highlights[: state.highlight_offset])
        return state

    def _pick_source(
        self,
        sources: list[RankedSource],
        state: _MergeState,
        policy: InterleavePolicy,
    ) -> int | None:
        """Index of the source whose head comes next, or None if all are exhausted."""
        best: int | None = None
        for index, source in enumerate(sources):
            offset = state.offsets[source.name]
            if offset >= len(source.entries):
                continue
            if best is None:
                best = index
                continue

            current = sources[best]
            if policy == InterleavePolicy.ROUND_ROBIN:
                # Rotation position is implied by the offsets: the least
                # consumed source goes next, earlier configured sources first
                if offset < state.offsets[current.name]:
                    best = index
            elif (
                source.entries[offset].sort_key
                < current.entries[state.offsets[current.name]].sort_key
            ):
                best = index
        return best

    def _next_unseen_source(
        self,
        sources: list[RankedSource],
        state: _MergeState,
        policy: InterleavePolicy,
    ) -> int | None:
        """Like ``_pick_source`` but silently drops heads already emitted."""
        while True:
            index = self._pick_source(sources, state, policy)
            if index is None:
                return None

            source = sources[index]
            head = source.entries[state.offsets[source.name]]
            if head.item.key not in state.seen:
                return index

            logger.debug("Dropping duplicate %s from %s", head.item.key, source.name)
            state.offsets[source.name] += 1
            state.duplicates_dropped += 1

    def _next_unseen_highlight(
        self,
        highlights: list[Highlight],
        state: _MergeState,
    ) -> Highlight | None:
        while state.highlight_offset < len(highlights):
            highlight = highlights[state.highlight_offset]
            state.highlight_offset += 1
            if highlight.key not in state.seen_highlights:
                state.seen_highlights.add(highlight.key)
                return highlight
        return None
