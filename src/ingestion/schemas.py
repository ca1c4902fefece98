"""
Canonical item schemas for the feed-mix engine.

CRITICAL: These shapes flow from the adapters through ranking, merging and
the HTTP API. All source adapters MUST output exactly these structures, and
the JSON wire form (camelCase aliases) is a stable contract for callers.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SourceKind(str, Enum):
    """Supported content sources."""

    TABNEWS = "tabnews"
    HACKERNEWS = "hackernews"
    HIGHLIGHTS = "highlights"


class WireModel(BaseModel):
    """Base for models serialized to callers with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FrozenWireModel(WireModel):
    """Immutable wire model; adapters hand these upstream and never touch them again."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


def _as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SlugInfo(FrozenWireModel):
    """TabNews post coordinates, used to fetch the comment tree."""

    owner_username: str
    slug: str


class NormalizedItem(FrozenWireModel):
    """
    CANONICAL ITEM SCHEMA

    One post from one source. ``id`` is unique only within ``source_kind``;
    use ``key`` for global identity.
    """

    id: str = Field(..., min_length=1, description="Source-native identifier")
    title: str = Field(..., min_length=1)
    author: str = Field(default="unknown")
    points: int = Field(default=0, description="Votes, tabcoins or score")
    comment_count: int = Field(default=0, ge=0)
    published_at: datetime = Field(..., description="UTC publication instant")
    source_kind: SourceKind
    external_url: str | None = Field(default=None, description="Linked article URL")
    body: str | None = Field(default=None, description="Markdown body when available")
    slug_info: SlugInfo | None = None

    @field_validator("published_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def key(self) -> tuple[str, str]:
        """Composite identity ``(source_kind, id)``."""
        return (SourceKind(self.source_kind).value, self.id)


class EngagementCounts(FrozenWireModel):
    """Engagement signals of a highlight; only ``comments`` is always present."""

    likes: int | None = Field(default=None, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int | None = Field(default=None, ge=0)
    upvotes: int | None = Field(default=None, ge=0)


class Highlight(FrozenWireModel):
    """A curated item with a short summary, spliced into the mix feed."""

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    summary: str = ""
    source_kind: SourceKind
    author: str = "unknown"
    url: str
    engagement: EngagementCounts = Field(default_factory=EngagementCounts)
    published_at: datetime

    @field_validator("published_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def key(self) -> tuple[str, str]:
        return (SourceKind(self.source_kind).value, self.id)


class Comment(WireModel):
    """A node of a comment tree; ``children`` nest to arbitrary depth."""

    id: str
    parent_id: str | None = None
    author_handle: str
    body: str
    created_at: datetime
    children: list["Comment"] = Field(default_factory=list)
    engagement_score: int | None = None

    @field_validator("created_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return _as_utc(v)


class SourceStatus(WireModel):
    """Per-request health of one source."""

    name: str
    ok: bool
    item_count: int = 0
    error: str | None = None
