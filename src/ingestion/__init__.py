"""Source ingestion module - adapters, schemas, and HTTP plumbing."""

from src.ingestion.schemas import (
    Comment,
    EngagementCounts,
    Highlight,
    NormalizedItem,
    SlugInfo,
    SourceKind,
    SourceStatus,
)

__all__ = [
    "SourceKind",
    "NormalizedItem",
    "Highlight",
    "EngagementCounts",
    "SlugInfo",
    "Comment",
    "SourceStatus",
]
