"""Configuration for the feed aggregation engine.

Provides Pydantic settings for the ranking constants, highlight banding
offsets, cache freshness window and per-source fetch timeout. All settings
can be overridden via FEED_* environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedConfig(BaseSettings):
    """Tuning knobs for ranking, interleaving, caching and pagination.

    Example:
        FEED_GRAVITY=1.8
        FEED_CACHE_TTL_SECONDS=300
        FEED_HIGHLIGHT_INTERVAL=8
    """

    model_config = SettingsConfigDict(
        env_prefix="FEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ranking
    comment_weight: float = Field(
        default=0.5,
        ge=0.0,
        description="Points credited per comment in the engagement numerator",
    )
    gravity: float = Field(
        default=1.4,
        gt=0.0,
        description="Exponent controlling how fast scores decay with age",
    )

    # Highlight banding
    highlight_first_position: int = Field(
        default=3,
        ge=1,
        description="1-based feed position of the first highlight",
    )
    highlight_interval: int = Field(
        default=6,
        ge=1,
        description="Positions between consecutive highlights",
    )

    # Cache and fetching
    cache_ttl_seconds: float = Field(
        default=180.0,
        gt=0.0,
        description="Freshness window for cached source snapshots",
    )
    fetch_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Upper bound for one source fetch",
    )

    # Pagination
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=50, ge=1)

    # Errors
    retry_after_seconds: int = Field(
        default=30,
        ge=1,
        description="Retry-After hint when every source failed",
    )
