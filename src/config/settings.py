"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the feed-mix application.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., LOG_LEVEL).
    Engine tuning (ranking, banding, cache) lives in FeedConfig (FEED_*).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # TabNews API
    tabnews_api_url: str = "https://www.tabnews.com.br/api/v1"
    tabnews_per_page: int = Field(default=30, ge=1, le=100)
    tabnews_strategy: Literal["relevant", "new", "old"] = "relevant"

    # Hacker News Firebase API
    hackernews_api_url: str = "https://hacker-news.firebaseio.com/v0"
    hackernews_story_limit: int = Field(default=30, ge=1, le=500)
    hackernews_max_concurrency: int = Field(default=10, ge=1, le=50)
    hackernews_comment_depth: int = Field(default=4, ge=1, le=20)
    hackernews_comment_limit: int = Field(default=200, ge=1)

    # Curated highlights (disabled when unset)
    highlights_url: str | None = None

    # Serve synthetic data instead of calling upstream APIs
    use_mock_sources: bool = False

    # HTTP retry configuration
    max_http_retries: int = Field(default=2, ge=0, le=10)
    max_backoff_seconds: float = Field(default=4.0, ge=0.1, le=300.0)
    user_agent: str = "feed-mix/0.1 (+https://github.com/feed-mix)"

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    cors_allow_credentials: bool = False
    request_timeout_seconds: float = Field(default=30.0, ge=0.0)

    # Rate limiting (opt-in)
    rate_limit_enabled: bool = False
    rate_limit_default: str = "120/minute"
    rate_limit_storage_uri: str = "memory://"

    # Observability
    metrics_enabled: bool = False
    metrics_port: int = 8000
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "feed-mix"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def highlights_configured(self) -> bool:
        """Check if a curated highlights endpoint is configured."""
        return bool(self.highlights_url)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
