"""Configuration for the upstream service status monitor."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitoredService(BaseModel):
    """One Statuspage-hosted status page."""

    name: str
    page_url: str = Field(..., description="Public status page, shown to users")

    @property
    def status_api_url(self) -> str:
        return f"{self.page_url.rstrip('/')}/api/v2/status.json"


DEFAULT_SERVICES = [
    MonitoredService(name="GitHub", page_url="https://www.githubstatus.com"),
    MonitoredService(name="Vercel", page_url="https://www.vercel-status.com"),
    MonitoredService(name="Cloudflare", page_url="https://www.cloudflarestatus.com"),
    MonitoredService(name="npm", page_url="https://status.npmjs.org"),
    MonitoredService(name="OpenAI", page_url="https://status.openai.com"),
]


class StatusConfig(BaseSettings):
    """Status monitor settings.

    All settings can be overridden via environment variables with the
    ``STATUS_`` prefix (e.g. ``STATUS_REFRESH_SECONDS=60``). ``STATUS_SERVICES``
    takes a JSON list of ``{"name": ..., "page_url": ...}`` objects.
    """

    model_config = SettingsConfigDict(
        env_prefix="STATUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    refresh_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Interval between background refreshes",
    )
    probe_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Timeout of one status page request",
    )
    services: list[MonitoredService] = Field(
        default_factory=lambda: list(DEFAULT_SERVICES),
        description="Status pages to probe",
    )
