"""
Dependency injection for FastAPI endpoints.
"""

from src.config.settings import get_settings
from src.feed.service import FeedService
from src.monitoring.service import ServiceStatusMonitor

# Global service instances (initialized on first request or at startup)
_feed_service: FeedService | None = None
_status_monitor: ServiceStatusMonitor | None = None


async def get_feed_service() -> FeedService:
    """
    Get feed service instance.

    Creates a singleton wired to the configured sources (or mock sources
    when USE_MOCK_SOURCES is set). The cache lives inside it, so every
    request shares one snapshot per source.
    """
    global _feed_service

    if _feed_service is None:
        settings = get_settings()
        _feed_service = FeedService.from_settings(use_mock=settings.use_mock_sources)

    return _feed_service


async def get_status_monitor() -> ServiceStatusMonitor:
    """Get the service status monitor instance."""
    global _status_monitor

    if _status_monitor is None:
        _status_monitor = ServiceStatusMonitor()

    return _status_monitor


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _feed_service, _status_monitor

    if _status_monitor is not None:
        await _status_monitor.stop()
        _status_monitor = None

    _feed_service = None
