"""
Health check endpoint.

Answers from in-process state only; upstream sources are never called, so
the check stays fast while a source is slow or down.
"""

import structlog
from fastapi import APIRouter, Depends

from src.api.dependencies import get_feed_service, get_status_monitor
from src.api.models import ComponentHealth, HealthResponse
from src.feed.service import FeedService
from src.monitoring.service import ServiceStatusMonitor

router = APIRouter()
logger = structlog.get_logger(__name__)

VERSION = "0.1.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the health of the service and its background components.",
)
async def health_check(
    service: FeedService = Depends(get_feed_service),
    monitor: ServiceStatusMonitor = Depends(get_status_monitor),
) -> HealthResponse:
    cache = service.cache
    components = {
        "feed_cache": ComponentHealth(
            status="healthy",
            details={
                "entries": len(cache),
                "inflight": cache.inflight_count(),
                "ttl_seconds": cache.ttl_seconds,
            },
        ),
        "status_monitor": ComponentHealth(
            status="healthy" if monitor.is_running else "unhealthy",
            details={"running": monitor.is_running},
        ),
    }

    overall = (
        "healthy"
        if all(c.status == "healthy" for c in components.values())
        else "degraded"
    )
    return HealthResponse(
        status=overall,
        version=VERSION,
        sources=service.source_names,
        components=components,
    )
