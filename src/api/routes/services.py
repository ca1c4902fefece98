"""
Upstream service status endpoint.
"""

import structlog
from fastapi import APIRouter, Depends

from src.api.dependencies import get_status_monitor
from src.monitoring.schemas import ServicesStatusResponse
from src.monitoring.service import ServiceStatusMonitor

router = APIRouter(prefix="/api")
logger = structlog.get_logger(__name__)


@router.get(
    "/services/status",
    response_model=ServicesStatusResponse,
    summary="Upstream service status",
    description=(
        "Latest status of the monitored developer platforms, refreshed in the "
        "background. A service whose status page could not be read is reported as down."
    ),
)
async def get_services_status(
    monitor: ServiceStatusMonitor = Depends(get_status_monitor),
) -> ServicesStatusResponse:
    return await monitor.get_status()
