"""Schema definitions for upstream service status.

Each probe yields one ServiceStatus; a refresh collects them into a
ServicesStatusResponse. The JSON wire form uses camelCase field names.
"""

from datetime import datetime
from enum import Enum

from src.ingestion.schemas import WireModel


class ServiceStatusType(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    DOWN = "down"


# Statuspage "status.indicator" values
INDICATOR_STATUS: dict[str, ServiceStatusType] = {
    "none": ServiceStatusType.OPERATIONAL,
    "minor": ServiceStatusType.DEGRADED,
    "maintenance": ServiceStatusType.DEGRADED,
    "major": ServiceStatusType.DOWN,
    "critical": ServiceStatusType.DOWN,
}

_SEVERITY = {
    ServiceStatusType.OPERATIONAL: 0,
    ServiceStatusType.DEGRADED: 1,
    ServiceStatusType.DOWN: 2,
}


class ServiceStatus(WireModel):
    """Latest known status of one upstream service."""

    name: str
    status: ServiceStatusType
    last_checked: datetime
    url: str


class ServicesStatusResponse(WireModel):
    """Status of every monitored service as of the last refresh."""

    services: list[ServiceStatus]
    last_update: datetime

    @property
    def overall(self) -> ServiceStatusType:
        """Worst status across all services (operational when none are monitored)."""
        if not self.services:
            return ServiceStatusType.OPERATIONAL
        return max((s.status for s in self.services), key=_SEVERITY.__getitem__)
