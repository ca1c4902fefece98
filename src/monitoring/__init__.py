"""Upstream service status monitoring.

Periodically probes the Statuspage endpoints of the platforms readers care
about and serves the latest snapshot.

Usage:
    from src.monitoring import ServiceStatusMonitor

    monitor = ServiceStatusMonitor()
    await monitor.start()
    report = await monitor.get_status()
    print(report.overall)
"""

from src.monitoring.config import MonitoredService, StatusConfig
from src.monitoring.schemas import ServiceStatus, ServicesStatusResponse, ServiceStatusType
from src.monitoring.service import ServiceStatusMonitor

__all__ = [
    "MonitoredService",
    "ServiceStatus",
    "ServiceStatusMonitor",
    "ServiceStatusType",
    "ServicesStatusResponse",
    "StatusConfig",
]
