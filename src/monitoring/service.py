"""
Service status monitor - probes upstream Statuspage endpoints.

Runs a background refresh loop and serves the latest snapshot. A service
whose probe fails (network error, bad payload) is reported as down; the
monitor itself never fails a caller.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from src.ingestion.http_client import HTTPClient, RetryConfig
from src.monitoring.config import MonitoredService, StatusConfig
from src.monitoring.schemas import (
    INDICATOR_STATUS,
    ServiceStatus,
    ServicesStatusResponse,
    ServiceStatusType,
)
from src.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceStatusMonitor:
    """
    Keeps a periodically refreshed view of upstream service health.

    Usage:
        monitor = ServiceStatusMonitor()
        await monitor.start()       # background refresh every refresh_seconds
        report = await monitor.get_status()
        await monitor.stop()
    """

    def __init__(
        self,
        config: StatusConfig | None = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._config = config or StatusConfig()
        self._now = now
        self._snapshot: ServicesStatusResponse | None = None
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._running = False
        self._metrics = get_metrics()

    @property
    def config(self) -> StatusConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def snapshot(self) -> ServicesStatusResponse | None:
        return self._snapshot

    async def probe(self, service: MonitoredService, client: HTTPClient) -> ServiceStatus:
        """Query one status page and map its indicator."""
        try:
            data = await client.get_json(service.status_api_url)
            indicator = str(data["status"]["indicator"]).lower()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Status probe failed", service=service.name, error=str(e))
            status = ServiceStatusType.DOWN
        else:
            status = INDICATOR_STATUS.get(indicator)
            if status is None:
                logger.warning(
                    "Unknown status indicator", service=service.name, indicator=indicator
                )
                status = ServiceStatusType.DEGRADED

        self._metrics.set_service_status(service.name, status.value)
        return ServiceStatus(
            name=service.name,
            status=status,
            last_checked=self._now(),
            url=service.page_url,
        )

    async def refresh(self) -> ServicesStatusResponse:
        """Probe every configured service concurrently and store the snapshot."""
        async with self._lock:
            client = HTTPClient(
                retry_config=RetryConfig(max_retries=0),
                timeout=self._config.probe_timeout_seconds,
            )
            async with client:
                statuses = await asyncio.gather(
                    *(self.probe(service, client) for service in self._config.services)
                )

            self._snapshot = ServicesStatusResponse(
                services=list(statuses),
                last_update=self._now(),
            )

        logger.info(
            "Service status refreshed",
            overall=self._snapshot.overall.value,
            services={s.name: s.status.value for s in self._snapshot.services},
        )
        return self._snapshot

    async def get_status(self) -> ServicesStatusResponse:
        """
        Latest snapshot, refreshing first when there is none yet or it is
        older than the refresh interval.
        """
        snapshot = self._snapshot
        if snapshot is not None:
            age = (self._now() - snapshot.last_update).total_seconds()
            if age < self._config.refresh_seconds:
                return snapshot

        if self._lock.locked():
            # Another refresh is running; wait for it instead of probing twice
            async with self._lock:
                pass
            if self._snapshot is not None:
                return self._snapshot

        return await self.refresh()

    async def start(self) -> None:
        """Start the background refresh loop (idempotent)."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="service_status_refresh")
        logger.info("Service status monitor started", interval=self._config.refresh_seconds)

    async def stop(self) -> None:
        """Stop the background refresh loop."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        logger.info("Service status monitor stopped")

    async def _run(self) -> None:
        while self._running:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Service status refresh error", error=str(e))

            await asyncio.sleep(self._config.refresh_seconds)
