"""Tests for the upstream service status monitor.

Status pages are mocked with respx; no network access is needed.
"""

import asyncio
from datetime import timedelta

import httpx
import pytest
import respx

from src.monitoring.config import DEFAULT_SERVICES, MonitoredService, StatusConfig
from src.monitoring.schemas import ServicesStatusResponse, ServiceStatus, ServiceStatusType
from src.monitoring.service import ServiceStatusMonitor
from tests.factories import NOW

GITHUB = MonitoredService(name="GitHub", page_url="https://status.github.test")
NPM = MonitoredService(name="npm", page_url="https://status.npm.test/")


def _indicator(value: str) -> httpx.Response:
    return httpx.Response(200, json={"status": {"indicator": value, "description": "..."}})


class Clock:
    def __init__(self):
        self.now = NOW

    def __call__(self):
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def monitor(clock) -> ServiceStatusMonitor:
    config = StatusConfig(services=[GITHUB, NPM], refresh_seconds=60, probe_timeout_seconds=1)
    return ServiceStatusMonitor(config, now=clock)


class TestConfig:
    """Monitored service definitions."""

    def test_status_api_url(self):
        assert GITHUB.status_api_url == "https://status.github.test/api/v2/status.json"
        assert NPM.status_api_url == "https://status.npm.test/api/v2/status.json"

    def test_defaults(self):
        config = StatusConfig()

        assert [s.name for s in config.services] == [s.name for s in DEFAULT_SERVICES]
        assert config.refresh_seconds == 300

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("STATUS_REFRESH_SECONDS", "60")
        monkeypatch.setenv(
            "STATUS_SERVICES", '[{"name": "Fly", "page_url": "https://status.flyio.net"}]'
        )

        config = StatusConfig()

        assert config.refresh_seconds == 60
        assert [s.name for s in config.services] == ["Fly"]


class TestIndicatorMapping:
    """Statuspage indicator -> operational/degraded/down."""

    @pytest.mark.parametrize(
        "indicator, expected",
        [
            ("none", ServiceStatusType.OPERATIONAL),
            ("minor", ServiceStatusType.DEGRADED),
            ("maintenance", ServiceStatusType.DEGRADED),
            ("major", ServiceStatusType.DOWN),
            ("critical", ServiceStatusType.DOWN),
            ("something-new", ServiceStatusType.DEGRADED),
        ],
    )
    @pytest.mark.asyncio
    @respx.mock
    async def test_indicator(self, monitor, indicator, expected):
        respx.get(GITHUB.status_api_url).mock(return_value=_indicator(indicator))
        respx.get(NPM.status_api_url).mock(return_value=_indicator("none"))

        report = await monitor.refresh()

        assert report.services[0].status == expected

    @pytest.mark.asyncio
    @respx.mock
    async def test_failed_probe_is_down(self, monitor):
        respx.get(GITHUB.status_api_url).mock(side_effect=httpx.ConnectError("refused"))
        respx.get(NPM.status_api_url).mock(return_value=httpx.Response(500))

        report = await monitor.refresh()

        assert [s.status for s in report.services] == [
            ServiceStatusType.DOWN,
            ServiceStatusType.DOWN,
        ]
        assert report.overall == ServiceStatusType.DOWN

    @pytest.mark.asyncio
    @respx.mock
    async def test_unexpected_payload_is_down(self, monitor):
        respx.get(GITHUB.status_api_url).mock(return_value=httpx.Response(200, json={"ok": 1}))
        respx.get(NPM.status_api_url).mock(return_value=httpx.Response(200, text="<html>"))

        report = await monitor.refresh()

        assert all(s.status == ServiceStatusType.DOWN for s in report.services)


class TestReport:
    """Snapshot contents and freshness."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_snapshot_fields(self, monitor):
        respx.get(GITHUB.status_api_url).mock(return_value=_indicator("none"))
        respx.get(NPM.status_api_url).mock(return_value=_indicator("minor"))

        report = await monitor.refresh()

        assert report.last_update == NOW
        github, npm = report.services
        assert github.name == "GitHub"
        assert github.url == "https://status.github.test"
        assert github.last_checked == NOW
        assert npm.status == ServiceStatusType.DEGRADED
        assert report.overall == ServiceStatusType.DEGRADED
        assert monitor.snapshot is report

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_status_serves_fresh_snapshot(self, monitor, clock):
        github = respx.get(GITHUB.status_api_url).mock(return_value=_indicator("none"))
        respx.get(NPM.status_api_url).mock(return_value=_indicator("none"))

        first = await monitor.get_status()
        clock.now = NOW + timedelta(seconds=59)
        second = await monitor.get_status()

        assert second is first
        assert github.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_status_refreshes_stale_snapshot(self, monitor, clock):
        github = respx.get(GITHUB.status_api_url).mock(return_value=_indicator("none"))
        respx.get(NPM.status_api_url).mock(return_value=_indicator("none"))

        await monitor.get_status()
        clock.now = NOW + timedelta(seconds=60)
        report = await monitor.get_status()

        assert github.call_count == 2
        assert report.last_update == clock.now

    @pytest.mark.asyncio
    @respx.mock
    async def test_concurrent_callers_share_refresh(self, monitor):
        github = respx.get(GITHUB.status_api_url).mock(return_value=_indicator("none"))
        respx.get(NPM.status_api_url).mock(return_value=_indicator("none"))

        reports = await asyncio.gather(*(monitor.get_status() for _ in range(5)))

        assert github.call_count == 1
        assert all(r is reports[0] for r in reports)

    def test_overall_of_empty_report(self):
        report = ServicesStatusResponse(services=[], last_update=NOW)

        assert report.overall == ServiceStatusType.OPERATIONAL

    def test_wire_form(self):
        status = ServiceStatus(
            name="npm",
            status=ServiceStatusType.DOWN,
            last_checked=NOW,
            url="https://status.npmjs.org",
        )

        data = status.model_dump(mode="json", by_alias=True)

        assert data["lastChecked"].startswith("2026-03-01T12:00:00")
        assert data["status"] == "down"


class TestBackgroundLoop:
    """start()/stop()"""

    @pytest.mark.asyncio
    @respx.mock
    async def test_start_refreshes_and_stop_cancels(self, monitor):
        respx.get(GITHUB.status_api_url).mock(return_value=_indicator("none"))
        respx.get(NPM.status_api_url).mock(return_value=_indicator("major"))

        await monitor.start()
        await monitor.start()  # idempotent
        assert monitor.is_running

        for _ in range(50):
            if monitor.snapshot is not None:
                break
            await asyncio.sleep(0.01)

        await monitor.stop()

        assert not monitor.is_running
        assert monitor.snapshot is not None
        assert monitor.snapshot.overall == ServiceStatusType.DOWN

    @pytest.mark.asyncio
    async def test_stop_without_start(self, monitor):
        await monitor.stop()

        assert not monitor.is_running
