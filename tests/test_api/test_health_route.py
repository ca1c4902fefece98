"""Tests for the health endpoint and request ID middleware."""

import re

from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.dependencies import get_feed_service, get_status_monitor
from tests.factories import make_feed_service, make_status_monitor

# UUID v4 regex pattern
UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


def _make_client(monitor_running: bool = True) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_feed_service] = lambda: make_feed_service()
    app.dependency_overrides[get_status_monitor] = lambda: make_status_monitor(monitor_running)
    return TestClient(app)


class TestHealthEndpoint:
    """GET /health"""

    def test_healthy(self):
        resp = _make_client().get("/health")

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert data["sources"] == ["tabnews", "hackernews"]
        cache = data["components"]["feed_cache"]
        assert cache["status"] == "healthy"
        assert cache["details"]["entries"] == 0
        assert cache["details"]["ttl_seconds"] == 180.0

    def test_stopped_monitor_degrades(self):
        resp = _make_client(monitor_running=False).get("/health")

        data = resp.json()
        assert resp.status_code == 200
        assert data["status"] == "degraded"
        assert data["components"]["status_monitor"]["status"] == "unhealthy"

    def test_does_not_touch_sources(self, client, feed_service):
        client.get("/health")

        assert len(feed_service.cache) == 0


class TestServicesStatusEndpoint:
    """GET /api/services/status"""

    def test_snapshot(self, client, status_monitor):
        resp = client.get("/api/services/status")

        assert resp.status_code == 200
        data = resp.json()
        assert [s["name"] for s in data["services"]] == ["GitHub", "npm"]
        assert data["services"][1]["status"] == "degraded"
        assert data["services"][0]["lastChecked"].startswith("2026-03-01T12:00:00")
        assert "lastUpdate" in data
        status_monitor.get_status.assert_awaited_once()


class TestCorrelationIdMiddleware:
    """X-Request-ID handling."""

    def test_generates_uuid_when_no_header(self, client):
        resp = client.get("/health")

        request_id = resp.headers.get("X-Request-ID")
        assert request_id is not None
        assert UUID_RE.match(request_id), f"Expected UUID v4, got: {request_id}"

    def test_echoes_custom_request_id(self, client):
        resp = client.get("/api/feed", headers={"X-Request-ID": "custom-id-123"})

        assert resp.headers.get("X-Request-ID") == "custom-id-123"

    def test_falls_back_to_correlation_id(self, client):
        resp = client.get("/health", headers={"X-Correlation-ID": "corr-456"})

        assert resp.headers.get("X-Request-ID") == "corr-456"

    def test_request_id_takes_priority(self, client):
        resp = client.get(
            "/health",
            headers={"X-Request-ID": "req-id", "X-Correlation-ID": "corr-id"},
        )

        assert resp.headers.get("X-Request-ID") == "req-id"

    def test_error_responses_carry_request_id(self, client):
        resp = client.get("/api/news/lobsters", headers={"X-Request-ID": "req-404"})

        assert resp.status_code == 404
        assert resp.headers.get("X-Request-ID") == "req-404"
