"""
Prometheus metrics for monitoring the feed engine.

Defines and exposes metrics for:
- Cache hits, misses and coalesced joins
- Source fetch latency and errors
- Feed request outcomes
- Upstream service status

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

SERVICE_STATUS_VALUES = {"operational": 2, "degraded": 1, "down": 0}


class MetricsCollector:
    """
    Prometheus metrics collector for the feed-mix engine.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_cache_event("feed", "hit")
        metrics.record_source_fetch("hackernews", latency=0.4, ok=True)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.cache_events = Counter(
            "feed_mix_cache_events_total",
            "Cache lookups by outcome",
            ["cache", "outcome"],  # outcome: hit, miss, join
        )

        self.source_fetches = Counter(
            "feed_mix_source_fetches_total",
            "Source fetches by result",
            ["source", "status"],  # status: ok, error
        )

        self.source_errors = Counter(
            "feed_mix_source_errors_total",
            "Source fetch errors by type",
            ["source", "error_type"],
        )

        self.source_latency = Histogram(
            "feed_mix_source_fetch_latency_seconds",
            "Time to fetch and normalize a source snapshot",
            ["source"],
            buckets=LATENCY_BUCKETS,
        )

        self.source_items = Gauge(
            "feed_mix_source_items",
            "Items returned by the latest fetch of a source",
            ["source"],
        )

        self.feed_requests = Counter(
            "feed_mix_feed_requests_total",
            "Feed queries by policy and outcome",
            ["policy", "outcome"],  # outcome: ok, all_sources_failed, malformed_cursor
        )

        self.feed_latency = Histogram(
            "feed_mix_feed_latency_seconds",
            "End-to-end feed query latency",
            ["policy"],
            buckets=LATENCY_BUCKETS,
        )

        self.duplicates_dropped = Counter(
            "feed_mix_duplicates_dropped_total",
            "Items dropped because their key was already emitted",
        )

        self.service_status = Gauge(
            "feed_mix_upstream_service_status",
            "Upstream service status (2=operational, 1=degraded, 0=down)",
            ["service"],
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_cache_event(self, cache: str, outcome: str) -> None:
        self.cache_events.labels(cache=cache, outcome=outcome).inc()

    def record_source_fetch(
        self,
        source: str,
        latency: float,
        ok: bool,
        item_count: int = 0,
        error_type: str | None = None,
    ) -> None:
        """
        Record one source fetch.

        Args:
            source: Source name
            latency: Fetch latency in seconds
            ok: Whether the fetch succeeded
            item_count: Items returned on success
            error_type: Exception class name on failure
        """
        self.source_fetches.labels(source=source, status="ok" if ok else "error").inc()
        self.source_latency.labels(source=source).observe(latency)

        if ok:
            self.source_items.labels(source=source).set(item_count)
        else:
            self.source_errors.labels(
                source=source,
                error_type=error_type or "unknown",
            ).inc()

    def record_feed_request(self, policy: str, outcome: str, latency: float | None = None) -> None:
        self.feed_requests.labels(policy=policy, outcome=outcome).inc()
        if latency is not None:
            self.feed_latency.labels(policy=policy).observe(latency)

    def record_duplicates(self, count: int) -> None:
        if count > 0:
            self.duplicates_dropped.inc(count)

    def set_service_status(self, service: str, status: str) -> None:
        """
        Set upstream service status gauge.

        Args:
            service: Service name
            status: operational, degraded or down
        """
        self.service_status.labels(service=service).set(SERVICE_STATUS_VALUES.get(status, 0))


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
