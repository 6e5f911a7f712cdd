"""Observability and metrics module for the redirector.

Provides Prometheus metrics for requests, resolutions, backend queries and
visit tracking.
"""

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from grtn.core.config import MetricsConfig

logger = logging.getLogger(__name__)

_LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class RedirectorMetrics:
    """Redirector metrics collector using Prometheus."""

    def __init__(self, config: MetricsConfig):
        """Initialize the metrics collector.

        Args:
            config: Metrics configuration
        """
        self.config = config
        self._exporter_started = False

        # Request metrics
        self.request_total = Counter(
            "grtn_requests_total",
            "Total number of HTTP requests",
            ["status"],
        )

        self.request_duration = Histogram(
            "grtn_request_duration_seconds",
            "HTTP request latency in seconds",
            buckets=_LATENCY_BUCKETS,
        )

        # Resolution metrics
        self.resolutions_total = Counter(
            "grtn_resolutions_total",
            "Total number of resolved paths by outcome",
            ["outcome"],
        )

        self.routes_loaded = Gauge(
            "grtn_routes_loaded",
            "Number of routes in the most recently built route table",
        )

        # Backend metrics
        self.backend_requests = Counter(
            "grtn_backend_requests_total",
            "Total number of content backend queries",
            ["query", "status"],
        )

        self.backend_duration = Histogram(
            "grtn_backend_duration_seconds",
            "Content backend query latency in seconds",
            ["query"],
            buckets=_LATENCY_BUCKETS,
        )

        # Telemetry metrics
        self.telemetry_failures = Counter(
            "grtn_telemetry_failures_total",
            "Total number of failed visit tracking calls",
            ["reason"],
        )

    def record_request(self, status_code: int, duration_seconds: float) -> None:
        """Record a completed HTTP request.

        Paths are not used as labels: every path is a potential short link.
        """
        self.request_total.labels(status=str(status_code)).inc()
        self.request_duration.observe(duration_seconds)

    def record_resolution(self, outcome: str) -> None:
        """Record a resolution outcome (route, fallback, ambiguous, listing, not_found)."""
        self.resolutions_total.labels(outcome=outcome).inc()

    def set_routes_loaded(self, count: int) -> None:
        """Update the size of the last route table."""
        self.routes_loaded.set(count)

    def record_backend_request(
        self, query: str, status_code: int, duration_seconds: float
    ) -> None:
        """Record a content backend query.

        Args:
            query: Query label
            status_code: HTTP status code (0 if the request failed)
            duration_seconds: Request duration in seconds
        """
        status_str = str(status_code) if status_code > 0 else "error"
        self.backend_requests.labels(query=query, status=status_str).inc()
        self.backend_duration.labels(query=query).observe(duration_seconds)

    def record_telemetry_failure(self, reason: str) -> None:
        """Record a failed visit tracking call."""
        self.telemetry_failures.labels(reason=reason).inc()

    def start_exporter(self) -> None:
        """Serve metrics on the configured port, once."""
        if not self.config.enabled or self._exporter_started:
            return
        start_http_server(self.config.port)
        self._exporter_started = True
        logger.info(
            f"Metrics exporter listening on port {self.config.port}",
            extra={"port": self.config.port},
        )
