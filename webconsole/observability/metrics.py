"""
Metrics Collection with Prometheus.

Exposes console and upstream metrics for monitoring.
"""

import time
from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from webconsole.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    DECISION = "decision"
    ERROR_TYPE = "error_type"


class ConsoleMetrics:
    """
    Centralized metrics for the console API.

    Covers:
    - HTTP requests served (rate, duration, in flight)
    - Upstream requests (rate by outcome, duration)
    - Token queries and log page fetches by outcome
    - Route gate decisions
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info(
            "console_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "console_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "console_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "console_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Upstream Metrics
        # ====================================================================
        self.upstream_requests_total = Counter(
            "console_upstream_requests_total",
            "Total requests sent to the upstream API",
            [MetricLabels.ENDPOINT, MetricLabels.OUTCOME],
        )

        self.upstream_request_duration_seconds = Histogram(
            "console_upstream_request_duration_seconds",
            "Upstream request duration in seconds",
            [MetricLabels.ENDPOINT],
            buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        # ====================================================================
        # Token Usage Metrics
        # ====================================================================
        self.token_queries_total = Counter(
            "console_token_queries_total",
            "Token usage queries by outcome",
            [MetricLabels.OUTCOME],
        )

        self.log_page_fetches_total = Counter(
            "console_log_page_fetches_total",
            "Usage log page fetches by outcome",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Route Gate Metrics
        # ====================================================================
        self.route_decisions_total = Counter(
            "console_route_decisions_total",
            "Route gate decisions",
            [MetricLabels.DECISION],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "console_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_upstream_request(self, endpoint: str, outcome: str, duration: float) -> None:
        """Record an upstream call."""
        self.upstream_requests_total.labels(endpoint=endpoint, outcome=outcome).inc()
        self.upstream_request_duration_seconds.labels(endpoint=endpoint).observe(duration)

    def record_token_query(self, outcome: str) -> None:
        """Record a submitted token query: empty, ok, partial or failed."""
        self.token_queries_total.labels(outcome=outcome).inc()

    def record_log_page_fetch(self, success: bool) -> None:
        self.log_page_fetches_total.labels(outcome="ok" if success else "failed").inc()

    def record_route_decision(self, decision: str) -> None:
        self.route_decisions_total.labels(decision=decision).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = ConsoleMetrics()


class track_upstream_request:
    """
    Context manager for timing upstream calls.

    Usage:
        with track_upstream_request("/api/log/token") as tracker:
            response = await client.get(...)
            tracker.set_outcome("ok")
    """

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        self.outcome = "ok"
        self.start_time: float = 0.0

    def set_outcome(self, outcome: str) -> None:
        self.outcome = outcome

    def __enter__(self) -> "track_upstream_request":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        duration = time.perf_counter() - self.start_time
        if exc_type is not None and self.outcome == "ok":
            self.outcome = "error"
        metrics.record_upstream_request(self.endpoint, self.outcome, duration)
