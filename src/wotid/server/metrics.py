# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Prometheus metrics for the wot.id service.

Provides /metrics endpoint with Prometheus text format.
Implements simple text format without prometheus_client dependency.

Metrics exported:
- wotid_http_request_duration_seconds: Request latency histogram
- wotid_http_requests_total: Request count by endpoint/status
- wotid_active_connections: Currently active connections
- wotid_challenges_issued_total: Challenges issued
- wotid_verifications_total: Verification attempts by outcome/reason
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

# Histogram bucket boundaries (in seconds)
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

METRICS_PATH = "/metrics"


@dataclass
class HistogramData:
    """Histogram metric data."""

    buckets: dict[float, int] = field(default_factory=lambda: defaultdict(int))
    sum: float = 0.0
    count: int = 0

    def observe(self, value: float) -> None:
        """Record an observation."""
        self.sum += value
        self.count += 1
        for bucket in LATENCY_BUCKETS:
            if value <= bucket:
                self.buckets[bucket] += 1
                break


class MetricsCollector:
    """Thread-safe metrics collector.

    Collects request and verification metrics and renders them in
    Prometheus text format.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

        # Request metrics: {(method, path, status): count}
        self._request_counts: dict[tuple[str, str, int], int] = defaultdict(int)

        # Latency histogram: {(method, path): HistogramData}
        self._latency_histograms: dict[tuple[str, str], HistogramData] = defaultdict(HistogramData)

        self._active_connections: int = 0

        self._challenges_issued: int = 0

        # Verification outcomes: {(outcome, reason): count}
        self._verifications: dict[tuple[str, str], int] = defaultdict(int)

    def record_request(self, method: str, path: str, status_code: int, duration_seconds: float) -> None:
        """Record a completed request.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Request path
            status_code: HTTP response status code
            duration_seconds: Request duration in seconds
        """
        with self._lock:
            self._request_counts[(method, path, status_code)] += 1
            self._latency_histograms[(method, path)].observe(duration_seconds)

    def record_challenge_issued(self) -> None:
        with self._lock:
            self._challenges_issued += 1

    def record_verification(self, outcome: str, reason: str | None = None) -> None:
        """Record a verification attempt.

        Args:
            outcome: "accepted" or "rejected"
            reason: Rejection reason value, or None when accepted
        """
        with self._lock:
            self._verifications[(outcome, reason or "none")] += 1

    def increment_connections(self) -> None:
        with self._lock:
            self._active_connections += 1

    def decrement_connections(self) -> None:
        with self._lock:
            self._active_connections = max(0, self._active_connections - 1)

    def get_active_connections(self) -> int:
        with self._lock:
            return self._active_connections

    def format_prometheus(self) -> str:
        """Format all metrics in Prometheus text format."""
        lines: list[str] = []

        with self._lock:
            lines.append("# HELP wotid_http_requests_total Total HTTP requests")
            lines.append("# TYPE wotid_http_requests_total counter")
            for (method, path, status), count in sorted(self._request_counts.items()):
                labels = f'method="{method}",path="{path}",status="{status}"'
                lines.append(f"wotid_http_requests_total{{{labels}}} {count}")

            lines.append("")
            lines.append("# HELP wotid_http_request_duration_seconds HTTP request latency")
            lines.append("# TYPE wotid_http_request_duration_seconds histogram")
            for (method, path), histogram in sorted(self._latency_histograms.items()):
                base_labels = f'method="{method}",path="{path}"'
                cumulative = 0
                for bucket in LATENCY_BUCKETS:
                    cumulative += histogram.buckets.get(bucket, 0)
                    lines.append(f'wotid_http_request_duration_seconds_bucket{{{base_labels},le="{bucket}"}} {cumulative}')
                lines.append(f'wotid_http_request_duration_seconds_bucket{{{base_labels},le="+Inf"}} {histogram.count}')
                lines.append(f"wotid_http_request_duration_seconds_sum{{{base_labels}}} {histogram.sum:.6f}")
                lines.append(f"wotid_http_request_duration_seconds_count{{{base_labels}}} {histogram.count}")

            lines.append("")
            lines.append("# HELP wotid_active_connections Currently active HTTP connections")
            lines.append("# TYPE wotid_active_connections gauge")
            lines.append(f"wotid_active_connections {self._active_connections}")

            lines.append("")
            lines.append("# HELP wotid_challenges_issued_total Challenges issued")
            lines.append("# TYPE wotid_challenges_issued_total counter")
            lines.append(f"wotid_challenges_issued_total {self._challenges_issued}")

            lines.append("")
            lines.append("# HELP wotid_verifications_total Verification attempts by outcome")
            lines.append("# TYPE wotid_verifications_total counter")
            for (outcome, reason), count in sorted(self._verifications.items()):
                lines.append(f'wotid_verifications_total{{outcome="{outcome}",reason="{reason}"}} {count}')

        lines.append("")
        return "\n".join(lines)


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics_collector() -> None:
    """Drop the global collector. Useful for testing."""
    global _metrics_collector
    _metrics_collector = None


class MetricsMiddleware(BaseHTTPMiddleware):
    """Starlette middleware for collecting request metrics.

    Tracks request count, latency, and active connections. Only routed
    paths are labelled; anything else is counted as "unmatched" so random
    URLs cannot blow up label cardinality.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        collector = get_metrics_collector()
        collector.increment_connections()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            path = request.url.path if request.url.path in _known_paths(request) else "unmatched"
            collector.record_request(
                method=request.method,
                path=path,
                status_code=status_code,
                duration_seconds=time.perf_counter() - start_time,
            )
            collector.decrement_connections()


def _known_paths(request: Request) -> set[str]:
    return {getattr(route, "path", "") for route in request.app.routes}


async def metrics_endpoint(request: Request) -> PlainTextResponse:
    """Prometheus metrics endpoint.

    Returns metrics in Prometheus text exposition format.
    """
    collector = get_metrics_collector()
    return PlainTextResponse(
        content=collector.format_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
