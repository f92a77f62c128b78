"""Tests for Prometheus metrics."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from starlette.testclient import TestClient

from wotid.server.app import create_app
from wotid.server.config import ServerSettings
from wotid.server.metrics import (
    LATENCY_BUCKETS,
    HistogramData,
    MetricsCollector,
    get_metrics_collector,
    metrics_endpoint,
    reset_metrics_collector,
)


class TestHistogramData:
    """Tests for HistogramData class."""

    def test_observe_increments_count(self):
        """Observe increments count and sum."""
        h = HistogramData()
        h.observe(0.1)
        assert h.count == 1
        assert h.sum == 0.1

    def test_observe_fills_one_bucket(self):
        """Each observation lands in the smallest bucket that holds it."""
        h = HistogramData()
        h.observe(0.003)
        h.observe(0.05)
        h.observe(0.5)

        assert h.buckets[0.005] == 1
        assert h.buckets[0.05] == 1
        assert h.buckets[0.5] == 1
        assert sum(h.buckets.values()) == 3

    def test_observe_large_value(self):
        """Large values only increment count, not buckets."""
        h = HistogramData()
        h.observe(100.0)
        assert h.count == 1
        assert all(h.buckets[b] == 0 for b in LATENCY_BUCKETS)


class TestMetricsCollector:
    """Tests for MetricsCollector class."""

    def test_record_request(self):
        collector = MetricsCollector()
        collector.record_request("POST", "/api/v1/identity/verify-signature", 200, 0.02)

        output = collector.format_prometheus()
        assert 'wotid_http_requests_total{method="POST",path="/api/v1/identity/verify-signature",status="200"} 1' in output

    def test_histogram_is_cumulative(self):
        collector = MetricsCollector()
        collector.record_request("GET", "/health", 200, 0.003)
        collector.record_request("GET", "/health", 200, 0.3)

        output = collector.format_prometheus()
        assert 'wotid_http_request_duration_seconds_bucket{method="GET",path="/health",le="0.005"} 1' in output
        assert 'wotid_http_request_duration_seconds_bucket{method="GET",path="/health",le="0.5"} 2' in output
        assert 'wotid_http_request_duration_seconds_bucket{method="GET",path="/health",le="+Inf"} 2' in output
        assert 'wotid_http_request_duration_seconds_count{method="GET",path="/health"} 2' in output

    def test_connection_tracking(self):
        collector = MetricsCollector()
        collector.increment_connections()
        collector.increment_connections()
        collector.decrement_connections()
        assert collector.get_active_connections() == 1

    def test_connection_decrement_floor(self):
        collector = MetricsCollector()
        collector.decrement_connections()
        assert collector.get_active_connections() == 0

    def test_challenges_and_verifications(self):
        collector = MetricsCollector()
        collector.record_challenge_issued()
        collector.record_verification("accepted")
        collector.record_verification("rejected", "nonce_mismatch")
        collector.record_verification("rejected", "nonce_mismatch")

        output = collector.format_prometheus()
        assert "wotid_challenges_issued_total 1" in output
        assert 'wotid_verifications_total{outcome="accepted",reason="none"} 1' in output
        assert 'wotid_verifications_total{outcome="rejected",reason="nonce_mismatch"} 2' in output

    def test_global_collector(self):
        collector = get_metrics_collector()
        assert get_metrics_collector() is collector
        reset_metrics_collector()
        assert get_metrics_collector() is not collector


class TestMetricsMiddleware:
    """Tests for request tracking through the app."""

    @pytest.fixture
    def client(self):
        return TestClient(create_app(settings=ServerSettings(), orchestrator=MagicMock()))

    def test_routed_path_labelled(self, client):
        client.get("/")

        output = get_metrics_collector().format_prometheus()
        assert 'wotid_http_requests_total{method="GET",path="/",status="200"} 1' in output

    def test_unknown_paths_collapsed(self, client):
        client.get("/random/1")
        client.get("/random/2")

        output = get_metrics_collector().format_prometheus()
        assert 'wotid_http_requests_total{method="GET",path="unmatched",status="404"} 2' in output
        assert "/random/" not in output

    def test_metrics_path_not_tracked(self, client):
        client.get("/metrics")
        assert 'path="/metrics"' not in get_metrics_collector().format_prometheus()

    def test_connections_return_to_zero(self, client):
        client.get("/")
        assert get_metrics_collector().get_active_connections() == 0


async def test_metrics_endpoint():
    """Metrics endpoint returns Prometheus text."""
    get_metrics_collector().record_challenge_issued()

    response = await metrics_endpoint(MagicMock())

    assert response.status_code == 200
    assert response.media_type.startswith("text/plain")
    assert b"wotid_challenges_issued_total 1" in response.body
