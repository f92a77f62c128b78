"""Tests for the health aggregator and GET /health."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from starlette.testclient import TestClient

from wotid.server.app import create_app
from wotid.server.config import ServerSettings
from wotid.server.health import HealthAggregator, HealthReport

LEDGER_URL = "http://ledger.test:9000"
DIRECTORY_HEALTH = "http://directory.test/health"


@pytest.fixture
def aggregator():
    return HealthAggregator(LEDGER_URL, version="1.2.3", timeout_seconds=1.0)


class TestHealthReport:
    """Tests for HealthReport."""

    @pytest.mark.parametrize("status,http_status", [("ok", 200), ("degraded", 200), ("error", 503)])
    def test_http_status(self, status, http_status):
        assert HealthReport(status=status, version="1").http_status == http_status

    def test_to_dict(self):
        report = HealthReport(status="ok", version="1", components={"service": "ok"})
        assert report.to_dict() == {"status": "ok", "version": "1", "components": {"service": "ok"}}

    def test_to_dict_with_details(self):
        report = HealthReport(
            status="degraded",
            version="1",
            components={"service": "ok", "ledger_node": "error"},
            details={"ledger_node": "timeout"},
        )
        assert report.to_dict()["details"] == {"ledger_node": "timeout"}


class TestHealthAggregator:
    """Tests for dependency probing."""

    async def test_all_ok(self, aggregator, mock_http):
        mock_http.respond({"jsonrpc": "2.0", "id": "1", "result": {"methods": []}})

        report = await aggregator.check(service_ready=True)

        assert report.status == "ok"
        assert report.version == "1.2.3"
        assert report.components == {"service": "ok", "ledger_node": "ok"}
        assert report.details == {}
        assert "details" not in report.to_dict()
        payload = mock_http.session.post.call_args.kwargs["json"]
        assert payload["method"] == "rpc.discover"

    async def test_not_ready(self, aggregator, mock_http):
        report = await aggregator.check(service_ready=False)

        assert report.status == "error"
        assert report.components == {"service": "error"}
        assert report.details == {"service": "not initialized"}
        assert mock_http.sessions_opened == 0

    async def test_ledger_unreachable(self, aggregator, mock_http):
        mock_http.fail(aiohttp.ClientConnectionError())

        report = await aggregator.check(service_ready=True)

        assert report.status == "degraded"
        assert report.components["ledger_node"] == "error"
        assert report.details["ledger_node"] == "unreachable"

    async def test_ledger_timeout(self, aggregator, mock_http):
        mock_http.fail(asyncio.TimeoutError())

        report = await aggregator.check(service_ready=True)

        assert report.components["ledger_node"] == "error"
        assert report.details["ledger_node"] == "timeout"

    @pytest.mark.parametrize(
        "kwargs,detail",
        [
            ({"status": 500}, "http 500"),
            ({"body": {"jsonrpc": "2.0", "id": "1", "error": {"code": -32601}}}, "rpc error"),
            ({"json_error": ValueError("not json")}, "invalid response"),
        ],
    )
    async def test_ledger_error(self, aggregator, mock_http, kwargs, detail):
        mock_http.respond(**kwargs)

        report = await aggregator.check(service_ready=True)

        assert report.status == "degraded"
        assert report.components["ledger_node"] == "error"
        assert report.details == {"ledger_node": detail}

    async def test_dependencies(self, mock_http):
        aggregator = HealthAggregator(
            LEDGER_URL,
            version="1",
            dependencies={"directory": DIRECTORY_HEALTH, "cache": "http://cache.test/health"},
        )
        mock_http.respond({"jsonrpc": "2.0", "id": "1", "result": {}})
        mock_http.respond_by_url(
            {
                DIRECTORY_HEALTH: mock_http.response(status=204),
                "http://cache.test/health": aiohttp.ClientConnectionError(),
            }
        )

        report = await aggregator.check(service_ready=True)

        assert report.components == {
            "service": "ok",
            "ledger_node": "ok",
            "directory": "ok",
            "cache": "error",
        }
        assert report.details == {"cache": "unreachable"}
        assert report.status == "degraded"

    async def test_failing_dependency(self, mock_http):
        aggregator = HealthAggregator(LEDGER_URL, version="1", dependencies={"directory": DIRECTORY_HEALTH})
        mock_http.respond({"jsonrpc": "2.0", "id": "1", "result": {}})
        mock_http.respond_by_url({DIRECTORY_HEALTH: mock_http.response(status=500)})

        report = await aggregator.check(service_ready=True)

        assert report.components["directory"] == "error"
        assert report.details["directory"] == "http 500"


class TestHealthEndpoint:
    """Tests for GET /health."""

    def _client(self, orchestrator, report):
        health = MagicMock(spec=HealthAggregator)
        health.check = AsyncMock(return_value=report)
        app = create_app(settings=ServerSettings(), orchestrator=orchestrator, health=health)
        return TestClient(app), health

    def test_healthy(self):
        report = HealthReport(status="ok", version="1", components={"service": "ok", "ledger_node": "ok"})
        client, health = self._client(MagicMock(), report)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        health.check.assert_awaited_once_with(service_ready=True)

    def test_degraded_is_200(self):
        report = HealthReport(
            status="degraded",
            version="1",
            components={"service": "ok", "ledger_node": "error"},
            details={"ledger_node": "unreachable"},
        )
        client, _ = self._client(MagicMock(), report)

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["components"]["ledger_node"] == "error"
        assert response.json()["details"] == {"ledger_node": "unreachable"}

    def test_not_ready_is_503(self):
        report = HealthReport(status="error", version="1", components={"service": "error"})
        client, health = self._client(None, report)

        response = client.get("/health")

        assert response.status_code == 503
        health.check.assert_awaited_once_with(service_ready=False)
