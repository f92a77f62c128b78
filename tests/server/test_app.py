"""Tests for the Starlette application."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from starlette.testclient import TestClient

from wotid.auth.orchestrator import VerificationOrchestrator
from wotid.server.app import create_app, run
from wotid.server.config import ServerSettings
from wotid.server.health import HealthAggregator


class TestCreateApp:
    """Tests for application wiring."""

    def test_info_endpoint(self):
        client = TestClient(create_app(settings=ServerSettings(server_version="9.9.9"), orchestrator=MagicMock()))

        data = client.get("/").json()

        assert data["server"] == "wotid"
        assert data["version"] == "9.9.9"
        assert data["endpoints"]["verify_signature"] == "/api/v1/identity/verify-signature"

    def test_default_health_from_settings(self):
        settings = ServerSettings(
            ledger_endpoint="http://node:9000",
            health_dependencies={"directory": "http://dir/health"},
            health_timeout_seconds=2.0,
        )
        app = create_app(settings=settings)

        health = app.state.health
        assert isinstance(health, HealthAggregator)
        assert health.ledger_endpoint == "http://node:9000"
        assert health.dependencies == {"directory": "http://dir/health"}
        assert health.timeout_seconds == 2.0

    def test_get_not_allowed_on_identity_routes(self):
        client = TestClient(create_app(settings=ServerSettings(), orchestrator=MagicMock()))

        assert client.get("/api/v1/identity/verify-signature").status_code == 405


class TestLifespan:
    """Tests for startup and shutdown."""

    def test_builds_orchestrator_on_startup(self):
        app = create_app(settings=ServerSettings())

        with TestClient(app) as client:
            assert isinstance(app.state.orchestrator, VerificationOrchestrator)
            response = client.post("/api/v1/identity/initiate-challenge", json={"email": "user@example.com"})
            assert response.status_code == 200

    def test_keeps_injected_orchestrator(self):
        orchestrator = MagicMock()
        orchestrator.store.purge_expired.return_value = 0
        app = create_app(settings=ServerSettings(), orchestrator=orchestrator)

        with TestClient(app):
            assert app.state.orchestrator is orchestrator

        orchestrator.store.purge_expired.assert_called_once()


class TestCorrelationIds:
    """Tests for X-Request-ID handling."""

    @pytest.fixture
    def client(self):
        return TestClient(create_app(settings=ServerSettings(), orchestrator=MagicMock()))

    def test_generated_when_absent(self, client):
        assert len(client.get("/").headers["X-Request-ID"]) == 36

    def test_reused_when_well_formed(self, client):
        assert client.get("/", headers={"X-Request-ID": "abc-123"}).headers["X-Request-ID"] == "abc-123"

    def test_replaced_when_unsafe(self, client):
        response = client.get("/", headers={"X-Request-ID": "bad id with spaces"})
        assert response.headers["X-Request-ID"] != "bad id with spaces"


class TestCors:
    """Tests for CORS configuration."""

    def test_allowed_origin(self):
        settings = ServerSettings(allowed_origins=["https://app.example.com"])
        client = TestClient(create_app(settings=settings, orchestrator=MagicMock()))

        response = client.options(
            "/api/v1/identity/verify-signature",
            headers={"Origin": "https://app.example.com", "Access-Control-Request-Method": "POST"},
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://app.example.com"

    def test_origin_not_allowed_by_default(self):
        client = TestClient(create_app(settings=ServerSettings(), orchestrator=MagicMock()))

        response = client.get("/", headers={"Origin": "https://evil.example.com"})

        assert "access-control-allow-origin" not in response.headers


def test_run_uses_settings():
    settings = ServerSettings(host="0.0.0.0", port=9000, log_level="WARNING")

    with patch("uvicorn.run") as mock_run, patch("wotid.server.app.configure_logging"):
        run(settings)

    kwargs = mock_run.call_args.kwargs
    assert kwargs["host"] == "0.0.0.0"
    assert kwargs["port"] == 9000
    assert kwargs["log_level"] == "warning"
