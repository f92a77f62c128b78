"""Global test fixtures for the wotid test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wotid.identity.did import DIDDocument
from wotid.identity.signing import KeyPair, create_challenge_jws, generate_keypair

# The subject seeded in the default static directory
STUB_EMAIL = "user@example.com"
STUB_DID = "did:iota:tst:0xplaceholderdidforuseratolecom"


# ============================================================================
# Global state
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_global_state(monkeypatch):
    """Reset cached settings and metrics; keep the host environment out of settings."""
    import wotid.core.config as core_config
    import wotid.server.config as server_config
    import wotid.server.metrics as metrics_module

    for var in ("PORT", "API_ENDPOINT", "IOTA_IDENTITY_PKG_ID"):
        monkeypatch.delenv(var, raising=False)

    core_config._config = None
    server_config._settings = None
    metrics_module._metrics_collector = None
    yield
    core_config._config = None
    server_config._settings = None
    metrics_module._metrics_collector = None


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Keys, documents and signatures
# ============================================================================


@pytest.fixture
def keypair() -> KeyPair:
    return generate_keypair()


@pytest.fixture
def subject_did() -> str:
    return STUB_DID


@pytest.fixture
def kid(subject_did) -> str:
    return f"{subject_did}#key-1"


@pytest.fixture
def did_document(subject_did, keypair) -> DIDDocument:
    """A ledger-style document with one JWK verification method."""
    vm = keypair.verification_method(subject_did, "key-1")
    return DIDDocument(
        id=subject_did,
        verification_methods=[vm],
        authentication=[vm.id],
        profile={"email": STUB_EMAIL, "name": "Test User"},
    )


@pytest.fixture
def sign(subject_did, keypair, kid) -> Callable[..., str]:
    """Sign a challenge as the subject; keyword overrides for did/kid/keypair."""

    def _sign(challenge: str, did: str | None = None, signer: KeyPair | None = None, key_id: str | None = None) -> str:
        return create_challenge_jws(did or subject_did, challenge, signer or keypair, key_id or kid)

    return _sign


# ============================================================================
# aiohttp mocking
# ============================================================================


def make_response(body: Any = None, status: int = 200, json_error: Exception | None = None) -> MagicMock:
    """Create a mock aiohttp response."""
    response = MagicMock()
    response.status = status
    if json_error is not None:
        response.json = AsyncMock(side_effect=json_error)
    else:
        response.json = AsyncMock(return_value=body)
    return response


def as_context(response: MagicMock) -> MagicMock:
    """Wrap a response so it can be used with ``async with``."""
    return MagicMock(
        __aenter__=AsyncMock(return_value=response),
        __aexit__=AsyncMock(return_value=False),
    )


class MockHTTP:
    """Patched aiohttp.ClientSession with scripted responses."""

    def __init__(self, client_cls: MagicMock) -> None:
        self.client_cls = client_cls
        self.session = MagicMock()
        client_cls.return_value.__aenter__ = AsyncMock(return_value=self.session)
        client_cls.return_value.__aexit__ = AsyncMock(return_value=False)

    def response(self, body: Any = None, status: int = 200, json_error: Exception | None = None) -> MagicMock:
        return make_response(body, status, json_error)

    def respond(self, body: Any = None, status: int = 200, method: str = "post", json_error: Exception | None = None):
        response = make_response(body, status, json_error)
        getattr(self.session, method).return_value = as_context(response)
        return response

    def respond_by_url(self, responses: dict[str, MagicMock | Exception], method: str = "get") -> None:
        def _route(url, *args, **kwargs):
            result = responses[url]
            if isinstance(result, Exception):
                raise result
            return as_context(result)

        getattr(self.session, method).side_effect = _route

    def fail(self, exc: Exception, method: str = "post") -> None:
        getattr(self.session, method).side_effect = exc

    @property
    def sessions_opened(self) -> int:
        return self.client_cls.call_count


@pytest.fixture
def mock_http():
    """Patch aiohttp.ClientSession for the duration of a test."""
    with patch("aiohttp.ClientSession") as client_cls:
        yield MockHTTP(client_cls)
