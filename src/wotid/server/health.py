# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Health aggregation for GET /health.

Components:
    service       this process (ok once the orchestrator is wired)
    ledger_node   JSON-RPC ``rpc.discover`` against the ledger endpoint
    <name>        each configured dependency, GET on its health URL

Status (overall and per component):
    ok        every component ok
    degraded  the service is up but at least one dependency is not
    error     the service itself cannot verify anything

A component is either ok or error. Why a probe failed (unreachable,
timeout, HTTP status, RPC error) is reported under ``details``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_ERROR = "error"

# A probe yields a component status plus, on failure, a short reason
ProbeResult = tuple[str, str | None]


@dataclass
class HealthReport:
    """Aggregated health of the service and its dependencies."""

    status: str
    version: str
    components: dict[str, str] = field(default_factory=dict)
    details: dict[str, str] = field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return 503 if self.status == STATUS_ERROR else 200

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status, "version": self.version, "components": self.components}
        if self.details:
            data["details"] = self.details
        return data


class HealthAggregator:
    """Polls the ledger node and dependency health URLs concurrently.

    Each probe has its own timeout; a slow dependency never delays the
    others beyond it.

    Args:
        ledger_endpoint: Ledger node JSON-RPC URL.
        version: Service version reported in the body.
        dependencies: name -> health URL for extra dependencies.
        timeout_seconds: Per-probe timeout.
    """

    def __init__(
        self,
        ledger_endpoint: str,
        version: str,
        dependencies: dict[str, str] | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.ledger_endpoint = ledger_endpoint
        self.version = version
        self.dependencies = dict(dependencies or {})
        self.timeout_seconds = timeout_seconds

    async def check(self, service_ready: bool) -> HealthReport:
        """Probe every component and aggregate the result."""
        if not service_ready:
            return HealthReport(
                status=STATUS_ERROR,
                version=self.version,
                components={"service": STATUS_ERROR},
                details={"service": "not initialized"},
            )

        names = ["ledger_node", *self.dependencies]
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            probes = [self._probe_ledger(session)]
            probes.extend(self._probe_url(session, name, url) for name, url in self.dependencies.items())
            results = await asyncio.gather(*probes)

        components = {"service": STATUS_OK}
        details: dict[str, str] = {}
        for name, (status, detail) in zip(names, results, strict=True):
            components[name] = status
            if detail:
                details[name] = detail

        healthy = all(value == STATUS_OK for value in components.values())
        return HealthReport(
            status=STATUS_OK if healthy else STATUS_DEGRADED,
            version=self.version,
            components=components,
            details=details,
        )

    async def _probe_ledger(self, session: aiohttp.ClientSession) -> ProbeResult:
        payload = {"jsonrpc": "2.0", "id": "1", "method": "rpc.discover", "params": []}
        try:
            async with session.post(self.ledger_endpoint, json=payload) as response:
                if response.status != 200:
                    return STATUS_ERROR, f"http {response.status}"
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    return STATUS_ERROR, "invalid response"
                if not isinstance(body, dict) or body.get("error") is not None:
                    return STATUS_ERROR, "rpc error"
                return STATUS_OK, None
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"Ledger node health probe failed: {type(e).__name__}")
            return STATUS_ERROR, _failure_detail(e)

    async def _probe_url(self, session: aiohttp.ClientSession, name: str, url: str) -> ProbeResult:
        try:
            async with session.get(url) as response:
                if 200 <= response.status < 300:
                    return STATUS_OK, None
                return STATUS_ERROR, f"http {response.status}"
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"Health probe for {name} failed: {type(e).__name__}")
            return STATUS_ERROR, _failure_detail(e)


def _failure_detail(error: Exception) -> str:
    return "timeout" if isinstance(error, asyncio.TimeoutError) else "unreachable"


async def health_endpoint(request: Request) -> JSONResponse:
    """GET /health - service and dependency status.

    Returns:
        200: ok or degraded
        503: error (the service cannot verify)
    """
    aggregator: HealthAggregator = request.app.state.health
    ready = getattr(request.app.state, "orchestrator", None) is not None
    report = await aggregator.check(service_ready=ready)
    return JSONResponse(report.to_dict(), status_code=report.http_status)
