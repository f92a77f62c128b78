# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Starlette ASGI application for the wot.id identity service.

The orchestrator and health aggregator live on ``app.state``. Passing them
to create_app() wires them immediately (tests do this); otherwise the
lifespan builds the orchestrator from settings at startup.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..auth.orchestrator import VerificationOrchestrator, build_orchestrator
from ..core.logging import configure_logging
from .config import ServerSettings, get_settings
from .health import HealthAggregator, health_endpoint
from .identity_endpoints import initiate_challenge_endpoint, verify_signature_endpoint
from .metrics import METRICS_PATH, MetricsMiddleware, metrics_endpoint
from .middleware import REQUEST_ID_HEADER, CorrelationIdMiddleware

logger = logging.getLogger(__name__)

# API version prefix for all REST endpoints
API_V1 = "/api/v1"


async def info_endpoint(request: Request) -> JSONResponse:
    """Service discovery information."""
    settings: ServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "server": settings.server_name,
            "version": settings.server_version,
            "endpoints": {
                "initiate_challenge": f"{API_V1}/identity/initiate-challenge",
                "verify_signature": f"{API_V1}/identity/verify-signature",
                "health": "/health",
                "metrics": METRICS_PATH,
            },
        }
    )


@asynccontextmanager
async def lifespan(app: Starlette):
    """Application lifespan handler."""
    settings: ServerSettings = app.state.settings
    logger.info(f"Starting wot.id identity service on {settings.host}:{settings.port}")

    if app.state.orchestrator is None:
        app.state.orchestrator = build_orchestrator(settings)
        logger.info(f"Verification engine ready (ledger {settings.ledger_endpoint}, {settings.challenge_store} challenge store)")

    yield

    removed = app.state.orchestrator.store.purge_expired()
    logger.info(f"wot.id identity service shutting down ({removed} expired challenges purged)")


def create_app(
    settings: ServerSettings | None = None,
    orchestrator: VerificationOrchestrator | None = None,
    health: HealthAggregator | None = None,
) -> Starlette:
    """Create the Starlette ASGI application."""
    settings = settings or get_settings()

    routes = [
        Route("/", info_endpoint, methods=["GET"]),
        Route("/health", health_endpoint, methods=["GET"]),
        Route(f"{API_V1}/health", health_endpoint, methods=["GET"]),
        Route(f"{API_V1}/identity/initiate-challenge", initiate_challenge_endpoint, methods=["POST"]),
        Route(f"{API_V1}/identity/verify-signature", verify_signature_endpoint, methods=["POST"]),
        Route(METRICS_PATH, metrics_endpoint, methods=["GET"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", REQUEST_ID_HEADER],
            expose_headers=[REQUEST_ID_HEADER],
        ),
        Middleware(CorrelationIdMiddleware),
        Middleware(MetricsMiddleware),
    ]

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.health = health or HealthAggregator(
        ledger_endpoint=settings.ledger_endpoint,
        version=settings.server_version,
        dependencies=settings.health_dependencies,
        timeout_seconds=settings.health_timeout_seconds,
    )
    return app


def run(settings: ServerSettings | None = None) -> None:
    """Run the server using uvicorn."""
    import uvicorn

    settings = settings or get_settings()
    configure_logging(settings)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
