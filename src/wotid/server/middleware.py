# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Request id middleware."""

from __future__ import annotations

import re
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..core.logging import request_context

REQUEST_ID_HEADER = "X-Request-ID"

# Accept caller-supplied ids only if they are short and log-safe
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a request id to each request.

    Uses the caller's X-Request-ID when it is well-formed, otherwise
    generates one. The id is echoed back in the response header and
    attached to every log record emitted while handling the request.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER)
        request_id = supplied if supplied and _REQUEST_ID_PATTERN.match(supplied) else None

        with request_context(request_id) as cid:
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = cid
        return response
