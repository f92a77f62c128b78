# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Standardized REST error responses for the wot.id API.

All REST endpoints use these helpers for a consistent error format:
{
    "success": false,
    "error": {
        "code": "ERROR_CODE",
        "message": "Human readable message"
    }
}

Messages are short classified strings. Ledger payloads and stack details
never reach the client; 500 responses carry a request_id for log
correlation, plus exception detail only when WOTID_DEBUG=1.
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
import uuid

from starlette.responses import JSONResponse

from ..core.logging import get_request_id

logger = logging.getLogger(__name__)

# Debug mode: include exception details in 500 responses.
# Set WOTID_DEBUG=1 to enable (off by default).
_DEBUG = os.environ.get("WOTID_DEBUG", "0") == "1"

# =============================================================================
# STANDARD ERROR CODES
# =============================================================================

# Validation errors (400)
VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
VALIDATION_INVALID_JSON = "VALIDATION_INVALID_JSON"
IDENTITY_MALFORMED_DID = "IDENTITY_MALFORMED_DID"
SIGNATURE_MALFORMED = "SIGNATURE_MALFORMED"
SIGNATURE_UNSUPPORTED_ALGORITHM = "SIGNATURE_UNSUPPORTED_ALGORITHM"
SIGNATURE_KEY_NOT_FOUND = "SIGNATURE_KEY_NOT_FOUND"

# Not found errors (404)
NOT_FOUND_SUBJECT = "NOT_FOUND_SUBJECT"

# Server errors (500)
INTERNAL_ERROR = "INTERNAL_ERROR"
RESOLUTION_DID_NOT_FOUND = "RESOLUTION_DID_NOT_FOUND"
RESOLUTION_PROTOCOL_ERROR = "RESOLUTION_PROTOCOL_ERROR"

# Service unavailable (503)
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
LEDGER_UNAVAILABLE = "LEDGER_UNAVAILABLE"
SUBJECT_DIRECTORY_UNAVAILABLE = "SUBJECT_DIRECTORY_UNAVAILABLE"


# =============================================================================
# ERROR RESPONSE HELPERS
# =============================================================================


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        code: Error code (e.g., VALIDATION_MISSING_FIELD)
        message: Human-readable error message
        status_code: HTTP status code (default 400)

    Returns:
        JSONResponse with standardized error format
    """
    return JSONResponse(
        {
            "success": False,
            "error": {
                "code": code,
                "message": message,
            },
        },
        status_code=status_code,
    )


def validation_error(message: str, code: str = VALIDATION_INVALID_FORMAT) -> JSONResponse:
    """Create a 400 validation error response."""
    return error_response(code, message, status_code=400)


def missing_field_error(field_name: str) -> JSONResponse:
    """Create a 400 error for missing required field."""
    return error_response(
        VALIDATION_MISSING_FIELD,
        f"{field_name} is required",
        status_code=400,
    )


def invalid_json_error() -> JSONResponse:
    """Create a 400 error for invalid JSON body."""
    return error_response(VALIDATION_INVALID_JSON, "Invalid JSON body", status_code=400)


def not_found_error(resource: str, code: str = NOT_FOUND_SUBJECT) -> JSONResponse:
    """Create a 404 not found error response."""
    return error_response(code, f"{resource} not found", status_code=404)


def upstream_error(message: str, code: str) -> JSONResponse:
    """Create a 500 error for an upstream that answered unusably."""
    return error_response(code, message, status_code=500)


def internal_error(
    message: str = "Internal server error",
    exc: BaseException | None = None,
) -> JSONResponse:
    """Create a 500 internal error response.

    In debug mode (WOTID_DEBUG=1), includes exception type and message for
    faster diagnosis. Always includes a request_id for log correlation.

    Args:
        message: Base error message.
        exc: Optional exception to extract detail from. If None, the
             exception currently being handled is used.
    """
    request_id = get_request_id() or uuid.uuid4().hex[:12]

    error_body: dict = {
        "code": INTERNAL_ERROR,
        "message": message,
        "request_id": request_id,
    }

    if exc is None:
        exc = sys.exc_info()[1]

    if exc is not None:
        logger.error("request_id=%s %s: %s", request_id, type(exc).__name__, exc)
        if _DEBUG:
            error_body["exception"] = type(exc).__name__
            error_body["detail"] = str(exc)
            error_body["traceback"] = traceback.format_exception_only(type(exc), exc)[0].strip()

    return JSONResponse(
        {"success": False, "error": error_body},
        status_code=500,
    )


def service_unavailable_error(message: str, code: str = SERVICE_UNAVAILABLE) -> JSONResponse:
    """Create a 503 service unavailable error response."""
    return error_response(code, message, status_code=503)
