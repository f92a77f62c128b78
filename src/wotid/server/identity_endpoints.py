# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Identity API endpoints.

Implements:
- POST /api/v1/identity/initiate-challenge - Issue a challenge for a subject
- POST /api/v1/identity/verify-signature - Verify a signed challenge
"""

from __future__ import annotations

import json
import logging
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse

from ..auth.orchestrator import (
    RejectionClass,
    RejectionReason,
    VerificationOrchestrator,
    VerificationResult,
)
from ..core.exceptions import (
    ResolutionProtocolError,
    SubjectMappingUnavailable,
    SubjectNotFound,
    ValidationException,
)
from ..core.logging import truncate
from .errors import (
    IDENTITY_MALFORMED_DID,
    INTERNAL_ERROR,
    LEDGER_UNAVAILABLE,
    RESOLUTION_DID_NOT_FOUND,
    RESOLUTION_PROTOCOL_ERROR,
    SIGNATURE_KEY_NOT_FOUND,
    SIGNATURE_MALFORMED,
    SIGNATURE_UNSUPPORTED_ALGORITHM,
    SUBJECT_DIRECTORY_UNAVAILABLE,
    error_response,
    internal_error,
    invalid_json_error,
    missing_field_error,
    not_found_error,
    service_unavailable_error,
    upstream_error,
    validation_error,
)
from .metrics import get_metrics_collector

logger = logging.getLogger(__name__)

# Rejection reason -> (HTTP status, error code, message) for non-proof rejections
_REJECTION_RESPONSES: dict[RejectionReason, tuple[int, str, str]] = {
    RejectionReason.MALFORMED_IDENTIFIER: (400, IDENTITY_MALFORMED_DID, "Invalid DID format"),
    RejectionReason.MALFORMED_SIGNATURE: (400, SIGNATURE_MALFORMED, "Invalid JWS format"),
    RejectionReason.UNSUPPORTED_ALGORITHM: (400, SIGNATURE_UNSUPPORTED_ALGORITHM, "Unsupported signature algorithm"),
    RejectionReason.KEY_NOT_FOUND: (400, SIGNATURE_KEY_NOT_FOUND, "Signing key not found in DID document"),
    RejectionReason.DID_NOT_FOUND: (500, RESOLUTION_DID_NOT_FOUND, "Failed to resolve DID document"),
    RejectionReason.RESOLUTION_PROTOCOL_ERROR: (500, RESOLUTION_PROTOCOL_ERROR, "Failed to resolve DID document"),
    RejectionReason.LEDGER_UNAVAILABLE: (503, LEDGER_UNAVAILABLE, "Ledger node unavailable, try again later"),
}


def _get_orchestrator(request: Request) -> VerificationOrchestrator | None:
    return getattr(request.app.state, "orchestrator", None)


async def _read_json_object(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _required_string(body: dict[str, Any], field_name: str) -> str | None:
    value = body.get(field_name)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def verification_response(result: VerificationResult) -> JSONResponse:
    """Map a verification result to its HTTP response.

    Accepted and invalid-proof results are 200 with isValid; request,
    resolution and availability failures use the standard error format.
    """
    if result.is_valid or result.rejection_class == RejectionClass.INVALID_PROOF:
        return JSONResponse(result.to_dict())

    status_code, code, message = _REJECTION_RESPONSES.get(
        result.reason,  # type: ignore[arg-type]
        (500, INTERNAL_ERROR, "Internal server error"),
    )
    return error_response(code, message, status_code=status_code)


async def initiate_challenge_endpoint(request: Request) -> JSONResponse:
    """POST /api/v1/identity/initiate-challenge - Issue a challenge.

    Request Body (JSON):
        {"email": "user@example.com"}

    Returns:
        200: {"did": "...", "challenge": "...", "expiresAt": "..."}
        400: Missing or invalid email
        404: No DID is mapped to the email
        503: Subject directory unavailable
    """
    orchestrator = _get_orchestrator(request)
    if orchestrator is None:
        return service_unavailable_error("Verification service not initialized")

    body = await _read_json_object(request)
    if body is None:
        return invalid_json_error()

    email = _required_string(body, "email")
    if email is None:
        return missing_field_error("email")

    try:
        grant = await orchestrator.initiate(email)
    except ValidationException as e:
        return validation_error(e.message)
    except SubjectNotFound:
        return not_found_error("Subject")
    except SubjectMappingUnavailable:
        return service_unavailable_error("Subject directory unavailable", code=SUBJECT_DIRECTORY_UNAVAILABLE)
    except ResolutionProtocolError:
        return upstream_error("Subject directory returned an invalid DID", RESOLUTION_PROTOCOL_ERROR)
    except Exception:
        logger.exception("Error initiating challenge")
        return internal_error("Failed to initiate challenge")

    get_metrics_collector().record_challenge_issued()
    return JSONResponse(grant.to_dict())


async def verify_signature_endpoint(request: Request) -> JSONResponse:
    """POST /api/v1/identity/verify-signature - Verify a signed challenge.

    Request Body (JSON):
        {
            "did": "did:iota:...",
            "challenge": "<nonce from initiate-challenge>",
            "signature": "<compact EdDSA JWS>"
        }

    Returns:
        200: {"isValid": true, "user": {"email": ..., "name": ...}}
        200: {"isValid": false} for proof failures
        400: Malformed DID or JWS, unsupported algorithm, unknown key id
        500: DID not found or unusable ledger response
        503: Ledger node unavailable
    """
    orchestrator = _get_orchestrator(request)
    if orchestrator is None:
        return service_unavailable_error("Verification service not initialized")

    body = await _read_json_object(request)
    if body is None:
        return invalid_json_error()

    values: dict[str, str] = {}
    for field_name in ("did", "challenge", "signature"):
        value = _required_string(body, field_name)
        if value is None:
            return missing_field_error(field_name)
        values[field_name] = value

    logger.debug(f"Verifying {values['did']} with JWS {truncate(values['signature'])}")

    try:
        result = await orchestrator.verify(values["did"], values["challenge"], values["signature"])
    except Exception:
        logger.exception("Error verifying signature")
        return internal_error("Failed to verify signature")

    get_metrics_collector().record_verification(
        result.state.value,
        result.reason.value if result.reason else None,
    )
    return verification_response(result)
