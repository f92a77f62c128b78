# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Exception hierarchy for the wot.id identity service.

Every failure the verification engine can report has its own type so the
HTTP layer can classify it (client error, proof failure, server error)
without inspecting messages. Messages are short and never carry raw
ledger payloads.

An invalid signature is NOT an exception: the signature verifier returns
False for it.
"""

from __future__ import annotations

from typing import Any


class WotidException(Exception):  # noqa: N818
    """Base exception for all wot.id errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(WotidException):
    """Exception for request validation errors.

    Raised when:
    - Required fields are missing
    - Field values have the wrong type or are blank
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConfigException(WotidException):
    """Exception for configuration errors.

    Raised when:
    - Required environment variables are missing
    - A setting has an out-of-range value
    - An unknown backend is selected
    """

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        details = {}
        if missing_vars:
            details["missing_vars"] = missing_vars
        super().__init__(message, details)
        self.missing_vars = missing_vars or []


# =============================================================================
# IDENTIFIERS AND SUBJECT MAPPING
# =============================================================================


class MalformedIdentifier(WotidException):
    """The input is not a syntactically valid DID (did:<method>:<id>)."""

    def __init__(self, identifier: str, reason: str = "not a valid DID"):
        super().__init__(f"Malformed DID: {reason}", {"identifier": identifier[:200]})
        self.identifier = identifier
        self.reason = reason


class SubjectNotFound(WotidException):
    """The subject-mapping oracle has no DID for the given hint."""

    def __init__(self, hint: str):
        super().__init__("Subject not found", {"hint": hint[:200]})
        self.hint = hint


class SubjectMappingUnavailable(WotidException):
    """The subject-mapping oracle could not be reached or timed out."""


# =============================================================================
# DID RESOLUTION
# =============================================================================


class ResolutionError(WotidException):
    """Base class for DID resolution failures."""

    def __init__(self, did: str, message: str):
        super().__init__(message, {"did": did})
        self.did = did


class DIDNotFound(ResolutionError):
    """The DID is absent or deactivated on the ledger."""

    def __init__(self, did: str):
        super().__init__(did, "DID not found on ledger")


class ResolutionTransportError(ResolutionError):
    """The ledger node is unreachable, timed out, or failed server-side."""

    def __init__(self, did: str, message: str = "Ledger node unavailable"):
        super().__init__(did, message)


class ResolutionProtocolError(ResolutionError):
    """The ledger node answered but not with a valid identity document."""

    def __init__(self, did: str, message: str = "Invalid response from ledger node"):
        super().__init__(did, message)


# =============================================================================
# SIGNATURES
# =============================================================================


class SignatureError(WotidException):
    """Base class for structural JWS problems (not for invalid signatures)."""


class MalformedSignature(SignatureError):
    """The JWS cannot be parsed into header, payload and signature."""

    def __init__(self, reason: str = "JWS could not be parsed"):
        super().__init__(f"Malformed signature: {reason}")
        self.reason = reason


class UnsupportedAlgorithm(SignatureError):
    """The JWS header names an algorithm the verifier does not implement."""

    def __init__(self, algorithm: str | None):
        super().__init__(f"Unsupported signature algorithm: {algorithm}", {"alg": algorithm})
        self.algorithm = algorithm


class KeyNotFound(SignatureError):
    """No verification method in the document matches the JWS key id."""

    def __init__(self, kid: str):
        super().__init__("Verification method not found for key id", {"kid": kid})
        self.kid = kid


# =============================================================================
# CHALLENGES
# =============================================================================


class ChallengeError(WotidException):
    """Base class for challenge consumption failures."""

    def __init__(self, did: str, message: str):
        super().__init__(message, {"did": did})
        self.did = did


class NoSuchChallenge(ChallengeError):
    """No live challenge exists for the DID (never issued or already used)."""

    def __init__(self, did: str):
        super().__init__(did, "No pending challenge for this DID")


class ChallengeExpired(ChallengeError):
    """The challenge outlived its TTL before being consumed."""

    def __init__(self, did: str):
        super().__init__(did, "Challenge has expired")


class NonceMismatch(ChallengeError):
    """The supplied nonce differs from the live challenge."""

    def __init__(self, did: str):
        super().__init__(did, "Challenge mismatch")
