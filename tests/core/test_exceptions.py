"""Tests for wotid.core.exceptions module."""

from __future__ import annotations

import pytest

from wotid.core.exceptions import (
    ChallengeError,
    ChallengeExpired,
    ConfigException,
    DIDNotFound,
    KeyNotFound,
    MalformedIdentifier,
    MalformedSignature,
    NonceMismatch,
    NoSuchChallenge,
    ResolutionError,
    ResolutionProtocolError,
    ResolutionTransportError,
    SignatureError,
    SubjectMappingUnavailable,
    SubjectNotFound,
    UnsupportedAlgorithm,
    ValidationException,
    WotidException,
)

# ============================================================================
# WotidException Tests
# ============================================================================


class TestWotidException:
    """Tests for base WotidException."""

    def test_create_with_message(self):
        exc = WotidException("Something went wrong")
        assert str(exc) == "Something went wrong"
        assert exc.message == "Something went wrong"
        assert exc.details == {}

    def test_to_dict_uses_class_name(self):
        exc = DIDNotFound("did:iota:tst:0xabc")
        d = exc.to_dict()
        assert d["error"] == "DIDNotFound"
        assert d["details"] == {"did": "did:iota:tst:0xabc"}


# ============================================================================
# Hierarchy Tests
# ============================================================================


class TestHierarchy:
    """Every failure kind must be catchable by its family base class."""

    @pytest.mark.parametrize(
        "exc",
        [
            DIDNotFound("did:x:y"),
            ResolutionTransportError("did:x:y"),
            ResolutionProtocolError("did:x:y"),
        ],
    )
    def test_resolution_family(self, exc):
        assert isinstance(exc, ResolutionError)
        assert isinstance(exc, WotidException)
        assert exc.did == "did:x:y"

    @pytest.mark.parametrize(
        "exc",
        [MalformedSignature(), UnsupportedAlgorithm("HS256"), KeyNotFound("did:x:y#k")],
    )
    def test_signature_family(self, exc):
        assert isinstance(exc, SignatureError)

    @pytest.mark.parametrize(
        "exc",
        [NoSuchChallenge("did:x:y"), ChallengeExpired("did:x:y"), NonceMismatch("did:x:y")],
    )
    def test_challenge_family(self, exc):
        assert isinstance(exc, ChallengeError)
        assert exc.details == {"did": "did:x:y"}

    def test_subject_errors_are_wotid_exceptions(self):
        assert isinstance(SubjectNotFound("a@b.c"), WotidException)
        assert isinstance(SubjectMappingUnavailable("down"), WotidException)


# ============================================================================
# Detail Tests
# ============================================================================


class TestDetails:
    """Tests for exception-specific attributes."""

    def test_validation_exception_field(self):
        exc = ValidationException("email is required", field="email")
        assert exc.field == "email"
        assert exc.details == {"field": "email"}

    def test_validation_exception_value_stringified(self):
        exc = ValidationException("bad", field="ttl", value=42)
        assert exc.details["value"] == "42"

    def test_config_exception_missing_vars(self):
        exc = ConfigException("Invalid configuration", ["WOTID_CHALLENGE_TTL_SECONDS"])
        assert exc.missing_vars == ["WOTID_CHALLENGE_TTL_SECONDS"]
        assert exc.details["missing_vars"] == ["WOTID_CHALLENGE_TTL_SECONDS"]

    def test_malformed_identifier_keeps_reason(self):
        exc = MalformedIdentifier("not-a-did", "must start with 'did:'")
        assert exc.reason == "must start with 'did:'"
        assert "Malformed DID" in exc.message

    def test_malformed_identifier_truncates_detail(self):
        exc = MalformedIdentifier("did:" + "a" * 5000)
        assert len(exc.details["identifier"]) == 200

    def test_unsupported_algorithm_records_alg(self):
        exc = UnsupportedAlgorithm("RS256")
        assert exc.algorithm == "RS256"
        assert exc.details == {"alg": "RS256"}

    def test_key_not_found_records_kid(self):
        exc = KeyNotFound("did:x:y#missing")
        assert exc.kid == "did:x:y#missing"

    def test_transport_error_default_message(self):
        assert ResolutionTransportError("did:x:y").message == "Ledger node unavailable"
