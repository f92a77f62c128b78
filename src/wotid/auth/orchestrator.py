# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Verification orchestrator: the challenge-response protocol.

Flow:
    initiate(email)  -> mapping oracle -> DID -> ChallengeStore.issue
    verify(did, nonce, jws):
        RECEIVED   parse DID, pre-parse JWS header (no I/O on failure)
        RESOLVING  resolve the DID document
        RESOLVED
        VERIFYING  check signature and claims, then consume the challenge
        ACCEPTED | REJECTED

The challenge is consumed exactly once per attempt that reaches VERIFYING,
whatever the signature check says. Attempts rejected before that leave the
challenge in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..core.config import CoreSettings
from ..core.exceptions import (
    ChallengeError,
    ChallengeExpired,
    DIDNotFound,
    KeyNotFound,
    MalformedIdentifier,
    NonceMismatch,
    ResolutionError,
    ResolutionProtocolError,
    ResolutionTransportError,
    SignatureError,
    SubjectNotFound,
    UnsupportedAlgorithm,
    ValidationException,
)
from ..core.logging import log_context, truncate
from ..identity.did import DIDDocument, parse_did
from ..identity.mapping import SubjectMappingOracle, build_subject_mapping
from ..identity.resolver import Resolver, build_resolver
from .challenge_store import ChallengeStore, build_challenge_store
from .jws import EdDSAJwsVerifier, SignatureVerifier

logger = logging.getLogger(__name__)


class VerificationState(str, Enum):
    """States of a single verification attempt."""

    RECEIVED = "received"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    VERIFYING = "verifying"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class RejectionClass(str, Enum):
    """What a caller should do about a rejection."""

    INVALID_REQUEST = "invalid_request"  # fix the request
    INVALID_PROOF = "invalid_proof"  # start a new challenge
    RESOLUTION_FAILED = "resolution_failed"  # the DID cannot be used
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"  # try again later


class RejectionReason(str, Enum):
    """Why an attempt was rejected."""

    MALFORMED_IDENTIFIER = "malformed_identifier"
    MALFORMED_SIGNATURE = "malformed_signature"
    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"
    KEY_NOT_FOUND = "key_not_found"
    DID_NOT_FOUND = "did_not_found"
    RESOLUTION_PROTOCOL_ERROR = "resolution_protocol_error"
    LEDGER_UNAVAILABLE = "ledger_unavailable"
    SIGNATURE_INVALID = "signature_invalid"
    NO_SUCH_CHALLENGE = "no_such_challenge"
    CHALLENGE_EXPIRED = "challenge_expired"
    NONCE_MISMATCH = "nonce_mismatch"

    @property
    def rejection_class(self) -> RejectionClass:
        return _REJECTION_CLASSES[self]


_REJECTION_CLASSES: dict[RejectionReason, RejectionClass] = {
    RejectionReason.MALFORMED_IDENTIFIER: RejectionClass.INVALID_REQUEST,
    RejectionReason.MALFORMED_SIGNATURE: RejectionClass.INVALID_REQUEST,
    RejectionReason.UNSUPPORTED_ALGORITHM: RejectionClass.INVALID_REQUEST,
    RejectionReason.KEY_NOT_FOUND: RejectionClass.INVALID_REQUEST,
    RejectionReason.DID_NOT_FOUND: RejectionClass.RESOLUTION_FAILED,
    RejectionReason.RESOLUTION_PROTOCOL_ERROR: RejectionClass.RESOLUTION_FAILED,
    RejectionReason.LEDGER_UNAVAILABLE: RejectionClass.TEMPORARILY_UNAVAILABLE,
    RejectionReason.SIGNATURE_INVALID: RejectionClass.INVALID_PROOF,
    RejectionReason.NO_SUCH_CHALLENGE: RejectionClass.INVALID_PROOF,
    RejectionReason.CHALLENGE_EXPIRED: RejectionClass.INVALID_PROOF,
    RejectionReason.NONCE_MISMATCH: RejectionClass.INVALID_PROOF,
}


def _signature_reason(error: SignatureError) -> RejectionReason:
    if isinstance(error, UnsupportedAlgorithm):
        return RejectionReason.UNSUPPORTED_ALGORITHM
    if isinstance(error, KeyNotFound):
        return RejectionReason.KEY_NOT_FOUND
    return RejectionReason.MALFORMED_SIGNATURE


def _resolution_reason(error: ResolutionError) -> RejectionReason:
    if isinstance(error, ResolutionTransportError):
        return RejectionReason.LEDGER_UNAVAILABLE
    if isinstance(error, DIDNotFound):
        return RejectionReason.DID_NOT_FOUND
    return RejectionReason.RESOLUTION_PROTOCOL_ERROR


def _challenge_reason(error: ChallengeError) -> RejectionReason:
    if isinstance(error, ChallengeExpired):
        return RejectionReason.CHALLENGE_EXPIRED
    if isinstance(error, NonceMismatch):
        return RejectionReason.NONCE_MISMATCH
    return RejectionReason.NO_SUCH_CHALLENGE


@dataclass(frozen=True)
class UserInfo:
    """Subject attributes returned on acceptance."""

    email: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"email": self.email, "name": self.name}


@dataclass(frozen=True)
class ChallengeGrant:
    """A freshly issued challenge for a subject."""

    did: str
    challenge: str
    expires_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"did": self.did, "challenge": self.challenge, "expiresAt": self.expires_at.isoformat()}


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one verification attempt."""

    did: str
    state: VerificationState
    reason: RejectionReason | None = None
    user: UserInfo | None = None
    message: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.state == VerificationState.ACCEPTED

    @property
    def rejection_class(self) -> RejectionClass | None:
        return self.reason.rejection_class if self.reason else None

    def to_dict(self) -> dict[str, Any]:
        """Response body: {"isValid": bool, "user": {...}} with user only on acceptance."""
        data: dict[str, Any] = {"isValid": self.is_valid}
        if self.is_valid:
            data["user"] = (self.user or UserInfo()).to_dict()
        return data


class _Attempt:
    """Tracks the state of one verify() call."""

    def __init__(self, did: str) -> None:
        self.did = did
        self.state = VerificationState.RECEIVED

    def advance(self, state: VerificationState) -> None:
        logger.debug(f"Verification of {self.did}: {self.state.value} -> {state.value}")
        self.state = state

    def reject(self, reason: RejectionReason, message: str | None = None) -> VerificationResult:
        logger.info(f"Verification of {self.did} rejected in {self.state.value}: {reason.value}")
        self.state = VerificationState.REJECTED
        return VerificationResult(did=self.did, state=self.state, reason=reason, message=message)

    def accept(self, user: UserInfo) -> VerificationResult:
        self.state = VerificationState.ACCEPTED
        logger.info(f"Verification of {self.did} accepted")
        return VerificationResult(did=self.did, state=self.state, user=user)


class VerificationOrchestrator:
    """Runs challenge issuance and verification over injected collaborators.

    Args:
        resolver: DID document resolver.
        verifier: JWS signature verifier.
        store: Challenge store (owned by this orchestrator).
        subject_mapping: Oracle mapping emails to DIDs.
    """

    def __init__(
        self,
        resolver: Resolver,
        verifier: SignatureVerifier,
        store: ChallengeStore,
        subject_mapping: SubjectMappingOracle,
    ) -> None:
        self.resolver = resolver
        self.verifier = verifier
        self.store = store
        self.subject_mapping = subject_mapping

    async def initiate(self, subject_hint: str) -> ChallengeGrant:
        """Issue a challenge for the DID mapped to a subject hint (email).

        Raises:
            ValidationException: Blank hint.
            SubjectNotFound: The oracle does not know the subject.
            SubjectMappingUnavailable: The oracle cannot answer.
            ResolutionProtocolError: The oracle returned an invalid DID.
        """
        if not isinstance(subject_hint, str) or not subject_hint.strip():
            raise ValidationException("email is required", field="email")

        did = await self.subject_mapping.resolve(subject_hint)
        if did is None:
            raise SubjectNotFound(subject_hint)

        try:
            parse_did(did)
        except MalformedIdentifier as e:
            logger.error("Subject mapping returned an invalid DID")
            raise ResolutionProtocolError(did, "Subject mapping returned an invalid DID") from e

        challenge = self.store.issue(did)
        logger.info(f"Issued challenge for {did}")
        return ChallengeGrant(did=did, challenge=challenge.nonce, expires_at=challenge.expires_at)

    async def verify(self, did: str, nonce: str, signature: str) -> VerificationResult:
        """Verify a signed challenge response. Never raises for protocol failures."""
        with log_context(did=truncate(did, 96) if isinstance(did, str) else None):
            return await self._verify(did, nonce, signature)

    async def _verify(self, did: str, nonce: str, signature: str) -> VerificationResult:
        attempt = _Attempt(did)

        try:
            parse_did(did)
        except MalformedIdentifier as e:
            return attempt.reject(RejectionReason.MALFORMED_IDENTIFIER, e.message)

        try:
            self.verifier.parse(signature)
        except SignatureError as e:
            return attempt.reject(_signature_reason(e), e.message)

        attempt.advance(VerificationState.RESOLVING)
        try:
            document = await self.resolver.resolve(did)
        except MalformedIdentifier as e:
            return attempt.reject(RejectionReason.MALFORMED_IDENTIFIER, e.message)
        except ResolutionError as e:
            return attempt.reject(_resolution_reason(e), e.message)
        attempt.advance(VerificationState.RESOLVED)

        attempt.advance(VerificationState.VERIFYING)
        signature_valid = False
        signature_error: SignatureError | None = None
        challenge_error: ChallengeError | None = None
        try:
            signature_valid = self.verifier.verify(signature, did, nonce, document)
        except SignatureError as e:
            signature_error = e
        finally:
            try:
                self.store.consume(did, nonce)
            except ChallengeError as e:
                challenge_error = e

        if signature_error is not None:
            return attempt.reject(_signature_reason(signature_error), signature_error.message)
        if not signature_valid:
            return attempt.reject(RejectionReason.SIGNATURE_INVALID)
        if challenge_error is not None:
            return attempt.reject(_challenge_reason(challenge_error), challenge_error.message)

        return attempt.accept(await self._user_info(did, document))

    async def _user_info(self, did: str, document: DIDDocument) -> UserInfo:
        email = document.email
        if email is None:
            email = await self.subject_mapping.reverse(did)
        return UserInfo(email=email, name=document.name)


def build_orchestrator(settings: CoreSettings) -> VerificationOrchestrator:
    """Wire the orchestrator's collaborators from settings."""
    return VerificationOrchestrator(
        resolver=build_resolver(settings),
        verifier=EdDSAJwsVerifier(),
        store=build_challenge_store(settings),
        subject_mapping=build_subject_mapping(settings),
    )
