# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Challenge-response authentication: challenge store, JWS verifier, orchestrator."""

from .challenge_store import (
    Challenge,
    ChallengeStore,
    MemoryChallengeStore,
    RedisChallengeStore,
    build_challenge_store,
)
from .jws import EdDSAJwsVerifier, JWSHeader, SignatureVerifier
from .orchestrator import (
    ChallengeGrant,
    RejectionClass,
    RejectionReason,
    UserInfo,
    VerificationOrchestrator,
    VerificationResult,
    VerificationState,
    build_orchestrator,
)

__all__ = [
    "Challenge",
    "ChallengeGrant",
    "ChallengeStore",
    "EdDSAJwsVerifier",
    "JWSHeader",
    "MemoryChallengeStore",
    "RedisChallengeStore",
    "RejectionClass",
    "RejectionReason",
    "SignatureVerifier",
    "UserInfo",
    "VerificationOrchestrator",
    "VerificationResult",
    "VerificationState",
    "build_challenge_store",
    "build_orchestrator",
]
