# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Compact JWS verification for challenge responses.

A challenge response is a compact EdDSA JWS whose header names the signing
key (``kid``) and whose payload carries the claims::

    {"iss": "<subject did>", "challenge": "<nonce>"}

Structural problems (wrong segment count, unreadable header) raise
SignatureError subclasses. Anything else that does not verify, including a
signature segment that no longer decodes, is a plain ``False``.
"""

from __future__ import annotations

import binascii
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import jwt
from jwt.utils import base64url_decode, base64url_encode

from ..core.exceptions import KeyNotFound, MalformedSignature, UnsupportedAlgorithm
from ..core.logging import truncate
from ..identity.did import DIDDocument

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHM = "EdDSA"


@dataclass(frozen=True)
class JWSHeader:
    """The protected header fields the verifier cares about."""

    alg: str | None
    kid: str | None
    typ: str | None = None


@runtime_checkable
class SignatureVerifier(Protocol):
    """Capability: check a signed challenge response against a DID document."""

    def parse(self, jws: str) -> JWSHeader:
        """Parse and structurally check a JWS without verifying it.

        Raises:
            MalformedSignature: If the JWS is not a usable compact JWS.
            UnsupportedAlgorithm: If the algorithm is not supported.
        """
        ...

    def verify(self, jws: str, expected_did: str, expected_nonce: str, document: DIDDocument) -> bool:
        """Verify the JWS signature and its claims."""
        ...


def _claims_match(claims: dict[str, Any], expected_did: str, expected_nonce: str) -> bool:
    iss = claims.get("iss")
    challenge = claims.get("challenge")
    if not isinstance(iss, str) or not isinstance(challenge, str):
        return False
    # Both compares always run
    iss_ok = hmac.compare_digest(iss.encode("utf-8"), expected_did.encode("utf-8"))
    challenge_ok = hmac.compare_digest(challenge.encode("utf-8"), expected_nonce.encode("utf-8"))
    return iss_ok and challenge_ok


def _is_canonical_segment(segment: str) -> bool:
    try:
        return base64url_encode(base64url_decode(segment)).decode("ascii") == segment
    except (binascii.Error, ValueError):
        return False


class EdDSAJwsVerifier:
    """Verifies EdDSA (Ed25519) compact JWS challenge responses.

    Signature checking is delegated to PyJWT; key lookup and claim checks
    are done here against the resolved DID document.
    """

    def __init__(self) -> None:
        self._jws = jwt.PyJWS(algorithms=[SUPPORTED_ALGORITHM])

    def parse(self, jws: str) -> JWSHeader:
        if not isinstance(jws, str) or not jws:
            raise MalformedSignature("empty signature")
        if jws.count(".") != 2:
            raise MalformedSignature("expected three dot-separated segments")

        try:
            header = jwt.get_unverified_header(jws)
        except jwt.InvalidTokenError as e:
            raise MalformedSignature(str(e)) from e

        alg = header.get("alg")
        if alg != SUPPORTED_ALGORITHM:
            raise UnsupportedAlgorithm(alg if isinstance(alg, str) else None)

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise MalformedSignature("header has no kid")

        typ = header.get("typ")
        return JWSHeader(alg=alg, kid=kid, typ=typ if isinstance(typ, str) else None)

    def verify(self, jws: str, expected_did: str, expected_nonce: str, document: DIDDocument) -> bool:
        """Verify a challenge response.

        Returns:
            True only if the signature verifies under the key named by ``kid``
            and the claims name ``expected_did`` and ``expected_nonce``.

        Raises:
            MalformedSignature: Not three segments, unreadable header, or missing kid.
            UnsupportedAlgorithm: Algorithm other than EdDSA, or a non-Ed25519 key.
            KeyNotFound: No verification method in the document matches kid.
        """
        header = self.parse(jws)

        method = document.find_verification_method(header.kid or "")
        if method is None:
            raise KeyNotFound(header.kid or "")
        public_key = method.ed25519_public_key()

        if not _is_canonical_segment(jws.rpartition(".")[2]):
            logger.info(f"Signature segment from {expected_did} is not canonical base64url")
            return False

        try:
            decoded = self._jws.decode_complete(jws, key=public_key, algorithms=[SUPPORTED_ALGORITHM])
        except jwt.InvalidSignatureError:
            logger.info(f"Signature check failed for {expected_did} (kid {truncate(header.kid)})")
            return False
        except jwt.DecodeError as e:
            logger.info(f"Signed segments from {expected_did} do not decode: {e}")
            return False

        try:
            claims = json.loads(decoded["payload"])
        except (UnicodeDecodeError, ValueError):
            logger.info(f"Signed payload from {expected_did} is not JSON")
            return False
        if not isinstance(claims, dict):
            return False

        if not _claims_match(claims, expected_did, expected_nonce):
            logger.info(f"Signed claims from {expected_did} do not match the challenge")
            return False

        return True
