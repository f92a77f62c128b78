# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Client-side helpers: Ed25519 keys and challenge JWS creation.

The service never holds private keys. These helpers exist for wallets,
the ``wotid sign`` command and the test-suite, and produce exactly the
compact JWS the verifier accepts:

    header:  {"alg": "EdDSA", "kid": "<verification method id>", "typ": "JWT"}
    payload: {"iss": "<did>", "challenge": "<nonce>"}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .did import MULTICODEC_ED25519_PUB, VerificationMethod, b64url_encode, multibase_encode

JWS_ALGORITHM = "EdDSA"


@dataclass
class KeyPair:
    """Ed25519 key pair for a DID subject."""

    private_key_bytes: bytes
    public_key_bytes: bytes

    @property
    def private_key(self) -> Ed25519PrivateKey:
        return Ed25519PrivateKey.from_private_bytes(self.private_key_bytes)

    @property
    def public_key_multibase(self) -> str:
        """Public key in multibase format (with multicodec prefix)."""
        return multibase_encode(MULTICODEC_ED25519_PUB + self.public_key_bytes)

    @property
    def public_key_jwk(self) -> dict[str, str]:
        """Public key as an OKP JWK."""
        return {"kty": "OKP", "crv": "Ed25519", "x": b64url_encode(self.public_key_bytes)}

    @property
    def did_key(self) -> str:
        """The self-describing did:key for this key."""
        return f"did:key:{self.public_key_multibase}"

    @property
    def private_key_hex(self) -> str:
        """Private key as hex string (for secure storage)."""
        return self.private_key_bytes.hex()

    @classmethod
    def from_private_key_hex(cls, hex_string: str) -> KeyPair:
        """Create KeyPair from stored private key hex."""
        private_bytes = bytes.fromhex(hex_string)
        private_key = Ed25519PrivateKey.from_private_bytes(private_bytes)
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return cls(private_key_bytes=private_bytes, public_key_bytes=public_bytes)

    def verification_method(self, did: str, fragment: str = "key-1") -> VerificationMethod:
        """A JWK verification method for this key under the given DID."""
        return VerificationMethod(
            id=f"{did}#{fragment}",
            type="JsonWebKey2020",
            controller=did,
            public_key_jwk=self.public_key_jwk,
        )


def generate_keypair() -> KeyPair:
    """Generate a new Ed25519 key pair."""
    private_key = Ed25519PrivateKey.generate()
    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return KeyPair(private_key_bytes=private_bytes, public_key_bytes=public_bytes)


def create_challenge_jws(
    did: str,
    challenge: str,
    keypair: KeyPair,
    kid: str,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Sign {iss, challenge} as a compact EdDSA JWS.

    Args:
        did: The signer's DID (becomes the iss claim).
        challenge: Nonce returned by initiate-challenge.
        keypair: The signer's key pair.
        kid: Verification method id in the signer's DID document.
        extra_claims: Additional claims to include (ignored by the verifier).
    """
    claims: dict[str, Any] = dict(extra_claims or {})
    claims.update({"iss": did, "challenge": challenge})
    return jwt.encode(claims, keypair.private_key, algorithm=JWS_ALGORITHM, headers={"kid": kid})
