# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""DIDs and DID documents.

DID syntax (W3C DID Core):
- did:<method>:<method-specific-id>
- method: lowercase letters and digits
- method-specific-id: colon-separated segments of [A-Za-z0-9._-] or %XX

Examples:
- did:iota:tst:0x3f6a...c2
- did:key:z6MkhaXgBZDvotDkL5257faiztiGiC2QtKLGpbnnEGta2doK
- did:web:identity.example.com
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass, field
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from ..core.exceptions import MalformedIdentifier, UnsupportedAlgorithm

# =============================================================================
# CONSTANTS
# =============================================================================

DID_PATTERN = re.compile(
    r"^did:(?P<method>[a-z0-9]+):"
    r"(?P<id>(?:(?:[A-Za-z0-9._-]|%[0-9A-Fa-f]{2})*:)*(?:[A-Za-z0-9._-]|%[0-9A-Fa-f]{2})+)$"
)

# Upper bound on accepted DID length; ledger DIDs are far shorter.
MAX_DID_LENGTH = 2048

# Multibase prefix for base58btc encoding
MULTIBASE_BASE58BTC = "z"

# Multicodec prefix for Ed25519 public key (0xed01)
MULTICODEC_ED25519_PUB = bytes([0xED, 0x01])

ED25519_KEY_LENGTH = 32


# =============================================================================
# BASE58 ENCODING (simplified, no external dependency)
# =============================================================================

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_encode(data: bytes) -> str:
    """Encode bytes to base58 string."""
    num = int.from_bytes(data, "big")
    result = ""
    while num > 0:
        num, remainder = divmod(num, 58)
        result = BASE58_ALPHABET[remainder] + result

    # Leading zero bytes map to leading '1's
    for byte in data:
        if byte == 0:
            result = BASE58_ALPHABET[0] + result
        else:
            break

    return result or BASE58_ALPHABET[0]


def base58_decode(string: str) -> bytes:
    """Decode base58 string to bytes.

    Raises:
        ValueError: If the string contains characters outside the alphabet.
    """
    num = 0
    for char in string:
        index = BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"Invalid base58 character: {char!r}")
        num = num * 58 + index

    result = []
    while num > 0:
        num, remainder = divmod(num, 256)
        result.insert(0, remainder)

    for char in string:
        if char == BASE58_ALPHABET[0]:
            result.insert(0, 0)
        else:
            break

    return bytes(result)


def multibase_encode(data: bytes) -> str:
    """Encode bytes to multibase (base58btc)."""
    return MULTIBASE_BASE58BTC + base58_encode(data)


def multibase_decode(string: str) -> bytes:
    """Decode multibase string to bytes."""
    if not string or not string.startswith(MULTIBASE_BASE58BTC):
        raise ValueError(f"Unsupported multibase encoding: {string[:1]!r}")
    return base58_decode(string[1:])


def b64url_decode(value: str) -> bytes:
    """Decode unpadded base64url as used by JOSE."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


# =============================================================================
# DID
# =============================================================================


@dataclass(frozen=True)
class DID:
    """Parsed Decentralized Identifier."""

    method: str
    identifier: str

    @property
    def full(self) -> str:
        """Get full DID string."""
        return f"did:{self.method}:{self.identifier}"

    def __str__(self) -> str:
        return self.full


def parse_did(did_string: str) -> DID:
    """Parse a DID string into a DID object.

    Raises:
        MalformedIdentifier: If the string is not a syntactically valid DID.
    """
    if not isinstance(did_string, str) or not did_string:
        raise MalformedIdentifier(str(did_string or ""), "DID is empty")
    if len(did_string) > MAX_DID_LENGTH:
        raise MalformedIdentifier(did_string, "DID is too long")
    if not did_string.startswith("did:"):
        raise MalformedIdentifier(did_string, "must start with 'did:'")

    match = DID_PATTERN.match(did_string)
    if match is None:
        raise MalformedIdentifier(did_string, "expected did:<method>:<method-specific-id>")

    return DID(method=match.group("method"), identifier=match.group("id"))


def is_valid_did(did_string: str) -> bool:
    """Return True if the string parses as a DID."""
    try:
        parse_did(did_string)
    except MalformedIdentifier:
        return False
    return True


# =============================================================================
# DID DOCUMENT
# =============================================================================


@dataclass
class VerificationMethod:
    """Verification method in a DID document."""

    id: str
    type: str = "JsonWebKey2020"
    controller: str = ""
    public_key_jwk: dict[str, Any] | None = None
    public_key_multibase: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "controller": self.controller,
        }
        if self.public_key_jwk is not None:
            data["publicKeyJwk"] = self.public_key_jwk
        if self.public_key_multibase is not None:
            data["publicKeyMultibase"] = self.public_key_multibase
        return data

    @property
    def fragment(self) -> str:
        """The part after '#', or the whole id when there is none."""
        return self.id.split("#", 1)[1] if "#" in self.id else self.id

    def ed25519_public_key(self) -> Ed25519PublicKey:
        """Load the method's key material as an Ed25519 public key.

        Raises:
            UnsupportedAlgorithm: If the key is not an Ed25519 key.
        """
        raw: bytes | None = None

        if self.public_key_jwk is not None:
            jwk = self.public_key_jwk
            if jwk.get("kty") != "OKP" or jwk.get("crv") != "Ed25519":
                raise UnsupportedAlgorithm(f"{jwk.get('kty')}/{jwk.get('crv')}")
            try:
                raw = b64url_decode(str(jwk.get("x", "")))
            except (binascii.Error, ValueError) as e:
                raise UnsupportedAlgorithm(f"unreadable JWK key: {e}") from e

        elif self.public_key_multibase is not None:
            try:
                decoded = multibase_decode(self.public_key_multibase)
            except ValueError as e:
                raise UnsupportedAlgorithm(f"unreadable multibase key: {e}") from e
            if decoded[:2] == MULTICODEC_ED25519_PUB:
                decoded = decoded[2:]
            raw = decoded

        if raw is None or len(raw) != ED25519_KEY_LENGTH:
            raise UnsupportedAlgorithm(self.type)

        return Ed25519PublicKey.from_public_bytes(raw)


@dataclass
class ServiceEndpoint:
    """Service endpoint in a DID document."""

    id: str
    type: str
    service_endpoint: Any

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "type": self.type,
            "serviceEndpoint": self.service_endpoint,
        }


@dataclass
class DIDDocument:
    """Identity document resolved for a DID."""

    id: str
    controller: str | list[str] | None = None

    verification_methods: list[VerificationMethod] = field(default_factory=list)
    authentication: list[str] = field(default_factory=list)
    assertion_method: list[str] = field(default_factory=list)

    services: list[ServiceEndpoint] = field(default_factory=list)
    also_known_as: list[str] = field(default_factory=list)

    # Free-form subject attributes (name, email, ...)
    profile: dict[str, Any] = field(default_factory=dict)

    def absolute_id(self, reference: str) -> str:
        """Resolve a key reference ('#key-1', 'key-1' or a full DID URL) against this document."""
        if reference.startswith("did:"):
            return reference
        if reference.startswith("#"):
            return f"{self.id}{reference}"
        return f"{self.id}#{reference}"

    def find_verification_method(self, kid: str) -> VerificationMethod | None:
        """Find a verification method by key id.

        The key id may be an absolute DID URL or a fragment, and so may the
        method ids inside the document.
        """
        if not kid:
            return None
        wanted = self.absolute_id(kid)
        for vm in self.verification_methods:
            if self.absolute_id(vm.id) == wanted:
                return vm
        return None

    @property
    def email(self) -> str | None:
        """Subject email from the profile or an alsoKnownAs mailto: entry."""
        email = self.profile.get("email")
        if isinstance(email, str) and email:
            return email
        for alias in self.also_known_as:
            if alias.startswith("mailto:"):
                return alias[len("mailto:"):]
        return None

    @property
    def name(self) -> str | None:
        """Subject display name from the profile."""
        name = self.profile.get("name")
        return name if isinstance(name, str) and name else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (DID-core JSON)."""
        doc: dict[str, Any] = {
            "@context": ["https://www.w3.org/ns/did/v1"],
            "id": self.id,
        }

        if self.controller:
            doc["controller"] = self.controller
        if self.verification_methods:
            doc["verificationMethod"] = [vm.to_dict() for vm in self.verification_methods]
        if self.authentication:
            doc["authentication"] = self.authentication
        if self.assertion_method:
            doc["assertionMethod"] = self.assertion_method
        if self.services:
            doc["service"] = [s.to_dict() for s in self.services]
        if self.also_known_as:
            doc["alsoKnownAs"] = self.also_known_as
        if self.profile:
            doc["profile"] = self.profile

        return doc

    def to_json(self, indent: int | None = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DIDDocument:
        """Create from a DID-core JSON object.

        Raises:
            ValueError: If the object is not a usable DID document.
        """
        if not isinstance(data, dict):
            raise ValueError("DID document must be a JSON object")

        doc_id = data.get("id")
        if not isinstance(doc_id, str):
            raise ValueError("DID document has no id")
        try:
            parse_did(doc_id)
        except MalformedIdentifier as e:
            raise ValueError(f"DID document id is not a DID: {e.reason}") from e

        verification_methods = [
            _parse_verification_method(vm, doc_id) for vm in _as_list(data.get("verificationMethod"))
        ]

        # Relationships may embed full methods instead of referencing them
        relationships: dict[str, list[str]] = {}
        for key in ("authentication", "assertionMethod"):
            refs: list[str] = []
            for entry in _as_list(data.get(key)):
                if isinstance(entry, dict):
                    vm = _parse_verification_method(entry, doc_id)
                    verification_methods.append(vm)
                    refs.append(vm.id)
                elif isinstance(entry, str):
                    refs.append(entry)
                else:
                    raise ValueError(f"Invalid {key} entry")
            relationships[key] = refs

        services = []
        for s in _as_list(data.get("service")):
            if not isinstance(s, dict) or "id" not in s or "type" not in s:
                raise ValueError("Invalid service entry")
            services.append(
                ServiceEndpoint(
                    id=s["id"],
                    type=s["type"],
                    service_endpoint=s.get("serviceEndpoint"),
                )
            )

        profile = data.get("profile") or {}
        if not isinstance(profile, dict):
            profile = {}

        return cls(
            id=doc_id,
            controller=data.get("controller"),
            verification_methods=verification_methods,
            authentication=relationships["authentication"],
            assertion_method=relationships["assertionMethod"],
            services=services,
            also_known_as=[a for a in _as_list(data.get("alsoKnownAs")) if isinstance(a, str)],
            profile=profile,
        )


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _parse_verification_method(data: Any, doc_id: str) -> VerificationMethod:
    if not isinstance(data, dict):
        raise ValueError("Verification method must be a JSON object")
    vm_id = data.get("id")
    if not isinstance(vm_id, str) or not vm_id:
        raise ValueError("Verification method has no id")

    jwk = data.get("publicKeyJwk")
    if jwk is not None and not isinstance(jwk, dict):
        raise ValueError(f"Verification method {vm_id} has a non-object publicKeyJwk")
    multibase = data.get("publicKeyMultibase")
    if multibase is not None and not isinstance(multibase, str):
        raise ValueError(f"Verification method {vm_id} has a non-string publicKeyMultibase")

    return VerificationMethod(
        id=vm_id,
        type=data.get("type", "JsonWebKey2020"),
        controller=data.get("controller", doc_id),
        public_key_jwk=jwk,
        public_key_multibase=multibase,
    )
