# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""DID resolution against a ledger node.

The ledger is a read-only oracle: one JSON-RPC 2.0 call per resolution,
no caching, no retries. Retry policy belongs to whoever calls the
verification engine.

Resolvers:
- LedgerResolver: JSON-RPC over HTTP (aiohttp), used for ledger DIDs
- KeyDIDResolver: did:key documents derived locally from the key
- MethodRouterResolver: dispatches on the DID method
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Protocol, runtime_checkable

import aiohttp

from ..core.config import CoreSettings
from ..core.exceptions import (
    DIDNotFound,
    MalformedIdentifier,
    ResolutionProtocolError,
    ResolutionTransportError,
)
from .did import (
    DID,
    MULTICODEC_ED25519_PUB,
    DIDDocument,
    VerificationMethod,
    multibase_decode,
    parse_did,
)

logger = logging.getLogger(__name__)

DEFAULT_RESOLVE_METHOD = "identity_resolveDid"
DEFAULT_NOT_FOUND_CODE = -32004
DEFAULT_TIMEOUT_SECONDS = 5.0


@runtime_checkable
class Resolver(Protocol):
    """Capability: turn a DID string into its identity document."""

    async def resolve(self, did: str) -> DIDDocument:
        """Resolve a DID.

        Raises:
            MalformedIdentifier: Before any I/O, if the DID is not valid.
            DIDNotFound: DID absent or deactivated.
            ResolutionTransportError: Node unreachable or timed out.
            ResolutionProtocolError: Node answered with something unusable.
        """
        ...


class LedgerResolver:
    """Resolves DIDs through a ledger node's JSON-RPC endpoint.

    Request:
        {"jsonrpc": "2.0", "id": "<uuid>", "method": <resolve_method>, "params": [<did>, ...]}

    Accepted results:
        - a bare DID document
        - a resolution envelope {"didDocument": {...}, "didDocumentMetadata": {...}}
        - null (DID unknown)

    Args:
        endpoint: URL of the ledger node's JSON-RPC endpoint.
        resolve_method: JSON-RPC method name.
        timeout_seconds: Total timeout for the call (connect + read).
        not_found_code: JSON-RPC error code that means "no such DID".
        identity_package_id: Passed as a second param when the ledger needs it.
    """

    def __init__(
        self,
        endpoint: str,
        resolve_method: str = DEFAULT_RESOLVE_METHOD,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        not_found_code: int = DEFAULT_NOT_FOUND_CODE,
        identity_package_id: str | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.resolve_method = resolve_method
        self.timeout_seconds = timeout_seconds
        self.not_found_code = not_found_code
        self.identity_package_id = identity_package_id

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> LedgerResolver:
        return cls(
            endpoint=settings.ledger_endpoint,
            resolve_method=settings.ledger_resolve_method,
            timeout_seconds=settings.ledger_timeout_seconds,
            not_found_code=settings.ledger_not_found_code,
            identity_package_id=settings.identity_package_id,
        )

    def _build_request(self, did: str) -> dict[str, Any]:
        params: list[Any] = [did]
        if self.identity_package_id:
            params.append({"identityPackageId": self.identity_package_id})
        return {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": self.resolve_method,
            "params": params,
        }

    async def resolve(self, did: str) -> DIDDocument:
        parse_did(did)

        payload = self._build_request(did)
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, json=payload) as response:
                    if response.status >= 500:
                        logger.warning(f"Ledger node returned HTTP {response.status} resolving {did}")
                        raise ResolutionTransportError(did, f"Ledger node returned HTTP {response.status}")
                    if response.status != 200:
                        logger.warning(f"Ledger node returned HTTP {response.status} resolving {did}")
                        raise ResolutionProtocolError(did, f"Ledger node returned HTTP {response.status}")
                    try:
                        body = await response.json(content_type=None)
                    except ValueError as e:
                        raise ResolutionProtocolError(did, "Ledger response is not JSON") from e
        except asyncio.TimeoutError as e:
            logger.warning(f"Ledger resolution timed out after {self.timeout_seconds}s for {did}")
            raise ResolutionTransportError(did, "Ledger node timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"Ledger node unreachable resolving {did}: {type(e).__name__}")
            raise ResolutionTransportError(did) from e

        document = self._parse_response(did, body)
        logger.debug(f"Resolved {did} with {len(document.verification_methods)} verification method(s)")
        return document

    def _parse_response(self, did: str, body: Any) -> DIDDocument:
        if not isinstance(body, dict):
            raise ResolutionProtocolError(did, "Ledger response is not a JSON-RPC object")

        error = body.get("error")
        if error is not None:
            code = error.get("code") if isinstance(error, dict) else None
            if code == self.not_found_code:
                raise DIDNotFound(did)
            logger.warning(f"Ledger node returned JSON-RPC error {code} resolving {did}")
            raise ResolutionProtocolError(did, "Ledger node returned an error")

        if "result" not in body:
            raise ResolutionProtocolError(did, "Ledger response has no result")

        result = body["result"]
        if result is None:
            raise DIDNotFound(did)

        document_data = result
        if isinstance(result, dict) and "didDocument" in result:
            metadata = result.get("didDocumentMetadata") or {}
            if isinstance(metadata, dict) and metadata.get("deactivated") is True:
                logger.info(f"DID {did} is deactivated")
                raise DIDNotFound(did)
            document_data = result["didDocument"]
            if document_data is None:
                raise DIDNotFound(did)

        try:
            document = DIDDocument.from_dict(document_data)
        except ValueError as e:
            logger.warning(f"Ledger returned an invalid DID document for {did}: {e}")
            raise ResolutionProtocolError(did, "Ledger returned an invalid DID document") from e

        if document.id != did:
            raise ResolutionProtocolError(did, "Ledger returned a document for a different DID")

        return document


class KeyDIDResolver:
    """Resolves did:key DIDs without network access.

    The key is embedded in the DID, so the document holds exactly one
    verification method whose fragment is the multibase key itself.
    """

    async def resolve(self, did: str) -> DIDDocument:
        parsed = parse_did(did)
        if parsed.method != "key":
            raise MalformedIdentifier(did, "not a did:key identifier")
        return self._document_for(parsed)

    def _document_for(self, did: DID) -> DIDDocument:
        public_key_multibase = did.identifier
        try:
            decoded = multibase_decode(public_key_multibase)
        except ValueError as e:
            raise MalformedIdentifier(did.full, "did:key is not base58btc multibase") from e
        if decoded[:2] != MULTICODEC_ED25519_PUB or len(decoded) != 34:
            raise MalformedIdentifier(did.full, "did:key does not encode an Ed25519 key")

        vm_id = f"{did.full}#{public_key_multibase}"
        vm = VerificationMethod(
            id=vm_id,
            type="Ed25519VerificationKey2020",
            controller=did.full,
            public_key_multibase=public_key_multibase,
        )
        return DIDDocument(
            id=did.full,
            verification_methods=[vm],
            authentication=[vm_id],
            assertion_method=[vm_id],
        )


class MethodRouterResolver:
    """Dispatches resolution by DID method, falling back to a default resolver."""

    def __init__(self, default: Resolver, routes: dict[str, Resolver] | None = None) -> None:
        self.default = default
        self.routes = dict(routes or {})

    async def resolve(self, did: str) -> DIDDocument:
        parsed = parse_did(did)
        resolver = self.routes.get(parsed.method, self.default)
        return await resolver.resolve(did)


def build_resolver(settings: CoreSettings) -> Resolver:
    """Build the resolver stack: did:key locally, everything else via the ledger."""
    return MethodRouterResolver(
        default=LedgerResolver.from_settings(settings),
        routes={"key": KeyDIDResolver()},
    )
