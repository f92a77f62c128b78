# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Subject-mapping oracles: external identifier (email) -> DID.

The verification engine only needs ``resolve(hint) -> did | None``. How the
mapping is backed (a ledger contract view, a corporate directory, a static
table) is up to the implementation.

Implementations:
- StaticSubjectMapping: in-process table from settings
- DirectorySubjectMapping: HTTP directory service (aiohttp)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import aiohttp

from ..core.config import CoreSettings
from ..core.exceptions import SubjectMappingUnavailable

logger = logging.getLogger(__name__)


def normalize_hint(hint: str) -> str:
    """Canonical form of a subject hint (emails compare case-insensitively)."""
    return hint.strip().lower()


@runtime_checkable
class SubjectMappingOracle(Protocol):
    """Capability: map an external subject identifier to a DID."""

    async def resolve(self, hint: str) -> str | None:
        """Return the DID for the hint, or None if the subject is unknown.

        Raises:
            SubjectMappingUnavailable: If the backing service cannot answer.
        """
        ...

    async def reverse(self, did: str) -> str | None:
        """Return the external identifier for a DID, if known."""
        ...


class StaticSubjectMapping:
    """Subject mapping backed by a fixed table."""

    def __init__(self, directory: dict[str, str] | None = None) -> None:
        self._by_hint = {normalize_hint(hint): did for hint, did in (directory or {}).items()}
        self._by_did = {did: hint for hint, did in self._by_hint.items()}

    async def resolve(self, hint: str) -> str | None:
        return self._by_hint.get(normalize_hint(hint))

    async def reverse(self, did: str) -> str | None:
        return self._by_did.get(did)

    def __len__(self) -> int:
        return len(self._by_hint)


class DirectorySubjectMapping:
    """Subject mapping backed by an HTTP directory.

    Endpoints:
        GET {base_url}/subjects/{hint} -> 200 {"did": "..."} | 404
        GET {base_url}/dids/{did}      -> 200 {"email": "..."} | 404
    """

    def __init__(self, base_url: str, timeout_seconds: float = 5.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def resolve(self, hint: str) -> str | None:
        url = f"{self.base_url}/subjects/{quote(normalize_hint(hint), safe='')}"
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as response:
                    if response.status == 404:
                        return None
                    if response.status != 200:
                        logger.warning(f"Subject directory returned HTTP {response.status}")
                        raise SubjectMappingUnavailable(f"Subject directory returned HTTP {response.status}")
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise SubjectMappingUnavailable("Subject directory response is not JSON") from e
        except asyncio.TimeoutError as e:
            logger.warning(f"Subject directory timed out after {self.timeout_seconds}s")
            raise SubjectMappingUnavailable("Subject directory timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"Subject directory unreachable: {type(e).__name__}")
            raise SubjectMappingUnavailable("Subject directory unavailable") from e

        did = data.get("did") if isinstance(data, dict) else None
        if did is None:
            return None
        if not isinstance(did, str):
            raise SubjectMappingUnavailable("Subject directory returned a non-string DID")
        return did

    async def reverse(self, did: str) -> str | None:
        """Best-effort reverse lookup; failures only cost the user attributes."""
        url = f"{self.base_url}/dids/{quote(did, safe='')}"
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        return None
                    data = await response.json(content_type=None)
        except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            logger.debug(f"Reverse subject lookup failed for {did}: {type(e).__name__}")
            return None

        email = data.get("email") if isinstance(data, dict) else None
        return email if isinstance(email, str) else None


def build_subject_mapping(settings: CoreSettings) -> SubjectMappingOracle:
    """Select the mapping oracle: the HTTP directory if configured, else the static table."""
    if settings.subject_directory_url:
        logger.info(f"Using subject directory at {settings.subject_directory_url}")
        return DirectorySubjectMapping(
            settings.subject_directory_url,
            timeout_seconds=settings.oracle_timeout_seconds,
        )
    logger.info(f"Using static subject directory ({len(settings.subject_directory)} entries)")
    return StaticSubjectMapping(settings.subject_directory)
