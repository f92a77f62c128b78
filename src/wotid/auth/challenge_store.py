# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Challenge store: single-use nonces keyed by subject DID.

Rules:
- at most one live challenge per DID; issue() replaces any previous one
- consume() removes the live challenge whatever the outcome, so each
  issued nonce gets exactly one verification attempt
- a challenge older than the TTL is rejected as expired even if the nonce
  matches (expired entries are purged lazily on consume, or eagerly
  via purge_expired())
- issue/consume for one DID are mutually exclusive; different DIDs do
  not contend

Backends:
    memory (default)  per-process dict with per-DID locks
    redis             GETDEL test-and-delete; survives restarts and
                      is shared between workers. Requires redis-py:
                      ``pip install wotid[redis]``
"""

from __future__ import annotations

import hmac
import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from ..core.config import CoreSettings
from ..core.exceptions import ChallengeExpired, NonceMismatch, NoSuchChallenge

try:
    import redis
except ImportError:  # pragma: no cover
    redis = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

DEFAULT_CHALLENGE_TTL_SECONDS = 300

# Key prefix for Redis to avoid collisions
_REDIS_KEY_PREFIX = "wotid:challenge:"

# Redis keeps an entry this long past its TTL so late attempts are
# reported as expired rather than unknown.
_REDIS_EXPIRED_RETENTION_SECONDS = 300


def generate_nonce() -> str:
    """Generate a challenge nonce (random UUIDv4 string)."""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Challenge:
    """A nonce issued to one subject DID."""

    subject_did: str
    nonce: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict[str, str]:
        return {
            "subject_did": self.subject_did,
            "nonce": self.nonce,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> Challenge:
        return cls(
            subject_did=data["subject_did"],
            nonce=data["nonce"],
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


class ChallengeStore(ABC):
    """Issues and consumes challenges.

    Subclasses provide storage; the issue/consume rules live here.

    Args:
        ttl_seconds: Challenge lifetime.
        clock: Returns the current time (timezone-aware). Injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_CHALLENGE_TTL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return self._clock()

    def issue(self, subject_did: str) -> Challenge:
        """Issue a fresh challenge, replacing any live one for the DID."""
        issued_at = self.now()
        challenge = Challenge(
            subject_did=subject_did,
            nonce=generate_nonce(),
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=self.ttl_seconds),
        )
        replaced = self._put(challenge)
        if replaced:
            logger.debug(f"Replaced pending challenge for {subject_did}")
        return challenge

    def consume(self, subject_did: str, nonce: str) -> Challenge:
        """Consume the live challenge for a DID.

        The challenge is removed before it is checked, so a second caller
        racing on the same DID sees NoSuchChallenge.

        Returns:
            The consumed challenge.

        Raises:
            NoSuchChallenge: None was issued, or it was already consumed.
            ChallengeExpired: The challenge outlived its TTL.
            NonceMismatch: The nonce is not the one issued.
        """
        challenge = self._take(subject_did)
        if challenge is None:
            raise NoSuchChallenge(subject_did)
        if challenge.is_expired(self.now()):
            raise ChallengeExpired(subject_did)
        if not hmac.compare_digest(challenge.nonce.encode("utf-8"), nonce.encode("utf-8")):
            raise NonceMismatch(subject_did)
        return challenge

    @abstractmethod
    def _put(self, challenge: Challenge) -> bool:
        """Store a challenge; return True if it replaced a live one."""
        ...

    @abstractmethod
    def _take(self, subject_did: str) -> Challenge | None:
        """Atomically remove and return the challenge for a DID."""
        ...

    @abstractmethod
    def purge_expired(self) -> int:
        """Remove expired challenges.

        Returns:
            Number of challenges removed.
        """
        ...


class KeyedLock:
    """One lock per key, created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        # key -> [lock, holders]
        self._locks: dict[str, list] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
        lock = entry[0]
        try:
            with lock:
                yield
        finally:
            with self._registry_lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


class MemoryChallengeStore(ChallengeStore):
    """In-memory challenge store.

    Suitable for single-process deployments.
    Challenges are lost on restart.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_CHALLENGE_TTL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self._challenges: dict[str, Challenge] = {}
        self._locks = KeyedLock()

    def _put(self, challenge: Challenge) -> bool:
        with self._locks.hold(challenge.subject_did):
            previous = self._challenges.get(challenge.subject_did)
            self._challenges[challenge.subject_did] = challenge
        return previous is not None and not previous.is_expired(challenge.issued_at)

    def _take(self, subject_did: str) -> Challenge | None:
        with self._locks.hold(subject_did):
            return self._challenges.pop(subject_did, None)

    def peek(self, subject_did: str) -> Challenge | None:
        """Inspection helper for tests and debugging. Never consumes."""
        with self._locks.hold(subject_did):
            return self._challenges.get(subject_did)

    def purge_expired(self) -> int:
        now = self.now()
        candidates = [did for did, c in list(self._challenges.items()) if c.is_expired(now)]
        removed = 0
        for did in candidates:
            with self._locks.hold(did):
                current = self._challenges.get(did)
                # Re-check under the lock; a fresh issue may have replaced it
                if current is not None and current.is_expired(now):
                    del self._challenges[did]
                    removed += 1
        if removed:
            logger.debug(f"Challenge cleanup: removed {removed} expired challenges")
        return removed


class RedisChallengeStore(ChallengeStore):
    """Redis-backed challenge store.

    consume() uses GETDEL, so the test-and-delete is atomic on the server
    and exactly one of several workers racing on a DID gets the entry.
    Requires Redis >= 6.2.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        ttl_seconds: int = DEFAULT_CHALLENGE_TTL_SECONDS,
        clock: Callable[[], datetime] | None = None,
        client=None,
    ) -> None:
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        if client is not None:
            self._client = client
            return

        if redis is None:
            raise ImportError("redis package is required for RedisChallengeStore. Install with: pip install wotid[redis]")

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        try:
            self._client.ping()
        except redis.ConnectionError:
            logger.warning("Redis connection failed at init, will retry on use")

    def _key(self, subject_did: str) -> str:
        return f"{_REDIS_KEY_PREFIX}{subject_did}"

    def _put(self, challenge: Challenge) -> bool:
        previous = self._client.set(
            self._key(challenge.subject_did),
            json.dumps(challenge.to_dict()),
            ex=self.ttl_seconds + _REDIS_EXPIRED_RETENTION_SECONDS,
            get=True,
        )
        if previous is None:
            return False
        return not Challenge.from_dict(json.loads(previous)).is_expired(challenge.issued_at)

    def _take(self, subject_did: str) -> Challenge | None:
        raw = self._client.getdel(self._key(subject_did))
        if raw is None:
            return None
        return Challenge.from_dict(json.loads(raw))

    def peek(self, subject_did: str) -> Challenge | None:
        """Inspection helper for tests and debugging. Never consumes."""
        raw = self._client.get(self._key(subject_did))
        if raw is None:
            return None
        return Challenge.from_dict(json.loads(raw))

    def purge_expired(self) -> int:
        # Redis expiry drops entries after the retention window; this
        # removes them as soon as the challenge itself has expired.
        now = self.now()
        count = 0
        cursor = 0
        while True:
            cursor, keys = self._client.scan(cursor, match=f"{_REDIS_KEY_PREFIX}*", count=100)
            for key in keys:
                raw = self._client.get(key)
                if raw is not None and Challenge.from_dict(json.loads(raw)).is_expired(now):
                    self._client.delete(key)
                    count += 1
            if cursor == 0:
                break
        return count


def build_challenge_store(settings: CoreSettings) -> ChallengeStore:
    """Create the challenge store selected by settings.challenge_store."""
    if settings.challenge_store == "redis":
        logger.info("Using Redis challenge store")
        return RedisChallengeStore(
            redis_url=settings.redis_url,
            ttl_seconds=settings.challenge_ttl_seconds,
        )
    logger.info("Using in-memory challenge store")
    return MemoryChallengeStore(ttl_seconds=settings.challenge_ttl_seconds)
