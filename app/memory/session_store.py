"""
Session Store

Ephemeral tier for live dialogue sessions, keyed by identity. Entries
expire a fixed time after their last write.

Two implementations share the SessionStore contract:
- InMemorySessionStore: bounded in-process map with TTL eviction
- RedisSessionStore: networked store using SET ... EX

The backend is picked once at startup by build_session_store().
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Optional, Protocol

from pydantic import ValidationError

from app.core.errors import CacheUnavailable
from app.models.schemas import Session

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Contract for the ephemeral session tier."""

    async def get(self, identity: str) -> Optional[Session]: ...

    async def put(self, identity: str, session: Session) -> None: ...

    async def delete(self, identity: str) -> None: ...

    async def close(self) -> None: ...


class InMemorySessionStore:
    """In-process session map with TTL expiry and a size bound.

    When full, the entry written least recently is evicted. Expired entries
    are dropped when they are next read.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Session]] = OrderedDict()

    async def get(self, identity: str) -> Optional[Session]:
        """Return the live session for an identity, or None if absent/expired."""
        entry = self._entries.get(identity)
        if entry is None:
            return None
        expires_at, session = entry
        if self._clock() >= expires_at:
            del self._entries[identity]
            return None
        return session

    async def put(self, identity: str, session: Session) -> None:
        """Overwrite the entry for an identity and restart its TTL."""
        self._entries.pop(identity, None)
        self._entries[identity] = (self._clock() + self.ttl_seconds, session)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted session for %s (store full)", evicted)

    async def delete(self, identity: str) -> None:
        self._entries.pop(identity, None)

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisSessionStore:
    """Session store backed by Redis; sessions are stored as JSON strings."""

    def __init__(
        self,
        client,
        ttl_seconds: int = 3600,
        key_prefix: str = "patient-sim:session:",
    ) -> None:
        self._client = client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisSessionStore":
        import redis.asyncio as redis

        return cls(redis.Redis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, identity: str) -> str:
        return f"{self.key_prefix}{identity}"

    async def get(self, identity: str) -> Optional[Session]:
        from redis.exceptions import RedisError

        try:
            raw = await self._client.get(self._key(identity))
        except RedisError as exc:
            raise CacheUnavailable(f"Redis read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable session entry for %s", identity)
            return None

    async def put(self, identity: str, session: Session) -> None:
        from redis.exceptions import RedisError

        payload = session.model_dump_json(by_alias=True)
        try:
            await self._client.set(self._key(identity), payload, ex=self.ttl_seconds)
        except RedisError as exc:
            raise CacheUnavailable(f"Redis write failed: {exc}") from exc

    async def delete(self, identity: str) -> None:
        from redis.exceptions import RedisError

        try:
            await self._client.delete(self._key(identity))
        except RedisError as exc:
            raise CacheUnavailable(f"Redis delete failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


def build_session_store(settings) -> SessionStore:
    """Create the ephemeral tier selected by ``SESSION_BACKEND``."""
    backend = settings.SESSION_BACKEND.strip().lower()
    if backend == "redis":
        logger.info("Session store: redis (%s)", settings.REDIS_URL)
        return RedisSessionStore.from_url(
            settings.REDIS_URL,
            ttl_seconds=settings.SESSION_TTL_SECONDS,
            key_prefix=settings.REDIS_KEY_PREFIX,
        )
    if backend == "memory":
        logger.info("Session store: in-memory")
        return InMemorySessionStore(
            ttl_seconds=settings.SESSION_TTL_SECONDS,
            max_entries=settings.SESSION_CACHE_MAX_ENTRIES,
        )
    raise ValueError(f"Unknown SESSION_BACKEND: {settings.SESSION_BACKEND!r}")
