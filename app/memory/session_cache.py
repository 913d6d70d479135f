"""
Session Cache

Tiered facade over the ephemeral session store and the durable archive.
Applies the degradation rules for unreachable backends:

- ephemeral read failure  -> reported as "no session"
- ephemeral write failure -> logged and swallowed
- archive write failure   -> logged and swallowed
- archive listing / reset failures propagate as CacheUnavailable
"""

from __future__ import annotations

import logging
from typing import Optional

from app.core.errors import CacheUnavailable
from app.memory.archive_store import ArchiveStore
from app.memory.session_store import SessionStore
from app.models.schemas import DiagnosticRecord, Session

logger = logging.getLogger(__name__)


class SessionCache:
    """Live sessions in a fast tier, confirmed diagnoses in a durable tier."""

    def __init__(self, sessions: SessionStore, archive: ArchiveStore) -> None:
        self.sessions = sessions
        self.archive_store = archive

    async def get(self, identity: str) -> Optional[Session]:
        """Look up the live session. Never consults the archive."""
        try:
            return await self.sessions.get(identity)
        except CacheUnavailable as exc:
            logger.warning("Session read failed for %s, starting fresh: %s", identity, exc)
            return None

    async def put(self, identity: str, session: Session) -> None:
        """Overwrite the live session; best effort."""
        try:
            await self.sessions.put(identity, session)
        except CacheUnavailable as exc:
            logger.warning("Session write failed for %s: %s", identity, exc)

    async def archive(self, record: DiagnosticRecord) -> None:
        """Append a confirmed diagnosis to the archive; best effort.

        Not idempotent: archiving the same conversation twice stores two
        records.
        """
        try:
            await self.archive_store.append(record)
            logger.info("Archived confirmed diagnosis for %s", record.identity)
        except CacheUnavailable as exc:
            logger.error("Archive write failed for %s: %s", record.identity, exc)

    async def list_archived(self, identity: str) -> list[DiagnosticRecord]:
        """Return archived records for an identity, newest first."""
        return await self.archive_store.list_for(identity)

    async def reset(self, identity: str) -> None:
        """Drop the live session for an identity."""
        await self.sessions.delete(identity)

    async def close(self) -> None:
        await self.sessions.close()
        await self.archive_store.close()
