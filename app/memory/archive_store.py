"""
Archive Store

Durable tier: append-only archive of conversations that ended in a
confirmed diagnosis. Records are written once and listed newest first.

Two implementations share the ArchiveStore contract:
- InMemoryArchiveStore: process-local list (development and tests)
- MongoArchiveStore: MongoDB collection via the motor async driver
"""

from __future__ import annotations

import logging
from typing import Protocol

from app.core.errors import CacheUnavailable
from app.models.schemas import DiagnosticRecord

logger = logging.getLogger(__name__)


class ArchiveStore(Protocol):
    """Contract for the durable archive tier."""

    async def append(self, record: DiagnosticRecord) -> None: ...

    async def list_for(self, identity: str) -> list[DiagnosticRecord]: ...

    async def close(self) -> None: ...


class InMemoryArchiveStore:
    """Archive kept in process memory; lost on restart."""

    def __init__(self) -> None:
        self._records: list[DiagnosticRecord] = []

    async def append(self, record: DiagnosticRecord) -> None:
        self._records.append(record)

    async def list_for(self, identity: str) -> list[DiagnosticRecord]:
        """Return an identity's records, newest first.

        Records sharing a timestamp keep reverse insertion order.
        """
        matching = [r for r in reversed(self._records) if r.identity == identity]
        return sorted(matching, key=lambda r: r.created_at, reverse=True)

    async def close(self) -> None:
        return None


class MongoArchiveStore:
    """Archive stored in a MongoDB collection, one document per record."""

    def __init__(self, collection, client=None) -> None:
        self._collection = collection
        self._client = client

    @classmethod
    def from_uri(
        cls, uri: str, database: str, collection: str = "conversations"
    ) -> "MongoArchiveStore":
        from motor.motor_asyncio import AsyncIOMotorClient

        client = AsyncIOMotorClient(uri, tz_aware=True)
        return cls(client[database][collection], client=client)

    async def append(self, record: DiagnosticRecord) -> None:
        from pymongo.errors import PyMongoError

        document = record.model_dump(by_alias=True, mode="python")
        document["history"] = [t.model_dump(by_alias=True, mode="json") for t in record.history]
        try:
            await self._collection.insert_one(document)
        except PyMongoError as exc:
            raise CacheUnavailable(f"Archive write failed: {exc}") from exc

    async def list_for(self, identity: str) -> list[DiagnosticRecord]:
        from pymongo.errors import PyMongoError

        try:
            cursor = self._collection.find({"identity": identity}, {"_id": 0})
            documents = await cursor.sort("created_at", -1).to_list(length=None)
        except PyMongoError as exc:
            raise CacheUnavailable(f"Archive read failed: {exc}") from exc
        return [DiagnosticRecord.model_validate(doc) for doc in documents]

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()


def build_archive_store(settings) -> ArchiveStore:
    """Create the durable tier selected by ``ARCHIVE_BACKEND``."""
    backend = settings.ARCHIVE_BACKEND.strip().lower()
    if backend == "mongo":
        logger.info("Archive store: mongo (database=%s)", settings.MONGO_DATABASE)
        return MongoArchiveStore.from_uri(settings.MONGO_URI, settings.MONGO_DATABASE)
    if backend == "memory":
        logger.info("Archive store: in-memory")
        return InMemoryArchiveStore()
    raise ValueError(f"Unknown ARCHIVE_BACKEND: {settings.ARCHIVE_BACKEND!r}")
