"""Tests for the degradation rules of the tiered SessionCache."""

import asyncio
import logging

import pytest

from app.core.errors import CacheUnavailable
from app.memory.archive_store import InMemoryArchiveStore
from app.memory.session_cache import SessionCache
from app.memory.session_store import InMemorySessionStore
from app.models.schemas import DiagnosticRecord, Session
from conftest import UnavailableArchiveStore, UnavailableSessionStore, doctor


def test_get_after_put(cache):
    session = Session(identity="doctor", history=[doctor("Any fever?")])
    asyncio.run(cache.put("doctor", session))
    assert asyncio.run(cache.get("doctor")) == session


def test_get_does_not_fall_back_to_archive():
    archive = InMemoryArchiveStore()
    cache = SessionCache(InMemorySessionStore(), archive)
    asyncio.run(cache.archive(DiagnosticRecord(identity="doctor", history=[doctor("Is it flu?")])))
    assert asyncio.run(cache.get("doctor")) is None


def test_ephemeral_read_failure_means_no_session(caplog):
    cache = SessionCache(UnavailableSessionStore(), InMemoryArchiveStore())
    caplog.set_level(logging.WARNING)
    assert asyncio.run(cache.get("doctor")) is None
    assert any("Session read failed" in r.message for r in caplog.records)


def test_ephemeral_write_failure_is_swallowed(caplog):
    cache = SessionCache(UnavailableSessionStore(), InMemoryArchiveStore())
    caplog.set_level(logging.WARNING)
    asyncio.run(cache.put("doctor", Session(identity="doctor")))
    assert any("Session write failed" in r.message for r in caplog.records)


def test_archive_failure_is_swallowed(caplog):
    cache = SessionCache(InMemorySessionStore(), UnavailableArchiveStore())
    caplog.set_level(logging.ERROR)
    record = DiagnosticRecord(identity="doctor", history=[doctor("Is it flu?")])
    asyncio.run(cache.archive(record))
    assert any("Archive write failed" in r.message for r in caplog.records)


def test_archive_listing_failure_propagates():
    cache = SessionCache(InMemorySessionStore(), UnavailableArchiveStore())
    with pytest.raises(CacheUnavailable):
        asyncio.run(cache.list_archived("doctor"))


def test_reset_clears_only_that_identity(cache):
    asyncio.run(cache.put("doctor", Session(identity="doctor")))
    asyncio.run(cache.put("nurse", Session(identity="nurse")))
    asyncio.run(cache.reset("doctor"))
    assert asyncio.run(cache.get("doctor")) is None
    assert asyncio.run(cache.get("nurse")) is not None
