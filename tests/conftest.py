"""Shared fixtures and fakes for the virtual patient tests."""

from __future__ import annotations

import pytest

from app.agents.patient_workflow import PatientOrchestrator
from app.core.errors import CacheUnavailable, GenerationFailure
from app.core.identity import IdentityProvider
from app.memory.archive_store import InMemoryArchiveStore
from app.memory.session_cache import SessionCache
from app.memory.session_store import InMemorySessionStore
from app.models.schemas import Speaker, Turn


def doctor(text: str) -> Turn:
    return Turn(speaker=Speaker.DOCTOR, text=text)


def patient(text: str) -> Turn:
    return Turn(speaker=Speaker.PATIENT, text=text)


class FakeGenerator:
    """Returns canned replies and records every message list it receives."""

    def __init__(self, reply: str = "My head hurts.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[list[dict[str, str]]] = []

    async def generate(self, messages):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return self.reply


class UnavailableSessionStore:
    """Ephemeral tier whose backend is down."""

    async def get(self, identity):
        raise CacheUnavailable("session backend down")

    async def put(self, identity, session):
        raise CacheUnavailable("session backend down")

    async def delete(self, identity):
        raise CacheUnavailable("session backend down")

    async def close(self):
        return None


class UnavailableArchiveStore:
    """Durable tier whose backend is down."""

    async def append(self, record):
        raise CacheUnavailable("archive backend down")

    async def list_for(self, identity):
        raise CacheUnavailable("archive backend down")

    async def close(self):
        return None


@pytest.fixture()
def identity() -> IdentityProvider:
    return IdentityProvider(secret="test-secret", allowed_users={"doctor", "nurse"})


@pytest.fixture()
def token(identity) -> str:
    return identity.issue("doctor")


@pytest.fixture()
def cache() -> SessionCache:
    return SessionCache(InMemorySessionStore(), InMemoryArchiveStore())


@pytest.fixture()
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def orchestrator(identity, generator, cache) -> PatientOrchestrator:
    return PatientOrchestrator(identity=identity, generator=generator, cache=cache)


@pytest.fixture()
def generation_failure() -> GenerationFailure:
    return GenerationFailure("quota exceeded")
