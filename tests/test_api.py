"""HTTP-level tests for the auth and patient routers."""

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.memory.archive_store import InMemoryArchiveStore
from app.memory.session_cache import SessionCache
from app.memory.session_store import InMemorySessionStore
from app.agents.patient_workflow import APOLOGY_REPLY, PatientOrchestrator
from conftest import FakeGenerator, UnavailableArchiveStore, UnavailableSessionStore


@pytest.fixture()
def client(orchestrator, identity):
    # Import after fixtures are built; startup is not run, state is attached directly.
    from app.main import app

    app.state.orchestrator = orchestrator
    app.state.identity = identity
    return TestClient(app)


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Backend is working!"}


# ── /auth ────────────────────────────────────────────────────────────────

def test_login_unknown_user_401(client):
    resp = client.post("/auth/login", json={"username": "intruder"})
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Invalid credentials"}


def test_login_sets_cookie_and_me_reads_it(client, monkeypatch):
    monkeypatch.setattr(settings, "COOKIE_SECURE", False)

    resp = client.post("/auth/login", json={"username": "doctor"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert "token=" in resp.headers["set-cookie"]
    assert "httponly" in resp.headers["set-cookie"].lower()

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json() == {"user": "doctor"}


def test_me_without_token_401(client):
    resp = client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.json() == {"user": None}


def test_logout_clears_cookie(client):
    resp = client.post("/auth/logout")
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert "token=" in resp.headers["set-cookie"]


# ── /api/ask ─────────────────────────────────────────────────────────────

def test_ask_requires_identity(client, generator):
    resp = client.post("/api/ask", json={"history": [], "isNew": True})
    assert resp.status_code == 401
    assert generator.calls == []


def test_ask_accepts_browser_payload_shape(client, generator, token):
    generator.reply = "Yes, that's correct!"
    resp = client.post(
        "/api/ask",
        json={"history": [{"from": "doctor", "text": "Is it the flu?"}], "isNew": False},
        headers=_auth(token),
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "reply": "Yes, that's correct!",
        "diagnosis_confirmed": True,
        "correctDiagnosis": True,
    }


def test_ask_generation_failure_returns_apology(identity, cache, token, generation_failure):
    from app.main import app

    app.state.orchestrator = PatientOrchestrator(
        identity=identity,
        generator=FakeGenerator(error=generation_failure),
        cache=cache,
    )
    app.state.identity = identity
    client = TestClient(app)

    resp = client.post(
        "/api/ask",
        json={"history": [{"speaker": "doctor", "text": "Any fever?"}]},
        headers=_auth(token),
    )
    assert resp.status_code == 502
    assert resp.json()["reply"] == APOLOGY_REPLY
    assert resp.json()["diagnosis_confirmed"] is False
    assert resp.json()["correctDiagnosis"] is False


def test_ask_rejects_unknown_speaker(client, token):
    resp = client.post(
        "/api/ask",
        json={"history": [{"from": "nurse", "text": "hi"}]},
        headers=_auth(token),
    )
    assert resp.status_code == 422


# ── /api/session ─────────────────────────────────────────────────────────

def test_resume_without_session_404(client, token):
    resp = client.get("/api/session", headers=_auth(token))
    assert resp.status_code == 404
    assert resp.json() == {"detail": "no session"}


def test_resume_after_turn_and_reset(client, generator, token):
    generator.reply = "Hi Doctor, I'm not feeling well today..."
    client.post("/api/ask", json={"history": [], "isNew": True}, headers=_auth(token))

    resp = client.get("/api/session", headers=_auth(token))
    assert resp.status_code == 200
    assert resp.json() == {
        "history": [{"from": "patient", "text": "Hi Doctor, I'm not feeling well today..."}],
        "diagnosis_confirmed": False,
    }

    cleared = client.delete("/api/session", headers=_auth(token))
    assert cleared.json() == {"status": "cleared"}
    assert client.get("/api/session", headers=_auth(token)).status_code == 404


# ── /api/conversations ───────────────────────────────────────────────────

def test_conversations_lists_confirmed_diagnoses(client, generator, token):
    generator.reply = "Yes, that's correct!"
    for guess in ("Is it the flu?", "Could it be a cold?"):
        client.post(
            "/api/ask",
            json={"history": [{"from": "doctor", "text": guess}]},
            headers=_auth(token),
        )

    resp = client.get("/api/conversations", headers=_auth(token))
    assert resp.status_code == 200
    records = resp.json()
    assert len(records) == 2
    assert records[0]["history"][0]["text"] == "Could it be a cold?"
    assert all(r["diagnosis_confirmed"] is True for r in records)
    assert all(r["identity"] == "doctor" for r in records)


def test_conversations_storage_outage_503(identity, generator, token):
    from app.main import app

    app.state.orchestrator = PatientOrchestrator(
        identity=identity,
        generator=generator,
        cache=SessionCache(InMemorySessionStore(), UnavailableArchiveStore()),
    )
    app.state.identity = identity
    client = TestClient(app)

    resp = client.get("/api/conversations", headers=_auth(token))
    assert resp.status_code == 503
    assert resp.json() == {"detail": "storage unavailable"}


def test_reset_storage_outage_503_and_resume_reports_no_session(identity, generator, token):
    from app.main import app

    app.state.orchestrator = PatientOrchestrator(
        identity=identity,
        generator=generator,
        cache=SessionCache(UnavailableSessionStore(), InMemoryArchiveStore()),
    )
    app.state.identity = identity
    client = TestClient(app)

    cleared = client.delete("/api/session", headers=_auth(token))
    assert cleared.status_code == 503
    assert cleared.json() == {"detail": "storage unavailable"}

    resumed = client.get("/api/session", headers=_auth(token))
    assert resumed.status_code == 404
    assert resumed.json() == {"detail": "no session"}

    asked = client.post("/api/ask", json={"history": [], "isNew": True}, headers=_auth(token))
    assert asked.status_code == 200
    assert asked.json()["reply"] == generator.reply
