"""
Patient Router

POST   /api/ask           - Submit a doctor turn, get the patient's reply
GET    /api/session       - Resume the caller's live session
DELETE /api/session       - Reset the caller's live session
GET    /api/conversations - List the caller's archived diagnoses, newest first
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Cookie, Header, Request
from fastapi.responses import JSONResponse

from app.core.identity import token_from_request
from app.models.schemas import (
    AskRequest,
    AskResponse,
    DiagnosticRecord,
    SessionView,
)

router = APIRouter()


# ── POST /api/ask ───────────────────────────────────────────────────────────

@router.post("/ask")
async def ask(
    body: AskRequest,
    request: Request,
    token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
) -> Any:
    """Run one turn of the virtual patient dialogue.

    The response carries ``correctDiagnosis`` alongside
    ``diagnosis_confirmed`` for the browser client. A generation failure
    returns the apology reply with status 502.
    """
    orchestrator = request.app.state.orchestrator
    result = await orchestrator.run_turn(
        token_from_request(token, authorization), body.history, body.is_new
    )

    content = AskResponse(
        reply=result["reply"],
        diagnosis_confirmed=result["diagnosis_confirmed"],
        correctDiagnosis=result["diagnosis_confirmed"],
    ).model_dump()
    if result["failed"]:
        return JSONResponse(status_code=502, content=content)
    return content


# ── GET /api/session ────────────────────────────────────────────────────────

@router.get("/session")
async def resume_session(
    request: Request,
    token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
) -> Any:
    """Return the live session so the client can pick up where it left off."""
    orchestrator = request.app.state.orchestrator
    session = await orchestrator.resume(token_from_request(token, authorization))
    if session is None:
        return JSONResponse(status_code=404, content={"detail": "no session"})
    view = SessionView(
        history=session.history,
        diagnosis_confirmed=session.diagnosis_confirmed,
    )
    return view.model_dump(by_alias=True, mode="json")


# ── DELETE /api/session ─────────────────────────────────────────────────────

@router.delete("/session")
async def reset_session(
    request: Request,
    token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
) -> dict[str, str]:
    orchestrator = request.app.state.orchestrator
    await orchestrator.reset(token_from_request(token, authorization))
    return {"status": "cleared"}


# ── GET /api/conversations ──────────────────────────────────────────────────

@router.get("/conversations", response_model=list[DiagnosticRecord])
async def list_conversations(
    request: Request,
    token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
) -> list[DiagnosticRecord]:
    """Archived conversations that ended in a confirmed diagnosis."""
    return await request.app.state.orchestrator.list_archived(
        token_from_request(token, authorization)
    )
