"""
Auth Router

POST /auth/login  - Issue an identity token cookie for a known user
POST /auth/logout - Clear the identity token cookie
GET  /auth/me     - Return the verified username for the current token
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Cookie, Header, Request, Response
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.errors import AuthorizationError
from app.core.identity import token_from_request
from app.models.schemas import LoginRequest

router = APIRouter()

TOKEN_COOKIE = "token"


# ── POST /auth/login ────────────────────────────────────────────────────────

@router.post("/login")
async def login(body: LoginRequest, request: Request, response: Response) -> Any:
    """Set the identity cookie when the username is a known user."""
    identity = request.app.state.identity
    try:
        token = identity.issue(body.username)
    except AuthorizationError:
        return JSONResponse(
            status_code=401,
            content={"success": False, "message": "Invalid credentials"},
        )

    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=identity.ttl_seconds,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
    return {"success": True}


# ── POST /auth/logout ───────────────────────────────────────────────────────

@router.post("/logout")
async def logout(response: Response) -> dict[str, bool]:
    response.delete_cookie(TOKEN_COOKIE)
    return {"success": True}


# ── GET /auth/me ────────────────────────────────────────────────────────────

@router.get("/me")
async def me(
    request: Request,
    token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
) -> Any:
    """Return the username bound to the current token."""
    try:
        username = await request.app.state.identity.resolve(
            token_from_request(token, authorization)
        )
    except AuthorizationError:
        return JSONResponse(status_code=401, content={"user": None})
    return {"user": username}
