"""
Virtual Patient Simulator - FastAPI Application Entry Point

Registers routers for auth and the patient dialogue endpoints.
Builds the session cache tiers, identity provider and Gemini client on
startup and attaches the orchestrator to ``app.state``.
"""

import logging
from pathlib import Path

from dotenv import load_dotenv

# Resolve .env relative to project root (parent of app/)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=True)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.agents.patient_workflow import PatientOrchestrator
from app.config import settings
from app.core.errors import AuthorizationError, CacheUnavailable
from app.core.gemini_client import GeminiClient
from app.core.identity import IdentityProvider
from app.memory.archive_store import build_archive_store
from app.memory.session_cache import SessionCache
from app.memory.session_store import build_session_store
from app.routers import auth, patient

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Virtual Patient Simulator")

# CORS - the browser client sends the identity cookie, so origins are explicit
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(patient.router, prefix="/api", tags=["patient"])


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(CacheUnavailable)
async def cache_unavailable_handler(request: Request, exc: CacheUnavailable):
    logger.error("Storage unavailable on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "storage unavailable"})


@app.get("/health")
async def health() -> dict[str, str]:
    return {"message": "Backend is working!"}


def build_orchestrator() -> PatientOrchestrator:
    """Wire the configured backends into a PatientOrchestrator."""
    cache = SessionCache(
        build_session_store(settings),
        build_archive_store(settings),
    )
    return PatientOrchestrator(
        identity=IdentityProvider.from_settings(settings),
        generator=GeminiClient(),
        cache=cache,
    )


@app.on_event("startup")
async def startup_event():
    """Build the orchestrator unless one was attached beforehand (tests)."""
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator()
    if getattr(app.state, "identity", None) is None:
        app.state.identity = app.state.orchestrator.identity
    logger.info("Virtual patient simulator ready")


@app.on_event("shutdown")
async def shutdown_event():
    orchestrator = getattr(app.state, "orchestrator", None)
    if orchestrator is not None:
        await orchestrator.cache.close()
