"""
Pydantic Schemas

Defines the domain models and the request / response models for the API:
- Turn, Session, DiagnosticRecord for the dialogue state
- TurnCategory for the classifier output
- AskRequest / AskResponse for turn submission
- LoginRequest and SessionView for the auth and resume endpoints
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Speaker(str, Enum):
    """Who produced a turn."""

    DOCTOR = "doctor"
    PATIENT = "patient"


class TurnCategory(str, Enum):
    """What the next patient reply has to do."""

    NEW_SESSION = "new_session"
    DIAGNOSIS_GUESS = "diagnosis_guess"
    REGULAR_INQUIRY = "regular_inquiry"


class Turn(BaseModel):
    """A single message in the dialogue.

    The browser client sends ``{"from": "doctor", "text": "..."}``, so the
    speaker is accepted under either ``from`` or ``speaker``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    speaker: Speaker = Field(alias="from")
    text: str


class Session(BaseModel):
    """Live dialogue state for one identity."""

    identity: str
    history: list[Turn] = []
    diagnosis_confirmed: bool = False
    updated_at: datetime = Field(default_factory=utc_now)


class DiagnosticRecord(BaseModel):
    """Archived conversation that ended in a confirmed diagnosis."""

    model_config = ConfigDict(frozen=True)

    identity: str
    history: list[Turn]
    diagnosis_confirmed: Literal[True] = True
    created_at: datetime = Field(default_factory=utc_now)


class AskRequest(BaseModel):
    """Incoming doctor turn for the /api/ask endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    history: list[Turn] = []
    is_new: bool = Field(False, alias="isNew")


class AskResponse(BaseModel):
    """Patient reply for the /api/ask endpoint.

    ``correctDiagnosis`` repeats the confirmation flag under the name the
    browser client reads.
    """

    reply: str
    diagnosis_confirmed: bool
    correctDiagnosis: bool = False


class LoginRequest(BaseModel):
    """Credentials for the /auth/login endpoint."""

    username: str


class SessionView(BaseModel):
    """Resumable session state returned by GET /api/session."""

    history: list[Turn]
    diagnosis_confirmed: bool
