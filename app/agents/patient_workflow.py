"""
Virtual Patient Turn Workflow

LangGraph workflow, run once per doctor turn:
  load_session -> classify -> generate
    -> [failed]    -> END
    -> [generated] -> evaluate -> persist -> END

The caller's identity is resolved before the graph runs; an invalid token
never reaches it. A failed generation ends the turn with an apology and no
cache writes. A successful turn always overwrites the live session, and a
confirmed diagnosis is also archived.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence, TypedDict

from langgraph.graph import END, StateGraph

from app.core.diagnosis import evaluate_diagnosis
from app.core.errors import GenerationFailure
from app.core.identity import IdentityProvider
from app.core.turn_classifier import classify_turn
from app.memory.session_cache import SessionCache
from app.models.schemas import (
    DiagnosticRecord,
    Session,
    Speaker,
    Turn,
    TurnCategory,
    utc_now,
)
from app.prompts.patient import build_messages

logger = logging.getLogger(__name__)

APOLOGY_REPLY = "Sorry, something went wrong."


class ReplyGenerator(Protocol):
    async def generate(self, messages: Sequence[dict[str, str]]) -> str: ...


# ---------------------------------------------------------------------------
# State schema
# ---------------------------------------------------------------------------

class TurnState(TypedDict):
    identity: str
    history: list
    is_new_session: bool
    previous: Optional[Session]
    category: Optional[TurnCategory]
    reply: Optional[str]
    failed: bool
    diagnosis_confirmed: bool


class PatientOrchestrator:
    """Coordinates one doctor turn across classifier, generator and cache."""

    def __init__(
        self,
        identity: IdentityProvider,
        generator: ReplyGenerator,
        cache: SessionCache,
    ) -> None:
        self.identity = identity
        self.generator = generator
        self.cache = cache
        self.workflow = self._build_graph()

    # -----------------------------------------------------------------------
    # Nodes
    # -----------------------------------------------------------------------

    async def load_session_node(self, state: TurnState) -> dict:
        """Fetch the live session so a confirmed diagnosis is not lost."""
        if state["is_new_session"]:
            return {"previous": None}
        return {"previous": await self.cache.get(state["identity"])}

    async def classify_node(self, state: TurnState) -> dict:
        category = classify_turn(state["history"], state["is_new_session"])
        logger.debug("Turn for %s classified as %s", state["identity"], category.value)
        update: dict = {"category": category}
        if category == TurnCategory.NEW_SESSION:
            update["history"] = []
        return update

    async def generate_node(self, state: TurnState) -> dict:
        messages = build_messages(state["category"], state["history"])
        try:
            reply = await self.generator.generate(messages)
        except GenerationFailure as exc:
            logger.error("Generation failed for %s: %s", state["identity"], exc)
            return {"reply": APOLOGY_REPLY, "failed": True}
        return {"reply": reply, "failed": False}

    async def evaluate_node(self, state: TurnState) -> dict:
        confirmed = evaluate_diagnosis(state["category"], state["reply"])
        return {"diagnosis_confirmed": confirmed}

    async def persist_node(self, state: TurnState) -> dict:
        """Append the patient reply, cache the session, archive on success."""
        identity = state["identity"]
        confirmed = state["diagnosis_confirmed"]
        history = list(state["history"]) + [
            Turn(speaker=Speaker.PATIENT, text=state["reply"])
        ]

        previous = state.get("previous")
        already_confirmed = previous is not None and previous.diagnosis_confirmed

        session = Session(
            identity=identity,
            history=history,
            diagnosis_confirmed=confirmed or already_confirmed,
            updated_at=utc_now(),
        )
        await self.cache.put(identity, session)

        if confirmed:
            await self.cache.archive(
                DiagnosticRecord(identity=identity, history=history)
            )
        return {"history": history}

    # -----------------------------------------------------------------------
    # Routing
    # -----------------------------------------------------------------------

    @staticmethod
    def route_after_generate(state: TurnState) -> str:
        return "failed" if state["failed"] else "generated"

    def _build_graph(self):
        """Construct and compile the per-turn StateGraph."""
        graph = StateGraph(TurnState)

        graph.add_node("load_session", self.load_session_node)
        graph.add_node("classify", self.classify_node)
        graph.add_node("generate", self.generate_node)
        graph.add_node("evaluate", self.evaluate_node)
        graph.add_node("persist", self.persist_node)

        graph.set_entry_point("load_session")
        graph.add_edge("load_session", "classify")
        graph.add_edge("classify", "generate")
        graph.add_conditional_edges(
            "generate",
            self.route_after_generate,
            {"failed": END, "generated": "evaluate"},
        )
        graph.add_edge("evaluate", "persist")
        graph.add_edge("persist", END)

        return graph.compile()

    # -----------------------------------------------------------------------
    # Public entry points
    # -----------------------------------------------------------------------

    async def run_turn(
        self,
        token: Optional[str],
        history: Sequence[Turn],
        is_new_session: bool = False,
    ) -> dict:
        """Process one doctor turn.

        Args:
            token: Identity token from the request.
            history: Dialogue so far, ending with the doctor's latest message.
            is_new_session: Start a fresh conversation, ignoring the history.

        Returns:
            Dict with keys: reply, diagnosis_confirmed, failed, category.

        Raises:
            AuthorizationError: The token did not resolve to a user.
        """
        identity = await self.identity.resolve(token)

        initial_state: TurnState = {
            "identity": identity,
            "history": list(history),
            "is_new_session": is_new_session,
            "previous": None,
            "category": None,
            "reply": None,
            "failed": False,
            "diagnosis_confirmed": False,
        }
        result = await self.workflow.ainvoke(initial_state)

        return {
            "reply": result.get("reply") or APOLOGY_REPLY,
            "diagnosis_confirmed": bool(result.get("diagnosis_confirmed")),
            "failed": bool(result.get("failed")),
            "category": result.get("category"),
        }

    async def resume(self, token: Optional[str]) -> Optional[Session]:
        """Return the caller's live session, or None."""
        identity = await self.identity.resolve(token)
        return await self.cache.get(identity)

    async def list_archived(self, token: Optional[str]) -> list[DiagnosticRecord]:
        """Return the caller's archived diagnoses, newest first."""
        identity = await self.identity.resolve(token)
        return await self.cache.list_archived(identity)

    async def reset(self, token: Optional[str]) -> None:
        """Clear the caller's live session."""
        identity = await self.identity.resolve(token)
        await self.cache.reset(identity)
