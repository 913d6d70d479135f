"""
Gemini Client

Generation gateway for the virtual patient: wraps Gemini on Vertex AI
through the google-genai SDK.
Handles initialization and translates role-tagged chat messages into Gemini
contents. Every failure surfaces as GenerationFailure; no retries are made
here.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional, Sequence

from app.config import settings
from app.core.errors import GenerationFailure

logger = logging.getLogger(__name__)

# Gemini multi-turn input has to open with a user content. When the history
# opens with the patient (or is empty on a new session) this cue goes first.
OPENING_CUE = "The doctor is ready to see you now."

_GEMINI_ROLES: dict[str, str] = {"user": "user", "assistant": "model"}


def to_gemini_turns(
    messages: Sequence[dict[str, str]],
) -> tuple[str, list[tuple[str, list[str]]]]:
    """Split chat messages into a system instruction and Gemini turns.

    System messages are joined into the system instruction. Consecutive
    messages with the same role are merged into one turn with several parts.

    Args:
        messages: List of dicts with keys: role, content.

    Returns:
        Tuple of (system_instruction, [(gemini_role, [texts]), ...]).
    """
    system_parts: list[str] = []
    turns: list[tuple[str, list[str]]] = []

    for msg in messages:
        role = msg.get("role", "")
        content = msg.get("content", "")
        if role == "system":
            system_parts.append(content)
            continue
        gemini_role = _GEMINI_ROLES.get(role)
        if gemini_role is None:
            raise GenerationFailure(f"Unsupported message role: {role!r}")
        if turns and turns[-1][0] == gemini_role:
            turns[-1][1].append(content)
        else:
            turns.append((gemini_role, [content]))

    if not turns or turns[0][0] != "user":
        turns.insert(0, ("user", [OPENING_CUE]))

    return "\n\n".join(system_parts), turns


class GeminiClient:
    """Wrapper around the Gemini API on Vertex AI.

    Creates a google-genai client on construction. If credentials are
    missing or the project is not configured, ``is_available`` returns
    False and every ``generate`` call raises GenerationFailure.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> None:
        self.model_name = model_name or settings.GEMINI_MODEL
        self.temperature = (
            settings.GENERATION_TEMPERATURE if temperature is None else temperature
        )
        self._client: Any = None
        self._initialized = False
        self._initialize()

    def _resolve_project(self) -> str | None:
        """Return the GCP project ID from settings or credentials file."""
        if settings.GOOGLE_CLOUD_PROJECT:
            return settings.GOOGLE_CLOUD_PROJECT
        # Fall back: read project_id from the service-account JSON
        creds_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
        if creds_path and os.path.isfile(creds_path):
            with open(creds_path) as f:
                return json.load(f).get("project_id")
        return None

    def _initialize(self) -> None:
        """Attempt to create the Vertex AI backed client."""
        project = self._resolve_project()
        if not project:
            logger.warning(
                "GCP project not found - patient replies are unavailable"
            )
            return

        try:
            from google import genai

            self._client = genai.Client(
                vertexai=True,
                project=project,
                location=settings.GOOGLE_CLOUD_LOCATION,
            )
            self._initialized = True
            logger.info("Gemini client initialized (model=%s)", self.model_name)
        except Exception as exc:
            logger.warning("Gemini initialization failed: %s", exc)
            self._initialized = False

    @property
    def is_available(self) -> bool:
        """Return True if Gemini is ready to accept requests."""
        return self._initialized

    async def generate(self, messages: Sequence[dict[str, str]]) -> str:
        """Generate the next patient reply.

        Args:
            messages: Role-tagged messages from the prompt assembler.

        Returns:
            The reply text.

        Raises:
            GenerationFailure: The client is unavailable, the call failed,
                or the response carried no text.
        """
        if not self._initialized:
            raise GenerationFailure("Gemini client is not configured")

        system_instruction, turns = to_gemini_turns(messages)

        from google.genai import types

        contents = [
            types.Content(
                role=role, parts=[types.Part.from_text(text=t) for t in texts]
            )
            for role, texts in turns
        ]
        config = types.GenerateContentConfig(
            system_instruction=system_instruction or None,
            temperature=self.temperature,
        )

        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=config,
            )
            text = response.text
        except Exception as exc:
            raise GenerationFailure(f"Gemini call failed: {exc}") from exc

        # Blocked or empty candidates come back without text
        if not text or not text.strip():
            raise GenerationFailure("Gemini returned an empty reply")
        return text.strip()
