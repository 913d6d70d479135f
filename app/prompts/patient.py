"""
Virtual Patient Prompts

System prompt that fixes the patient persona, and the assembler that turns
a classified turn plus the dialogue history into the message list sent to
the generation service.
"""

from __future__ import annotations

from typing import Sequence

from app.models.schemas import Speaker, Turn, TurnCategory

OPENING_LINE = "Hi Doctor, I'm not feeling well today..."

DEVELOPER_MODE_PREFIX = "developer mode:"


# ---------------------------------------------------------------------------
# Persona prompt sent as the system message on every call
# ---------------------------------------------------------------------------
PATIENT_SYSTEM_PROMPT = f"""You are a virtual patient in a roleplay simulation. \
The doctor (the user) will ask you questions to figure out what you're sick with.
Start the conversation with "{OPENING_LINE}".

Rules:
- You are the patient. Never act as the doctor or assistant, and never break character.
- Start the conversation with "{OPENING_LINE}".
- Do not ask questions like "What brings you in today?" - wait for the doctor to speak first.
- Do not give all of your symptoms all at once. Act like a real human patient and \
give your symptoms gradually unless asked to.
- Respond in short, casual, realistic human sentences.
- Begin by describing mild symptoms. Don't reveal the disease name unless asked.
- If asked to take a test, respond with plausible results (e.g., blood test, X-ray).
- If the doctor sends a message beginning with "{DEVELOPER_MODE_PREFIX}", treat it \
as a command to output your internal disease state."""


# Doctor speaks as the "user", the simulated patient as the "assistant"
_ROLE_BY_SPEAKER: dict[Speaker, str] = {
    Speaker.DOCTOR: "user",
    Speaker.PATIENT: "assistant",
}


def format_history(history: Sequence[Turn]) -> list[dict[str, str]]:
    """Translate dialogue turns into role-tagged chat messages, order preserved."""
    return [
        {"role": _ROLE_BY_SPEAKER[turn.speaker], "content": turn.text}
        for turn in history
    ]


def build_messages(
    category: TurnCategory, history: Sequence[Turn]
) -> list[dict[str, str]]:
    """Assemble the generation request for a turn.

    A new session sends only the persona prompt so the model produces the
    opening line; every other turn replays the whole history after it.

    Args:
        category: Output of the turn classifier.
        history: The full dialogue so far.

    Returns:
        List of message dicts with keys: role, content.
    """
    messages = [{"role": "system", "content": PATIENT_SYSTEM_PROMPT}]
    if category == TurnCategory.NEW_SESSION:
        return messages
    return messages + format_history(history)
