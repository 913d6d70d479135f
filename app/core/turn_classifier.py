"""
Turn Classifier

Decides what kind of patient reply the next turn needs. This is a coarse
lexical check on the doctor's latest message, not a trained model; it is
kept as a pure function so it can be swapped out without touching the
workflow.
"""

from __future__ import annotations

from typing import Sequence

from app.models.schemas import Speaker, Turn, TurnCategory

# Phrases that mark the doctor's message as a diagnosis attempt
GUESS_MARKERS: tuple[str, ...] = (
    "i think",
    "is it",
    "could it be",
    "do you have",
    "are you having",
)


def last_doctor_text(history: Sequence[Turn]) -> str:
    """Return the text of the most recent doctor turn, or "" if there is none."""
    for turn in reversed(history):
        if turn.speaker == Speaker.DOCTOR:
            return turn.text
    return ""


def classify_turn(history: Sequence[Turn], is_new_session: bool = False) -> TurnCategory:
    """Classify the next action for the given dialogue history.

    Args:
        history: The full dialogue so far, oldest first.
        is_new_session: Set by the client when starting or resetting a session.

    Returns:
        NEW_SESSION when the flag is set, DIAGNOSIS_GUESS when the latest
        doctor message contains a guess marker, otherwise REGULAR_INQUIRY.
    """
    if is_new_session:
        return TurnCategory.NEW_SESSION

    text = last_doctor_text(history).lower()
    if any(marker in text for marker in GUESS_MARKERS):
        return TurnCategory.DIAGNOSIS_GUESS
    return TurnCategory.REGULAR_INQUIRY
