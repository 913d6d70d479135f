"""
Diagnosis Evaluator

Reads the patient's reply to a diagnosis guess and decides whether the
guess was confirmed. The signal is the persona's own wording ("yes",
"correct"), so an in-character "yes, it hurts" also counts.
"""

from app.models.schemas import TurnCategory

CONFIRMATION_MARKERS: tuple[str, ...] = ("yes", "correct")


def evaluate_diagnosis(category: TurnCategory, reply: str) -> bool:
    """Return True if the reply confirms the doctor's diagnosis guess."""
    if category != TurnCategory.DIAGNOSIS_GUESS:
        return False
    text = (reply or "").lower()
    return any(marker in text for marker in CONFIRMATION_MARKERS)
