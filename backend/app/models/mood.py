"""
Mood Schemas
============
Pydantic models for on-device mood inference. These are the contract
between the inference engine, the entry lifecycle and the mobile app's
live preview.

Key design decisions:
- MoodLabel is a closed set. Anything outside it is a validation error,
  never silently coerced to Neutral.
- per_mood_scores always carries every label (zero when no evidence) so
  the UI can render a stable breakdown.
- evidence lists each token or phrase that contributed, which is what
  makes a classification explainable to the user.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Allowed values
# ---------------------------------------------------------------------------

class MoodLabel(str, Enum):
    HAPPY = "Happy"
    SAD = "Sad"
    NEUTRAL = "Neutral"
    ANXIOUS = "Anxious"
    EXCITED = "Excited"
    TIRED = "Tired"


VALID_MOOD_LABELS = frozenset(label.value for label in MoodLabel)


def parse_mood_label(value: str) -> Optional[MoodLabel]:
    """Return the MoodLabel for value (case-insensitive), or None."""
    if not isinstance(value, str):
        return None
    wanted = value.strip().lower()
    for label in MoodLabel:
        if label.value.lower() == wanted:
            return label
    return None


# ---------------------------------------------------------------------------
# Inference output
# ---------------------------------------------------------------------------

class MoodEvidence(BaseModel):
    """One scored match: a dictionary token or a fixed phrase."""

    term: str = Field(..., description="Matched token or phrase, lowercased.")
    source_mood: MoodLabel = Field(
        ...,
        description="Mood the dictionary maps the term to.",
    )
    mood: MoodLabel = Field(
        ...,
        description="Mood that actually received the contribution.",
    )
    contribution: float = Field(..., ge=0.0)
    negated: bool = False
    modifier: Optional[str] = Field(
        default=None,
        description="Intensity modifier applied, e.g. 'very' or 'slightly'.",
    )
    phrase: bool = False


class MoodInference(BaseModel):
    """Result of classifying one piece of journal text."""

    mood: MoodLabel
    score: float = Field(..., ge=0.0, description="Aggregate score of the winning mood.")
    per_mood_scores: dict[MoodLabel, float]
    confidence: float = Field(..., ge=0.0, le=1.0)
    evidence: list[MoodEvidence] = Field(default_factory=list)
    token_count: int = 0
    truncated: bool = Field(
        default=False,
        description="True if tokens past the scoring cap were ignored.",
    )


class MoodPreviewRequest(BaseModel):
    """Live preview payload: the text currently in the editor."""

    text: str = Field(default="", max_length=100_000)
