"""
Context Modulator
=================
Adjusts the evidence a mood word contributes based on the words just
before it:

    "not happy"     -> redirected to Happy's negation-opposite (Sad)
    "not tired"     -> no opposite defined, a quarter of the weight to Neutral
    "very happy"    -> boosted
    "a bit worried" -> reduced, but never below MIN_CONTRIBUTION

Lookback skips filler words ("I am", "a", "the") and never crosses a
clause boundary (punctuation or "but"), so "not tired, just a bit
worried" negates "tired" only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from app.models.mood import MoodLabel
from app.services.lexicon import (
    NEGATION_OPPOSITES,
    SCOPE_BREAKERS,
    is_filler,
    is_negation,
    modifier_delta,
)

# How many non-filler words back a negation still applies.
NEGATION_WINDOW = 3
NEGATED_NEUTRAL_FRACTION = 0.25
MIN_CONTRIBUTION = 0.25


@dataclass(frozen=True)
class Token:
    text: str
    clause: int


@dataclass(frozen=True)
class Contribution:
    mood: MoodLabel
    amount: float
    negated: bool = False
    modifier: Optional[str] = None


def _preceding(tokens: Sequence[Token], index: int) -> Iterator[Token]:
    """Non-filler tokens before index in the same clause, nearest first."""
    clause = tokens[index].clause
    for j in range(index - 1, -1, -1):
        tok = tokens[j]
        if tok.clause != clause or tok.text in SCOPE_BREAKERS:
            return
        if is_filler(tok.text):
            continue
        yield tok


def find_negation(tokens: Sequence[Token], index: int) -> Optional[str]:
    for seen, tok in enumerate(_preceding(tokens, index)):
        if seen >= NEGATION_WINDOW:
            break
        if is_negation(tok.text):
            return tok.text
    return None


def find_modifier(tokens: Sequence[Token], index: int) -> Optional[tuple[str, float]]:
    """The intensity modifier directly before index, ignoring fillers."""
    for tok in _preceding(tokens, index):
        delta = modifier_delta(tok.text)
        if delta is None:
            return None
        return tok.text, delta
    return None


def modulate(
    tokens: Sequence[Token],
    index: int,
    mood: MoodLabel,
    weight: float,
) -> Contribution:
    """Contribution of the mood word at tokens[index] given its context."""
    if find_negation(tokens, index) is not None:
        opposite = NEGATION_OPPOSITES.get(mood)
        if opposite is not None:
            return Contribution(mood=opposite, amount=weight, negated=True)
        return Contribution(
            mood=MoodLabel.NEUTRAL,
            amount=weight * NEGATED_NEUTRAL_FRACTION,
            negated=True,
        )

    found = find_modifier(tokens, index)
    if found is None:
        return Contribution(mood=mood, amount=weight)

    word, delta = found
    return Contribution(
        mood=mood,
        amount=max(weight + delta, MIN_CONTRIBUTION),
        modifier=word,
    )
