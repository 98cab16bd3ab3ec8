"""
Mood Inference Service
======================
Classifies the mood of journal text entirely on-device using the static
lexicon. No network, no randomness, no model download.

PIPELINE:
    1. Lowercase, normalise curly apostrophes, tokenise into words.
       Clause punctuation is recorded as a boundary, never as a token.
    2. Cap the token stream at MAX_TOKENS (extra words are ignored).
    3. Phrase scan over the whole lowercased text ("over the moon").
    4. Each dictionary word is passed through the context modulator
       (negation, intensity modifiers).
    5. Sum per mood, pick the strict maximum. Ties and no evidence are
       Neutral.

The classifier is total: every str input returns a MoodInference. It
runs on each keystroke of the editor preview, so it stays pure Python
with precompiled regexes and a single pass over the text.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from app.models.mood import MoodEvidence, MoodInference, MoodLabel
from app.services.context import Token, modulate
from app.services.lexicon import PHRASES, classify_token

logger = logging.getLogger(__name__)

MAX_TOKENS = 600
PHRASE_BONUS = 2.0
_SCORE_DIGITS = 4

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'"})

# A word is a run of letters with optional apostrophe parts (don't, i'm).
# Clause punctuation closes negation scope.
_TOKEN_RE = re.compile(
    r"(?P<word>[^\W\d_]+(?:'[^\W\d_]+)*)|(?P<brk>[.,;:!?\n]+)"
)


def _phrase_pattern(phrases: Iterable[str]) -> re.Pattern[str]:
    # Longest first so "burned out" is not shadowed by a shorter prefix.
    alternatives = [
        r"\s+".join(re.escape(word) for word in phrase.split())
        for phrase in sorted(phrases, key=len, reverse=True)
    ]
    return re.compile(r"(?<![\w'])(?:" + "|".join(alternatives) + r")(?![\w'])")


_PHRASE_RE = _phrase_pattern(PHRASES)


def normalise(text: str) -> str:
    return text.lower().translate(_APOSTROPHES)


def tokenize(text: str, limit: int = MAX_TOKENS) -> tuple[list[Token], bool]:
    """Split normalised text into tokens.

    Returns (tokens, truncated). Stops scanning once limit words are
    collected; truncated is True if more words followed.
    """
    tokens: list[Token] = []
    clause = 0
    for match in _TOKEN_RE.finditer(text):
        if match.lastgroup == "brk":
            clause += 1
            continue
        if len(tokens) >= limit:
            return tokens, True
        tokens.append(Token(text=match.group("word"), clause=clause))
    return tokens, False


class MoodInferenceService:
    """Dictionary-based mood classifier. Stateless and thread-safe."""

    def __init__(self, max_tokens: int = MAX_TOKENS, phrase_bonus: float = PHRASE_BONUS) -> None:
        self._max_tokens = max_tokens
        self._phrase_bonus = phrase_bonus

    def infer(self, text: str) -> MoodInference:
        """Classify text. Never raises for str input."""
        scores: dict[MoodLabel, float] = {label: 0.0 for label in MoodLabel}

        if not text or not text.strip():
            return MoodInference(
                mood=MoodLabel.NEUTRAL,
                score=0.0,
                per_mood_scores=scores,
                confidence=1.0,
            )

        content = normalise(text)
        evidence: list[MoodEvidence] = []

        for match in _PHRASE_RE.finditer(content):
            phrase = " ".join(match.group(0).split())
            mood = PHRASES[phrase]
            scores[mood] += self._phrase_bonus
            evidence.append(
                MoodEvidence(
                    term=phrase,
                    source_mood=mood,
                    mood=mood,
                    contribution=self._phrase_bonus,
                    phrase=True,
                )
            )

        tokens, truncated = tokenize(content, self._max_tokens)
        for index, token in enumerate(tokens):
            hit = classify_token(token.text)
            if hit is None:
                continue
            source_mood, weight = hit
            contribution = modulate(tokens, index, source_mood, weight)
            scores[contribution.mood] += contribution.amount
            evidence.append(
                MoodEvidence(
                    term=token.text,
                    source_mood=source_mood,
                    mood=contribution.mood,
                    contribution=contribution.amount,
                    negated=contribution.negated,
                    modifier=contribution.modifier,
                )
            )

        scores = {label: round(value, _SCORE_DIGITS) for label, value in scores.items()}
        mood = _select_winner(scores)
        total = sum(scores.values())
        if total > 0:
            confidence = min(max(scores[mood] / total, 0.0), 1.0)
        else:
            confidence = 1.0

        if truncated:
            logger.debug("Mood inference ignored tokens past the %d-token cap", self._max_tokens)

        return MoodInference(
            mood=mood,
            score=scores[mood],
            per_mood_scores=scores,
            confidence=round(confidence, _SCORE_DIGITS),
            evidence=evidence,
            token_count=len(tokens),
            truncated=truncated,
        )


def _select_winner(scores: dict[MoodLabel, float]) -> MoodLabel:
    """Strict maximum wins; a tie at the top, or no evidence, is Neutral."""
    top = max(scores.values())
    if top <= 0:
        return MoodLabel.NEUTRAL
    leaders = [label for label, value in scores.items() if value == top]
    if len(leaders) != 1:
        return MoodLabel.NEUTRAL
    return leaders[0]


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_default_engine: MoodInferenceService | None = None


def get_mood_inference() -> MoodInferenceService:
    global _default_engine
    if _default_engine is None:
        _default_engine = MoodInferenceService()
    return _default_engine


def infer_mood(text: str) -> MoodInference:
    """Module-level shortcut for get_mood_inference().infer(text)."""
    return get_mood_inference().infer(text)
