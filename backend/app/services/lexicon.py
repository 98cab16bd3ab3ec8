"""
Mood Lexicon
============
Static dictionaries for on-device mood inference: mood words, fixed
phrases, negation markers, intensity modifiers and filler words.

Everything here is built once at import and exposed read-only
(frozenset / MappingProxyType). Nothing mutates it at runtime.

Each word maps to exactly one mood. A duplicate across moods is a bug
in the word lists and fails at import rather than producing a
classification that depends on dictionary order.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from app.models.mood import MoodLabel

# Weight for ordinary mood words. Strong words carry STRONG_WEIGHT.
BASE_WEIGHT = 1.0
STRONG_WEIGHT = 1.5

# Modifier deltas. All weights and deltas are multiples of 1/8 so every
# score is an exact binary float and sums do not depend on platform.
STRONG_BOOST = 0.5
LIGHT_BOOST = 0.25
DOWNTONE = 0.5

_MOOD_WORDS: dict[MoodLabel, tuple[str, ...]] = {
    MoodLabel.HAPPY: (
        "happy", "joy", "joyful", "great", "good", "love", "loved", "grateful",
        "thankful", "content", "calm", "peace", "peaceful", "smile", "smiled",
        "smiling", "ok", "okay", "fine", "glad", "cheerful", "relaxed",
        "pleased", "proud", "wonderful", "lovely", "nice", "fun", "laughed",
        "relieved", "blessed",
    ),
    MoodLabel.SAD: (
        "sad", "down", "blue", "unhappy", "depressed", "cry", "cried",
        "crying", "lonely", "miserable", "bad", "upset", "hurt", "heartbroken",
        "gloomy", "empty", "hopeless", "grief", "lost", "awful", "terrible",
        "disappointed", "tears",
    ),
    MoodLabel.ANXIOUS: (
        "anxious", "anxiety", "worried", "worry", "worrying", "nervous",
        "panic", "panicking", "stressed", "stress", "stressful", "overwhelmed",
        "fear", "afraid", "scared", "tense", "uneasy", "restless", "dread",
        "terrified", "frightened",
    ),
    MoodLabel.EXCITED: (
        "excited", "exciting", "thrilled", "eager", "pumped", "stoked",
        "amazing", "awesome", "ecstatic", "elated", "psyched", "hyped",
        "thrill", "energized", "energetic",
    ),
    MoodLabel.TIRED: (
        "tired", "sleepy", "exhausted", "fatigued", "drained", "weary",
        "drowsy", "exhausting", "sluggish", "knackered", "lethargic",
    ),
    MoodLabel.NEUTRAL: (),
}

_STRONG_WORDS = frozenset({
    "heartbroken", "miserable", "depressed", "hopeless",
    "terrified", "panic", "panicking",
    "ecstatic", "elated", "thrilled",
    "exhausted", "knackered",
    "joyful", "wonderful",
})

# Fixed multi-word expressions, matched against the raw lowercased text.
_PHRASES: dict[str, MoodLabel] = {
    "over the moon": MoodLabel.HAPPY,
    "on cloud nine": MoodLabel.HAPPY,
    "in a good mood": MoodLabel.HAPPY,
    "on top of the world": MoodLabel.HAPPY,
    "down in the dumps": MoodLabel.SAD,
    "fed up": MoodLabel.SAD,
    "feeling low": MoodLabel.SAD,
    "broke my heart": MoodLabel.SAD,
    "on edge": MoodLabel.ANXIOUS,
    "freaking out": MoodLabel.ANXIOUS,
    "butterflies in my stomach": MoodLabel.ANXIOUS,
    "can't stop thinking": MoodLabel.ANXIOUS,
    "can't wait": MoodLabel.EXCITED,
    "looking forward": MoodLabel.EXCITED,
    "worn out": MoodLabel.TIRED,
    "burnt out": MoodLabel.TIRED,
    "burned out": MoodLabel.TIRED,
    "running on empty": MoodLabel.TIRED,
}

NEGATIONS = frozenset({
    "not", "no", "never", "nor", "neither", "nothing", "nobody", "none",
    "without", "hardly", "barely", "cannot", "cant", "dont", "didnt",
    "isnt", "wasnt", "arent", "werent", "wont", "wouldnt", "shouldnt",
    "couldnt", "aint",
})

STRONG_INTENSIFIERS = frozenset({
    "very", "really", "so", "extremely", "incredibly", "super", "totally",
    "absolutely", "completely", "utterly", "truly", "deeply", "terribly",
    "insanely", "seriously",
})

LIGHT_INTENSIFIERS = frozenset({
    "quite", "pretty", "rather", "fairly", "more", "too",
})

DOWNTONERS = frozenset({
    "slightly", "somewhat", "bit", "little", "kinda", "sorta", "mildly",
    "less", "partly", "marginally",
})

# Skipped when looking backward for negations and modifiers.
FILLERS = frozenset({
    "a", "an", "the", "i", "i'm", "im", "i've", "me", "my", "myself",
    "am", "is", "are", "was", "were", "be", "been", "being", "it", "it's",
    "its", "this", "that", "feel", "feels", "feeling", "felt", "just",
    "of", "to", "at", "about", "today", "now", "still", "all", "kind",
    "sort", "get", "got", "getting", "do", "does", "did", "have", "has",
    "had", "as", "that's",
})

# Words that close a negation scope the way clause punctuation does.
SCOPE_BREAKERS = frozenset({"but", "although", "though", "however", "yet"})

# Where negated evidence goes. Moods missing here send a fraction of the
# weight to Neutral instead.
NEGATION_OPPOSITES: Mapping[MoodLabel, MoodLabel] = MappingProxyType({
    MoodLabel.HAPPY: MoodLabel.SAD,
    MoodLabel.SAD: MoodLabel.HAPPY,
    MoodLabel.EXCITED: MoodLabel.SAD,
})


def _build_lexicon() -> Mapping[str, tuple[MoodLabel, float]]:
    lexicon: dict[str, tuple[MoodLabel, float]] = {}
    for mood, words in _MOOD_WORDS.items():
        for word in words:
            if word in lexicon:
                raise ValueError(
                    f"'{word}' is listed under both {lexicon[word][0].value} and {mood.value}"
                )
            weight = STRONG_WEIGHT if word in _STRONG_WORDS else BASE_WEIGHT
            lexicon[word] = (mood, weight)
    return MappingProxyType(lexicon)


LEXICON = _build_lexicon()
PHRASES: Mapping[str, MoodLabel] = MappingProxyType(dict(_PHRASES))


def classify_token(token: str) -> Optional[tuple[MoodLabel, float]]:
    """Return (mood, base weight) for a lowercase token, or None."""
    return LEXICON.get(token)


def is_negation(token: str) -> bool:
    """`not`, `never`, ... and any n't contraction (don't, isn't, can't)."""
    if token.endswith("n't"):
        return True
    return token in NEGATIONS


def is_filler(token: str) -> bool:
    return token in FILLERS


def modifier_delta(token: str) -> Optional[float]:
    """Amount an intensity modifier adds to (or takes from) a word's weight.

    Returns None if token is not a modifier.
    """
    if token in STRONG_INTENSIFIERS:
        return STRONG_BOOST
    if token in LIGHT_INTENSIFIERS:
        return LIGHT_BOOST
    if token in DOWNTONERS:
        return -DOWNTONE
    return None
