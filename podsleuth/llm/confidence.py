"""Heuristic confidence scoring for free-text AI answers.

AI endpoints do not report a usable confidence, so the score is derived
from the shape of the answer. The result is always within [10, 100].
"""

from __future__ import annotations

_BASE: int = 60
_MIN: int = 10
_MAX: int = 100

_UNCERTAIN_PHRASES: tuple[str, ...] = (
    "might",
    "maybe",
    "possibly",
    "perhaps",
    "unclear",
    "not sure",
    "could be",
    "may be",
    "unsure",
    "uncertain",
    "difficult to determine",
    "hard to say",
)

_CERTAIN_PHRASES: tuple[str, ...] = (
    "error:",
    "failed:",
    "exception:",
    "timeout:",
    "connection refused",
    "out of memory",
    "disk full",
    "permission denied",
    "not found",
    "crashed",
    "terminated",
    "killed",
    "panic:",
    "fatal:",
)

_STRUCTURE_MARKERS: tuple[str, ...] = ("\n-", "\n*", "\n1.", "\n2.", "line ", "at line", "error at")

_NON_ANSWER_PHRASES: tuple[str, ...] = (
    "i cannot",
    "i can't",
    "i don't have",
    "no information",
    "please provide",
    "need more",
    "insufficient",
)


def _length_adjustment(length: int) -> int:
    if length > 200:
        return 20
    if length > 100:
        return 15
    if length > 50:
        return 10
    if length < 20:
        return -20
    return 0


def compute_confidence(text: str) -> int:
    """Score an AI answer.

    score = 60
      + 20 / 15 / 10  for answers longer than 200 / 100 / 50 chars
      - 20            for answers shorter than 20 chars
      - 15            once, if the answer hedges
      + 5             per distinct certainty phrase (capped at 100)
      + 8             once, if the answer is structured (lists, line refs)
      - 25            once, if the answer is a non-answer
      -> clamped to [10, 100]
    """
    lowered = text.lower()
    score = _BASE + _length_adjustment(len(text))

    if any(phrase in lowered for phrase in _UNCERTAIN_PHRASES):
        score -= 15

    certainty = sum(1 for phrase in _CERTAIN_PHRASES if phrase in lowered)
    if certainty:
        score = min(score + certainty * 5, _MAX)

    if any(marker in lowered for marker in _STRUCTURE_MARKERS):
        score += 8

    if any(phrase in lowered for phrase in _NON_ANSWER_PHRASES):
        score -= 25

    return max(_MIN, min(score, _MAX))
