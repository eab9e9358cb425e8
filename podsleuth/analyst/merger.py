"""Combines method verdicts into one Diagnosis.

Precedence when both methods produced a usable verdict:

    AI confidence > 80        -> AI drives the result           ("ai")
    AI confidence < 50        -> pattern drives the result      ("pattern")
    otherwise (50..80)        -> both root causes, mean score   ("pattern+ai")

A verdict carrying an ``error`` is kept on the Diagnosis so the failure is
visible, but never drives the root cause while another verdict is usable.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from podsleuth.models.analysis import MAX_ERROR_LINES, AIVerdict, Diagnosis, PatternVerdict

LABEL_PATTERN = "pattern"
LABEL_AI = "ai"
LABEL_COMBINED = "pattern+ai"

_AI_HIGH: int = 80
_AI_LOW: int = 50


def deduplicate_lines(lines: Iterable[str], limit: int = MAX_ERROR_LINES) -> tuple[str, ...]:
    """First-seen order, duplicates dropped, at most ``limit`` lines."""
    seen: set[str] = set()
    result: list[str] = []
    for line in lines:
        if line in seen:
            continue
        seen.add(line)
        result.append(line)
        if len(result) >= limit:
            break
    return tuple(result)


def _primary(pattern: PatternVerdict | None, ai: AIVerdict | None) -> tuple[str, int, str]:
    """Return (root_cause, confidence, label) from the usable verdicts."""
    if pattern is not None and ai is not None:
        if ai.confidence > _AI_HIGH:
            return ai.root_cause, ai.confidence, LABEL_AI
        if ai.confidence < _AI_LOW:
            return pattern.root_cause, pattern.confidence, LABEL_PATTERN
        return (
            f"[Pattern] {pattern.root_cause} | [AI] {ai.root_cause}",
            (pattern.confidence + ai.confidence) // 2,
            LABEL_COMBINED,
        )
    if ai is not None:
        return ai.root_cause, ai.confidence, LABEL_AI
    if pattern is not None:
        return pattern.root_cause, pattern.confidence, LABEL_PATTERN
    return "", 0, ""


def merge(
    pattern: PatternVerdict | None,
    ai: AIVerdict | None,
    methods_run: Sequence[str],
    error_lines: Iterable[str] = (),
) -> Diagnosis | None:
    """Merge the pattern and AI verdicts; None when neither method produced one.

    ``error_lines`` are the evidence lines the caller collected from verdicts
    without an error. ``analyzed_at`` is left unset for the caller to stamp.
    """
    if pattern is None and ai is None:
        return None

    usable_pattern = pattern if pattern is not None and not pattern.failed else None
    usable_ai = ai if ai is not None and not ai.failed else None

    if usable_pattern is None and usable_ai is None:
        # Every method failed: surface the failures as the root cause.
        errors = [v.error for v in (pattern, ai) if v is not None]
        root_cause, confidence, label = "; ".join(errors), 0, ""
    else:
        root_cause, confidence, label = _primary(usable_pattern, usable_ai)

    return Diagnosis(
        root_cause=root_cause,
        confidence=confidence,
        methods=tuple(methods_run),
        primary_method=label,
        pattern_result=pattern,
        ai_result=ai,
        error_lines=deduplicate_lines(error_lines),
    )
