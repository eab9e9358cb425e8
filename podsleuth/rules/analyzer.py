"""Deterministic log analysis by regex signature matching."""

from __future__ import annotations

from collections.abc import Sequence

from podsleuth.models.analysis import PatternRule, PatternVerdict
from podsleuth.models.config import PatternSpec
from podsleuth.observability.logging import get_logger
from podsleuth.observability.metrics import pattern_matches_total
from podsleuth.rules.base import by_priority, compile_rules

_logger = get_logger("pattern_analyzer")

UNKNOWN_ROOT_CAUSE = "Unknown error detected in logs"
_UNKNOWN_CONFIDENCE: int = 30
_UNKNOWN_EVIDENCE_LINES: int = 10


def _confidence_for(matched: int) -> int:
    """Confidence from the number of lines that matched any rule."""
    if matched >= 3:
        return 80
    if matched == 2:
        return 65
    return 50


class PatternAnalyzer:
    """Matches log lines against an ordered rule set.

    Every line is tested against the rules in priority order and counts at
    most once. The rule that produced the first match in the log wins,
    regardless of which rules matched later lines.

    The analyzer holds no state between calls.
    """

    def analyze(
        self,
        lines: Sequence[str],
        rules: Sequence[PatternRule] | None = None,
    ) -> PatternVerdict | None:
        """Return a verdict for ``lines``, or None when there are no lines."""
        if not lines:
            return None

        ordered = by_priority(rules if rules else compile_rules(()))

        matched_lines: list[str] = []
        best: PatternRule | None = None
        for line in lines:
            for rule in ordered:
                if rule.matcher.search(line):
                    matched_lines.append(line)
                    if best is None:
                        best = rule
                        _logger.debug("pattern_matched", pattern=rule.name, line=line)
                    break

        if best is None:
            _logger.info("no_patterns_matched", log_lines=len(lines), patterns=len(ordered))
            return PatternVerdict(
                root_cause=UNKNOWN_ROOT_CAUSE,
                confidence=_UNKNOWN_CONFIDENCE,
                error_lines=tuple(lines[:_UNKNOWN_EVIDENCE_LINES]),
            )

        confidence = _confidence_for(len(matched_lines))
        pattern_matches_total.labels(pattern=best.name).inc()
        _logger.info(
            "pattern_analysis_summary",
            pattern=best.name,
            matched_lines=len(matched_lines),
            confidence=confidence,
        )
        return PatternVerdict(
            matched_pattern=best.name,
            priority=best.priority,
            root_cause=best.root_cause or matched_lines[0],
            confidence=confidence,
            error_lines=tuple(matched_lines),
        )

    def analyze_with_specs(
        self,
        lines: Sequence[str],
        specs: Sequence[PatternSpec],
    ) -> PatternVerdict | None:
        """Compile caller-supplied patterns (with default fallback) and analyze."""
        return self.analyze(lines, compile_rules(specs))
