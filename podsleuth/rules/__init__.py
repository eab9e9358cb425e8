"""Pattern rules and the deterministic log analyzer.

Usage::

    from podsleuth.rules import PatternAnalyzer, compile_rules

    verdict = PatternAnalyzer().analyze(lines, compile_rules(config.patterns))
"""

from __future__ import annotations

from podsleuth.rules.analyzer import UNKNOWN_ROOT_CAUSE, PatternAnalyzer
from podsleuth.rules.base import by_priority, compile_rules, default_rules

__all__ = [
    "UNKNOWN_ROOT_CAUSE",
    "PatternAnalyzer",
    "by_priority",
    "compile_rules",
    "default_rules",
]
