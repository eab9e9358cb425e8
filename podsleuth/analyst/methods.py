"""Analysis method registry.

Each method turns log lines into a verdict and never raises for an ordinary
failure: exceptions are caught at this boundary and returned as a verdict
whose ``error`` says what went wrong. Task cancellation is not caught.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from podsleuth.llm.analyzer import AIAnalyzer
from podsleuth.models.analysis import AIVerdict, MethodVerdict, PatternVerdict
from podsleuth.models.config import AnalysisConfig
from podsleuth.models.resources import Unit
from podsleuth.observability.logging import get_logger
from podsleuth.observability.metrics import analysis_method_runs_total
from podsleuth.rules.analyzer import PatternAnalyzer

_logger = get_logger("analysis_methods")

METHOD_PATTERN = "pattern"
METHOD_AI = "ai"


class AnalysisMethod(Protocol):
    name: str

    async def run(self, lines: Sequence[str], unit: Unit, config: AnalysisConfig) -> MethodVerdict | None: ...


class PatternMethod:
    name = METHOD_PATTERN

    def __init__(self, analyzer: PatternAnalyzer | None = None) -> None:
        self._analyzer = analyzer or PatternAnalyzer()

    async def run(self, lines: Sequence[str], unit: Unit, config: AnalysisConfig) -> PatternVerdict | None:
        try:
            verdict = self._analyzer.analyze_with_specs(lines, config.patterns)
        except Exception as exc:
            _logger.error("pattern_analysis_failed", error=str(exc), exc_info=True)
            analysis_method_runs_total.labels(method=self.name, success="false").inc()
            return PatternVerdict(error=f"Pattern analysis failed: {exc}")
        analysis_method_runs_total.labels(method=self.name, success="true").inc()
        return verdict


class AIMethod:
    name = METHOD_AI

    def __init__(self, analyzer: AIAnalyzer) -> None:
        self._analyzer = analyzer

    async def run(self, lines: Sequence[str], unit: Unit, config: AnalysisConfig) -> AIVerdict | None:
        try:
            verdict = await self._analyzer.analyze(lines, unit, config.ai)
        except Exception as exc:
            _logger.warning("ai_analysis_failed", error=str(exc), endpoint=config.ai.endpoint)
            analysis_method_runs_total.labels(method=self.name, success="false").inc()
            return AIVerdict(error=f"AI analysis failed: {exc}")
        analysis_method_runs_total.labels(method=self.name, success="true").inc()
        return verdict


class SkippedMethod:
    """Stands in for any method name nobody registered."""

    def __init__(self, name: str) -> None:
        self.name = name

    async def run(self, lines: Sequence[str], unit: Unit, config: AnalysisConfig) -> MethodVerdict | None:
        _logger.warning("analysis_method_unknown", method=self.name)
        return None


class MethodRegistry:
    """Maps configured method names to implementations."""

    def __init__(self, methods: Sequence[AnalysisMethod] = ()) -> None:
        self._methods: dict[str, AnalysisMethod] = {}
        for method in methods:
            self.register(method)

    def register(self, method: AnalysisMethod) -> None:
        self._methods[method.name] = method

    def resolve(self, name: str) -> AnalysisMethod:
        return self._methods.get(name) or SkippedMethod(name)

    def names(self) -> list[str]:
        return sorted(self._methods)


def default_registry(ai_analyzer: AIAnalyzer | None = None) -> MethodRegistry:
    """Pattern always; AI only when an analyzer is supplied."""
    registry = MethodRegistry([PatternMethod()])
    if ai_analyzer is not None:
        registry.register(AIMethod(ai_analyzer))
    return registry
