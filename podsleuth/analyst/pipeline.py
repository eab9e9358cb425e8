"""Diagnosis pipeline: cache lookup, log fetch, analysis methods, merge, store.

One call diagnoses one pod:

    1. analysis disabled, or pod already Succeeded  -> no Diagnosis
    2. cache hit (unless caching is off or a force refresh applies)
    3. fetch the tail of the most relevant container's log
    4. optionally keep only error/warning lines; none left -> no Diagnosis
    5. run the configured methods in order
    6. merge, stamp analyzed_at, store in the cache

A log fetch failure raises LogFetchError; all other method failures are
recorded on the verdicts. Cancellation propagates and nothing is cached.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Callable
from datetime import UTC, datetime

from podsleuth.analyst.merger import merge
from podsleuth.analyst.methods import MethodRegistry
from podsleuth.analyst.refresh import ForceRefreshSignal
from podsleuth.cache.analysis_cache import AnalysisCache, cache_key
from podsleuth.collector.logs import LogSource, filter_error_lines, select_log_container
from podsleuth.errors import LogFetchError
from podsleuth.models.analysis import AIVerdict, Diagnosis, PatternVerdict
from podsleuth.models.config import AnalysisConfig
from podsleuth.models.resources import PHASE_SUCCEEDED, Unit
from podsleuth.observability.logging import get_logger, pod_context
from podsleuth.observability.metrics import diagnoses_total

_logger = get_logger("diagnosis_pipeline")

# Dashboards detect a refreshed result by analyzed_at alone, at second
# precision, so a forced re-analysis must land in a later second.
FORCE_REFRESH_DELAY_S: float = 1.1


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class DiagnosisPipeline:
    """Orchestrates log analysis for one pod at a time.

    Stateless apart from the injected cache, so one instance may serve
    concurrent reconcile passes.
    """

    def __init__(
        self,
        logs: LogSource,
        cache: AnalysisCache,
        methods: MethodRegistry,
        *,
        clock: Callable[[], datetime] = _utcnow,
        force_refresh_delay: float = FORCE_REFRESH_DELAY_S,
    ) -> None:
        self._logs = logs
        self._cache = cache
        self._methods = methods
        self._clock = clock
        self._force_refresh_delay = force_refresh_delay

    @property
    def cache(self) -> AnalysisCache:
        return self._cache

    async def diagnose(
        self,
        unit: Unit,
        config: AnalysisConfig,
        refresh: ForceRefreshSignal | None = None,
    ) -> Diagnosis | None:
        """Diagnose ``unit``; None when analysis is skipped or there is nothing to analyze."""
        if not config.enabled:
            return None
        if unit.phase == PHASE_SUCCEEDED:
            diagnoses_total.labels(outcome="skipped").inc()
            return None

        with pod_context(unit.key):
            force = refresh is not None and refresh.applies_to(unit)

            if config.cache_enabled and not force:
                cached = self._cache.get(cache_key(unit))
                if cached is not None:
                    _logger.info("analysis_cache_hit", cached_at=_iso(cached.cached_at))
                    diagnoses_total.labels(outcome="cached").inc()
                    return cached

            if force:
                _logger.info("force_refresh_requested")
                await asyncio.sleep(self._force_refresh_delay)

            try:
                lines = await self._fetch_lines(unit, config)
            except LogFetchError:
                diagnoses_total.labels(outcome="failed").inc()
                raise
            if not lines:
                _logger.info("no_log_lines_to_analyze")
                diagnoses_total.labels(outcome="no_logs").inc()
                return None

            diagnosis = await self._analyze(unit, config, lines)
            if diagnosis is None:
                diagnoses_total.labels(outcome="no_logs").inc()
                return None

            diagnoses_total.labels(outcome="analyzed").inc()
            _logger.info(
                "analysis_complete",
                methods=list(diagnosis.methods),
                primary=diagnosis.primary_method,
                confidence=diagnosis.confidence,
            )
            return self.remember(unit, config, diagnosis)

    def remember(self, unit: Unit, config: AnalysisConfig, diagnosis: Diagnosis) -> Diagnosis:
        """Stamp ``analyzed_at`` if unset and store in the cache when enabled."""
        if diagnosis.analyzed_at is None:
            diagnosis = dataclasses.replace(diagnosis, analyzed_at=self._clock())
        if config.cache_enabled:
            return self._cache.put(cache_key(unit), diagnosis, config.cache_ttl)
        return diagnosis

    async def _fetch_lines(self, unit: Unit, config: AnalysisConfig) -> list[str]:
        container = select_log_container(unit)
        if not container:
            raise LogFetchError(unit.namespace, unit.name, "", "no container found to analyze")

        try:
            lines = await self._logs.fetch_tail_lines(unit.namespace, unit.name, container, config.lines_to_fetch)
        except LogFetchError:
            raise
        except Exception as exc:
            raise LogFetchError(unit.namespace, unit.name, container, exc) from exc
        _logger.debug("log_lines_fetched", container=container, lines=len(lines))
        if config.filter_error_lines:
            filtered = filter_error_lines(lines)
            _logger.debug("log_lines_filtered", original=len(lines), kept=len(filtered))
            return filtered
        return lines

    async def _analyze(self, unit: Unit, config: AnalysisConfig, lines: list[str]) -> Diagnosis | None:
        pattern: PatternVerdict | None = None
        ai: AIVerdict | None = None
        collected: list[str] = []

        for order, name in enumerate(config.methods, start=1):
            method = self._methods.resolve(name)
            _logger.debug("running_analysis_method", method=name, order=order, total=len(config.methods))
            verdict = await method.run(lines, unit, config)
            if verdict is None:
                continue
            if isinstance(verdict, PatternVerdict):
                pattern = verdict
            else:
                ai = verdict
            if not verdict.failed:
                collected.extend(verdict.error_lines)

        return merge(pattern, ai, config.methods, collected)


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""
