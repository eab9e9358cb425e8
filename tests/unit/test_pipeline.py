"""Tests for podsleuth.analyst.pipeline: DiagnosisPipeline orchestration."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from podsleuth.analyst.methods import AIMethod, MethodRegistry, PatternMethod, default_registry
from podsleuth.analyst.pipeline import DiagnosisPipeline
from podsleuth.analyst.refresh import ForceRefreshSignal
from podsleuth.cache.analysis_cache import AnalysisCache, cache_key
from podsleuth.errors import AIAnalysisError, LogFetchError
from podsleuth.models.analysis import AIVerdict, Diagnosis
from podsleuth.models.config import AIEndpointConfig, AnalysisConfig
from podsleuth.models.resources import (
    ContainerState,
    ContainerStateKind,
    ContainerStatus,
    PodConditionInfo,
    Unit,
)

_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
_LOG_LINES = [
    "INFO starting worker",
    "ERROR dial error: connection refused by db:5432",
    "INFO retrying",
    "ERROR connection refused again",
]


def _make_unit(phase: str = "Running", restarts: int = 2, name: str = "cart-5d8f") -> Unit:
    return Unit(
        namespace="shop",
        name=name,
        uid="u-1",
        phase=phase,
        container_names=("sidecar", "app"),
        container_statuses=(
            ContainerStatus(name="sidecar", ready=True, state=ContainerState(kind=ContainerStateKind.RUNNING)),
            ContainerStatus(
                name="app",
                ready=False,
                restart_count=restarts,
                state=ContainerState(kind=ContainerStateKind.WAITING, reason="CrashLoopBackOff"),
            ),
        ),
        conditions=(PodConditionInfo(type="Ready", status="False"),),
    )


def _make_config(**overrides: object) -> AnalysisConfig:
    base: dict[str, object] = {"enabled": True, "methods": ("pattern",)}
    base.update(overrides)
    return AnalysisConfig(**base)  # type: ignore[arg-type]


def _make_logs(lines: list[str] | None = None) -> MagicMock:
    logs = MagicMock()
    logs.fetch_tail_lines = AsyncMock(return_value=list(_LOG_LINES if lines is None else lines))
    return logs


def _make_pipeline(
    logs: MagicMock,
    methods: MethodRegistry | None = None,
    cache: AnalysisCache | None = None,
) -> DiagnosisPipeline:
    return DiagnosisPipeline(
        logs,
        cache if cache is not None else AnalysisCache(clock=lambda: _NOW),
        methods if methods is not None else default_registry(),
        clock=lambda: _NOW,
        force_refresh_delay=0,
    )


class TestSkips:
    @pytest.mark.asyncio
    async def test_disabled_returns_none(self) -> None:
        logs = _make_logs()
        result = await _make_pipeline(logs).diagnose(_make_unit(), _make_config(enabled=False))
        assert result is None
        logs.fetch_tail_lines.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_succeeded_pod_skipped(self) -> None:
        logs = _make_logs()
        result = await _make_pipeline(logs).diagnose(_make_unit(phase="Succeeded"), _make_config())
        assert result is None
        logs.fetch_tail_lines.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_error_lines_after_filter(self) -> None:
        logs = _make_logs(["INFO all good", "DEBUG tick"])
        pipeline = _make_pipeline(logs)
        result = await pipeline.diagnose(_make_unit(), _make_config())
        assert result is None
        assert len(pipeline.cache) == 0

    @pytest.mark.asyncio
    async def test_empty_log(self) -> None:
        result = await _make_pipeline(_make_logs([])).diagnose(_make_unit(), _make_config(filter_error_lines=False))
        assert result is None


class TestFreshDiagnosis:
    @pytest.mark.asyncio
    async def test_pattern_diagnosis_stamped_and_cached(self) -> None:
        logs = _make_logs()
        pipeline = _make_pipeline(logs)
        unit = _make_unit()

        diagnosis = await pipeline.diagnose(unit, _make_config())

        assert diagnosis is not None
        logs.fetch_tail_lines.assert_awaited_once_with("shop", "cart-5d8f", "app", 100)
        assert diagnosis.pattern_result is not None
        assert diagnosis.pattern_result.matched_pattern == "ConnectionRefused"
        assert diagnosis.confidence == 65
        assert diagnosis.primary_method == "pattern"
        assert diagnosis.methods == ("pattern",)
        assert diagnosis.analyzed_at == _NOW
        assert diagnosis.cached_at == _NOW
        assert diagnosis.cache_expires_at == _NOW + timedelta(minutes=5)
        assert len(diagnosis.error_lines) == 2
        assert cache_key(unit) in pipeline.cache

    @pytest.mark.asyncio
    async def test_unfiltered_lines_passed_through(self) -> None:
        logs = _make_logs(["plain line one", "plain line two"])
        diagnosis = await _make_pipeline(logs).diagnose(_make_unit(), _make_config(filter_error_lines=False))
        assert diagnosis is not None
        assert diagnosis.root_cause == "Unknown error detected in logs"
        assert diagnosis.confidence == 30

    @pytest.mark.asyncio
    async def test_cache_disabled_not_stored(self) -> None:
        logs = _make_logs()
        pipeline = _make_pipeline(logs)
        diagnosis = await pipeline.diagnose(_make_unit(), _make_config(cache_enabled=False))
        assert diagnosis is not None
        assert diagnosis.analyzed_at == _NOW
        assert diagnosis.cached_at is None
        assert len(pipeline.cache) == 0

    @pytest.mark.asyncio
    async def test_unknown_method_skipped(self) -> None:
        diagnosis = await _make_pipeline(_make_logs()).diagnose(
            _make_unit(), _make_config(methods=("magic", "pattern"))
        )
        assert diagnosis is not None
        assert diagnosis.pattern_result is not None
        assert diagnosis.ai_result is None

    @pytest.mark.asyncio
    async def test_only_unknown_methods_yield_none(self) -> None:
        result = await _make_pipeline(_make_logs()).diagnose(_make_unit(), _make_config(methods=("magic",)))
        assert result is None


class TestCaching:
    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self) -> None:
        logs = _make_logs()
        pipeline = _make_pipeline(logs)
        first = await pipeline.diagnose(_make_unit(), _make_config())
        second = await pipeline.diagnose(_make_unit(), _make_config())
        assert second == first
        assert logs.fetch_tail_lines.await_count == 1

    @pytest.mark.asyncio
    async def test_restart_forces_reanalysis(self) -> None:
        logs = _make_logs()
        pipeline = _make_pipeline(logs)
        await pipeline.diagnose(_make_unit(restarts=2), _make_config())
        await pipeline.diagnose(_make_unit(restarts=3), _make_config())
        assert logs.fetch_tail_lines.await_count == 2

    @pytest.mark.asyncio
    async def test_cache_disabled_always_fetches(self) -> None:
        logs = _make_logs()
        pipeline = _make_pipeline(logs)
        await pipeline.diagnose(_make_unit(), _make_config(cache_enabled=False))
        await pipeline.diagnose(_make_unit(), _make_config(cache_enabled=False))
        assert logs.fetch_tail_lines.await_count == 2


class TestForceRefresh:
    @pytest.mark.asyncio
    async def test_global_refresh_bypasses_cache(self) -> None:
        logs = _make_logs()
        pipeline = _make_pipeline(logs)
        await pipeline.diagnose(_make_unit(), _make_config())
        await pipeline.diagnose(_make_unit(), _make_config(), ForceRefreshSignal(everything=True))
        assert logs.fetch_tail_lines.await_count == 2

    @pytest.mark.asyncio
    async def test_targeted_refresh_only_for_named_pod(self) -> None:
        logs = _make_logs()
        pipeline = _make_pipeline(logs)
        await pipeline.diagnose(_make_unit(), _make_config())
        await pipeline.diagnose(_make_unit(), _make_config(), ForceRefreshSignal(target="shop/other"))
        assert logs.fetch_tail_lines.await_count == 1
        await pipeline.diagnose(_make_unit(), _make_config(), ForceRefreshSignal(target="shop/cart-5d8f"))
        assert logs.fetch_tail_lines.await_count == 2

    @pytest.mark.asyncio
    async def test_refresh_waits_before_analysis(self) -> None:
        logs = _make_logs()
        pipeline = DiagnosisPipeline(logs, AnalysisCache(), default_registry())
        with patch("podsleuth.analyst.pipeline.asyncio.sleep", new=AsyncMock()) as sleep:
            await pipeline.diagnose(_make_unit(), _make_config(), ForceRefreshSignal(everything=True))
        sleep.assert_awaited_once_with(1.1)

    def test_signal_from_annotations(self) -> None:
        signal = ForceRefreshSignal.from_annotations({"kubesleuth.io/force-refresh-pod": " shop/cart-5d8f "})
        assert signal.active
        assert not signal.everything
        assert signal.applies_to(_make_unit())
        assert not ForceRefreshSignal.from_annotations(None).active
        assert ForceRefreshSignal.from_annotations({"kubesleuth.io/force-refresh": "true"}).everything


class TestFailures:
    @pytest.mark.asyncio
    async def test_ai_500_keeps_pattern_verdict(self) -> None:
        analyzer = MagicMock()
        analyzer.analyze = AsyncMock(side_effect=AIAnalysisError("AI endpoint returned status 500: boom"))
        registry = MethodRegistry([PatternMethod(), AIMethod(analyzer)])
        config = _make_config(methods=("pattern", "ai"), ai=AIEndpointConfig(endpoint="https://api.openai.com/v1"))

        diagnosis = await _make_pipeline(_make_logs(), methods=registry).diagnose(_make_unit(), config)

        assert diagnosis is not None
        assert diagnosis.primary_method == "pattern"
        assert diagnosis.pattern_result is not None
        assert diagnosis.ai_result is not None
        assert diagnosis.ai_result.error.startswith("AI analysis failed: AI endpoint returned status 500")
        assert diagnosis.methods == ("pattern", "ai")
        # Only the pattern verdict contributed evidence.
        assert len(diagnosis.error_lines) == 2

    @pytest.mark.asyncio
    async def test_ai_and_pattern_combined(self) -> None:
        analyzer = MagicMock()
        analyzer.analyze = AsyncMock(
            return_value=AIVerdict(model="m", root_cause="DB down", confidence=90, error_lines=("ERROR x",))
        )
        registry = MethodRegistry([PatternMethod(), AIMethod(analyzer)])
        config = _make_config(methods=("pattern", "ai"))

        diagnosis = await _make_pipeline(_make_logs(), methods=registry).diagnose(_make_unit(), config)

        assert diagnosis is not None
        assert diagnosis.primary_method == "ai"
        assert diagnosis.root_cause == "DB down"
        assert "ERROR x" in diagnosis.error_lines

    @pytest.mark.asyncio
    async def test_log_fetch_error_raises(self) -> None:
        logs = MagicMock()
        logs.fetch_tail_lines = AsyncMock(side_effect=LogFetchError("shop", "cart-5d8f", "app", "403 Forbidden"))
        pipeline = _make_pipeline(logs)
        with pytest.raises(LogFetchError, match="failed to get pod logs for shop/cart-5d8f"):
            await pipeline.diagnose(_make_unit(), _make_config())
        assert len(pipeline.cache) == 0

    @pytest.mark.asyncio
    async def test_unexpected_log_source_error_wrapped(self) -> None:
        logs = MagicMock()
        logs.fetch_tail_lines = AsyncMock(side_effect=RuntimeError("socket closed"))
        with pytest.raises(LogFetchError, match="socket closed"):
            await _make_pipeline(logs).diagnose(_make_unit(), _make_config())

    @pytest.mark.asyncio
    async def test_no_containers_is_log_fetch_error(self) -> None:
        unit = Unit(namespace="shop", name="empty", uid="u-2", phase="Pending")
        with pytest.raises(LogFetchError, match="no container found"):
            await _make_pipeline(_make_logs()).diagnose(unit, _make_config())

    @pytest.mark.asyncio
    async def test_cancellation_caches_nothing(self) -> None:
        logs = MagicMock()
        logs.fetch_tail_lines = AsyncMock(side_effect=asyncio.CancelledError())
        pipeline = _make_pipeline(logs)
        with pytest.raises(asyncio.CancelledError):
            await pipeline.diagnose(_make_unit(), _make_config())
        assert len(pipeline.cache) == 0


class TestRemember:
    def test_stamps_and_stores(self) -> None:
        pipeline = _make_pipeline(_make_logs())
        stored = pipeline.remember(_make_unit(), _make_config(), Diagnosis(root_cause="x", confidence=0))
        assert stored.analyzed_at == _NOW
        assert stored.cached_at == _NOW
