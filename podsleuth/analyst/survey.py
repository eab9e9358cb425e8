"""One reconcile pass over the pods of a monitored group.

Turns a pod list into the ``UnitReport`` entries of the status object:
every non-ready pod is investigated, diagnosed from its logs when analysis
is enabled, and the cache is swept down to the pods still observed.
Scheduling, listing and writing the status back belong to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable

from podsleuth.analyst.pipeline import DiagnosisPipeline
from podsleuth.analyst.refresh import ForceRefreshSignal
from podsleuth.cache.analysis_cache import cache_key
from podsleuth.errors import LogFetchError
from podsleuth.investigator import investigate
from podsleuth.models.analysis import Diagnosis, UnitReport
from podsleuth.models.config import AnalysisConfig
from podsleuth.models.resources import Unit
from podsleuth.observability.logging import get_logger, pod_context

_logger = get_logger("survey")

FAILED_METHOD = "failed"


def failure_diagnosis(exc: Exception) -> Diagnosis:
    """Placeholder result for a pod whose logs could not be read."""
    return Diagnosis(root_cause=f"Analysis Failed: {exc}", confidence=0, methods=(FAILED_METHOD,))


def append_log_finding(message: str, diagnosis: Diagnosis | None) -> str:
    if diagnosis is None or not diagnosis.root_cause:
        return message
    if message:
        return f"{message}. Log analysis: {diagnosis.root_cause}"
    return f"Log analysis: {diagnosis.root_cause}"


async def survey(
    units: Iterable[Unit],
    config: AnalysisConfig,
    pipeline: DiagnosisPipeline,
    refresh: ForceRefreshSignal | None = None,
) -> list[UnitReport]:
    """Build reports for the non-ready pods in ``units`` and sweep the cache."""
    observed = list(units)
    reports: list[UnitReport] = []
    if refresh is not None and refresh.active:
        _logger.info("force_refresh_signal_active", everything=refresh.everything, target=refresh.target)

    for unit in observed:
        if unit.is_ready:
            continue
        with pod_context(unit.key):
            reports.append(await _report_unit(unit, config, pipeline, refresh))

    pipeline.cache.sweep(cache_key(unit) for unit in observed if not unit.is_ready)
    return reports


async def _report_unit(
    unit: Unit,
    config: AnalysisConfig,
    pipeline: DiagnosisPipeline,
    refresh: ForceRefreshSignal | None,
) -> UnitReport:
    reason, message, findings, conditions = investigate(unit)
    report = UnitReport(
        name=unit.name,
        namespace=unit.namespace,
        phase=unit.phase,
        owner_kind=unit.owner_kind,
        owner_name=unit.owner_name,
        reason=reason,
        message=message,
        container_errors=findings,
        pod_conditions=conditions,
    )

    try:
        diagnosis = await pipeline.diagnose(unit, config, refresh)
    except LogFetchError as exc:
        _logger.info("log_analysis_failed", error=str(exc))
        # Cached like any result so pollers can see the attempt finished.
        diagnosis = pipeline.remember(unit, config, failure_diagnosis(exc))

    report.log_analysis = diagnosis
    report.message = append_log_finding(report.message, diagnosis)

    _logger.info(
        "non_ready_pod_detected",
        phase=unit.phase,
        owner=f"{unit.owner_kind}/{unit.owner_name}" if unit.owner_kind else "",
        reason=report.reason,
        container_errors=len(findings),
    )
    return report
