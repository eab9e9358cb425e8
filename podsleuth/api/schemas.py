"""Pydantic models for the status-object JSON shape.

The status-reporting layer and the read-only dashboard consume Diagnoses and
pod reports in camelCase form, with timestamps as RFC 3339 strings at second
precision (the Kubernetes ``metav1.Time`` convention). Empty optional fields
are omitted.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from podsleuth.models.analysis import (
    AIVerdict,
    ConditionSnapshot,
    ContainerFinding,
    Diagnosis,
    PatternVerdict,
    UnitReport,
)

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(value: datetime) -> str:
    """RFC 3339, UTC, truncated to whole seconds. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PatternResultModel(_CamelModel):
    matched_pattern: str = ""
    priority: int = 0
    root_cause: str = ""
    confidence: int = 0
    error: str | None = None

    @classmethod
    def from_verdict(cls, verdict: PatternVerdict) -> PatternResultModel:
        return cls(
            matched_pattern=verdict.matched_pattern,
            priority=verdict.priority,
            root_cause=verdict.root_cause,
            confidence=verdict.confidence,
            error=verdict.error or None,
        )

    def to_verdict(self) -> PatternVerdict:
        return PatternVerdict(
            matched_pattern=self.matched_pattern,
            priority=self.priority,
            root_cause=self.root_cause,
            confidence=self.confidence,
            error=self.error or "",
        )


class AIResultModel(_CamelModel):
    model: str = ""
    root_cause: str = ""
    confidence: int = 0
    error: str | None = None

    @classmethod
    def from_verdict(cls, verdict: AIVerdict) -> AIResultModel:
        return cls(
            model=verdict.model,
            root_cause=verdict.root_cause,
            confidence=verdict.confidence,
            error=verdict.error or None,
        )

    def to_verdict(self) -> AIVerdict:
        return AIVerdict(
            model=self.model,
            root_cause=self.root_cause,
            confidence=self.confidence,
            error=self.error or "",
        )


class DiagnosisModel(_CamelModel):
    """Serialized Diagnosis (``logAnalysis`` in a pod report)."""

    root_cause: str = ""
    confidence: int = Field(default=0, ge=0, le=100)
    method: str | None = Field(default=None, description="Label of the verdict that drove rootCause.")
    methods: list[str] = Field(default_factory=list)
    pattern_result: PatternResultModel | None = None
    ai_result: AIResultModel | None = None
    error_lines: list[str] = Field(default_factory=list)
    analyzed_at: datetime | None = None
    cached_at: datetime | None = None
    cache_expires_at: datetime | None = None

    @field_serializer("analyzed_at", "cached_at", "cache_expires_at")
    def _serialize_timestamp(self, value: datetime | None) -> str | None:
        return format_timestamp(value) if value is not None else None

    @classmethod
    def from_diagnosis(cls, diagnosis: Diagnosis) -> DiagnosisModel:
        return cls(
            root_cause=diagnosis.root_cause,
            confidence=diagnosis.confidence,
            method=diagnosis.primary_method or None,
            methods=list(diagnosis.methods),
            pattern_result=(
                PatternResultModel.from_verdict(diagnosis.pattern_result) if diagnosis.pattern_result else None
            ),
            ai_result=AIResultModel.from_verdict(diagnosis.ai_result) if diagnosis.ai_result else None,
            error_lines=list(diagnosis.error_lines),
            analyzed_at=diagnosis.analyzed_at,
            cached_at=diagnosis.cached_at,
            cache_expires_at=diagnosis.cache_expires_at,
        )

    def to_diagnosis(self) -> Diagnosis:
        return Diagnosis(
            root_cause=self.root_cause,
            confidence=self.confidence,
            methods=tuple(self.methods),
            primary_method=self.method or "",
            pattern_result=self.pattern_result.to_verdict() if self.pattern_result else None,
            ai_result=self.ai_result.to_verdict() if self.ai_result else None,
            error_lines=tuple(self.error_lines),
            analyzed_at=self.analyzed_at,
            cached_at=self.cached_at,
            cache_expires_at=self.cache_expires_at,
        )


class ContainerErrorModel(_CamelModel):
    container_name: str
    type: str
    state: str = ""
    reason: str = ""
    message: str = ""
    exit_code: int | None = None
    restart_count: int = 0
    ready: bool = False

    @classmethod
    def from_finding(cls, finding: ContainerFinding) -> ContainerErrorModel:
        return cls(
            container_name=finding.container_name,
            type=str(finding.kind),
            state=str(finding.state) if finding.state is not None else "",
            reason=finding.reason,
            message=finding.message,
            exit_code=finding.exit_code,
            restart_count=finding.restart_count,
            ready=finding.ready,
        )


class PodConditionModel(_CamelModel):
    type: str
    status: str
    reason: str | None = None
    message: str | None = None

    @classmethod
    def from_snapshot(cls, snapshot: ConditionSnapshot) -> PodConditionModel:
        return cls(
            type=snapshot.type,
            status=snapshot.status,
            reason=snapshot.reason or None,
            message=snapshot.message or None,
        )


class NonReadyPodModel(_CamelModel):
    """One entry of ``status.nonReadyPods``."""

    name: str
    namespace: str
    phase: str
    owner_kind: str | None = None
    owner_name: str | None = None
    reason: str | None = None
    message: str | None = None
    container_errors: list[ContainerErrorModel] = Field(default_factory=list)
    pod_conditions: list[PodConditionModel] = Field(default_factory=list)
    log_analysis: DiagnosisModel | None = None

    @classmethod
    def from_report(cls, report: UnitReport) -> NonReadyPodModel:
        return cls(
            name=report.name,
            namespace=report.namespace,
            phase=report.phase,
            owner_kind=report.owner_kind or None,
            owner_name=report.owner_name or None,
            reason=report.reason or None,
            message=report.message or None,
            container_errors=[ContainerErrorModel.from_finding(f) for f in report.container_errors],
            pod_conditions=[PodConditionModel.from_snapshot(c) for c in report.pod_conditions],
            log_analysis=DiagnosisModel.from_diagnosis(report.log_analysis) if report.log_analysis else None,
        )


# ---------------------------------------------------------------------------
# Plain-dict helpers
# ---------------------------------------------------------------------------


def diagnosis_to_dict(diagnosis: Diagnosis) -> dict[str, Any]:
    return DiagnosisModel.from_diagnosis(diagnosis).model_dump(mode="json", by_alias=True, exclude_none=True)


def diagnosis_from_dict(data: dict[str, Any]) -> Diagnosis:
    return DiagnosisModel.model_validate(data).to_diagnosis()


def report_to_dict(report: UnitReport) -> dict[str, Any]:
    return NonReadyPodModel.from_report(report).model_dump(mode="json", by_alias=True, exclude_none=True)
