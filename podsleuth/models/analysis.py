"""Investigation findings, method verdicts and the merged Diagnosis."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime

from podsleuth.models.resources import ContainerKind, ContainerStateKind

MAX_ERROR_LINES: int = 20


@dataclass(frozen=True)
class ContainerFinding:
    """Why one container is contributing to its pod being not ready."""

    container_name: str
    kind: ContainerKind
    state: ContainerStateKind | None
    reason: str
    message: str
    ready: bool
    restart_count: int = 0
    exit_code: int | None = None


@dataclass(frozen=True)
class ConditionSnapshot:
    """A pod condition copied verbatim from the pod status."""

    type: str
    status: str
    reason: str = ""
    message: str = ""


@dataclass(frozen=True)
class PatternRule:
    """A compiled log signature.

    Higher ``priority`` is tested first. An empty ``root_cause`` means the
    first matched log line is reported verbatim.
    """

    name: str
    matcher: re.Pattern[str]
    root_cause: str = ""
    priority: int = 0


@dataclass(frozen=True)
class PatternVerdict:
    """Output of the pattern method.

    ``error_lines`` is the evidence the rule fired on; it feeds the merged
    Diagnosis but is not part of the serialized pattern result.
    """

    matched_pattern: str = ""
    priority: int = 0
    root_cause: str = ""
    confidence: int = 0
    error: str = ""
    error_lines: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return bool(self.error)


@dataclass(frozen=True)
class AIVerdict:
    """Output of the AI method."""

    model: str = ""
    root_cause: str = ""
    confidence: int = 0
    error: str = ""
    error_lines: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return bool(self.error)


MethodVerdict = PatternVerdict | AIVerdict


@dataclass(frozen=True)
class Diagnosis:
    """Merged, user-facing result of all analysis methods for one pod.

    ``primary_method`` is the label of the verdict that drove ``root_cause``:
    ``"pattern"``, ``"ai"`` or ``"pattern+ai"``. ``analyzed_at`` is stamped by
    the pipeline once the merge completes; ``cached_at`` and
    ``cache_expires_at`` are only ever set by the cache.
    """

    root_cause: str
    confidence: int
    methods: tuple[str, ...] = ()
    primary_method: str = ""
    pattern_result: PatternVerdict | None = None
    ai_result: AIVerdict | None = None
    error_lines: tuple[str, ...] = ()
    analyzed_at: datetime | None = None
    cached_at: datetime | None = None
    cache_expires_at: datetime | None = None


@dataclass(frozen=True)
class UnitIdentity:
    """Cache key: pod identity fenced by its restart generation."""

    namespace: str
    name: str
    uid: str
    generation: int

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}/{self.uid}/{self.generation}"


@dataclass(frozen=True)
class CacheEntry:
    """A stored Diagnosis and its validity window."""

    identity: UnitIdentity
    diagnosis: Diagnosis
    cached_at: datetime
    expires_at: datetime


@dataclass
class UnitReport:
    """Status entry for one non-ready pod, as written to the status object."""

    name: str
    namespace: str
    phase: str
    owner_kind: str = ""
    owner_name: str = ""
    reason: str = ""
    message: str = ""
    container_errors: list[ContainerFinding] = field(default_factory=list)
    pod_conditions: list[ConditionSnapshot] = field(default_factory=list)
    log_analysis: Diagnosis | None = None
