"""Pod snapshot structures consumed by the investigator and pipeline.

A ``Unit`` is a read-only, pre-digested view of one pod as reported by the
Kubernetes API. It is rebuilt on every pass (see ``collector.pods.unit_from_pod``)
and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ContainerStateKind(StrEnum):
    """Current lifecycle state of a container."""

    WAITING = "waiting"
    TERMINATED = "terminated"
    RUNNING = "running"


class ContainerKind(StrEnum):
    """Whether a container is a regular or init container."""

    PRIMARY = "container"
    INIT = "initContainer"


class ConditionStatus(StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


POD_READY_CONDITION = "Ready"
PHASE_SUCCEEDED = "Succeeded"


@dataclass(frozen=True)
class ContainerState:
    """One of the waiting/terminated/running details of a container status.

    ``kind`` is None when the API reported no state at all.
    """

    kind: ContainerStateKind | None = None
    reason: str = ""
    message: str = ""
    exit_code: int | None = None

    @property
    def is_error(self) -> bool:
        """Waiting and terminated are both error states for log targeting."""
        return self.kind in (ContainerStateKind.WAITING, ContainerStateKind.TERMINATED)


@dataclass(frozen=True)
class ContainerStatus:
    """Status of a single container inside a pod."""

    name: str
    ready: bool
    restart_count: int = 0
    state: ContainerState = field(default_factory=ContainerState)
    # Only the terminated detail of lastState is relevant for crash loops.
    last_terminated: ContainerState | None = None


@dataclass(frozen=True)
class PodConditionInfo:
    """A pod condition as reported by the API."""

    type: str
    status: str
    reason: str = ""
    message: str = ""


@dataclass(frozen=True)
class Unit:
    """Snapshot of one monitored pod."""

    namespace: str
    name: str
    uid: str
    phase: str = ""
    container_names: tuple[str, ...] = ()
    container_statuses: tuple[ContainerStatus, ...] = ()
    init_container_statuses: tuple[ContainerStatus, ...] = ()
    conditions: tuple[PodConditionInfo, ...] = ()
    owner_kind: str = ""
    owner_name: str = ""

    @property
    def key(self) -> str:
        """``namespace/name`` form used by the force-refresh signal."""
        return f"{self.namespace}/{self.name}"

    @property
    def is_ready(self) -> bool:
        """True only when the Ready condition is present and True."""
        for cond in self.conditions:
            if cond.type == POD_READY_CONDITION:
                return cond.status == ConditionStatus.TRUE
        return False

    @property
    def max_restart_count(self) -> int:
        """Highest restart count across containers and init containers."""
        counts = [cs.restart_count for cs in self.container_statuses]
        counts.extend(cs.restart_count for cs in self.init_container_statuses)
        return max(counts, default=0)
