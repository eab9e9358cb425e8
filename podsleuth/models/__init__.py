"""Core data structures for PodSleuth."""

from podsleuth.models.analysis import (
    AIVerdict,
    CacheEntry,
    ConditionSnapshot,
    ContainerFinding,
    Diagnosis,
    MethodVerdict,
    PatternRule,
    PatternVerdict,
    UnitIdentity,
    UnitReport,
)
from podsleuth.models.config import (
    AIEndpointConfig,
    AnalysisConfig,
    PatternSpec,
    PodSleuthConfig,
    SecretKeyRef,
)
from podsleuth.models.resources import (
    ContainerKind,
    ContainerState,
    ContainerStateKind,
    ContainerStatus,
    PodConditionInfo,
    Unit,
)

__all__ = [
    "AIEndpointConfig",
    "AIVerdict",
    "AnalysisConfig",
    "CacheEntry",
    "ConditionSnapshot",
    "ContainerFinding",
    "ContainerKind",
    "ContainerState",
    "ContainerStateKind",
    "ContainerStatus",
    "Diagnosis",
    "MethodVerdict",
    "PatternRule",
    "PatternSpec",
    "PatternVerdict",
    "PodConditionInfo",
    "PodSleuthConfig",
    "SecretKeyRef",
    "Unit",
    "UnitIdentity",
    "UnitReport",
]
