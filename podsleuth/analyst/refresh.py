"""Out-of-band force-refresh signal.

Set by a human (or the dashboard) as annotations on the monitored group:
``kubesleuth.io/force-refresh`` refreshes every pod, while
``kubesleuth.io/force-refresh-pod: <namespace>/<name>`` targets one pod.
Clearing the annotations after a successful pass is the driver's job.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from podsleuth.models.resources import Unit

FORCE_REFRESH_ANNOTATION = "kubesleuth.io/force-refresh"
FORCE_REFRESH_POD_ANNOTATION = "kubesleuth.io/force-refresh-pod"


@dataclass(frozen=True)
class ForceRefreshSignal:
    everything: bool = False
    target: str = ""

    @classmethod
    def from_annotations(cls, annotations: Mapping[str, str] | None) -> ForceRefreshSignal:
        if not annotations:
            return cls()
        return cls(
            everything=FORCE_REFRESH_ANNOTATION in annotations,
            target=annotations.get(FORCE_REFRESH_POD_ANNOTATION, "").strip(),
        )

    @property
    def active(self) -> bool:
        return self.everything or bool(self.target)

    def applies_to(self, unit: Unit) -> bool:
        return self.everything or (bool(self.target) and self.target == unit.key)
