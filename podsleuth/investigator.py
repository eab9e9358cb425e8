"""Status investigation: explains a non-ready pod from its structured status.

Pure and deterministic: reads only the ``Unit`` snapshot, performs no I/O,
and always returns a result (possibly empty).
"""

from __future__ import annotations

from podsleuth.models.analysis import ConditionSnapshot, ContainerFinding
from podsleuth.models.resources import (
    POD_READY_CONDITION,
    ConditionStatus,
    ContainerKind,
    ContainerStateKind,
    ContainerStatus,
    Unit,
)

READINESS_PROBE_FAILED = "ReadinessProbeFailed"
CRASH_LOOP_BACK_OFF = "CrashLoopBackOff"

Investigation = tuple[str, str, list[ContainerFinding], list[ConditionSnapshot]]


def _should_investigate(status: ContainerStatus) -> bool:
    """Not-ready containers, plus terminated ones that exited with an error."""
    if not status.ready:
        return True
    state = status.state
    return state.kind == ContainerStateKind.TERMINATED and (state.exit_code not in (None, 0) or state.reason == "Error")


def investigate_container(status: ContainerStatus, kind: ContainerKind) -> ContainerFinding:
    """Build a finding for one container.

    Reason and message come from the current state first, then from the last
    termination (crash loops report little in the waiting state), and are
    finally synthesized so that a finding is never blank.
    """
    state = status.state
    reason = ""
    message = ""
    exit_code: int | None = None

    if state.kind == ContainerStateKind.WAITING:
        reason, message = state.reason, state.message
    elif state.kind == ContainerStateKind.TERMINATED:
        reason, message, exit_code = state.reason, state.message, state.exit_code
        if not message:
            if exit_code is not None:
                message = f"Container terminated with reason '{reason}' (exit code: {exit_code})"
            else:
                message = f"Container terminated with reason '{reason}'"
    elif state.kind == ContainerStateKind.RUNNING and not status.ready:
        reason = READINESS_PROBE_FAILED
        message = "Container is running but readiness probe is failing"

    last = status.last_terminated
    if last is not None and reason in ("", CRASH_LOOP_BACK_OFF):
        if not message:
            message = f"Container exited with code {last.exit_code or 0}: {last.reason}"
        if exit_code is None:
            exit_code = last.exit_code or 0

    if not reason:
        if state.kind == ContainerStateKind.TERMINATED and exit_code is not None:
            reason = "ContainerTerminated"
            message = message or f"Container terminated with exit code {exit_code}"
        elif state.kind == ContainerStateKind.WAITING:
            reason = "ContainerWaiting"
            message = message or "Container is waiting to start"
        elif not status.ready:
            reason = "ContainerNotReady"
            message = message or "Container is not ready"

    return ContainerFinding(
        container_name=status.name,
        kind=kind,
        state=state.kind,
        reason=reason,
        message=message,
        ready=status.ready,
        restart_count=status.restart_count,
        exit_code=exit_code,
    )


def investigate(unit: Unit) -> Investigation:
    """Return ``(reason, message, findings, conditions)`` for a pod.

    Primary reason selection: the first finding wins, a later waiting-state
    finding (ImagePullBackOff, CrashLoopBackOff, ...) replaces it, and a
    terminated finding replaces a ReadinessProbeFailed one. Init container
    findings become primary only when nothing was chosen yet. With no
    container findings the pod's own Ready=False condition is used.
    """
    findings: list[ContainerFinding] = []
    primary_reason = ""
    primary_message = ""

    for status in unit.container_statuses:
        if not _should_investigate(status):
            continue
        finding = investigate_container(status, ContainerKind.PRIMARY)
        findings.append(finding)

        if not primary_reason:
            primary_reason, primary_message = finding.reason, finding.message
        elif finding.state != ContainerStateKind.RUNNING and finding.reason:
            if finding.state == ContainerStateKind.WAITING or (
                finding.state == ContainerStateKind.TERMINATED and primary_reason == READINESS_PROBE_FAILED
            ):
                primary_reason, primary_message = finding.reason, finding.message

    for status in unit.init_container_statuses:
        if status.ready:
            continue
        finding = investigate_container(status, ContainerKind.INIT)
        findings.append(finding)
        if not primary_reason:
            primary_reason, primary_message = finding.reason, finding.message

    conditions = [
        ConditionSnapshot(type=c.type, status=c.status, reason=c.reason, message=c.message) for c in unit.conditions
    ]

    if not primary_reason:
        for cond in unit.conditions:
            if cond.type == POD_READY_CONDITION and cond.status == ConditionStatus.FALSE:
                primary_reason, primary_message = cond.reason, cond.message
                break

    return primary_reason, primary_message, findings, conditions
