"""Conversion of kubernetes_asyncio ``V1Pod`` objects into ``Unit`` snapshots."""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio.client.exceptions import ApiException

from podsleuth.models.resources import (
    ContainerState,
    ContainerStateKind,
    ContainerStatus,
    PodConditionInfo,
    Unit,
)
from podsleuth.observability.logging import get_logger

_logger = get_logger("collector.pods")


def _container_state(raw: Any) -> ContainerState:
    """Map a ``V1ContainerState`` to a ContainerState (waiting wins, then terminated)."""
    if raw is None:
        return ContainerState()
    waiting = getattr(raw, "waiting", None)
    if waiting is not None:
        return ContainerState(
            kind=ContainerStateKind.WAITING,
            reason=waiting.reason or "",
            message=waiting.message or "",
        )
    terminated = getattr(raw, "terminated", None)
    if terminated is not None:
        return ContainerState(
            kind=ContainerStateKind.TERMINATED,
            reason=terminated.reason or "",
            message=terminated.message or "",
            exit_code=terminated.exit_code if terminated.exit_code is not None else 0,
        )
    if getattr(raw, "running", None) is not None:
        return ContainerState(kind=ContainerStateKind.RUNNING)
    return ContainerState()


def _container_status(raw: Any) -> ContainerStatus:
    last_terminated: ContainerState | None = None
    last_state = getattr(raw, "last_state", None)
    if last_state is not None and getattr(last_state, "terminated", None) is not None:
        last_terminated = _container_state(last_state)
    return ContainerStatus(
        name=raw.name,
        ready=bool(raw.ready),
        restart_count=raw.restart_count or 0,
        state=_container_state(getattr(raw, "state", None)),
        last_terminated=last_terminated,
    )


def unit_from_pod(pod: Any, owner: tuple[str, str] = ("", "")) -> Unit:
    """Build a Unit from a ``V1Pod``; ``owner`` is the resolved (kind, name)."""
    metadata = pod.metadata
    spec = getattr(pod, "spec", None)
    status = getattr(pod, "status", None)

    containers = (getattr(spec, "containers", None) or []) if spec is not None else []
    container_statuses = (getattr(status, "container_statuses", None) or []) if status is not None else []
    init_statuses = (getattr(status, "init_container_statuses", None) or []) if status is not None else []
    conditions = (getattr(status, "conditions", None) or []) if status is not None else []

    return Unit(
        namespace=metadata.namespace or "",
        name=metadata.name or "",
        uid=metadata.uid or "",
        phase=(getattr(status, "phase", None) or "") if status is not None else "",
        container_names=tuple(c.name for c in containers),
        container_statuses=tuple(_container_status(cs) for cs in container_statuses),
        init_container_statuses=tuple(_container_status(cs) for cs in init_statuses),
        conditions=tuple(
            PodConditionInfo(
                type=c.type,
                status=c.status,
                reason=c.reason or "",
                message=c.message or "",
            )
            for c in conditions
        ),
        owner_kind=owner[0],
        owner_name=owner[1],
    )


async def resolve_owner(apps_api: Any, pod: Any) -> tuple[str, str]:
    """Find the Deployment or StatefulSet that owns ``pod``.

    Walks Pod -> ReplicaSet -> Deployment. Returns ("", "") for bare pods
    and for owners that cannot be read.
    """
    metadata = pod.metadata
    for ref in getattr(metadata, "owner_references", None) or []:
        if ref.kind == "ReplicaSet":
            try:
                rs = await apps_api.read_namespaced_replica_set(name=ref.name, namespace=metadata.namespace)
            except ApiException as exc:
                _logger.debug("owner_replicaset_unreadable", replicaset=ref.name, status=exc.status)
                continue
            for rs_ref in getattr(rs.metadata, "owner_references", None) or []:
                if rs_ref.kind == "Deployment":
                    return "Deployment", rs_ref.name
        elif ref.kind in ("StatefulSet", "Deployment"):
            return ref.kind, ref.name
    return "", ""
