"""Container log retrieval and pre-filtering.

``select_log_container`` and ``filter_error_lines`` are pure helpers used by
the pipeline; ``KubernetesLogSource`` is the production log collaborator.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any, Protocol

import aiohttp
from kubernetes_asyncio.client.exceptions import ApiException

from podsleuth.errors import LogFetchError
from podsleuth.models.resources import Unit
from podsleuth.observability.logging import get_logger

_logger = get_logger("collector.logs")

ERROR_KEYWORDS: tuple[str, ...] = (
    "error",
    "err",
    "failed",
    "failure",
    "fatal",
    "panic",
    "exception",
    "warning",
    "warn",
    "critical",
    "alert",
)


class LogSource(Protocol):
    """Returns the last ``max_lines`` lines of a container's log, oldest first."""

    async def fetch_tail_lines(self, namespace: str, pod: str, container: str, max_lines: int) -> list[str]: ...


def select_log_container(unit: Unit) -> str:
    """Pick the container whose logs best explain the failure.

    Preference: first non-ready container in a waiting/terminated state,
    then first non-ready container, then the first declared container.
    Returns "" when the pod declares no containers.
    """
    not_ready = ""
    for status in unit.container_statuses:
        if status.ready:
            continue
        if status.state.is_error:
            return status.name
        if not not_ready:
            not_ready = status.name
    if not_ready:
        return not_ready
    if unit.container_names:
        return unit.container_names[0]
    return ""


def filter_error_lines(lines: Sequence[str]) -> list[str]:
    """Keep lines containing any error/warning keyword, case-insensitively."""
    return [line for line in lines if any(keyword in line.lower() for keyword in ERROR_KEYWORDS)]


class KubernetesLogSource:
    """Tails container logs through ``CoreV1Api.read_namespaced_pod_log``."""

    def __init__(self, api: Any, timeout_seconds: float = 10.0) -> None:
        self._api = api
        self._timeout = timeout_seconds

    async def fetch_tail_lines(self, namespace: str, pod: str, container: str, max_lines: int) -> list[str]:
        try:
            text = await self._api.read_namespaced_pod_log(
                name=pod,
                namespace=namespace,
                container=container,
                tail_lines=max_lines,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise LogFetchError(namespace, pod, container, f"{exc.status} {exc.reason}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise LogFetchError(namespace, pod, container, exc) from exc

        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        lines = str(text or "").splitlines()
        _logger.debug("log_lines_retrieved", namespace=namespace, pod=pod, container=container, lines=len(lines))
        return lines
