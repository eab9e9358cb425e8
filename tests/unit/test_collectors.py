"""Tests for podsleuth.collector: pod conversion, log and secret adapters."""

from __future__ import annotations

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from kubernetes_asyncio.client import (
    V1Container,
    V1ContainerState,
    V1ContainerStateRunning,
    V1ContainerStateTerminated,
    V1ContainerStateWaiting,
    V1ContainerStatus,
    V1ObjectMeta,
    V1OwnerReference,
    V1Pod,
    V1PodCondition,
    V1PodSpec,
    V1PodStatus,
    V1ReplicaSet,
)
from kubernetes_asyncio.client.exceptions import ApiException

from podsleuth.collector.logs import KubernetesLogSource, filter_error_lines, select_log_container
from podsleuth.collector.pods import resolve_owner, unit_from_pod
from podsleuth.collector.secrets import KubernetesSecretSource
from podsleuth.errors import LogFetchError, SecretAccessDeniedError, SecretError, SecretNotFoundError
from podsleuth.models.resources import ContainerState, ContainerStateKind, ContainerStatus, Unit

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _owner(kind: str, name: str) -> V1OwnerReference:
    return V1OwnerReference(api_version="apps/v1", kind=kind, name=name, uid=f"uid-{name}")


def _make_pod(owner_refs: list[V1OwnerReference] | None = None) -> V1Pod:
    return V1Pod(
        metadata=V1ObjectMeta(
            name="cart-5d8f-abc12",
            namespace="shop",
            uid="pod-uid-1",
            owner_references=owner_refs,
        ),
        spec=V1PodSpec(containers=[V1Container(name="app"), V1Container(name="proxy")]),
        status=V1PodStatus(
            phase="Running",
            container_statuses=[
                V1ContainerStatus(
                    name="app",
                    image="cart:1.4",
                    image_id="",
                    ready=False,
                    restart_count=3,
                    state=V1ContainerState(
                        waiting=V1ContainerStateWaiting(reason="CrashLoopBackOff", message="back-off 40s")
                    ),
                    last_state=V1ContainerState(
                        terminated=V1ContainerStateTerminated(exit_code=1, reason="Error")
                    ),
                ),
                V1ContainerStatus(
                    name="proxy",
                    image="envoy:1.29",
                    image_id="",
                    ready=True,
                    restart_count=0,
                    state=V1ContainerState(running=V1ContainerStateRunning()),
                ),
            ],
            conditions=[V1PodCondition(type="Ready", status="False", reason="ContainersNotReady")],
        ),
    )


def _make_unit(statuses: tuple[ContainerStatus, ...], names: tuple[str, ...] = ()) -> Unit:
    return Unit(
        namespace="shop",
        name="p",
        uid="u",
        container_names=names or tuple(s.name for s in statuses),
        container_statuses=statuses,
    )


# ---------------------------------------------------------------------------
# Pod conversion
# ---------------------------------------------------------------------------


class TestUnitFromPod:
    def test_converts_statuses(self) -> None:
        unit = unit_from_pod(_make_pod(), ("Deployment", "cart"))

        assert unit.key == "shop/cart-5d8f-abc12"
        assert unit.uid == "pod-uid-1"
        assert unit.phase == "Running"
        assert unit.container_names == ("app", "proxy")
        assert unit.owner_kind == "Deployment"
        assert unit.max_restart_count == 3
        assert not unit.is_ready

        app = unit.container_statuses[0]
        assert app.state.kind == ContainerStateKind.WAITING
        assert app.state.reason == "CrashLoopBackOff"
        assert app.last_terminated is not None
        assert app.last_terminated.exit_code == 1
        assert unit.container_statuses[1].state.kind == ContainerStateKind.RUNNING

    def test_conditions_copied(self) -> None:
        unit = unit_from_pod(_make_pod())
        assert unit.conditions[0].type == "Ready"
        assert unit.conditions[0].reason == "ContainersNotReady"
        assert unit.conditions[0].message == ""

    def test_pod_without_status(self) -> None:
        pod = V1Pod(metadata=V1ObjectMeta(name="p", namespace="ns", uid="u"))
        unit = unit_from_pod(pod)
        assert unit.container_statuses == ()
        assert unit.phase == ""


class TestResolveOwner:
    @pytest.mark.asyncio
    async def test_replicaset_to_deployment(self) -> None:
        apps = MagicMock()
        apps.read_namespaced_replica_set = AsyncMock(
            return_value=V1ReplicaSet(
                metadata=V1ObjectMeta(name="cart-5d8f", owner_references=[_owner("Deployment", "cart")])
            )
        )
        owner = await resolve_owner(apps, _make_pod([_owner("ReplicaSet", "cart-5d8f")]))
        assert owner == ("Deployment", "cart")
        apps.read_namespaced_replica_set.assert_awaited_once_with(name="cart-5d8f", namespace="shop")

    @pytest.mark.asyncio
    async def test_statefulset_direct(self) -> None:
        owner = await resolve_owner(MagicMock(), _make_pod([_owner("StatefulSet", "kafka")]))
        assert owner == ("StatefulSet", "kafka")

    @pytest.mark.asyncio
    async def test_unreadable_replicaset(self) -> None:
        apps = MagicMock()
        apps.read_namespaced_replica_set = AsyncMock(side_effect=ApiException(status=403, reason="Forbidden"))
        assert await resolve_owner(apps, _make_pod([_owner("ReplicaSet", "cart-5d8f")])) == ("", "")

    @pytest.mark.asyncio
    async def test_bare_pod(self) -> None:
        assert await resolve_owner(MagicMock(), _make_pod()) == ("", "")


# ---------------------------------------------------------------------------
# Log target selection and filtering
# ---------------------------------------------------------------------------


class TestSelectLogContainer:
    def test_error_state_preferred(self) -> None:
        unit = _make_unit(
            (
                ContainerStatus(name="a", ready=False, state=ContainerState(kind=ContainerStateKind.RUNNING)),
                ContainerStatus(name="b", ready=False, state=ContainerState(kind=ContainerStateKind.WAITING)),
            )
        )
        assert select_log_container(unit) == "b"

    def test_first_not_ready(self) -> None:
        unit = _make_unit(
            (
                ContainerStatus(name="a", ready=True, state=ContainerState(kind=ContainerStateKind.RUNNING)),
                ContainerStatus(name="b", ready=False, state=ContainerState(kind=ContainerStateKind.RUNNING)),
            )
        )
        assert select_log_container(unit) == "b"

    def test_first_declared(self) -> None:
        unit = _make_unit((), names=("main", "sidecar"))
        assert select_log_container(unit) == "main"

    def test_none(self) -> None:
        assert select_log_container(_make_unit(())) == ""


class TestFilterErrorLines:
    def test_keywords_case_insensitive(self) -> None:
        lines = ["INFO ok", "Error: boom", "WARN disk 80%", "panic: nil map", "debug tick", "FATAL exit"]
        assert filter_error_lines(lines) == ["Error: boom", "WARN disk 80%", "panic: nil map", "FATAL exit"]


# ---------------------------------------------------------------------------
# KubernetesLogSource
# ---------------------------------------------------------------------------


class TestKubernetesLogSource:
    @pytest.mark.asyncio
    async def test_tail_split_into_lines(self) -> None:
        api = MagicMock()
        api.read_namespaced_pod_log = AsyncMock(return_value="first\nsecond\r\nthird\n")
        lines = await KubernetesLogSource(api, timeout_seconds=7).fetch_tail_lines("shop", "cart", "app", 50)

        assert lines == ["first", "second", "third"]
        kwargs = api.read_namespaced_pod_log.call_args.kwargs
        assert kwargs["tail_lines"] == 50
        assert kwargs["container"] == "app"
        assert kwargs["_request_timeout"] == 7

    @pytest.mark.asyncio
    async def test_empty_log(self) -> None:
        api = MagicMock()
        api.read_namespaced_pod_log = AsyncMock(return_value="")
        assert await KubernetesLogSource(api).fetch_tail_lines("shop", "cart", "app", 50) == []

    @pytest.mark.asyncio
    async def test_api_error(self) -> None:
        api = MagicMock()
        api.read_namespaced_pod_log = AsyncMock(side_effect=ApiException(status=400, reason="Bad Request"))
        with pytest.raises(LogFetchError, match="400 Bad Request") as excinfo:
            await KubernetesLogSource(api).fetch_tail_lines("shop", "cart", "app", 50)
        assert excinfo.value.container == "app"

    @pytest.mark.asyncio
    async def test_transport_errors(self) -> None:
        for error in (aiohttp.ClientConnectionError("reset"), asyncio.TimeoutError()):
            api = MagicMock()
            api.read_namespaced_pod_log = AsyncMock(side_effect=error)
            with pytest.raises(LogFetchError):
                await KubernetesLogSource(api).fetch_tail_lines("shop", "cart", "app", 50)


# ---------------------------------------------------------------------------
# KubernetesSecretSource
# ---------------------------------------------------------------------------


def _secret_api(data: dict[str, str] | None = None, error: Exception | None = None) -> MagicMock:
    api = MagicMock()
    if error is not None:
        api.read_namespaced_secret = AsyncMock(side_effect=error)
    else:
        secret = MagicMock()
        secret.data = data
        api.read_namespaced_secret = AsyncMock(return_value=secret)
    return api


class TestKubernetesSecretSource:
    @pytest.mark.asyncio
    async def test_decodes_and_strips(self) -> None:
        encoded = base64.b64encode(b"sk-live-123\n").decode()
        source = KubernetesSecretSource(_secret_api({"api-key": encoded}))
        assert await source.fetch_secret_value("shop", "openai", "api-key") == "sk-live-123"

    @pytest.mark.asyncio
    async def test_missing_key(self) -> None:
        source = KubernetesSecretSource(_secret_api({"other": "eA=="}))
        with pytest.raises(SecretNotFoundError, match="key api-key not found"):
            await source.fetch_secret_value("shop", "openai", "api-key")

    @pytest.mark.asyncio
    async def test_empty_secret(self) -> None:
        source = KubernetesSecretSource(_secret_api(None))
        with pytest.raises(SecretNotFoundError):
            await source.fetch_secret_value("shop", "openai", "api-key")

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        source = KubernetesSecretSource(_secret_api(error=ApiException(status=404, reason="Not Found")))
        with pytest.raises(SecretNotFoundError, match="secret shop/openai not found"):
            await source.fetch_secret_value("shop", "openai", "api-key")

    @pytest.mark.asyncio
    async def test_forbidden(self) -> None:
        source = KubernetesSecretSource(_secret_api(error=ApiException(status=403, reason="Forbidden")))
        with pytest.raises(SecretAccessDeniedError):
            await source.fetch_secret_value("shop", "openai", "api-key")

    @pytest.mark.asyncio
    async def test_other_api_error(self) -> None:
        source = KubernetesSecretSource(_secret_api(error=ApiException(status=500, reason="Internal")))
        with pytest.raises(SecretError, match="500 Internal"):
            await source.fetch_secret_value("shop", "openai", "api-key")

    @pytest.mark.asyncio
    async def test_invalid_base64(self) -> None:
        source = KubernetesSecretSource(_secret_api({"api-key": "***"}))
        with pytest.raises(SecretError, match="not valid base64"):
            await source.fetch_secret_value("shop", "openai", "api-key")
