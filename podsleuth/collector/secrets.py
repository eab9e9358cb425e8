"""Credential lookup from Kubernetes Secrets."""

from __future__ import annotations

import base64
import binascii
from typing import Any, Protocol

from kubernetes_asyncio.client.exceptions import ApiException

from podsleuth.errors import SecretAccessDeniedError, SecretError, SecretNotFoundError
from podsleuth.observability.logging import get_logger

_logger = get_logger("collector.secrets")


class SecretSource(Protocol):
    """Namespace-scoped secret store."""

    async def fetch_secret_value(self, namespace: str, name: str, key: str) -> str: ...


class KubernetesSecretSource:
    """Reads a single key of a Secret through ``CoreV1Api``.

    Usage::

        v1 = kubernetes_asyncio.client.CoreV1Api()
        source = KubernetesSecretSource(v1)
        token = await source.fetch_secret_value("default", "openai", "api-key")
    """

    def __init__(self, api: Any, timeout_seconds: float = 10.0) -> None:
        self._api = api
        self._timeout = timeout_seconds

    async def fetch_secret_value(self, namespace: str, name: str, key: str) -> str:
        try:
            secret = await self._api.read_namespaced_secret(
                name=name,
                namespace=namespace,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            if exc.status == 404:
                raise SecretNotFoundError(f"secret {namespace}/{name} not found") from exc
            if exc.status == 403:
                raise SecretAccessDeniedError(f"access to secret {namespace}/{name} denied") from exc
            raise SecretError(f"failed to get secret {namespace}/{name}: {exc.status} {exc.reason}") from exc

        data = getattr(secret, "data", None) or {}
        encoded = data.get(key)
        if encoded is None:
            raise SecretNotFoundError(f"key {key} not found in secret {namespace}/{name}")

        try:
            value = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise SecretError(f"key {key} in secret {namespace}/{name} is not valid base64 text") from exc

        _logger.debug("secret_value_read", namespace=namespace, secret=name, key=key)
        return value.strip()
