"""Exception types raised across PodSleuth components."""

from __future__ import annotations


class PodSleuthError(Exception):
    """Base class for all PodSleuth errors."""


class ConfigError(PodSleuthError):
    """Raised when an analysis configuration value cannot be parsed."""


class LogFetchError(PodSleuthError):
    """Raised when container logs cannot be retrieved.

    This is the only failure that aborts a diagnosis before any
    analysis method runs.
    """

    def __init__(self, namespace: str, pod: str, container: str, cause: object) -> None:
        super().__init__(f"failed to get pod logs for {namespace}/{pod} (container {container!r}): {cause}")
        self.namespace = namespace
        self.pod = pod
        self.container = container


class SecretError(PodSleuthError):
    """Raised when a credential cannot be read from the secret store."""


class SecretNotFoundError(SecretError):
    """The secret, or the requested key inside it, does not exist."""


class SecretAccessDeniedError(SecretError):
    """The service account may not read the secret."""


class AIAnalysisError(PodSleuthError):
    """Raised by the AI analyzer for any failure of the remote call."""
