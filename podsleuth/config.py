"""Process configuration loaded from PODSLEUTH_* environment variables."""

from __future__ import annotations

import os

from podsleuth.errors import ConfigError
from podsleuth.models.config import (
    DEFAULT_AI_TIMEOUT_SECONDS,
    DEFAULT_CACHE_TTL,
    LogConfig,
    PodSleuthConfig,
    parse_duration,
)

_PREFIX = "PODSLEUTH_"
_LOG_LEVELS = frozenset({"debug", "info", "warning", "error", "critical"})


def _env(name: str) -> str | None:
    value = os.environ.get(_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _float(name: str, default: float, minimum: float, maximum: float | None = None) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {_PREFIX}{name}: {raw!r}") from None
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def load_config() -> PodSleuthConfig:
    """Build a PodSleuthConfig from the environment, applying defaults and bounds."""
    level = (_env("LOG_LEVEL") or "info").lower()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}")

    ttl_raw = _env("DEFAULT_CACHE_TTL")
    if ttl_raw is None:
        default_cache_ttl = DEFAULT_CACHE_TTL
    else:
        try:
            default_cache_ttl = parse_duration(ttl_raw)
        except ConfigError as exc:
            raise ValueError(f"Invalid duration for {_PREFIX}DEFAULT_CACHE_TTL: {exc}") from exc

    return PodSleuthConfig(
        log=LogConfig(level=level),
        log_fetch_timeout_seconds=_float("LOG_FETCH_TIMEOUT", 10.0, 1.0, 120.0),
        ai_timeout_seconds=_float("AI_TIMEOUT", DEFAULT_AI_TIMEOUT_SECONDS, 1.0, 300.0),
        force_refresh_delay_seconds=_float("FORCE_REFRESH_DELAY", 1.1, 1.0),
        default_cache_ttl=default_cache_ttl,
    )
