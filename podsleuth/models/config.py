"""Configuration data structures.

``AnalysisConfig`` is supplied per monitored group (the ``logAnalysis`` block
of a PodSleuth resource) and is read-only to the diagnosis pipeline.
``PodSleuthConfig`` holds process-wide settings loaded from the environment.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta

from podsleuth.errors import ConfigError

DEFAULT_LINES_TO_FETCH: int = 100
DEFAULT_CACHE_TTL: timedelta = timedelta(minutes=5)
DEFAULT_AI_TIMEOUT_SECONDS: float = 30.0
DEFAULT_SECRET_KEY: str = "api-key"
DEFAULT_AUTH_HEADER: str = "Authorization"
DEFAULT_AUTH_PREFIX: str = "Bearer"
DEFAULT_METHODS: tuple[str, ...] = ("pattern",)

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS: dict[str, float] = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: str | int | float) -> timedelta:
    """Parse a Go-style duration (``5m``, ``1h30m``, ``5m0s``, ``500ms``).

    Bare numbers are interpreted as seconds.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, int | float):
        if value < 0:
            raise ConfigError(f"duration must not be negative: {value!r}")
        return timedelta(seconds=float(value))

    text = value.strip()
    if not text:
        raise ConfigError("duration must not be empty")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        return parse_duration(seconds)

    pos = 0
    total = 0.0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ConfigError(f"invalid duration: {value!r}")
    return timedelta(seconds=total)


@dataclass(frozen=True)
class PatternSpec:
    """A caller-supplied, not yet compiled, pattern rule."""

    name: str
    pattern: str
    root_cause: str = ""
    priority: int = 0


@dataclass(frozen=True)
class SecretKeyRef:
    """Reference to a key inside a Secret in the pod's namespace."""

    name: str
    key: str = DEFAULT_SECRET_KEY


@dataclass(frozen=True)
class AIEndpointConfig:
    """Connection settings for the AI analysis method."""

    endpoint: str = ""
    format: str = ""
    model: str = ""
    credential_ref: SecretKeyRef | None = None
    auth_header: str = DEFAULT_AUTH_HEADER
    auth_prefix: str = DEFAULT_AUTH_PREFIX
    timeout_seconds: float = DEFAULT_AI_TIMEOUT_SECONDS


@dataclass(frozen=True)
class AnalysisConfig:
    """Log analysis settings for one monitored group."""

    enabled: bool = False
    methods: tuple[str, ...] = DEFAULT_METHODS
    cache_enabled: bool = True
    cache_ttl: timedelta = DEFAULT_CACHE_TTL
    lines_to_fetch: int = DEFAULT_LINES_TO_FETCH
    filter_error_lines: bool = True
    patterns: tuple[PatternSpec, ...] = ()
    ai: AIEndpointConfig = field(default_factory=AIEndpointConfig)

    @classmethod
    def from_spec(
        cls,
        spec: Mapping[str, object] | None,
        *,
        default_cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        default_ai_timeout: float = DEFAULT_AI_TIMEOUT_SECONDS,
    ) -> AnalysisConfig:
        """Build from a ``logAnalysis`` mapping using the resource's camelCase keys.

        A missing spec yields a disabled config. Malformed values raise
        ConfigError.
        """
        if not spec:
            return cls(
                enabled=False,
                cache_ttl=default_cache_ttl,
                ai=AIEndpointConfig(timeout_seconds=default_ai_timeout),
            )

        methods = _str_list(spec.get("methods"), "methods")
        if not methods:
            legacy = _opt_str(spec.get("method"), "method")
            methods = [legacy] if legacy else list(DEFAULT_METHODS)

        lines = spec.get("linesToAnalyze", DEFAULT_LINES_TO_FETCH)
        if isinstance(lines, bool) or not isinstance(lines, int) or lines <= 0:
            raise ConfigError(f"linesToAnalyze must be a positive integer, got {lines!r}")

        raw_ttl = spec.get("cacheTTL")
        cache_ttl = default_cache_ttl if raw_ttl is None else parse_duration(_duration_value(raw_ttl, "cacheTTL"))

        raw_timeout = spec.get("aiTimeout")
        timeout = (
            default_ai_timeout
            if raw_timeout is None
            else parse_duration(_duration_value(raw_timeout, "aiTimeout")).total_seconds()
        )

        return cls(
            enabled=_bool(spec.get("enabled", False), "enabled"),
            methods=tuple(methods),
            cache_enabled=_bool(spec.get("cacheEnabled", True), "cacheEnabled"),
            cache_ttl=cache_ttl,
            lines_to_fetch=lines,
            filter_error_lines=_bool(spec.get("filterErrorsOnly", True), "filterErrorsOnly"),
            patterns=tuple(_pattern_specs(spec.get("patterns"))),
            ai=AIEndpointConfig(
                endpoint=_opt_str(spec.get("aiEndpoint"), "aiEndpoint"),
                format=_opt_str(spec.get("aiFormat"), "aiFormat"),
                model=_opt_str(spec.get("aiModel"), "aiModel"),
                credential_ref=_secret_ref(spec.get("aiApiKey")),
                auth_header=_opt_str(spec.get("aiAuthHeader"), "aiAuthHeader") or DEFAULT_AUTH_HEADER,
                auth_prefix=_opt_str(spec.get("aiAuthPrefix"), "aiAuthPrefix") or DEFAULT_AUTH_PREFIX,
                timeout_seconds=timeout or default_ai_timeout,
            ),
        )


@dataclass(frozen=True)
class LogConfig:
    level: str = "info"


@dataclass(frozen=True)
class PodSleuthConfig:
    """Process-wide settings, see ``podsleuth.config.load_config``."""

    log: LogConfig = field(default_factory=LogConfig)
    log_fetch_timeout_seconds: float = 10.0
    ai_timeout_seconds: float = DEFAULT_AI_TIMEOUT_SECONDS
    force_refresh_delay_seconds: float = 1.1
    default_cache_ttl: timedelta = DEFAULT_CACHE_TTL


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------


def _bool(value: object, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be a boolean, got {value!r}")
    return value


def _opt_str(value: object, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string, got {value!r}")
    return value.strip()


def _pattern_text(value: object) -> str:
    # Regex text is kept as written; whitespace may be significant.
    if not isinstance(value, str):
        raise ConfigError(f"patterns[].pattern must be a string, got {value!r}")
    return value


def _str_list(value: object, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{name} must be a list of strings, got {value!r}")
    return [v.strip() for v in value if v.strip()]


def _duration_value(value: object, name: str) -> str | int | float:
    if isinstance(value, bool) or not isinstance(value, str | int | float):
        raise ConfigError(f"{name} must be a duration, got {value!r}")
    return value


def _secret_ref(value: object) -> SecretKeyRef | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ConfigError(f"aiApiKey must be a mapping, got {value!r}")
    name = _opt_str(value.get("name"), "aiApiKey.name")
    if not name:
        raise ConfigError("aiApiKey.name is required")
    return SecretKeyRef(name=name, key=_opt_str(value.get("key"), "aiApiKey.key") or DEFAULT_SECRET_KEY)


def _pattern_specs(value: object) -> list[PatternSpec]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"patterns must be a list, got {value!r}")
    specs: list[PatternSpec] = []
    for item in value:
        if not isinstance(item, Mapping):
            raise ConfigError(f"pattern entries must be mappings, got {item!r}")
        priority = item.get("priority", 0)
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ConfigError(f"pattern priority must be an integer, got {priority!r}")
        specs.append(
            PatternSpec(
                name=_opt_str(item.get("name"), "patterns[].name"),
                pattern=_pattern_text(item.get("pattern")),
                root_cause=_opt_str(item.get("rootCause"), "patterns[].rootCause"),
                priority=priority,
            )
        )
    return specs
