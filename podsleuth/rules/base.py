"""Pattern rule set construction.

Built-in signatures cover common network and dependent-service failures.
Caller-supplied patterns replace them entirely, unless every supplied
pattern fails to compile, in which case the built-ins are used instead.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from podsleuth.models.analysis import PatternRule
from podsleuth.models.config import PatternSpec
from podsleuth.observability.logging import get_logger

_logger = get_logger("rules")

# (name, regex, root cause, priority)
_DEFAULT_SIGNATURES: tuple[tuple[str, str, str, int], ...] = (
    (
        "ConnectionRefused",
        r"(?i)(connection refused|connection reset|connection closed)",
        "Connection refused - service may be down or unreachable",
        10,
    ),
    (
        "ConnectionTimeout",
        r"(?i)(connection timeout|timeout|timed out)",
        "Connection timeout - service may be slow or unreachable",
        10,
    ),
    (
        "DialTCP",
        r"(?i)(dial tcp|failed to connect)",
        "Network connection failed - unable to reach service",
        10,
    ),
    (
        "ServiceUnavailable",
        r"(?i)(service unavailable|503|503 service unavailable)",
        "Service unavailable - backend service is down or overloaded",
        10,
    ),
    (
        "DNSError",
        r"(?i)(no such host|name resolution failed|dns error|unknown host)",
        "DNS resolution failed - service name cannot be resolved",
        10,
    ),
    (
        "KafkaBrokerError",
        r"(?i)(broker not available|leader not available|connection to node)",
        "Kafka service is down or unreachable",
        15,
    ),
    (
        "KafkaConnectionError",
        r"(?i)(kafka.*connection|kafka.*timeout|kafka.*error)",
        "Kafka connection error - broker may be down",
        12,
    ),
    (
        "DatabaseConnectionError",
        r"(?i)(connection pool exhausted|too many connections|database.*connection.*failed)",
        "Database connection failed - connection pool may be exhausted",
        10,
    ),
    (
        "HTTP502",
        r"(?i)(502 bad gateway|bad gateway)",
        "502 Bad Gateway - upstream service is unavailable",
        10,
    ),
    (
        "HTTP503",
        r"(?i)(503 service unavailable)",
        "503 Service Unavailable - service is temporarily unavailable",
        10,
    ),
)

_DEFAULT_RULES: tuple[PatternRule, ...] = tuple(
    PatternRule(name=name, matcher=re.compile(regex), root_cause=root_cause, priority=priority)
    for name, regex, root_cause, priority in _DEFAULT_SIGNATURES
)


def default_rules() -> list[PatternRule]:
    """Return the built-in rule set in declaration order."""
    return list(_DEFAULT_RULES)


def compile_rules(specs: Sequence[PatternSpec]) -> list[PatternRule]:
    """Compile caller-supplied patterns, skipping invalid ones.

    Returns the built-in rules when ``specs`` is empty or when none of them
    compile.
    """
    if not specs:
        return default_rules()

    rules: list[PatternRule] = []
    for spec in specs:
        try:
            matcher = re.compile(spec.pattern)
        except re.error as exc:
            _logger.warning(
                "pattern_compile_failed",
                name=spec.name,
                pattern=spec.pattern,
                error=str(exc),
            )
            continue
        rules.append(PatternRule(name=spec.name, matcher=matcher, root_cause=spec.root_cause, priority=spec.priority))

    if not rules:
        _logger.warning("no_valid_custom_patterns", supplied=len(specs))
        return default_rules()

    _logger.debug("custom_patterns_compiled", compiled=len(rules), supplied=len(specs))
    return rules


def by_priority(rules: Sequence[PatternRule]) -> list[PatternRule]:
    """Sort highest priority first; equal priorities keep declaration order."""
    return sorted(rules, key=lambda r: -r.priority)
