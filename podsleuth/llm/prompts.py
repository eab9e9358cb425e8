"""Prompt text sent to AI endpoints."""

from __future__ import annotations

SYSTEM_PROMPT = "You are a Kubernetes troubleshooting expert. Analyze pod logs and identify root causes."

USER_PROMPT = """Analyze these Kubernetes pod logs and identify the root cause why the pod is not ready.

Pod: {namespace}/{name}
Phase: {phase}

Logs:
{logs}

Provide a concise root cause analysis. Focus on the primary issue."""


def build_user_prompt(namespace: str, name: str, phase: str, lines: list[str]) -> str:
    return USER_PROMPT.format(namespace=namespace, name=name, phase=phase, logs="\n".join(lines))
