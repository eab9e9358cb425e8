"""AI Analyzer: asks a remote model why a pod's logs show it failing.

Supports OpenAI-compatible, Anthropic, Ollama and generic JSON endpoints
through the adapters in ``podsleuth.llm.providers``. One POST per call,
no retries: a failed call surfaces as an error on the AI verdict and the
next reconcile pass tries again.
"""

from __future__ import annotations

import json
import time
from collections.abc import Sequence
from typing import Any

import httpx

from podsleuth.collector.secrets import SecretSource
from podsleuth.errors import AIAnalysisError
from podsleuth.llm.confidence import compute_confidence
from podsleuth.llm.prompts import build_user_prompt
from podsleuth.llm.providers import adapter_for, resolve_format, resolve_model
from podsleuth.models.analysis import MAX_ERROR_LINES, AIVerdict
from podsleuth.models.config import AIEndpointConfig
from podsleuth.models.resources import Unit
from podsleuth.observability.logging import get_logger
from podsleuth.observability.metrics import ai_request_duration_seconds

_logger = get_logger("ai_analyzer")

_UNRECOGNIZED_CONFIDENCE: int = 50
_ERROR_BODY_MAX_CHARS: int = 2_048


def _build_auth_value(prefix: str, credential: str) -> str:
    return f"{prefix} {credential}" if prefix else credential


class AIAnalyzer:
    """Sends filtered log lines to an AI endpoint and scores the answer.

    Uses a persistent ``httpx.AsyncClient``; the per-request timeout comes
    from the endpoint config. The caller owns shutdown via ``aclose()``.
    """

    def __init__(
        self,
        secrets: SecretSource | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._secrets = secrets
        self._client = client or httpx.AsyncClient(
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )

    async def analyze(
        self,
        lines: Sequence[str],
        unit: Unit,
        config: AIEndpointConfig,
    ) -> AIVerdict:
        """Analyze ``lines`` for ``unit``.

        Raises AIAnalysisError for missing endpoint, transport failures,
        non-2xx responses and non-JSON bodies; SecretError when the
        configured credential cannot be read.
        """
        if not config.endpoint:
            raise AIAnalysisError("aiEndpoint is required for AI analysis")

        credential = ""
        if config.credential_ref is not None:
            if self._secrets is None:
                raise AIAnalysisError("a credential is configured but no secret source is available")
            credential = await self._secrets.fetch_secret_value(
                unit.namespace, config.credential_ref.name, config.credential_ref.key
            )

        fmt = resolve_format(config.endpoint, config.format)
        adapter = adapter_for(fmt)
        model = resolve_model(adapter, config.model)
        prompt = build_user_prompt(unit.namespace, unit.name, unit.phase, list(lines))

        headers = {"Content-Type": "application/json", **adapter.extra_headers()}
        if credential:
            headers[config.auth_header] = _build_auth_value(config.auth_prefix, credential)

        start = time.monotonic()
        try:
            response = await self._client.post(
                config.endpoint,
                content=json.dumps(adapter.build_request(prompt, model)),
                headers=headers,
                timeout=config.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise AIAnalysisError(f"AI request timed out after {config.timeout_seconds:g}s") from exc
        except httpx.HTTPError as exc:
            raise AIAnalysisError(f"failed to make AI request: {exc}") from exc
        finally:
            ai_request_duration_seconds.labels(format=adapter.name).observe(time.monotonic() - start)

        if not response.is_success:
            raise AIAnalysisError(
                f"AI endpoint returned status {response.status_code}: {response.text[:_ERROR_BODY_MAX_CHARS]}"
            )

        body = self._decode(response)
        answer = adapter.parse_response(body)
        if answer:
            root_cause = answer
            confidence = compute_confidence(answer)
        else:
            _logger.warning("ai_response_unrecognized", format=adapter.name, endpoint=config.endpoint)
            root_cause = f"AI analysis completed (response format not recognized): {response.text}"
            confidence = _UNRECOGNIZED_CONFIDENCE

        reported_model = body.get("model")
        verdict = AIVerdict(
            model=reported_model if isinstance(reported_model, str) and reported_model else model,
            root_cause=root_cause,
            confidence=confidence,
            error_lines=tuple(lines[:MAX_ERROR_LINES]),
        )
        _logger.info(
            "ai_analysis_complete",
            model=verdict.model,
            format=adapter.name,
            confidence=verdict.confidence,
        )
        return verdict

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise AIAnalysisError(f"failed to parse JSON response: {exc}") from exc
        if not isinstance(body, dict):
            raise AIAnalysisError(f"failed to parse JSON response: expected object, got {type(body).__name__}")
        return body

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release connections."""
        await self._client.aclose()
