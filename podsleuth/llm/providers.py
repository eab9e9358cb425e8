"""Wire adapters for the supported AI endpoint formats.

Each adapter knows how to wrap a prompt into its provider's request
envelope and how to pull the answer text back out of the response.
Adding a provider means adding an adapter and registering it in
``_ADAPTERS``.
"""

from __future__ import annotations

from typing import Any, Protocol

from podsleuth.llm.prompts import SYSTEM_PROMPT
from podsleuth.observability.logging import get_logger

_logger = get_logger("llm.providers")

FORMAT_OPENAI = "openai"
FORMAT_ANTHROPIC = "anthropic"
FORMAT_OLLAMA = "ollama"
FORMAT_GENERIC = "generic"

_MAX_TOKENS: int = 200
_TEMPERATURE: float = 0.3
_ANTHROPIC_VERSION = "2023-06-01"


class ProviderAdapter(Protocol):
    """Request/response shape of one AI endpoint format."""

    name: str
    default_model: str

    def build_request(self, prompt: str, model: str) -> dict[str, Any]: ...

    def extra_headers(self) -> dict[str, str]: ...

    def parse_response(self, body: dict[str, Any]) -> str: ...


def _text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def _first_dict(value: object) -> dict[str, Any]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return {}


class OpenAIAdapter:
    """OpenAI chat completions; also Together AI, Groq, LocalAI, vLLM and friends."""

    name = FORMAT_OPENAI
    default_model = "gpt-3.5-turbo"

    def build_request(self, prompt: str, model: str) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": _MAX_TOKENS,
            "temperature": _TEMPERATURE,
        }

    def extra_headers(self) -> dict[str, str]:
        return {}

    def parse_response(self, body: dict[str, Any]) -> str:
        # {"choices": [{"message": {"content": "..."}}]}
        message = _first_dict(body.get("choices")).get("message")
        return _text(message.get("content")) if isinstance(message, dict) else ""


class AnthropicAdapter:
    """Anthropic messages API."""

    name = FORMAT_ANTHROPIC
    default_model = "claude-3-haiku-20240307"

    def build_request(self, prompt: str, model: str) -> dict[str, Any]:
        return {
            "model": model,
            "max_tokens": _MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }

    def extra_headers(self) -> dict[str, str]:
        return {"anthropic-version": _ANTHROPIC_VERSION}

    def parse_response(self, body: dict[str, Any]) -> str:
        # {"content": [{"type": "text", "text": "..."}]}
        return _text(_first_dict(body.get("content")).get("text"))


class OllamaAdapter:
    """Ollama ``/api/generate`` with streaming disabled."""

    name = FORMAT_OLLAMA
    default_model = "llama2"

    def build_request(self, prompt: str, model: str) -> dict[str, Any]:
        return {"model": model, "prompt": prompt, "stream": False}

    def extra_headers(self) -> dict[str, str]:
        return {}

    def parse_response(self, body: dict[str, Any]) -> str:
        return _text(body.get("response"))


class GenericAdapter:
    """Single-prompt JSON for custom endpoints; answer read from common keys."""

    name = FORMAT_GENERIC
    default_model = ""

    _ANSWER_KEYS: tuple[str, ...] = ("text", "answer", "result", "content")

    def build_request(self, prompt: str, model: str) -> dict[str, Any]:
        request: dict[str, Any] = {"prompt": prompt, "max_tokens": _MAX_TOKENS}
        if model:
            request["model"] = model
        return request

    def extra_headers(self) -> dict[str, str]:
        return {}

    def parse_response(self, body: dict[str, Any]) -> str:
        for key in self._ANSWER_KEYS:
            value = body.get(key)
            if isinstance(value, str):
                return value.strip()
        return ""


_ADAPTERS: dict[str, ProviderAdapter] = {
    adapter.name: adapter for adapter in (OpenAIAdapter(), AnthropicAdapter(), OllamaAdapter(), GenericAdapter())
}


def resolve_format(endpoint: str, explicit: str = "") -> str:
    """Pick the wire format: explicit value first, then endpoint inference.

    Unknown endpoints default to openai, the most widely implemented shape.
    """
    if explicit:
        return explicit.strip().lower()
    if "openai.com" in endpoint:
        return FORMAT_OPENAI
    if "anthropic.com" in endpoint:
        return FORMAT_ANTHROPIC
    if "ollama" in endpoint or ":11434" in endpoint:
        return FORMAT_OLLAMA
    return FORMAT_OPENAI


def adapter_for(fmt: str) -> ProviderAdapter:
    """Return the adapter for ``fmt``; unrecognized formats get the generic one."""
    adapter = _ADAPTERS.get(fmt)
    if adapter is None:
        _logger.warning("ai_format_unknown", format=fmt, fallback=FORMAT_GENERIC)
        return _ADAPTERS[FORMAT_GENERIC]
    return adapter


def resolve_model(adapter: ProviderAdapter, explicit: str = "") -> str:
    return explicit or adapter.default_model
