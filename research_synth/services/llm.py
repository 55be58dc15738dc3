# =============================================================================
# Completion Providers — One Interface Over OpenAI-Style and Anthropic APIs
# =============================================================================
#
# Every stage of the pipeline talks to the model through `complete()` and
# gets back an LLMResponse, whatever backend is configured. OpenRouter is
# the default backend (OpenAI wire format, any hosted model).
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Stage functions depend on the shape, not on a base class, so the
# AsyncMock fakes used by the tests satisfy it without inheritance.
#
# DESIGN DECISION: SDK errors are classified here and nowhere else.
# A provider call raises AuthFailure, RateLimited, ProviderUnavailable or
# CompletionFailure (see errors.py) and never retries on its own. Retry is
# the caller's choice, via retry_with_backoff().
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── OpenAICompatibleProvider  openai SDK, system prompt as first message
#   ├── AnthropicProvider         anthropic SDK, system prompt as kwarg
#   ├── get_llm_provider()        process-wide instance built from settings
#   └── create_provider_from_id() one-off instance for the CLI --provider flag
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, NamedTuple, Protocol

from research_synth.config import settings
from research_synth.services.errors import (
    MalformedCompletionFailure,
    ProviderError,
    classify_status,
)

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """A completion reduced to the fields the pipeline consumes."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(Protocol):
    """Anything that can turn chat messages into an LLMResponse."""

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_format: dict[str, str] | None = None,
    ) -> LLMResponse:
        """
        Run one chat completion.

        Args:
            messages: [{"role": ..., "content": ...}] in conversation order.
            system: Instructions for the model, placed wherever the backend
                expects them.
            temperature, max_tokens: Per-call overrides of the configured
                sampling settings.
            model: Per-call model override.
            response_format: {"type": "json_object"} requests JSON mode
                where the backend supports it.

        Raises:
            AuthFailure, RateLimited, ProviderUnavailable, CompletionFailure
        """
        ...


# ---------------------------------------------------------------------------
# Shared Helpers
# ---------------------------------------------------------------------------


def _resolve_key(explicit: str | None, fallback: str, hint: str) -> str:
    key = explicit or settings.llm_api_key or fallback
    if not key:
        raise ValueError(f"No API key configured for {hint}. Set LLM_API_KEY in .env")
    return key


def _classify(exc: Exception) -> ProviderError:
    """Translate an SDK exception using the HTTP status it carries, if any."""
    status_code = getattr(exc, "status_code", None)
    message = getattr(exc, "message", None) or str(exc)
    return classify_status(status_code, message)


def _from_openai(response: Any, requested_model: str) -> LLMResponse:
    # OpenRouter answers 200 with no choices when the upstream model fails
    choices = getattr(response, "choices", None)
    if not choices or getattr(choices[0], "message", None) is None:
        raise MalformedCompletionFailure("Completion returned no choices")

    usage = getattr(response, "usage", None)
    return LLMResponse(
        content=choices[0].message.content or "",
        model=getattr(response, "model", None) or requested_model,
        input_tokens=usage.prompt_tokens if usage else 0,
        output_tokens=usage.completion_tokens if usage else 0,
    )


def _from_anthropic(response: Any, requested_model: str) -> LLMResponse:
    blocks = getattr(response, "content", None)
    if not blocks:
        raise MalformedCompletionFailure("Completion returned no content")

    text = next(
        (block.text for block in blocks if getattr(block, "type", None) == "text"), "",
    )
    usage = getattr(response, "usage", None)
    return LLMResponse(
        content=text,
        model=getattr(response, "model", None) or requested_model,
        input_tokens=usage.input_tokens if usage else 0,
        output_tokens=usage.output_tokens if usage else 0,
    )


# ---------------------------------------------------------------------------
# OpenAI-Compatible Backend (OpenRouter by default)
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Provider for any endpoint speaking the OpenAI chat-completions format.

    OpenRouter, DeepSeek and OpenAI itself differ only in base URL, key
    and model name:
        LLM_BASE_URL=https://openrouter.ai/api/v1
        LLM_MODEL=openai/gpt-4o-mini
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        import openai

        key = _resolve_key(
            api_key, settings.openrouter_api_key, "the OpenAI-compatible provider",
        )
        self._base_url = base_url or settings.llm_base_url
        self._client = openai.AsyncOpenAI(
            api_key=key,
            base_url=self._base_url,
            # OpenRouter attribution; ignored by other backends
            default_headers={
                "HTTP-Referer": settings.llm_app_referer,
                "X-Title": settings.llm_app_title,
            },
        )
        self._sdk_error = openai.OpenAIError
        self._model = model or settings.llm_model

        logger.info(
            "Completion provider ready: openai_compatible model=%s base_url=%s",
            self._model, self._base_url or "default",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_format: dict[str, str] | None = None,
    ) -> LLMResponse:
        chosen_model = model or self._model
        request: dict[str, Any] = {
            "model": chosen_model,
            "messages": (
                [{"role": "system", "content": system}] if system else []
            ) + list(messages),
            "temperature": settings.llm_temperature if temperature is None else temperature,
            "max_tokens": max_tokens or settings.llm_max_tokens,
        }
        if response_format:
            request["response_format"] = response_format

        try:
            response = await self._client.chat.completions.create(**request)
        except self._sdk_error as exc:
            logger.error("Completion request to %s failed: %s", chosen_model, exc)
            raise _classify(exc) from exc

        return _from_openai(response, chosen_model)


# ---------------------------------------------------------------------------
# Anthropic Backend
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Claude through the native Anthropic SDK.

    The Messages API takes `system=` as a keyword rather than a message and
    has no JSON mode, so `response_format` is dropped and JSON output
    depends on the prompt.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        import anthropic

        key = _resolve_key(api_key, settings.anthropic_api_key, "the Anthropic provider")
        self._client = anthropic.AsyncAnthropic(api_key=key)
        self._sdk_error = anthropic.AnthropicError
        self._model = model or settings.llm_model

        logger.info("Completion provider ready: anthropic model=%s", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_format: dict[str, str] | None = None,
    ) -> LLMResponse:
        chosen_model = model or self._model
        request: dict[str, Any] = {
            "model": chosen_model,
            "messages": messages,
            "temperature": settings.llm_temperature if temperature is None else temperature,
            "max_tokens": max_tokens or settings.llm_max_tokens,
        }
        if system:
            request["system"] = system

        try:
            response = await self._client.messages.create(**request)
        except self._sdk_error as exc:
            logger.error("Completion request to %s failed: %s", chosen_model, exc)
            raise _classify(exc) from exc

        return _from_anthropic(response, chosen_model)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

_PROVIDER_CLASSES = {
    "anthropic": AnthropicProvider,
    "openai_compatible": OpenAICompatibleProvider,
}

# Built on first use so importing this module never needs a key
_provider: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """
    Return the process-wide provider selected by `settings.llm_provider`.

    Raises ValueError when no API key is configured. The HTTP lifespan and
    the CLI call this first so a missing key stops them immediately.
    """
    global _provider
    if _provider is None:
        provider_class = _PROVIDER_CLASSES.get(
            settings.llm_provider, OpenAICompatibleProvider,
        )
        _provider = provider_class()
    return _provider


class ProviderSpec(NamedTuple):
    provider_type: str
    model: str
    base_url: str | None


def _parse_provider_id(provider_id: str) -> ProviderSpec:
    """
    Split "type/model[@base_url]" into its parts.

        "anthropic/claude-sonnet-4-6"
        "openai_compatible/openai/gpt-4o-mini"          (model keeps its slash)
        "openai_compatible/deepseek-chat@https://api.deepseek.com/v1"
    """
    provider_type, slash, remainder = provider_id.partition("/")
    if not slash:
        raise ValueError(
            f"Invalid provider_id '{provider_id}'; "
            "use 'type/model' or 'type/model@base_url'"
        )
    if provider_type not in _PROVIDER_CLASSES:
        raise ValueError(
            f"Unknown provider type '{provider_type}'; "
            f"choose from {sorted(_PROVIDER_CLASSES)}"
        )

    model, at, base_url = remainder.partition("@")
    return ProviderSpec(provider_type, model, base_url if at else None)


def create_provider_from_id(
    provider_id: str,
    api_key: str | None = None,
) -> LLMProvider:
    """Build a new provider for one CLI run; the shared instance is untouched."""
    parsed = _parse_provider_id(provider_id)
    if parsed.provider_type == "anthropic":
        return AnthropicProvider(api_key=api_key, model=parsed.model)
    return OpenAICompatibleProvider(
        api_key=api_key, model=parsed.model, base_url=parsed.base_url,
    )
