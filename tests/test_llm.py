# =============================================================================
# Unit Tests — Completion Providers
# =============================================================================
#
# SDK clients are replaced with mocks after construction, so no network
# access or real API keys are needed. SDK exceptions are built with a
# synthetic httpx.Response carrying the status code under test.
# =============================================================================

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from research_synth.services import llm
from research_synth.services.errors import (
    AuthFailure,
    CompletionFailure,
    MalformedCompletionFailure,
    ProviderUnavailable,
    RateLimited,
    classify_status,
)
from research_synth.services.llm import (
    AnthropicProvider,
    OpenAICompatibleProvider,
    _parse_provider_id,
)

_REQUEST = httpx.Request("POST", "https://llm.test/chat/completions")


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _status_error(sdk_class, status_code: int):
    return sdk_class(
        f"HTTP {status_code}",
        response=httpx.Response(status_code, request=_REQUEST),
        body=None,
    )


def _openai_provider(create: AsyncMock) -> OpenAICompatibleProvider:
    provider = OpenAICompatibleProvider(api_key="test-key", model="test-model")
    provider._client = MagicMock()
    provider._client.chat.completions.create = create
    return provider


def _openai_reply(content: str = "Hello.") -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
        model="test-model",
    )


# ---------------------------------------------------------------------------
# Test: Status Classification
# ---------------------------------------------------------------------------


class TestClassifyStatus:

    def test_401_is_auth_failure(self):
        assert isinstance(classify_status(401, "nope"), AuthFailure)

    def test_429_is_rate_limited(self):
        assert isinstance(classify_status(429, "slow"), RateLimited)

    def test_5xx_is_provider_unavailable(self):
        assert isinstance(classify_status(500, "boom"), ProviderUnavailable)
        assert isinstance(classify_status(503, "boom"), ProviderUnavailable)

    def test_other_status_is_completion_failure(self):
        failure = classify_status(400, "bad request")
        assert type(failure) is CompletionFailure
        assert "bad request" in failure.message

    def test_no_status_is_completion_failure(self):
        assert type(classify_status(None, "socket closed")) is CompletionFailure


# ---------------------------------------------------------------------------
# Test: OpenAI-Compatible Provider
# ---------------------------------------------------------------------------


class TestOpenAICompatibleProvider:

    def test_complete_returns_normalised_response(self):
        create = AsyncMock(return_value=_openai_reply("Hello."))
        provider = _openai_provider(create)

        response = _run(provider.complete(
            messages=[{"role": "user", "content": "Hi"}],
            system="Be brief.",
            temperature=0.0,
            max_tokens=50,
            response_format={"type": "json_object"},
        ))

        assert response.content == "Hello."
        assert response.input_tokens == 12
        assert response.output_tokens == 3

        kwargs = create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "Be brief."}
        assert kwargs["messages"][1] == {"role": "user", "content": "Hi"}
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 50
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_model_override_per_call(self):
        create = AsyncMock(return_value=_openai_reply())
        provider = _openai_provider(create)

        _run(provider.complete(
            messages=[{"role": "user", "content": "Hi"}], model="other-model",
        ))

        assert create.call_args.kwargs["model"] == "other-model"
        assert "response_format" not in create.call_args.kwargs

    @pytest.mark.parametrize(
        ("sdk_class", "status_code", "expected"),
        [
            (openai.AuthenticationError, 401, AuthFailure),
            (openai.RateLimitError, 429, RateLimited),
            (openai.InternalServerError, 500, ProviderUnavailable),
            (openai.BadRequestError, 400, CompletionFailure),
        ],
    )
    def test_status_errors_are_classified(self, sdk_class, status_code, expected):
        create = AsyncMock(side_effect=_status_error(sdk_class, status_code))
        provider = _openai_provider(create)

        with pytest.raises(expected) as exc_info:
            _run(provider.complete(messages=[{"role": "user", "content": "Hi"}]))

        assert exc_info.value.status_code == status_code
        # Classified once, never retried inside the provider
        assert create.await_count == 1

    @pytest.mark.parametrize("choices", [[], None])
    def test_reply_without_choices_is_malformed(self, choices):
        reply = SimpleNamespace(choices=choices, model="m", usage=None)
        provider = _openai_provider(AsyncMock(return_value=reply))

        with pytest.raises(MalformedCompletionFailure, match="no choices"):
            _run(provider.complete(messages=[{"role": "user", "content": "Hi"}]))

    def test_missing_usage_counts_as_zero_tokens(self):
        reply = _openai_reply("Hello.")
        reply.usage = None
        provider = _openai_provider(AsyncMock(return_value=reply))

        response = _run(provider.complete(messages=[{"role": "user", "content": "Hi"}]))

        assert (response.input_tokens, response.output_tokens) == (0, 0)

    def test_connection_error_is_completion_failure(self):
        create = AsyncMock(side_effect=openai.APIConnectionError(request=_REQUEST))
        provider = _openai_provider(create)

        with pytest.raises(CompletionFailure):
            _run(provider.complete(messages=[{"role": "user", "content": "Hi"}]))


# ---------------------------------------------------------------------------
# Test: Anthropic Provider
# ---------------------------------------------------------------------------


class TestAnthropicProvider:

    def _provider(self, create: AsyncMock) -> AnthropicProvider:
        provider = AnthropicProvider(api_key="test-key", model="claude-test")
        provider._client = MagicMock()
        provider._client.messages.create = create
        return provider

    def test_system_prompt_is_top_level_kwarg(self):
        reply = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Bonjour.")],
            model="claude-test",
            usage=SimpleNamespace(input_tokens=9, output_tokens=2),
        )
        create = AsyncMock(return_value=reply)
        provider = self._provider(create)

        response = _run(provider.complete(
            messages=[{"role": "user", "content": "Hi"}],
            system="Answer in French.",
            response_format={"type": "json_object"},
        ))

        assert response.content == "Bonjour."
        kwargs = create.call_args.kwargs
        assert kwargs["system"] == "Answer in French."
        assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]
        assert "response_format" not in kwargs

    def test_rate_limit_is_classified(self):
        create = AsyncMock(side_effect=_status_error(anthropic.RateLimitError, 429))
        provider = self._provider(create)

        with pytest.raises(RateLimited):
            _run(provider.complete(messages=[{"role": "user", "content": "Hi"}]))

    def test_reply_without_content_is_malformed(self):
        reply = SimpleNamespace(content=[], model="claude-test", usage=None)
        provider = self._provider(AsyncMock(return_value=reply))

        with pytest.raises(MalformedCompletionFailure, match="no content"):
            _run(provider.complete(messages=[{"role": "user", "content": "Hi"}]))


# ---------------------------------------------------------------------------
# Test: Factories
# ---------------------------------------------------------------------------


class TestLLMProviderFactory:

    def test_factory_raises_without_api_key(self):
        original = llm._provider
        llm._provider = None

        try:
            with patch.object(
                llm.settings, "llm_provider", "openai_compatible"
            ), patch.object(
                llm.settings, "llm_api_key", None
            ), patch.object(
                llm.settings, "openrouter_api_key", ""
            ):
                with pytest.raises(ValueError, match="API key"):
                    llm.get_llm_provider()
        finally:
            llm._provider = original

    def test_factory_builds_anthropic_when_configured(self):
        original = llm._provider
        llm._provider = None

        try:
            with patch.object(llm.settings, "llm_provider", "anthropic"), patch.object(
                llm.settings, "llm_api_key", "test-key"
            ):
                assert isinstance(llm.get_llm_provider(), AnthropicProvider)
        finally:
            llm._provider = original


class TestParseProviderId:

    def test_anthropic_id(self):
        assert _parse_provider_id("anthropic/claude-sonnet-4-6") == (
            "anthropic", "claude-sonnet-4-6", None,
        )

    def test_model_with_slash_is_kept_whole(self):
        assert _parse_provider_id("openai_compatible/openai/gpt-4o-mini") == (
            "openai_compatible", "openai/gpt-4o-mini", None,
        )

    def test_base_url_suffix(self):
        assert _parse_provider_id(
            "openai_compatible/deepseek-chat@https://api.deepseek.com/v1"
        ) == ("openai_compatible", "deepseek-chat", "https://api.deepseek.com/v1")

    def test_missing_slash_raises(self):
        with pytest.raises(ValueError, match="Invalid provider_id"):
            _parse_provider_id("deepseek-chat")

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError, match="Unknown provider type"):
            _parse_provider_id("cohere/command-r")
