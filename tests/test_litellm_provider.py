"""Tests for the LiteLLM model client."""

from unittest.mock import AsyncMock, MagicMock, patch

import litellm
import pytest

from cadence.providers.base import (
    InvalidResponseError,
    ModelRequestConfig,
    NetworkError,
    NoAPIKeyError,
    OverloadedError,
    RateLimitedError,
    TokenBudgetExceededError,
)
from cadence.providers.litellm_provider import LiteLLMClient

MESSAGES = [{"role": "system", "content": "Be brief."}, {"role": "user", "content": "Hi"}]


def _response(content="Hello!", prompt_tokens=12, completion_tokens=3):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    return response


class TestSend:
    @pytest.mark.asyncio
    async def test_returns_content_and_usage(self):
        client = LiteLLMClient(api_key="sk-test")
        with patch("cadence.providers.litellm_provider.acompletion",
                   new=AsyncMock(return_value=_response())) as mock:
            result = await client.send(MESSAGES, ModelRequestConfig())

        assert result.content == "Hello!"
        assert result.input_tokens == 12
        assert result.output_tokens == 3
        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-sonnet-4-5"
        assert kwargs["messages"] == MESSAGES
        assert kwargs["max_tokens"] == 4096
        assert kwargs["temperature"] == 0.7
        assert kwargs["api_key"] == "sk-test"
        assert "api_base" not in kwargs

    @pytest.mark.asyncio
    async def test_provider_prefix_added(self):
        client = LiteLLMClient(api_key="sk-test", api_base="http://localhost:4000")
        config = ModelRequestConfig(model="gpt-4o", provider="openai", max_tokens=100, temperature=0.2)
        with patch("cadence.providers.litellm_provider.acompletion",
                   new=AsyncMock(return_value=_response())) as mock:
            await client.send(MESSAGES, config)

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["api_base"] == "http://localhost:4000"
        assert kwargs["max_tokens"] == 100

    @pytest.mark.asyncio
    async def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
        client = LiteLLMClient()
        with patch("cadence.providers.litellm_provider.acompletion",
                   new=AsyncMock(return_value=_response())) as mock:
            await client.send(MESSAGES, ModelRequestConfig())
        assert "api_key" not in mock.call_args.kwargs

    @pytest.mark.asyncio
    async def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        client = LiteLLMClient()
        with patch("cadence.providers.litellm_provider.acompletion", new=AsyncMock()) as mock:
            with pytest.raises(NoAPIKeyError) as exc:
                await client.send(MESSAGES, ModelRequestConfig())
        assert exc.value.provider == "anthropic"
        mock.assert_not_called()


class TestResponseParsing:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", None])
    async def test_empty_content(self, content):
        client = LiteLLMClient(api_key="sk-test")
        with patch("cadence.providers.litellm_provider.acompletion",
                   new=AsyncMock(return_value=_response(content=content))):
            with pytest.raises(InvalidResponseError):
                await client.send(MESSAGES, ModelRequestConfig())

    @pytest.mark.asyncio
    async def test_no_choices(self):
        response = MagicMock()
        response.choices = []
        client = LiteLLMClient(api_key="sk-test")
        with patch("cadence.providers.litellm_provider.acompletion",
                   new=AsyncMock(return_value=response)):
            with pytest.raises(InvalidResponseError):
                await client.send(MESSAGES, ModelRequestConfig())

    def test_missing_usage(self):
        response = _response()
        response.usage = None
        result = LiteLLMClient._parse_response(response)
        assert result.input_tokens is None
        assert result.output_tokens is None


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,expected", [
        (litellm.RateLimitError(message="slow down", llm_provider="anthropic", model="claude"),
         RateLimitedError),
        (litellm.ServiceUnavailableError(message="overloaded", llm_provider="anthropic", model="claude"),
         OverloadedError),
        (litellm.ContextWindowExceededError(message="too long", model="claude", llm_provider="anthropic"),
         TokenBudgetExceededError),
        (litellm.APIConnectionError(message="no route", llm_provider="anthropic", model="claude"),
         NetworkError),
    ])
    async def test_litellm_errors_mapped(self, error, expected):
        client = LiteLLMClient(api_key="sk-test")
        with patch("cadence.providers.litellm_provider.acompletion",
                   new=AsyncMock(side_effect=error)):
            with pytest.raises(expected):
                await client.send(MESSAGES, ModelRequestConfig())
