"""LiteLLM model client for multi-provider support."""

import os
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from cadence.providers.base import (
    InvalidResponseError,
    ModelClient,
    ModelHTTPError,
    ModelRequestConfig,
    ModelResponse,
    NetworkError,
    NoAPIKeyError,
    OverloadedError,
    RateLimitedError,
    TokenBudgetExceededError,
)

API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

OVERLOADED_STATUS = 529


class LiteLLMClient(ModelClient):
    """
    Model client using LiteLLM.

    Supports Anthropic, OpenAI and Gemini through a unified interface.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    async def send(
        self,
        messages: list[dict[str, Any]],
        config: ModelRequestConfig,
    ) -> ModelResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: Message dicts with 'role' and 'content'.
            config: Model identifier (e.g. 'anthropic/claude-sonnet-4-5'), limits, sampling.

        Returns:
            ModelResponse with content and usage.
        """
        model = config.model
        if "/" not in model:
            model = f"{config.provider}/{model}"

        env_var = API_KEY_ENV.get(config.provider)
        if not self.api_key and env_var and not os.environ.get(env_var):
            raise NoAPIKeyError(config.provider)

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            response = await acompletion(**kwargs)
        except litellm.ContextWindowExceededError as e:
            raise TokenBudgetExceededError(str(e)) from e
        except litellm.RateLimitError as e:
            raise RateLimitedError(str(e)) from e
        except litellm.AuthenticationError as e:
            raise ModelHTTPError(401, str(e)) from e
        except (litellm.APIConnectionError, litellm.Timeout) as e:
            raise NetworkError(str(e)) from e
        except litellm.ServiceUnavailableError as e:
            raise OverloadedError(str(e)) from e
        except (
            litellm.APIError,
            litellm.BadRequestError,
            litellm.NotFoundError,
            litellm.PermissionDeniedError,
            litellm.InternalServerError,
        ) as e:
            status = getattr(e, "status_code", None) or 500
            if status == OVERLOADED_STATUS:
                raise OverloadedError(str(e)) from e
            raise ModelHTTPError(status, str(e)) from e

        return self._parse_response(response)

    @staticmethod
    def _parse_response(response: Any) -> ModelResponse:
        """Parse LiteLLM response into our standard format."""
        choices = getattr(response, "choices", None)
        if not choices:
            raise InvalidResponseError("Response contained no choices")

        content = choices[0].message.content
        if not content:
            raise InvalidResponseError("Response contained no text content")

        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "prompt_tokens", None) if usage else None
        output_tokens = getattr(usage, "completion_tokens", None) if usage else None
        logger.debug(f"Model response: {len(content)} chars, usage in={input_tokens} out={output_tokens}")

        return ModelResponse(content=content, input_tokens=input_tokens, output_tokens=output_tokens)
