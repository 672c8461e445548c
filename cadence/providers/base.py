"""Base model client interface and its error taxonomy."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ModelRequestConfig:
    """Per-request model settings."""
    model: str = "anthropic/claude-sonnet-4-5"
    max_tokens: int = 4096
    temperature: float = 0.7
    provider: str = "anthropic"


@dataclass
class ModelResponse:
    """Text response from a model, with reported usage when available."""
    content: str
    input_tokens: int | None = None
    output_tokens: int | None = None


class ModelClientError(Exception):
    """Base class for model client failures."""


class NoAPIKeyError(ModelClientError):
    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"No API key configured for provider '{provider}'")


class InvalidResponseError(ModelClientError):
    """The provider answered, but without usable text."""


class ModelHTTPError(ModelClientError):
    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Model API returned HTTP {status_code}: {body}")


class NetworkError(ModelClientError):
    """The provider could not be reached."""


class RateLimitedError(ModelClientError):
    """The provider rejected the request for rate limiting."""


class OverloadedError(ModelClientError):
    """The provider is temporarily overloaded."""


class TokenBudgetExceededError(ModelClientError):
    """The request exceeded the model's context window."""


class ModelClient(ABC):
    """
    Abstract base class for model clients.

    Implementations turn a message list into one text response and map their
    transport's failures onto ``ModelClientError`` subclasses. They do not
    retry.
    """

    @abstractmethod
    async def send(
        self,
        messages: list[dict[str, Any]],
        config: ModelRequestConfig,
    ) -> ModelResponse:
        """
        Send a chat request.

        Args:
            messages: Message dicts with 'role' and 'content'.
            config: Model, limits and sampling settings.

        Returns:
            ModelResponse with the text and token usage.
        """
        pass
