"""Configuration schema using Pydantic."""

from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cadence.providers.base import ModelRequestConfig


class ModelConfig(BaseModel):
    """Model used for conversation turns."""
    model: str = "anthropic/claude-sonnet-4-5"
    provider: str = "anthropic"
    max_tokens: int = 4096
    temperature: float = 0.7
    api_key: str = ""
    api_base: str | None = None

    def request_config(self) -> ModelRequestConfig:
        return ModelRequestConfig(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            provider=self.provider,
        )


class SummaryConfig(BaseModel):
    """Sampling settings for summary generation."""
    max_tokens: int = 2048
    temperature: float = 0.3


class ContextBudgetConfig(BaseModel):
    """Approximate token budgets for each turn's payload."""
    total_budget: int = 20000
    response_reserve: int = 2500


class AutoSummaryConfig(BaseModel):
    """Auto-summarisation of abandoned sessions."""
    timeout_hours: float = 24
    max_retries: int = 3
    backoff_base_s: float = 2.0  # First retry delay; doubles on each further attempt

    @property
    def timeout(self) -> timedelta:
        return timedelta(hours=self.timeout_hours)


class StorageConfig(BaseModel):
    """Where the file-backed session store lives."""
    path: str = "~/.cadence/sessions"


class PromptsConfig(BaseModel):
    """Where prompt template overrides are persisted."""
    overrides_path: str = "~/.cadence/prompt_overrides.json"


class Config(BaseSettings):
    """Root configuration for cadence."""
    model: ModelConfig = Field(default_factory=ModelConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)
    context: ContextBudgetConfig = Field(default_factory=ContextBudgetConfig)
    auto_summary: AutoSummaryConfig = Field(default_factory=AutoSummaryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_nested_delimiter="__",
        protected_namespaces=(),
    )

    @property
    def storage_path(self) -> Path:
        return Path(self.storage.path).expanduser()

    @property
    def overrides_path(self) -> Path:
        return Path(self.prompts.overrides_path).expanduser()

    def summary_request_config(self) -> ModelRequestConfig:
        return ModelRequestConfig(
            model=self.model.model,
            max_tokens=self.summary.max_tokens,
            temperature=self.summary.temperature,
            provider=self.model.provider,
        )
