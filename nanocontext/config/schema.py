"""Configuration schema using Pydantic."""

import os
import re
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class CompactionConfig(BaseModel):
    """History compaction limits."""
    recency_window: int = Field(default=10, ge=1)  # Trailing messages always sent verbatim
    chunk_max_messages: int = 10
    chunk_max_chars: int = 3200
    max_incremental_updates: int = Field(default=8, ge=0)  # Extends before a forced full rebuild
    min_summary_chars: int = 80
    fallback_max_chars: int = Field(default=1600, ge=0)  # 0 disables the local condenser
    ledger_max_events: int = Field(default=200, ge=1)
    summary_max_tokens: int = 512
    retry_max_tokens: int = 320


class GuardConfig(BaseModel):
    """Reply guard configuration."""
    write_tools: list[str] = Field(default_factory=lambda: ["write_file", "edit_file"])
    claim_pattern: str | None = None  # Regex overriding the built-in completion-claim pattern

    @field_validator("claim_pattern")
    @classmethod
    def _compiles(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"claim_pattern is not a valid regular expression: {e}") from e
        return value


class ProviderConfig(BaseModel):
    """LLM provider used for summarization."""
    api_key: str = ""  # Literal key, or "$ENV_VAR" to read it from the environment
    api_base: str | None = None
    model: str = "openai/gpt-4o-mini"
    timeout: float | None = None

    @property
    def resolved_api_key(self) -> str | None:
        key = self.api_key.strip()
        if key.startswith("$"):
            return os.environ.get(key[1:]) or None
        return key or None


class LoggingConfig(BaseModel):
    """Logging output configuration."""
    json_output: bool = False
    level: str = "INFO"


class Config(BaseSettings):
    """Root configuration for nanocontext."""
    workspace: str = "."
    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    guard: GuardConfig = Field(default_factory=GuardConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="NANOCONTEXT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @property
    def workspace_path(self) -> Path:
        """Get expanded workspace path."""
        return Path(self.workspace).expanduser()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values loaded from config.json
        return env_settings, init_settings, dotenv_settings, file_secret_settings
