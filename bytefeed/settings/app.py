"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bytefeed.config.constants import (
    DIVERSITY_CAP,
    MAX_PROCESS_ATTEMPTS,
    PROCESSING_DELAY_SECONDS,
    PROVIDER_TIMEOUT_SECONDS,
    QUEUE_BATCH_SIZE,
    STALE_PROCESSING_MINUTES,
)


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    db_path: Path = Field(
        default=Path("state/bytefeed.sqlite"), validation_alias="BYTEFEED_DB_PATH"
    )

    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(
        default="gemini-2.5-flash", validation_alias="GEMINI_MODEL"
    )
    deepseek_api_key: str | None = Field(
        default=None, validation_alias="DEEPSEEK_API_KEY"
    )
    deepseek_model: str = Field(default="deepseek-chat", validation_alias="DEEPSEEK_MODEL")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com/v1", validation_alias="DEEPSEEK_BASE_URL"
    )
    anthropic_api_key: str | None = Field(
        default=None, validation_alias="ANTHROPIC_API_KEY"
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514", validation_alias="ANTHROPIC_MODEL"
    )
    provider_timeout_seconds: float = Field(
        default=PROVIDER_TIMEOUT_SECONDS,
        gt=0,
        validation_alias="PROVIDER_TIMEOUT_SECONDS",
    )

    queue_batch_size: int = Field(
        default=QUEUE_BATCH_SIZE, ge=1, validation_alias="QUEUE_BATCH_SIZE"
    )
    queue_max_attempts: int = Field(
        default=MAX_PROCESS_ATTEMPTS, ge=1, validation_alias="QUEUE_MAX_ATTEMPTS"
    )
    queue_item_delay_seconds: float = Field(
        default=PROCESSING_DELAY_SECONDS,
        ge=0,
        validation_alias="QUEUE_ITEM_DELAY_SECONDS",
    )
    queue_stale_minutes: int = Field(
        default=STALE_PROCESSING_MINUTES, ge=1, validation_alias="QUEUE_STALE_MINUTES"
    )

    feed_diversity_cap: int = Field(
        default=DIVERSITY_CAP, ge=1, validation_alias="FEED_DIVERSITY_CAP"
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="LOG_JSON")

    def configured_providers(self) -> list[str]:
        """Return provider names with credentials, in fallback order."""
        keys = {
            "gemini": self.gemini_api_key,
            "deepseek": self.deepseek_api_key,
            "anthropic": self.anthropic_api_key,
        }
        return [name for name, key in keys.items() if key]


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
