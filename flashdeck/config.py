"""
Configuration settings for flashdeck.

Uses Pydantic Settings for environment variable management with .env file support.
Variables use the FLASHDECK_ prefix, e.g. FLASHDECK_RATING_MODEL=binary.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .scheduler import SchedulerConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FLASHDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path.home() / ".flashdeck",
        description="Directory holding cards.db",
    )

    # ========================================
    # Scheduling
    # ========================================
    rating_model: Literal["graded", "binary"] = Field(
        default="graded",
        description="graded = SM-2 quality 0-5, binary = easy/hard",
    )
    initial_ease: float = Field(
        default=2.5,
        description="Ease factor for new cards",
    )
    minimum_ease: float = Field(
        default=1.3,
        description="Ease factor floor (both models)",
    )
    maximum_ease: float = Field(
        default=2.5,
        description="Ease factor ceiling (binary model)",
    )

    # ========================================
    # AI Generation (OpenAI-compatible API)
    # ========================================
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FLASHDECK_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="API key for sentence, translation and speech generation",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API",
    )
    chat_model: str = Field(
        default="gpt-3.5-turbo",
        description="Model for sentence generation and translation",
    )
    tts_model: str = Field(
        default="tts-1",
        description="Text-to-speech model",
    )
    tts_voice: str = Field(
        default="alloy",
        description="Text-to-speech voice",
    )
    target_language: str = Field(
        default="Traditional Chinese",
        description="Language answers are translated into",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for each generation request",
    )
    retry_attempts: int = Field(
        default=3,
        description="Attempts per generation request (timeouts and 5xx only)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    @model_validator(mode="after")
    def check_ease_range(self) -> Settings:
        """Ease settings must satisfy minimum <= initial <= maximum."""
        if not self.minimum_ease <= self.initial_ease <= self.maximum_ease:
            raise ValueError(
                f"Ease settings out of order: minimum_ease={self.minimum_ease}, "
                f"initial_ease={self.initial_ease}, maximum_ease={self.maximum_ease}"
            )
        return self

    @property
    def db_path(self) -> Path:
        return self.data_dir / "cards.db"

    def has_ai_configured(self) -> bool:
        """Check if the generation API is configured."""
        return bool(self.openai_api_key)

    def get_scheduler_config(self) -> SchedulerConfig:
        """Scheduler constants derived from settings."""
        return SchedulerConfig(
            initial_ease=self.initial_ease,
            minimum_ease=self.minimum_ease,
            maximum_ease=self.maximum_ease,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
