"""
Configuration settings for the lexiflow study engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./lexiflow.db",
        description="SQLAlchemy connection string (PostgreSQL in deployment)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Batch Selection
    # ========================================
    default_batch_size: int = Field(
        default=20,
        ge=1,
        description="Words per batch when the caller does not ask for a size",
    )
    max_batch_size: int = Field(
        default=100,
        ge=1,
        description="Upper bound on words per batch",
    )
    review_mastered_words: bool = Field(
        default=False,
        description="Include mastered words in due reviews",
    )

    # ========================================
    # Review Intervals (SM-2 style)
    # ========================================
    initial_easiness: float = Field(default=2.5, description="Starting easiness factor")
    minimum_easiness: float = Field(default=1.3, description="Easiness floor")
    maximum_easiness: float = Field(default=3.0, description="Easiness ceiling")
    first_interval_days: int = Field(default=1, ge=1, description="Interval after the first success")
    max_interval_days: int = Field(default=365, ge=1, description="Longest review interval")
    hard_interval_factor: float = Field(
        default=1.2,
        description="Interval growth for a 'hard' rating",
    )
    relearn_delay_minutes: int = Field(
        default=10,
        ge=0,
        description="Delay before a forgotten word is due again",
    )
    mastery_easy_streak: int = Field(
        default=1,
        ge=1,
        description="Consecutive 'easy' ratings needed to promote learned -> mastered",
    )

    # ========================================
    # Sessions & Concurrency
    # ========================================
    allow_concurrent_sessions: bool = Field(
        default=False,
        description="Allow more than one open session per user",
    )
    auto_close_stale_sessions: bool = Field(
        default=False,
        description="Close an idle open session instead of rejecting a new start",
    )
    stale_session_minutes: int = Field(
        default=120,
        ge=1,
        description="Idle minutes after which an open session counts as abandoned",
    )
    conflict_max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries after a lost compare-and-swap before surfacing a conflict",
    )

    # ========================================
    # Statistics
    # ========================================
    reference_timezone: str = Field(
        default="UTC",
        description="Timezone whose calendar days define streaks",
    )
    daily_words_target: int = Field(default=10, ge=1, description="Default daily goal: new words learned")
    daily_review_target: int = Field(default=20, ge=1, description="Default daily goal: reviews")
    daily_minutes_target: int = Field(default=30, ge=1, description="Default daily goal: minutes studied")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
