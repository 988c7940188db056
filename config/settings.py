"""
Configuration management for the Agree contract auditor.

Thresholds, AI limits and cache parameters are read through Pydantic
Settings, so each one can be tuned without touching the rule tables.

Values are looked up in:
- Shell environment
- .env file in project root

Example:
    >>> from config.settings import settings
    >>> print(settings.PAYMENT_DEADLINE_DAYS)
    60
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Tunable parameters of the analysis core.

    Every field can be overridden by an environment variable of the same name.

    Attributes:
        MODEL_NAME: Model name handed to the AI analysis collaborator.
        LOG_LEVEL: Logging verbosity level.
        PAYMENT_DEADLINE_DAYS: Statutory payment deadline counted from delivery.
        ESTIMATED_ACCEPTANCE_DAYS: Assumed inspection lag for acceptance-based terms.
        NON_COMPETE_MAX_MONTHS: Longest post-termination non-compete left unflagged.
        AI_TIMEOUT_SECONDS: Time limit for one AI analysis call.
        AI_MIN_TEXT_LENGTH: Texts shorter than this are not sent to the AI.
        CACHE_PREFIX: Key prefix inside the backing cache store.
        CACHE_VERSION: Result format version stored with each cache entry.
        CACHE_MAX_ENTRIES: Maximum number of cached analyses.
        SPECULATIVE_MAX_PENDING: Oldest speculative runs are dropped beyond this.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # AI Configuration
    MODEL_NAME: str = Field(
        default="gpt-4o",
        description="LLM model name"
    )
    AI_TIMEOUT_SECONDS: float = Field(
        default=90.0,
        description="Time limit for one AI analysis call"
    )
    AI_MIN_TEXT_LENGTH: int = Field(
        default=100,
        description="Minimum text length sent to the AI analyzer"
    )

    # Legal thresholds
    PAYMENT_DEADLINE_DAYS: int = Field(
        default=60,
        description="Payment deadline in days from delivery"
    )
    ESTIMATED_ACCEPTANCE_DAYS: int = Field(
        default=20,
        description="Assumed days between delivery and acceptance"
    )
    NON_COMPETE_MAX_MONTHS: int = Field(
        default=12,
        description="Post-termination non-compete months tolerated"
    )

    # Cache
    CACHE_PREFIX: str = Field(
        default="agree_analysis_cache_",
        description="Cache key prefix"
    )
    CACHE_VERSION: str = Field(
        default="v1",
        description="Cache entry format version"
    )
    CACHE_MAX_ENTRIES: int = Field(
        default=10,
        description="Maximum number of cache entries"
    )
    SPECULATIVE_MAX_PENDING: int = Field(
        default=10,
        description="Maximum number of unreconciled speculative runs kept"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity"
    )

    @field_validator("CACHE_MAX_ENTRIES", "SPECULATIVE_MAX_PENDING", "PAYMENT_DEADLINE_DAYS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Ensure counts and day limits are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("CACHE_VERSION")
    @classmethod
    def validate_cache_version(cls, v: str) -> str:
        """Ensure the cache version tag is not blank."""
        if not v.strip():
            raise ValueError("CACHE_VERSION must not be empty")
        return v.strip()


@lru_cache
def get_settings() -> Settings:
    """
    Build the settings once per process.

    Returns:
        The shared Settings object.
    """
    return Settings()


# Shared instance imported by the rule modules
settings = get_settings()
