# villa_sync/config.py
"""
Centralized sync-client configuration using pydantic-settings.

All settings are read from environment variables or .env file.
Poll cadence and the sync-service URL can be tuned per deployment
without code changes.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Sync settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Sync service ---
    ELECTRIC_URL: str = Field(
        default="http://localhost:5133",
        description="Base URL of the shape sync service"
    )
    POLL_INTERVAL_MS: int = Field(
        default=5000,
        gt=0,
        description="Default delay between shape polls, in milliseconds"
    )
    RETRY_ATTEMPTS: int = Field(
        default=3,
        ge=0,
        description="Reserved; failed polls are retried on the next tick"
    )
    HEALTH_CHECK_INTERVAL_MS: int = Field(
        default=30000,
        gt=0,
        description="Delay between connectivity checks, in milliseconds"
    )
    HEALTH_CHECK_TIMEOUT_MS: int = Field(
        default=3000,
        gt=0,
        description="Upper bound for a single health probe, in milliseconds"
    )
    SHAPE_FETCH_TIMEOUT_MS: Optional[int] = Field(
        default=None,
        description="Timeout for shape fetches; HTTP client default when unset"
    )

    # --- Server ---
    HOST: str = Field(
        default="127.0.0.1",
        description="Status API bind host"
    )
    PORT: int = Field(
        default=8888,
        description="Status API bind port"
    )
    SERVICE_NAME: str = Field(
        default="villa-sync",
        description="Service name reported to tracing"
    )

    # --- Debug / Logging ---
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @field_validator("ELECTRIC_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()


# --- Singleton instance for easy import ---
settings = get_settings()


# --- Module-level exports ---

HOST: str = settings.HOST
PORT: int = settings.PORT
DEBUG: bool = settings.DEBUG
LOG_LEVEL: str = settings.LOG_LEVEL
SERVICE_NAME: str = settings.SERVICE_NAME
