"""Application settings using pydantic-settings.

Loads configuration from SOVEREIGN_* environment variables with .env file support.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Dashboard client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SOVEREIGN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "production", "testing"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Dashboard API
    api_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the Sovereign Stack dashboard server (without /api)",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for plain request/response JSON calls",
    )
    stream_connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Connect timeout for streaming calls",
    )
    stream_read_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Read timeout between stream chunks (None = wait indefinitely)",
    )

    # Chat
    default_model: str = Field(
        default="qwen2.5:7b",
        description="Model used when none is given on the command line",
    )
    chat_context_window: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Most recent messages sent upstream with each chat request",
    )
    greeting: str = Field(
        default="Hello! I'm your local AI running on Sovereign Stack. How can I help you today?",
        description="Assistant greeting shown at the top of a new conversation",
    )

    # Streaming
    flush_interval_seconds: float = Field(
        default=1 / 60,
        ge=0.0,
        le=1.0,
        description="Minimum spacing between coalesced stream updates (one display tick)",
    )

    # Status polling
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Interval between status/resource refreshes",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()
