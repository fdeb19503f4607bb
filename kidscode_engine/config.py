"""
Configuration management for the KidsCode block engine.
Uses pydantic-settings for environment variable parsing.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine and host settings loaded from environment variables."""

    # Animation
    frame_interval_ms: int = Field(
        default=16,
        ge=1,
        description="Delay between tween frames in milliseconds (about 60 fps)"
    )

    # Scheduling
    schedule_mode: Literal["sequential", "concurrent"] = Field(
        default="sequential",
        description=(
            "sequential drains start chains one after another; "
            "concurrent gives every start chain its own task"
        )
    )

    # Extension handlers
    handler_modules: list[str] = Field(
        default_factory=list,
        description=(
            "Python module paths whose register_handlers(registry) adds "
            "operation handlers at startup"
        )
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level for the host process"
    )

    # Sessions
    max_sessions: int = Field(
        default=100,
        ge=1,
        description="Maximum number of concurrent stage sessions"
    )
    send_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for pushing a frame to a WebSocket client"
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Use dependency injection in FastAPI routes.
    """
    return Settings()
