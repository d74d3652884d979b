"""
Application settings using Pydantic.

Provides environment-based configuration loading with PODSCOPE_ prefix.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _state_dir() -> Path:
    return Path.home() / ".podscope"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PODSCOPE_",
        extra="ignore",
    )

    # Debug
    debug: bool = False
    log_level: str = "INFO"

    # Dashboard configuration (None means use the search order in config.loader)
    config_path: Path | None = None

    # User-authored query overrides
    user_queries_path: Path = _state_dir() / "user-queries.yaml"

    # Configuration history
    history_path: Path = _state_dir() / "config-history.json"
    history_max_snapshots: int = 50

    # Redis (BullMQ driver); legacy "name:host:port:password,..." format
    redis_instances: str | None = None
    redis_connect_timeout: float = 5.0
    redis_command_timeout: float = 10.0

    # Prometheus
    prometheus_url: str = "http://localhost:9090"

    # HTTP client settings
    http_timeout: float = 30.0

    # Queue queries
    default_queue_limit: int = 20


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
