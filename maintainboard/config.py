"""Maintainboard configuration system using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MaintainboardConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "MAINTAINBOARD"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: str = "http://localhost:5173"

    # Database
    database_url: str = "sqlite+aiosqlite:///./maintainboard.db"
    db_wal_mode: bool = True
    db_busy_timeout_ms: int = 5000

    # Auth (tokens are issued by the identity service; we only verify them)
    secret_key: str = "CHANGE_ME_IN_PRODUCTION"
    jwt_algorithm: str = "HS256"

    # Logging
    log_dir: str = "logs"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # Dashboard templates
    default_template_id: str = "maintenance_default"
    seed_default_template: bool = True
    template_cache_max_entries: int = 256

    # Autosave: overrides the template's saveInterval when set
    autosave_interval_ms: Optional[int] = None

    # Store retries for transient failures
    persist_max_attempts: int = 3
    persist_backoff_base: float = 0.05  # seconds, doubled per attempt

    @field_validator("autosave_interval_ms")
    @classmethod
    def validate_autosave_interval(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("autosave_interval_ms must be >= 0")
        return v

    @field_validator("persist_max_attempts", "template_cache_max_entries")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("persist_backoff_base")
    @classmethod
    def validate_backoff(cls, v: float) -> float:
        if v < 0:
            raise ValueError("persist_backoff_base must be >= 0")
        return v

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent


def get_config() -> MaintainboardConfig:
    """Factory function to create config instance."""
    return MaintainboardConfig()
