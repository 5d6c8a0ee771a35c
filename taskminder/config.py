"""Centralized configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide settings sourced from .env / environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────────────
    taskminder_env: str = "development"
    taskminder_log_level: str = "INFO"

    # ── API Server ───────────────────────────────────────────────────
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # ── Database ─────────────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///data/taskminder.db"

    # ── Scheduling ───────────────────────────────────────────────────
    timezone: str = ""  # IANA name, empty = system local time
    reminder_tick_seconds: int = Field(default=60, ge=1)
    date_check_minutes: int = Field(default=60, ge=1)
    missed_grace_minutes: int = Field(default=120, ge=1)
    history_retention_days: int = Field(default=30, ge=1)
    default_reminder_interval: int = Field(default=10, ge=1)
    lookahead_days: int = Field(default=1, ge=0)

    # ── Notifications ────────────────────────────────────────────────
    notifications_enabled: bool = True

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        value = value.strip()
        if value:
            try:
                ZoneInfo(value)
            except ZoneInfoNotFoundError as exc:
                raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    # ── Derived ──────────────────────────────────────────────────────
    @property
    def data_dir(self) -> Path:
        """Return the data directory, creating it if needed."""
        path = Path("data")
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def tzinfo(self) -> Optional[ZoneInfo]:
        """Configured zone, or None to use the system local zone."""
        return ZoneInfo(self.timezone) if self.timezone else None

    @property
    def is_sqlite_file(self) -> bool:
        """True when the database URL points at an on-disk SQLite file."""
        return self.database_url.startswith("sqlite") and ":memory:" not in self.database_url


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
