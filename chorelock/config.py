"""
ChoreLock — Centralized configuration.

Loads all settings from .env and validates them.
Core classes take explicit parameters; only the entry point reads `settings`.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

# Load .env from project root (one level up from chorelock/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

SCREEN_BACKENDS = ("log", "macos")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Chore window, local hours, half-open [START_HOUR, END_HOUR)
    START_HOUR: int = 6
    END_HOUR: int = 9

    # Completion log retention
    RETENTION_DAYS: int = 14

    # Re-evaluation tick and wake-from-sleep detection
    TICK_SECONDS: float = 60.0
    WAKE_GAP_SECONDS: float = 120.0

    # Python weekday numbers (Monday=0) that count as weekend
    WEEKEND_DAYS: list[int] = [5, 6]

    # SQLite
    DATABASE_PATH: str = "data/chorelock.db"

    # Screen adapter, one of SCREEN_BACKENDS
    SCREEN_BACKEND: str = "log"

    LOG_LEVEL: str = "INFO"

    @field_validator("START_HOUR", "END_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        hour = int(v)
        if not 0 <= hour <= 23:
            raise ValueError(f"hour must be between 0 and 23, got {hour}")
        return hour

    @field_validator("RETENTION_DAYS", mode="before")
    @classmethod
    def parse_retention(cls, v: str | int) -> int:
        days = int(v)
        if days < 1:
            raise ValueError("RETENTION_DAYS must be at least 1")
        return days

    @field_validator("WEEKEND_DAYS", mode="before")
    @classmethod
    def parse_weekend_days(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            days = v
        elif isinstance(v, str) and v.strip():
            days = [int(d.strip()) for d in v.split(",") if d.strip()]
        else:
            days = []
        for d in days:
            if not 0 <= d <= 6:
                raise ValueError(f"weekend day must be between 0 and 6, got {d}")
        return days

    @field_validator("SCREEN_BACKEND", mode="before")
    @classmethod
    def parse_backend(cls, v: str) -> str:
        backend = str(v).strip().lower()
        if backend not in SCREEN_BACKENDS:
            raise ValueError(
                f"SCREEN_BACKEND must be one of {', '.join(SCREEN_BACKENDS)}, got {v!r}"
            )
        return backend


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            START_HOUR=os.getenv("START_HOUR", "6"),
            END_HOUR=os.getenv("END_HOUR", "9"),
            RETENTION_DAYS=os.getenv("RETENTION_DAYS", "14"),
            TICK_SECONDS=os.getenv("TICK_SECONDS", "60"),
            WAKE_GAP_SECONDS=os.getenv("WAKE_GAP_SECONDS", "120"),
            WEEKEND_DAYS=os.getenv("WEEKEND_DAYS", "5,6"),
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/chorelock.db"),
            SCREEN_BACKEND=os.getenv("SCREEN_BACKEND", "log"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )
    except ValidationError as exc:
        print(f"ERROR: invalid ChoreLock configuration:\n{exc}", file=sys.stderr)
        sys.exit(1)


# Singleton — imported by the entry point as:
#   from chorelock.config import settings
settings = _load_settings()
