"""
Homebase Assistant - Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_SUPPORTED_PROVIDERS = ("gemini", "anthropic", "openai", "cohere")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # LLM - provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""        # empty → rule-based classifier only
    LLM_TIMEOUT_SECONDS: float = 8.0

    # SQLite
    DATABASE_PATH: str = "data/household.db"
    DEFAULT_USER_ID: str = "household"

    # Scheduling policy
    DEFAULT_EVENT_DURATION_MINUTES: int = 30
    CONFLICT_SUGGESTION_COUNT: int = 3
    DAY_END: str = "21:00"

    # Disambiguation / prompt bounds
    MAX_DISAMBIGUATION_CANDIDATES: int = 5
    HISTORY_MAX_TURNS: int = 10

    LOG_LEVEL: str = "INFO"

    @field_validator("LLM_PROVIDER", mode="before")
    @classmethod
    def parse_provider(cls, v: str) -> str:
        provider = str(v or "gemini").strip().lower()
        if provider not in _SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unknown LLM_PROVIDER={provider!r}. Supported: {', '.join(_SUPPORTED_PROVIDERS)}"
            )
        return provider

    @field_validator("LLM_API_KEY", mode="before")
    @classmethod
    def parse_api_key(cls, v: str | None) -> str:
        key = (v or "").strip()
        # Placeholder values copied from .env.example count as "not set"
        if key.startswith("your-"):
            return ""
        return key

    @field_validator("LLM_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def parse_timeout(cls, v: str | float) -> float:
        timeout = float(v)
        if timeout <= 0:
            raise ValueError("LLM_TIMEOUT_SECONDS must be positive")
        return timeout

    @field_validator(
        "DEFAULT_EVENT_DURATION_MINUTES",
        "CONFLICT_SUGGESTION_COUNT",
        "MAX_DISAMBIGUATION_CANDIDATES",
        "HISTORY_MAX_TURNS",
        mode="before",
    )
    @classmethod
    def parse_positive_int(cls, v: str | int) -> int:
        value = int(v)
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("DAY_END", mode="before")
    @classmethod
    def parse_day_end(cls, v: str) -> str:
        value = str(v).strip()
        if not re.fullmatch(r"([01]\d|2[0-3]):[0-5]\d", value):
            raise ValueError("DAY_END must be HH:MM (24-hour)")
        return value

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        return str(v or "INFO").strip().upper()


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
            LLM_MODEL=os.getenv("LLM_MODEL", ""),
            LLM_API_KEY=os.getenv("LLM_API_KEY", ""),
            LLM_TIMEOUT_SECONDS=os.getenv("LLM_TIMEOUT_SECONDS", "8"),
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/household.db"),
            DEFAULT_USER_ID=os.getenv("DEFAULT_USER_ID", "household"),
            DEFAULT_EVENT_DURATION_MINUTES=os.getenv("DEFAULT_EVENT_DURATION_MINUTES", "30"),
            CONFLICT_SUGGESTION_COUNT=os.getenv("CONFLICT_SUGGESTION_COUNT", "3"),
            DAY_END=os.getenv("DAY_END", "21:00"),
            MAX_DISAMBIGUATION_CANDIDATES=os.getenv("MAX_DISAMBIGUATION_CANDIDATES", "5"),
            HISTORY_MAX_TURNS=os.getenv("HISTORY_MAX_TURNS", "10"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )
    except ValidationError as exc:
        print(f"ERROR: invalid configuration in .env:\n{exc}", file=sys.stderr)
        sys.exit(1)


# Singleton - imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
