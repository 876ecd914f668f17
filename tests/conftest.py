"""Shared test fixtures and configuration.

Sets up environment variables before src.config is imported (so settings
never come from a developer's .env), and provides temp-file databases and a
wired ActionService.
"""

import os

# Patch env vars BEFORE any src imports
os.environ["LLM_API_KEY"] = ""          # no network: complete() raises LLMUnavailableError
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("DEFAULT_USER_ID", "household")

from datetime import date, timedelta

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_household.db")


@pytest.fixture
def household_db(tmp_db_path):
    """Return a HouseholdDB instance backed by a temp file."""
    from src.data.db import HouseholdDB
    return HouseholdDB(db_path=tmp_db_path)


@pytest.fixture
def calendar(household_db):
    from src.adapters.local_calendar import LocalCalendarAdapter
    return LocalCalendarAdapter(household_db)


@pytest.fixture
def service(household_db, calendar):
    """ActionService on a temp DB; classification uses the rule-based path."""
    from src.core.action_service import ActionService
    return ActionService(storage=household_db, calendar=calendar)


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def tomorrow(today):
    return (today + timedelta(days=1)).isoformat()
