"""Calendar port - abstract interface for calendar providers.

Core modules depend on this protocol, never on a specific provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

# Longest title or location a provider stores
MAX_TEXT_LENGTH = 200


class CalendarError(Exception):
    """Raised when any calendar provider operation fails."""


@dataclass
class EventInput:
    """What the router asks a provider to put on the calendar."""

    title: str
    date: str                          # YYYY-MM-DD
    start_time: str | None = None      # HH:MM:SS
    end_time: str | None = None        # HH:MM:SS
    location: str | None = None
    participants: list[str] = field(default_factory=list)
    description: str | None = None
    event_type: str = "other"
    source: str = "ai"


@dataclass
class CalendarCreateResult:
    id: str
    provider: str
    external_id: str | None = None
    created: bool = True               # False → an identical event already existed


class CalendarPort(Protocol):
    """Abstract calendar interface used by core modules.

    create_event() deduplicates by (user, title, date) case-insensitively:
    repeating an identical request returns the existing id. Callers check
    is_available() first and skip the write when it is False.
    """

    def is_available(self) -> bool: ...

    async def create_event(self, user_id: str, event: EventInput) -> CalendarCreateResult: ...
