"""Local calendar adapter - implements CalendarPort on top of household storage.

The default provider: events live in the same store as everything else.
Creating an event the user already has (same title, same day, ignoring case)
returns the existing record instead of inserting a duplicate.
"""

from __future__ import annotations

import logging

from src.data.models import Event, RecordKind
from src.ports.calendar_port import (
    MAX_TEXT_LENGTH,
    CalendarCreateResult,
    CalendarError,
    EventInput,
)
from src.ports.storage_port import StorageError, StoragePort

logger = logging.getLogger(__name__)

class LocalCalendarAdapter:
    """Storage-backed implementation of CalendarPort."""

    provider = "local"

    def __init__(self, storage: StoragePort) -> None:
        self._storage = storage

    def is_available(self) -> bool:
        return True

    async def find_duplicate(self, user_id: str, title: str, event_date: str) -> Event | None:
        """Return the user's event with this exact title on this day, if any."""
        wanted = title.strip().lower()
        candidates = await self._storage.search(
            RecordKind.EVENT, user_id, term=wanted, filters={"event_date": event_date},
        )
        for event in candidates:
            if event.title.strip().lower() == wanted:
                return event
        return None

    async def create_event(self, user_id: str, event: EventInput) -> CalendarCreateResult:
        title = event.title.strip()[:MAX_TEXT_LENGTH]
        try:
            existing = await self.find_duplicate(user_id, title, event.date)
            if existing is not None:
                logger.info(
                    "Event '%s' on %s already exists (%s), not duplicating",
                    title, event.date, existing.id,
                )
                return CalendarCreateResult(
                    id=existing.id, provider=self.provider, created=False,
                )

            created = await self._storage.insert(
                RecordKind.EVENT,
                user_id,
                {
                    "title": title,
                    "event_date": event.date,
                    "start_time": event.start_time,
                    "end_time": event.end_time,
                    "location": event.location[:MAX_TEXT_LENGTH] if event.location else None,
                    "participants": [str(p) for p in event.participants],
                    "description": event.description,
                    "event_type": event.event_type,
                    "source": event.source,
                },
            )
        except StorageError as exc:
            raise CalendarError(str(exc)) from exc

        return CalendarCreateResult(id=created.id, provider=self.provider)
