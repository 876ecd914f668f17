"""
Homebase Assistant - Event Conflict Checker.

Detects time conflicts before creating or rescheduling calendar events, and
suggests free slots later the same day as alternatives.

Intervals are half-open [start, end) in minutes from midnight, so an event
ending at 10:00 does not collide with one starting at 10:00.

The check reads the calendar and the caller writes afterwards; the two steps
are not atomic, so a concurrent request for the same user can still slip a
colliding event in between.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.core.temporal import format_time_12h, minutes_to_time, time_to_minutes
from src.data.models import Event
from src.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)


@dataclass
class EventSummary:
    """The parts of a conflicting event worth showing to the user."""

    id: str
    title: str
    date: str
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None

    @classmethod
    def from_event(cls, event: Event) -> EventSummary:
        return cls(
            id=event.id,
            title=event.title,
            date=event.event_date,
            start_time=event.start_time,
            end_time=event.end_time,
            location=event.location,
        )

    def __str__(self) -> str:
        if self.start_time:
            return f"{self.title} at {format_time_12h(self.start_time)}"
        return self.title


@dataclass(frozen=True)
class TimeRange:
    start: str     # HH:MM:SS
    end: str       # HH:MM:SS

    def __str__(self) -> str:
        return f"{format_time_12h(self.start)} - {format_time_12h(self.end)}"


@dataclass
class ConflictCheckResult:
    """Result of a conflict check. Suggestions only accompany a conflict."""

    has_conflict: bool
    conflicting_events: list[EventSummary] = field(default_factory=list)
    suggestions: list[TimeRange] = field(default_factory=list)


def overlaps_any(start: int, end: int, busy: list[tuple[int, int]]) -> bool:
    """Check if [start, end) overlaps with any busy interval."""
    return any(start < b_end and end > b_start for b_start, b_end in busy)


def event_interval(event: Event, default_duration_minutes: int = 30) -> tuple[int, int] | None:
    """Busy interval of a stored event, or None for all-day events."""
    start = time_to_minutes(event.start_time)
    if start is None:
        return None
    end = time_to_minutes(event.end_time)
    if end is None or end <= start:
        end = start + default_duration_minutes
    return start, end


def find_conflicting_events(
    events: list[Event],
    start: int,
    end: int,
    exclude_event_id: str | None = None,
    default_duration_minutes: int = 30,
) -> list[Event]:
    conflicting = []
    for event in events:
        if exclude_event_id and event.id == exclude_event_id:
            continue
        interval = event_interval(event, default_duration_minutes)
        if interval is not None and overlaps_any(start, end, [interval]):
            conflicting.append(event)
    return conflicting


def suggest_time_ranges(
    busy: list[tuple[int, int]],
    after: int,
    duration_minutes: int,
    count: int = 3,
    day_end: int = 21 * 60,
    step_minutes: int = 30,
) -> list[TimeRange]:
    """Free slots of the given duration, scanning forward from `after`.

    Candidates start at `after` and advance in `step_minutes` increments;
    each must avoid every busy interval and finish by day_end.
    """
    suggestions: list[TimeRange] = []
    t = after
    while len(suggestions) < count and t + duration_minutes <= day_end:
        if not overlaps_any(t, t + duration_minutes, busy):
            suggestions.append(
                TimeRange(minutes_to_time(t), minutes_to_time(t + duration_minutes))
            )
        t += step_minutes
    return suggestions


class ConflictDetector:
    """Checks a proposed event time against the user's stored events."""

    def __init__(
        self,
        storage: StoragePort,
        default_duration_minutes: int = 30,
        suggestion_count: int = 3,
        day_end: str = "21:00",
        step_minutes: int = 30,
    ) -> None:
        self._storage = storage
        self._default_duration = default_duration_minutes
        self._suggestion_count = suggestion_count
        self._day_end = time_to_minutes(day_end) or 24 * 60
        self._step = step_minutes

    async def check_conflicts(
        self,
        user_id: str,
        date: str,
        start_time: str | None,
        end_time: str | None = None,
        exclude_event_id: str | None = None,
    ) -> ConflictCheckResult:
        """Check a proposed [start_time, end_time) on `date` for overlaps.

        Without a start time (all-day) nothing can conflict. A missing or
        inverted end time means the default duration. Storage errors propagate
        so the caller never writes on a failed check.
        """
        start = time_to_minutes(start_time)
        if start is None:
            return ConflictCheckResult(has_conflict=False)

        end = time_to_minutes(end_time)
        if end is None or end <= start:
            end = start + self._default_duration

        events = await self._storage.events_between(user_id, date, date)
        events = [e for e in events if e.id != exclude_event_id]

        conflicting = find_conflicting_events(
            events, start, end, default_duration_minutes=self._default_duration,
        )
        if not conflicting:
            return ConflictCheckResult(has_conflict=False)

        busy = [
            interval for interval in
            (event_interval(e, self._default_duration) for e in events)
            if interval is not None
        ]
        latest_end = max(event_interval(e, self._default_duration)[1] for e in conflicting)
        suggestions = suggest_time_ranges(
            busy,
            after=latest_end,
            duration_minutes=end - start,
            count=self._suggestion_count,
            day_end=self._day_end,
            step_minutes=self._step,
        )

        logger.info(
            "Conflict on %s %s-%s for user %s: %s",
            date, minutes_to_time(start), minutes_to_time(end), user_id,
            [e.title for e in conflicting],
        )
        return ConflictCheckResult(
            has_conflict=True,
            conflicting_events=[EventSummary.from_event(e) for e in conflicting],
            suggestions=suggestions,
        )
