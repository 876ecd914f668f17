"""
Homebase Assistant - Calendar Context.

Builds the short plain-text picture of the user's calendar that goes into
the classifier prompt, so the model can resolve "my meeting" or "after the
dentist" against what is actually scheduled. Also answers "what's my next
event?".
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from src.core.temporal import format_time_12h
from src.data.models import Event
from src.ports.storage_port import StoragePort

MAX_UPCOMING = 5


def _long_date(day: date) -> str:
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def _short_date(iso: str) -> str:
    day = date.fromisoformat(iso)
    return f"{day:%a}, {day:%b} {day.day}"


def format_event_line(event: Event, with_date: bool = False) -> str:
    """'- Soccer practice at 4:00 PM at City Park' (date prefix optional)."""
    line = "- "
    if with_date:
        line += f"{_short_date(event.event_date)}: "
    line += event.title
    if event.start_time:
        line += f" at {format_time_12h(event.start_time)}"
    if event.location:
        line += f" at {event.location}"
    return line


def format_events(events: list[Event], with_date: bool = True) -> str:
    return "\n".join(format_event_line(e, with_date=with_date) for e in events)


async def build_calendar_summary(
    storage: StoragePort,
    user_id: str,
    today: date | None = None,
    look_ahead_days: int = 7,
) -> str:
    """Today's events plus a few upcoming ones, as prompt-ready text."""
    today = today or date.today()
    parts = [f"Today is {_long_date(today)}."]

    todays = await storage.events_between(user_id, today.isoformat(), today.isoformat())
    if not todays:
        parts.append("You have no events scheduled for today.")
    else:
        plural = "s" if len(todays) > 1 else ""
        parts.append(f"You have {len(todays)} event{plural} today:")
        parts.extend(format_event_line(e) for e in todays)

    upcoming = await storage.events_between(
        user_id,
        (today + timedelta(days=1)).isoformat(),
        (today + timedelta(days=look_ahead_days)).isoformat(),
    )
    if upcoming:
        parts.append(f"\nUpcoming events (next {look_ahead_days} days):")
        parts.extend(format_event_line(e, with_date=True) for e in upcoming[:MAX_UPCOMING])
        extra = len(upcoming) - MAX_UPCOMING
        if extra > 0:
            parts.append(f"... and {extra} more upcoming event{'s' if extra > 1 else ''}.")

    return "\n".join(parts)


async def find_next_event(
    storage: StoragePort,
    user_id: str,
    now: datetime | None = None,
    look_ahead_days: int = 365,
) -> Event | None:
    """The first timed event still ahead today, else the first on a later day."""
    now = now or datetime.now()
    today = now.date()
    current = now.strftime("%H:%M:%S")

    events = await storage.events_between(
        user_id, today.isoformat(), (today + timedelta(days=look_ahead_days)).isoformat(),
    )
    for event in events:
        if event.event_date > today.isoformat():
            return event
        # Earlier today, or all-day today, is not "next"
        if event.start_time and event.start_time >= current:
            return event
    return None
