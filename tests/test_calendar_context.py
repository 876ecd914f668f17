"""Tests for src.core.calendar_context - calendar summary for the classifier prompt."""

from datetime import date, datetime

import pytest

from src.core.calendar_context import build_calendar_summary, find_next_event, format_event_line
from src.data.models import Event, RecordKind

USER = "family-1"
TODAY = date(2026, 10, 18)


async def _add(db, title, event_date, start=None, location=None):
    await db.insert(RecordKind.EVENT, USER, {
        "title": title, "event_date": event_date, "start_time": start, "location": location,
    })


class TestFormatEventLine:
    def test_plain(self):
        event = Event(id="1", user_id=USER, title="Soccer", event_date="2026-10-19",
                      start_time="16:00:00", location="City Park")
        assert format_event_line(event) == "- Soccer at 4:00 PM at City Park"
        assert format_event_line(event, with_date=True) == "- Mon, Oct 19: Soccer at 4:00 PM at City Park"

    def test_all_day(self):
        event = Event(id="1", user_id=USER, title="Holiday", event_date="2026-10-19")
        assert format_event_line(event) == "- Holiday"


class TestBuildCalendarSummary:
    @pytest.mark.asyncio
    async def test_empty_calendar(self, household_db):
        summary = await build_calendar_summary(household_db, USER, today=TODAY)
        assert summary == (
            "Today is Sunday, October 18, 2026.\n"
            "You have no events scheduled for today."
        )

    @pytest.mark.asyncio
    async def test_today_and_upcoming(self, household_db):
        await _add(household_db, "Brunch", "2026-10-18", "11:00:00")
        await _add(household_db, "Dentist", "2026-10-20", "09:00:00", "Main St Clinic")
        await _add(household_db, "Too far", "2026-10-30", "09:00:00")

        summary = await build_calendar_summary(household_db, USER, today=TODAY)

        assert "You have 1 event today:\n- Brunch at 11:00 AM" in summary
        assert "Upcoming events (next 7 days):\n- Tue, Oct 20: Dentist at 9:00 AM at Main St Clinic" in summary
        assert "Too far" not in summary

    @pytest.mark.asyncio
    async def test_upcoming_is_capped(self, household_db):
        for day in range(19, 26):
            await _add(household_db, f"Practice {day}", f"2026-10-{day}", "17:00:00")

        summary = await build_calendar_summary(household_db, USER, today=TODAY)

        assert "Practice 23" in summary
        assert "Practice 24" not in summary
        assert summary.endswith("... and 2 more upcoming events.")


class TestFindNextEvent:
    NOW = datetime(2026, 10, 18, 12, 0)

    @pytest.mark.asyncio
    async def test_skips_earlier_today_and_all_day(self, household_db):
        await _add(household_db, "Breakfast", "2026-10-18", "08:00:00")
        await _add(household_db, "Holiday", "2026-10-18")
        await _add(household_db, "Nap", "2026-10-18", "13:30:00")

        event = await find_next_event(household_db, USER, now=self.NOW)
        assert event.title == "Nap"

    @pytest.mark.asyncio
    async def test_rolls_over_to_a_later_day(self, household_db):
        await _add(household_db, "Breakfast", "2026-10-18", "08:00:00")
        await _add(household_db, "Soccer", "2026-10-21", "16:00:00")
        await _add(household_db, "Dentist", "2026-10-20", "09:00:00")

        event = await find_next_event(household_db, USER, now=self.NOW)
        assert event.title == "Dentist"

    @pytest.mark.asyncio
    async def test_nothing_ahead(self, household_db):
        await _add(household_db, "Last week", "2026-10-11", "10:00:00")
        assert await find_next_event(household_db, USER, now=self.NOW) is None
