"""Tests for src.core.conflict_checker - overlap detection and free slot suggestions."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.conflict_checker import (
    ConflictDetector,
    EventSummary,
    TimeRange,
    event_interval,
    overlaps_any,
    suggest_time_ranges,
)
from src.data.models import Event
from src.ports.storage_port import StorageError

USER = "family-1"
DAY = "2026-10-19"


def _event(event_id, title, start=None, end=None, location=None):
    return Event(
        id=event_id, user_id=USER, title=title, event_date=DAY,
        start_time=start, end_time=end, location=location,
    )


def _detector(events, **kwargs):
    storage = MagicMock()
    storage.events_between = AsyncMock(return_value=events)
    return ConflictDetector(storage, **kwargs), storage


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestIntervals:
    def test_half_open_overlap(self):
        busy = [(540, 600)]
        assert overlaps_any(570, 630, busy) is True
        assert overlaps_any(600, 630, busy) is False
        assert overlaps_any(510, 540, busy) is False

    def test_all_day_event_has_no_interval(self):
        assert event_interval(_event("1", "Holiday")) is None

    def test_missing_end_uses_default(self):
        assert event_interval(_event("1", "Call", "09:00:00")) == (540, 570)
        assert event_interval(_event("1", "Call", "09:00:00"), 45) == (540, 585)

    def test_inverted_end_uses_default(self):
        assert event_interval(_event("1", "Call", "09:00:00", "08:00:00")) == (540, 570)


class TestSuggestTimeRanges:
    def test_skips_busy_slots(self):
        busy = [(540, 600), (630, 660)]
        ranges = suggest_time_ranges(busy, after=600, duration_minutes=60)
        assert [r.start for r in ranges] == ["11:00:00", "11:30:00", "12:00:00"]
        assert ranges[0].end == "12:00:00"

    def test_stops_at_day_end(self):
        ranges = suggest_time_ranges([], after=20 * 60, duration_minutes=30, day_end=21 * 60)
        assert [str(r) for r in ranges] == ["8:00 PM - 8:30 PM", "8:30 PM - 9:00 PM"]

    def test_no_room_left(self):
        assert suggest_time_ranges([], after=21 * 60, duration_minutes=30) == []


class TestEventSummary:
    def test_str_with_time(self):
        summary = EventSummary.from_event(_event("1", "Dentist", "09:00:00", location="Clinic"))
        assert str(summary) == "Dentist at 9:00 AM"
        assert summary.location == "Clinic"
        assert summary.date == DAY

    def test_str_all_day(self):
        assert str(EventSummary.from_event(_event("1", "Holiday"))) == "Holiday"

    def test_time_range_str(self):
        assert str(TimeRange("09:30:00", "10:00:00")) == "9:30 AM - 10:00 AM"


# ---------------------------------------------------------------------------
# ConflictDetector.check_conflicts
# ---------------------------------------------------------------------------


class TestCheckConflicts:
    @pytest.mark.asyncio
    async def test_no_start_time_never_conflicts(self):
        detector, storage = _detector([_event("1", "Dentist", "09:00:00", "10:00:00")])
        result = await detector.check_conflicts(USER, DAY, None)
        assert result.has_conflict is False
        storage.events_between.assert_not_called()

    @pytest.mark.asyncio
    async def test_queries_only_that_day(self):
        detector, storage = _detector([])
        await detector.check_conflicts(USER, DAY, "09:00:00")
        storage.events_between.assert_awaited_once_with(USER, DAY, DAY)

    @pytest.mark.asyncio
    async def test_touching_events_do_not_conflict(self):
        detector, _ = _detector([_event("1", "Dentist", "09:00:00", "10:00:00")])
        result = await detector.check_conflicts(USER, DAY, "10:00:00", "10:30:00")
        assert result.has_conflict is False
        assert result.suggestions == []

    @pytest.mark.asyncio
    async def test_overlap_reports_event_and_suggestions(self):
        detector, _ = _detector([_event("1", "Dentist", "09:00:00", "10:00:00")])
        result = await detector.check_conflicts(USER, DAY, "09:30:00")

        assert result.has_conflict is True
        assert [e.title for e in result.conflicting_events] == ["Dentist"]
        assert [str(s) for s in result.suggestions] == [
            "10:00 AM - 10:30 AM",
            "10:30 AM - 11:00 AM",
            "11:00 AM - 11:30 AM",
        ]

    @pytest.mark.asyncio
    async def test_suggestions_keep_requested_duration(self):
        detector, _ = _detector([_event("1", "Meeting", "09:00:00", "10:00:00")])
        result = await detector.check_conflicts(USER, DAY, "09:00:00", "10:30:00")
        assert result.suggestions[0] == TimeRange("10:00:00", "11:30:00")

    @pytest.mark.asyncio
    async def test_suggestions_start_after_latest_conflict(self):
        events = [
            _event("1", "Meeting", "09:00:00", "10:00:00"),
            _event("2", "Call", "09:30:00", "11:00:00"),
        ]
        detector, _ = _detector(events)
        result = await detector.check_conflicts(USER, DAY, "09:15:00", "09:45:00")
        assert len(result.conflicting_events) == 2
        assert result.suggestions[0].start == "11:00:00"

    @pytest.mark.asyncio
    async def test_event_without_end_uses_default_duration(self):
        detector, _ = _detector([_event("1", "Call", "09:00:00")])
        assert (await detector.check_conflicts(USER, DAY, "09:20:00")).has_conflict is True
        assert (await detector.check_conflicts(USER, DAY, "09:30:00")).has_conflict is False

    @pytest.mark.asyncio
    async def test_all_day_events_never_conflict(self):
        detector, _ = _detector([_event("1", "Holiday")])
        result = await detector.check_conflicts(USER, DAY, "09:00:00", "17:00:00")
        assert result.has_conflict is False

    @pytest.mark.asyncio
    async def test_excluded_event_is_ignored(self):
        detector, _ = _detector([_event("1", "Dentist", "09:00:00", "10:00:00")])
        result = await detector.check_conflicts(USER, DAY, "09:30:00", exclude_event_id="1")
        assert result.has_conflict is False

    @pytest.mark.asyncio
    async def test_suggestion_count_and_day_end_are_configurable(self):
        detector, _ = _detector(
            [_event("1", "Dinner", "19:00:00", "20:00:00")],
            suggestion_count=5, day_end="21:00",
        )
        result = await detector.check_conflicts(USER, DAY, "19:30:00")
        assert [s.start for s in result.suggestions] == ["20:00:00", "20:30:00"]

    @pytest.mark.asyncio
    async def test_storage_error_propagates(self):
        storage = MagicMock()
        storage.events_between = AsyncMock(side_effect=StorageError("db down"))
        detector = ConflictDetector(storage)
        with pytest.raises(StorageError):
            await detector.check_conflicts(USER, DAY, "09:00:00")
