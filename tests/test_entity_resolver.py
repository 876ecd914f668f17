"""Tests for src.core.entity_resolver - finding records by the name a user gave them."""

import pytest

from src.core.entity_resolver import (
    EntityResolver,
    Resolution,
    ResolutionStatus,
    significant_words,
    strip_generic_nouns,
)
from src.data.models import RecordKind, ShoppingItem

USER = "family-1"


async def _events(db, *specs):
    for title, event_date in specs:
        await db.insert(RecordKind.EVENT, USER, {"title": title, "event_date": event_date})


class TestWordHelpers:
    def test_strip_generic_nouns(self):
        assert strip_generic_nouns("my Dentist appointment") == "dentist"
        assert strip_generic_nouns("the event") == ""

    def test_significant_words(self):
        assert significant_words("the soccer practice for Leo") == ["soccer", "practice", "leo"]


class TestSearch:
    @pytest.mark.asyncio
    async def test_whole_phrase(self, household_db):
        await _events(household_db, ("Dentist appointment", "2026-10-20"), ("Soccer", "2026-10-20"))
        resolver = EntityResolver(household_db)

        matches = await resolver.search(USER, RecordKind.EVENT, "dentist appointment")
        assert [e.title for e in matches] == ["Dentist appointment"]

    @pytest.mark.asyncio
    async def test_generic_nouns_are_dropped(self, household_db):
        await _events(household_db, ("Dentist", "2026-10-20"))
        resolver = EntityResolver(household_db)

        matches = await resolver.search(USER, RecordKind.EVENT, "my dentist appointment")
        assert [e.title for e in matches] == ["Dentist"]

    @pytest.mark.asyncio
    async def test_words_in_any_order(self, household_db):
        await _events(household_db, ("Practice soccer with Leo", "2026-10-20"), ("Soccer game", "2026-10-21"))
        resolver = EntityResolver(household_db)

        matches = await resolver.search(USER, RecordKind.EVENT, "soccer practice")
        assert [e.title for e in matches] == ["Practice soccer with Leo"]

    @pytest.mark.asyncio
    async def test_date_narrows_matches(self, household_db):
        await _events(household_db, ("Dentist", "2026-10-20"), ("Dentist", "2026-10-27"))
        resolver = EntityResolver(household_db)

        matches = await resolver.search(USER, RecordKind.EVENT, "dentist", on_date="2026-10-27")
        assert [e.event_date for e in matches] == ["2026-10-27"]

    @pytest.mark.asyncio
    async def test_generic_term_with_date_lists_that_day(self, household_db):
        await _events(household_db, ("Dentist", "2026-10-20"), ("Haircut", "2026-10-21"))
        resolver = EntityResolver(household_db)

        matches = await resolver.search(USER, RecordKind.EVENT, "my appointment", on_date="2026-10-21")
        assert [e.title for e in matches] == ["Haircut"]

    @pytest.mark.asyncio
    async def test_date_ignored_for_kinds_without_dates(self, household_db):
        await household_db.insert(RecordKind.SHOPPING, USER, {"item": "milk"})
        resolver = EntityResolver(household_db)

        matches = await resolver.search(USER, RecordKind.SHOPPING, "milk", on_date="2026-10-20")
        assert len(matches) == 1

    @pytest.mark.asyncio
    async def test_no_match(self, household_db):
        await _events(household_db, ("Dentist", "2026-10-20"))
        resolver = EntityResolver(household_db)
        assert await resolver.search(USER, RecordKind.EVENT, "piano lesson") == []


class TestResolve:
    @pytest.mark.asyncio
    async def test_unique(self, household_db):
        await household_db.insert(RecordKind.SHOPPING, USER, {"item": "Milk"})
        resolver = EntityResolver(household_db)

        resolution = await resolver.resolve(USER, RecordKind.SHOPPING, "milk")
        assert resolution.status is ResolutionStatus.UNIQUE
        assert isinstance(resolution.record, ShoppingItem)

    @pytest.mark.asyncio
    async def test_not_found_message(self, household_db):
        resolver = EntityResolver(household_db)
        resolution = await resolver.resolve(USER, RecordKind.EVENT, "piano lesson")

        assert resolution.status is ResolutionStatus.NOT_FOUND
        assert resolution.record is None
        assert resolution.failure_message("event") == "I couldn't find an event matching 'piano lesson'."

    @pytest.mark.asyncio
    async def test_ambiguous_lists_candidates(self, household_db):
        await _events(household_db, ("Team meeting", "2026-10-20"), ("Parent meeting", "2026-10-21"))
        resolver = EntityResolver(household_db)

        resolution = await resolver.resolve(USER, RecordKind.EVENT, "meeting")
        assert resolution.status is ResolutionStatus.AMBIGUOUS
        assert resolution.record is None
        message = resolution.failure_message("event")
        assert message.startswith("I found 2 events matching 'meeting': ")
        assert "Team meeting" in message and "Parent meeting" in message
        assert message.endswith("Which one did you mean?")

    @pytest.mark.asyncio
    async def test_exact_name_is_still_ambiguous_and_list_is_capped(self, household_db):
        for name in ("Dan", "Dana", "Danny", "Daniel"):
            await household_db.insert(RecordKind.FAMILY, USER, {"name": name})
        resolver = EntityResolver(household_db, max_candidates=2)

        resolution = await resolver.resolve(USER, RecordKind.FAMILY, "dan")
        # "Dan" matches exactly but the partial matches still need a choice
        assert resolution.status is ResolutionStatus.AMBIGUOUS
        assert resolution.record is None
        assert sorted(m.name for m in resolution.matches) == ["Dan", "Dana", "Daniel", "Danny"]

        resolution = await resolver.resolve(USER, RecordKind.FAMILY, "da")
        assert resolution.status is ResolutionStatus.AMBIGUOUS
        assert resolution.failure_message("family member") == (
            "I found 4 family members matching 'da': Dan, Dana and 2 more. Which one did you mean?"
        )

    @pytest.mark.asyncio
    async def test_overflow_mentions_remaining(self, household_db):
        for title, due in (("Call A", "2026-10-20"), ("Call B", "2026-10-21"), ("Call C", "2026-10-22")):
            await household_db.insert(RecordKind.TASK, USER, {"title": title, "due_date": due})
        resolver = EntityResolver(household_db, max_candidates=2)

        resolution = await resolver.resolve(USER, RecordKind.TASK, "call")
        assert resolution.failure_message("task") == (
            "I found 3 tasks matching 'call': Call A, Call B and 1 more. Which one did you mean?"
        )

    @pytest.mark.asyncio
    async def test_scoped_to_user(self, household_db):
        await household_db.insert(RecordKind.TASK, "someone-else", {"title": "Homework"})
        resolver = EntityResolver(household_db)
        resolution = await resolver.resolve(USER, RecordKind.TASK, "homework")
        assert resolution.status is ResolutionStatus.NOT_FOUND


class TestFailureMessage:
    def test_not_found_without_term(self):
        resolution = Resolution(status=ResolutionStatus.NOT_FOUND)
        assert resolution.failure_message("reminder") == "I couldn't find a reminder."
