"""Tests for src.data.db - HouseholdDB (SQLite storage)."""

import pytest

from src.data.models import Event, FamilyMember, RecordKind, ShoppingItem, Task
from src.ports.storage_port import StorageError

USER = "family-1"
OTHER_USER = "family-2"


async def _event(db, title, event_date, start_time=None, end_time=None, user=USER, **extra):
    return await db.insert(RecordKind.EVENT, user, {
        "title": title,
        "event_date": event_date,
        "start_time": start_time,
        "end_time": end_time,
        **extra,
    })


class TestInsert:
    @pytest.mark.asyncio
    async def test_insert_event_returns_record(self, household_db):
        event = await _event(
            household_db, "Dentist", "2026-10-19", "09:00:00", "09:30:00",
            participants=["Dana", "Leo"], event_type="medical",
        )
        assert isinstance(event, Event)
        assert event.id
        assert event.user_id == USER
        assert event.participants == ["Dana", "Leo"]
        assert event.event_type == "medical"
        assert event.source == "manual"
        assert event.created_at == event.updated_at != ""

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, household_db):
        a = await _event(household_db, "A", "2026-10-19")
        b = await _event(household_db, "A", "2026-10-19")
        assert a.id != b.id

    @pytest.mark.asyncio
    async def test_insert_shopping_defaults(self, household_db):
        item = await household_db.insert(RecordKind.SHOPPING, USER, {"item": "milk"})
        assert isinstance(item, ShoppingItem)
        assert item.quantity == 1
        assert item.category == "other"
        assert item.completed is False
        assert item.urgent is False

    @pytest.mark.asyncio
    async def test_insert_family_member_allergies(self, household_db):
        member = await household_db.insert(
            RecordKind.FAMILY, USER, {"name": "Emma", "age": 8, "allergies": ["peanuts"]},
        )
        assert isinstance(member, FamilyMember)
        assert member.allergies == ["peanuts"]

    @pytest.mark.asyncio
    async def test_unknown_field_raises(self, household_db):
        with pytest.raises(StorageError, match="Unknown task field"):
            await household_db.insert(RecordKind.TASK, USER, {"title": "x", "colour": "red"})

    @pytest.mark.asyncio
    async def test_protected_field_raises(self, household_db):
        with pytest.raises(StorageError):
            await household_db.insert(RecordKind.TASK, USER, {"title": "x", "user_id": OTHER_USER})

    @pytest.mark.asyncio
    async def test_check_constraint_becomes_storage_error(self, household_db):
        with pytest.raises(StorageError, match="Couldn't save the event"):
            await _event(household_db, "Concert", "2026-10-19", event_type="concert")

    @pytest.mark.asyncio
    async def test_quantity_below_one_rejected(self, household_db):
        with pytest.raises(StorageError):
            await household_db.insert(RecordKind.SHOPPING, USER, {"item": "eggs", "quantity": 0})

    @pytest.mark.asyncio
    async def test_missing_required_column_rejected(self, household_db):
        with pytest.raises(StorageError):
            await household_db.insert(RecordKind.REMINDER, USER, {"title": "no date"})


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_changes_fields(self, household_db):
        task = await household_db.insert(RecordKind.TASK, USER, {"title": "Homework"})
        updated = await household_db.update(
            RecordKind.TASK, USER, task.id, {"status": "completed", "priority": "high"},
        )
        assert isinstance(updated, Task)
        assert updated.status == "completed"
        assert updated.priority == "high"
        assert updated.title == "Homework"

    @pytest.mark.asyncio
    async def test_update_flag_round_trip(self, household_db):
        item = await household_db.insert(RecordKind.SHOPPING, USER, {"item": "bread"})
        updated = await household_db.update(RecordKind.SHOPPING, USER, item.id, {"completed": True})
        assert updated.completed is True

    @pytest.mark.asyncio
    async def test_update_missing_record(self, household_db):
        with pytest.raises(StorageError, match="no longer exists"):
            await household_db.update(RecordKind.TASK, USER, "nope", {"title": "x"})

    @pytest.mark.asyncio
    async def test_update_other_users_record(self, household_db):
        task = await household_db.insert(RecordKind.TASK, USER, {"title": "Homework"})
        with pytest.raises(StorageError):
            await household_db.update(RecordKind.TASK, OTHER_USER, task.id, {"title": "Hacked"})
        assert (await household_db.get(RecordKind.TASK, USER, task.id)).title == "Homework"

    @pytest.mark.asyncio
    async def test_update_invalid_value(self, household_db):
        task = await household_db.insert(RecordKind.TASK, USER, {"title": "Homework"})
        with pytest.raises(StorageError, match="Couldn't update the task"):
            await household_db.update(RecordKind.TASK, USER, task.id, {"status": "someday"})

    @pytest.mark.asyncio
    async def test_delete(self, household_db):
        event = await _event(household_db, "Dentist", "2026-10-19")
        await household_db.delete(RecordKind.EVENT, USER, event.id)
        assert await household_db.get(RecordKind.EVENT, USER, event.id) is None

    @pytest.mark.asyncio
    async def test_delete_twice_raises(self, household_db):
        event = await _event(household_db, "Dentist", "2026-10-19")
        await household_db.delete(RecordKind.EVENT, USER, event.id)
        with pytest.raises(StorageError, match="That event no longer exists"):
            await household_db.delete(RecordKind.EVENT, USER, event.id)


class TestSearch:
    @pytest.mark.asyncio
    async def test_case_insensitive_substring(self, household_db):
        await _event(household_db, "Dentist Appointment", "2026-10-19")
        await _event(household_db, "Soccer practice", "2026-10-19")

        matches = await household_db.search(RecordKind.EVENT, USER, term="DENTIST")
        assert [e.title for e in matches] == ["Dentist Appointment"]

    @pytest.mark.asyncio
    async def test_scoped_by_user(self, household_db):
        await household_db.insert(RecordKind.SHOPPING, USER, {"item": "milk"})
        await household_db.insert(RecordKind.SHOPPING, OTHER_USER, {"item": "milk"})

        matches = await household_db.search(RecordKind.SHOPPING, OTHER_USER, term="milk")
        assert len(matches) == 1
        assert matches[0].user_id == OTHER_USER

    @pytest.mark.asyncio
    async def test_like_wildcards_are_literal(self, household_db):
        await household_db.insert(RecordKind.TASK, USER, {"title": "Pay 50% deposit"})
        await household_db.insert(RecordKind.TASK, USER, {"title": "Call plumber"})

        assert len(await household_db.search(RecordKind.TASK, USER, term="%")) == 1
        assert await household_db.search(RecordKind.TASK, USER, term="_") == []

    @pytest.mark.asyncio
    async def test_filters_and_null_filter(self, household_db):
        await household_db.insert(RecordKind.TASK, USER, {"title": "Dated", "due_date": "2026-10-20"})
        await household_db.insert(RecordKind.TASK, USER, {"title": "Someday"})

        dated = await household_db.search(RecordKind.TASK, USER, filters={"due_date": "2026-10-20"})
        undated = await household_db.search(RecordKind.TASK, USER, filters={"due_date": None})
        assert [t.title for t in dated] == ["Dated"]
        assert [t.title for t in undated] == ["Someday"]

    @pytest.mark.asyncio
    async def test_flag_filter(self, household_db):
        bought = await household_db.insert(RecordKind.SHOPPING, USER, {"item": "eggs"})
        await household_db.update(RecordKind.SHOPPING, USER, bought.id, {"completed": True})
        await household_db.insert(RecordKind.SHOPPING, USER, {"item": "milk"})

        open_items = await household_db.search(RecordKind.SHOPPING, USER, filters={"completed": False})
        assert [i.item for i in open_items] == ["milk"]

    @pytest.mark.asyncio
    async def test_unknown_filter_raises(self, household_db):
        with pytest.raises(StorageError):
            await household_db.search(RecordKind.EVENT, USER, filters={"colour": "red"})

    @pytest.mark.asyncio
    async def test_limit(self, household_db):
        for name in ("Ann", "Ben", "Cal"):
            await household_db.insert(RecordKind.FAMILY, USER, {"name": name})
        members = await household_db.search(RecordKind.FAMILY, USER, limit=2)
        assert [m.name for m in members] == ["Ann", "Ben"]


class TestEventsBetween:
    @pytest.mark.asyncio
    async def test_inclusive_and_chronological(self, household_db):
        await _event(household_db, "Late", "2026-10-20", "18:00:00")
        await _event(household_db, "Early", "2026-10-20", "08:00:00")
        await _event(household_db, "All day", "2026-10-20")
        await _event(household_db, "First", "2026-10-19", "12:00:00")
        await _event(household_db, "Outside", "2026-10-21", "09:00:00")
        await _event(household_db, "Not mine", "2026-10-20", "09:00:00", user=OTHER_USER)

        events = await household_db.events_between(USER, "2026-10-19", "2026-10-20")
        assert [e.title for e in events] == ["First", "All day", "Early", "Late"]

    @pytest.mark.asyncio
    async def test_single_day(self, household_db):
        await _event(household_db, "Dentist", "2026-10-19", "09:00:00")
        events = await household_db.events_between(USER, "2026-10-19", "2026-10-19")
        assert len(events) == 1
