"""
Homebase Assistant - Data Models.

Household records owned by the storage collaborator. Every record belongs to
exactly one user account and is identified by an opaque string id; the
router never reads or writes across user boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RecordKind(str, Enum):
    EVENT = "event"
    REMINDER = "reminder"
    SHOPPING = "shopping"
    TASK = "task"
    FAMILY = "family"

    @property
    def display_field(self) -> str:
        """Field shown to users and searched by the entity resolver."""
        return {
            RecordKind.SHOPPING: "item",
            RecordKind.FAMILY: "name",
        }.get(self, "title")

    @property
    def noun(self) -> str:
        """Human wording used in replies ("I couldn't find an event ...")."""
        return {
            RecordKind.EVENT: "event",
            RecordKind.REMINDER: "reminder",
            RecordKind.SHOPPING: "shopping list item",
            RecordKind.TASK: "task",
            RecordKind.FAMILY: "family member",
        }[self]

    @property
    def date_field(self) -> str | None:
        """Column used to narrow a search to one day, if the kind has one."""
        return {
            RecordKind.EVENT: "event_date",
            RecordKind.REMINDER: "reminder_date",
            RecordKind.TASK: "due_date",
        }.get(self)


EVENT_TYPES = ("sports", "party", "meeting", "medical", "school", "family", "other")
EVENT_SOURCES = ("manual", "ai", "calendar_sync")
PRIORITIES = ("low", "medium", "high")
TASK_STATUSES = ("pending", "in_progress", "completed")
TASK_CATEGORIES = ("chores", "homework", "sports", "music", "health", "social", "other")
SHOPPING_CATEGORIES = ("dairy", "produce", "meat", "bakery", "baby", "household", "other")


@dataclass
class Event:
    """A calendar event. All-day events have no start_time."""

    id: str
    user_id: str
    title: str
    event_date: str                   # YYYY-MM-DD
    start_time: str | None = None     # HH:MM:SS
    end_time: str | None = None       # HH:MM:SS
    location: str | None = None
    description: str | None = None
    participants: list[str] = field(default_factory=list)
    event_type: str = "other"
    source: str = "manual"
    created_at: str = ""
    updated_at: str = ""

    @property
    def display_name(self) -> str:
        return self.title


@dataclass
class Reminder:
    id: str
    user_id: str
    title: str
    reminder_date: str
    reminder_time: str | None = None
    description: str | None = None
    priority: str = "medium"
    completed: bool = False
    created_at: str = ""
    updated_at: str = ""

    @property
    def display_name(self) -> str:
        return self.title


@dataclass
class Task:
    id: str
    user_id: str
    title: str
    due_date: str | None = None
    due_time: str | None = None
    description: str | None = None
    priority: str = "medium"
    status: str = "pending"
    category: str = "other"
    assigned_to: str | None = None
    points: int = 0
    created_at: str = ""
    updated_at: str = ""

    @property
    def display_name(self) -> str:
        return self.title


@dataclass
class ShoppingItem:
    id: str
    user_id: str
    item: str
    category: str = "other"
    quantity: int = 1
    completed: bool = False
    urgent: bool = False
    notes: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def display_name(self) -> str:
        return self.item


@dataclass
class FamilyMember:
    id: str
    user_id: str
    name: str
    age: int | None = None
    gender: str | None = None
    allergies: list[str] = field(default_factory=list)
    medical_notes: str | None = None
    school: str | None = None
    grade: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def display_name(self) -> str:
        return self.name


Record = Event | Reminder | Task | ShoppingItem | FamilyMember
