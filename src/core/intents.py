"""
Homebase Assistant - Intent model.

Shared contract between the classifiers and the action handlers:

    Intent(type=IntentType.CREATE_REMINDER,
           slots={"title": "call mom", "date": "2026-10-19", "time": "15:00:00"})

Slots arrive untyped from the classifier (an LLM can return anything). Each
intent type also has a typed slot model; building one never raises, values
of the wrong shape are coerced or dropped, and handlers still check presence
of every field they need.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

ACTIONS = ("create", "query", "update", "delete")
DOMAINS = ("calendar", "reminder", "shopping", "task", "family")

_ACTION_ALIASES = {
    "add": "create", "new": "create", "schedule": "create", "set": "create",
    "get": "query", "list": "query", "show": "query", "find": "query", "search": "query",
    "edit": "update", "modify": "update", "change": "update", "move": "update",
    "reschedule": "update", "complete": "update",
    "remove": "delete", "cancel": "delete",
}

_DOMAIN_ALIASES = {
    "event": "calendar", "events": "calendar", "appointment": "calendar",
    "reminders": "reminder",
    "shopping_list": "shopping", "grocery": "shopping", "groceries": "shopping",
    "tasks": "task", "todo": "task",
    "family_member": "family", "member": "family",
}


class IntentType(str, Enum):
    CREATE_CALENDAR = "create_calendar"
    QUERY_CALENDAR = "query_calendar"
    UPDATE_CALENDAR = "update_calendar"
    DELETE_CALENDAR = "delete_calendar"
    CREATE_REMINDER = "create_reminder"
    QUERY_REMINDER = "query_reminder"
    UPDATE_REMINDER = "update_reminder"
    DELETE_REMINDER = "delete_reminder"
    CREATE_SHOPPING = "create_shopping"
    QUERY_SHOPPING = "query_shopping"
    UPDATE_SHOPPING = "update_shopping"
    DELETE_SHOPPING = "delete_shopping"
    CREATE_TASK = "create_task"
    QUERY_TASK = "query_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    CREATE_FAMILY = "create_family"
    QUERY_FAMILY = "query_family"
    UPDATE_FAMILY = "update_family"
    DELETE_FAMILY = "delete_family"
    CHAT = "chat"

    @property
    def action(self) -> str | None:
        """'create' | 'query' | 'update' | 'delete', or None for chat."""
        if self is IntentType.CHAT:
            return None
        return self.value.split("_", 1)[0]

    @property
    def domain(self) -> str:
        """'calendar' | 'reminder' | 'shopping' | 'task' | 'family' | 'chat'."""
        if self is IntentType.CHAT:
            return "chat"
        return self.value.split("_", 1)[1]

    @classmethod
    def of(cls, action: str, domain: str) -> IntentType:
        return cls(f"{action}_{domain}")

    @classmethod
    def coerce(cls, raw: object, action: object = None) -> IntentType:
        """Map whatever a classifier produced onto the fixed enum.

        Accepts exact values ("update_task"), dotted/dashed variants
        ("task.update"), a bare domain ("reminder" → create_reminder, the
        shape older prompts used) optionally paired with a separate action.
        Anything unrecognized becomes CHAT.
        """
        if isinstance(raw, IntentType):
            return raw
        if not isinstance(raw, str):
            return cls.CHAT

        text = raw.strip().lower().replace("-", "_").replace(".", "_").replace(" ", "_")
        try:
            return cls(text)
        except ValueError:
            pass

        parts = [p for p in text.split("_") if p]
        found_action = None
        found_domain = None
        for part in parts:
            part_action = _ACTION_ALIASES.get(part, part)
            part_domain = _DOMAIN_ALIASES.get(part, part)
            if part_action in ACTIONS and found_action is None:
                found_action = part_action
            elif part_domain in DOMAINS and found_domain is None:
                found_domain = part_domain
        if found_domain is None:
            return cls.CHAT

        if found_action is None and isinstance(action, str):
            candidate = _ACTION_ALIASES.get(action.strip().lower(), action.strip().lower())
            if candidate in ACTIONS:
                found_action = candidate
        return cls.of(found_action or "create", found_domain)


# ---------------------------------------------------------------------------
# Lenient coercion helpers for typed slots
# ---------------------------------------------------------------------------


def _text(v: Any) -> str | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        v = v.strip()
        if not v or v.lower() in ("null", "none", "n/a"):
            return None
        return v
    return None


def _integer(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        try:
            v = float(v.strip())
        except ValueError:
            return None
    if isinstance(v, float):
        # JSON from a model can carry NaN, Infinity or 1e400
        if not math.isfinite(v):
            return None
        try:
            return int(v)
        except (ValueError, OverflowError):
            return None
    return None


def _flag(v: Any) -> bool | None:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        lowered = v.strip().lower()
        if lowered in ("true", "yes", "y", "1", "done", "completed"):
            return True
        if lowered in ("false", "no", "n", "0", "not done"):
            return False
    return None


def _names(v: Any) -> list[str] | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        items = [p.strip() for p in v.replace(" and ", ",").split(",")]
    elif isinstance(v, (list, tuple)):
        items = [_text(p) or "" for p in v]
    else:
        return None
    items = [p for p in items if p]
    return items or None


class SlotModel(BaseModel):
    """Base for typed slots: unknown keys ignored, bad values become None."""

    model_config = ConfigDict(extra="ignore")

    text_fields: ClassVar[tuple[str, ...]] = ()
    int_fields: ClassVar[tuple[str, ...]] = ()
    flag_fields: ClassVar[tuple[str, ...]] = ()
    list_fields: ClassVar[tuple[str, ...]] = ()

    @field_validator("*", mode="before")
    @classmethod
    def _coerce(cls, v: Any, info: ValidationInfo) -> Any:
        name = info.field_name
        if name in cls.text_fields:
            return _text(v)
        if name in cls.int_fields:
            return _integer(v)
        if name in cls.flag_fields:
            return _flag(v)
        if name in cls.list_fields:
            return _names(v)
        return v


class CalendarCreateSlots(SlotModel):
    text_fields = ("title", "date", "time", "end_time", "location", "description", "event_type")
    list_fields = ("participants",)
    title: str | None = None
    date: str | None = None
    time: str | None = None
    end_time: str | None = None
    location: str | None = None
    description: str | None = None
    event_type: str | None = None
    participants: list[str] | None = None


class CalendarQuerySlots(SlotModel):
    text_fields = ("date", "end_date", "search", "time", "end_time")
    flag_fields = ("next_event",)
    date: str | None = None
    end_date: str | None = None
    search: str | None = None
    time: str | None = None
    end_time: str | None = None
    next_event: bool | None = None


class CalendarUpdateSlots(SlotModel):
    text_fields = ("search", "date", "new_title", "new_date", "new_time", "new_end_time", "new_location")
    search: str | None = None
    date: str | None = None
    new_title: str | None = None
    new_date: str | None = None
    new_time: str | None = None
    new_end_time: str | None = None
    new_location: str | None = None


class CalendarDeleteSlots(SlotModel):
    text_fields = ("search", "date")
    search: str | None = None
    date: str | None = None


class ReminderCreateSlots(SlotModel):
    text_fields = ("title", "date", "time", "priority", "description")
    title: str | None = None
    date: str | None = None
    time: str | None = None
    priority: str | None = None
    description: str | None = None


class ReminderQuerySlots(SlotModel):
    text_fields = ("date", "search")
    flag_fields = ("include_completed",)
    date: str | None = None
    search: str | None = None
    include_completed: bool | None = None


class ReminderUpdateSlots(SlotModel):
    text_fields = ("search", "new_title", "new_date", "new_time", "priority")
    flag_fields = ("completed",)
    search: str | None = None
    new_title: str | None = None
    new_date: str | None = None
    new_time: str | None = None
    priority: str | None = None
    completed: bool | None = None


class RecordDeleteSlots(SlotModel):
    text_fields = ("search",)
    search: str | None = None


class ShoppingCreateSlots(SlotModel):
    text_fields = ("title", "category", "notes")
    int_fields = ("quantity",)
    flag_fields = ("urgent",)
    title: str | None = None
    category: str | None = None
    quantity: int | None = None
    notes: str | None = None
    urgent: bool | None = None


class ShoppingQuerySlots(SlotModel):
    text_fields = ("category",)
    flag_fields = ("include_completed",)
    category: str | None = None
    include_completed: bool | None = None


class ShoppingUpdateSlots(SlotModel):
    text_fields = ("search", "new_title", "category")
    int_fields = ("quantity",)
    flag_fields = ("completed", "urgent")
    search: str | None = None
    new_title: str | None = None
    category: str | None = None
    quantity: int | None = None
    completed: bool | None = None
    urgent: bool | None = None


class TaskCreateSlots(SlotModel):
    text_fields = ("title", "date", "time", "priority", "category", "assigned_to", "description")
    title: str | None = None
    date: str | None = None
    time: str | None = None
    priority: str | None = None
    category: str | None = None
    assigned_to: str | None = None
    description: str | None = None


class TaskQuerySlots(SlotModel):
    text_fields = ("status", "date", "assigned_to")
    status: str | None = None
    date: str | None = None
    assigned_to: str | None = None


class TaskUpdateSlots(SlotModel):
    text_fields = ("search", "new_title", "new_date", "new_time", "status", "priority", "assigned_to")
    search: str | None = None
    new_title: str | None = None
    new_date: str | None = None
    new_time: str | None = None
    status: str | None = None
    priority: str | None = None
    assigned_to: str | None = None


class FamilyCreateSlots(SlotModel):
    text_fields = ("name", "gender", "school", "grade", "medical_notes")
    int_fields = ("age",)
    list_fields = ("allergies",)
    name: str | None = None
    age: int | None = None
    gender: str | None = None
    school: str | None = None
    grade: str | None = None
    medical_notes: str | None = None
    allergies: list[str] | None = None


class FamilyQuerySlots(SlotModel):
    text_fields = ("search",)
    search: str | None = None


class FamilyUpdateSlots(SlotModel):
    text_fields = ("search", "new_name", "gender", "school", "grade", "medical_notes")
    int_fields = ("age",)
    list_fields = ("allergies",)
    search: str | None = None
    new_name: str | None = None
    age: int | None = None
    gender: str | None = None
    school: str | None = None
    grade: str | None = None
    medical_notes: str | None = None
    allergies: list[str] | None = None


class ChatSlots(SlotModel):
    text_fields = ("query",)
    query: str | None = None


SLOT_MODELS: dict[IntentType, type[SlotModel]] = {
    IntentType.CREATE_CALENDAR: CalendarCreateSlots,
    IntentType.QUERY_CALENDAR: CalendarQuerySlots,
    IntentType.UPDATE_CALENDAR: CalendarUpdateSlots,
    IntentType.DELETE_CALENDAR: CalendarDeleteSlots,
    IntentType.CREATE_REMINDER: ReminderCreateSlots,
    IntentType.QUERY_REMINDER: ReminderQuerySlots,
    IntentType.UPDATE_REMINDER: ReminderUpdateSlots,
    IntentType.DELETE_REMINDER: RecordDeleteSlots,
    IntentType.CREATE_SHOPPING: ShoppingCreateSlots,
    IntentType.QUERY_SHOPPING: ShoppingQuerySlots,
    IntentType.UPDATE_SHOPPING: ShoppingUpdateSlots,
    IntentType.DELETE_SHOPPING: RecordDeleteSlots,
    IntentType.CREATE_TASK: TaskCreateSlots,
    IntentType.QUERY_TASK: TaskQuerySlots,
    IntentType.UPDATE_TASK: TaskUpdateSlots,
    IntentType.DELETE_TASK: RecordDeleteSlots,
    IntentType.CREATE_FAMILY: FamilyCreateSlots,
    IntentType.QUERY_FAMILY: FamilyQuerySlots,
    IntentType.UPDATE_FAMILY: FamilyUpdateSlots,
    IntentType.DELETE_FAMILY: RecordDeleteSlots,
    IntentType.CHAT: ChatSlots,
}


class Intent(BaseModel):
    """A classified request: fixed-enum type plus untyped slot values."""

    type: IntentType = IntentType.CHAT
    slots: dict[str, Any] = Field(default_factory=dict)
    source: Literal["llm", "rules"] = "rules"

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, v: Any) -> IntentType:
        return IntentType.coerce(v)

    @field_validator("slots", mode="before")
    @classmethod
    def _coerce_slots(cls, v: Any) -> dict[str, Any]:
        if not isinstance(v, dict):
            return {}
        return {str(k): val for k, val in v.items()}

    def typed_slots(self) -> SlotModel:
        """Build this intent's typed slot model from the raw slot map."""
        return SLOT_MODELS[self.type].model_validate(self.slots)
