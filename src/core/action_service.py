"""
Homebase Assistant - UI-Agnostic Action Service.

Stateless service layer that orchestrates the whole request:
classify text -> validate slots -> resolve the target record -> check
calendar conflicts -> write to storage -> return one ActionResult.

Every front end (console, web, chat bot) calls process_message() and renders
the ActionResult it gets back. Nothing raises out of process_message().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Awaitable, Callable

from src.config import settings
from src.core.calendar_context import build_calendar_summary, find_next_event, format_events
from src.core.classifier import classify_with_fallback
from src.core.conflict_checker import ConflictCheckResult, ConflictDetector, event_interval
from src.core.entity_resolver import EntityResolver, Resolution
from src.core.intents import (
    CalendarCreateSlots,
    CalendarDeleteSlots,
    CalendarQuerySlots,
    CalendarUpdateSlots,
    ChatSlots,
    FamilyCreateSlots,
    FamilyQuerySlots,
    FamilyUpdateSlots,
    Intent,
    IntentType,
    RecordDeleteSlots,
    ReminderCreateSlots,
    ReminderQuerySlots,
    ReminderUpdateSlots,
    ShoppingCreateSlots,
    ShoppingQuerySlots,
    ShoppingUpdateSlots,
    TaskCreateSlots,
    TaskQuerySlots,
    TaskUpdateSlots,
)
from src.core.llm import Turn, complete
from src.core.temporal import (
    format_time_12h,
    minutes_to_time,
    normalize_date,
    normalize_time,
    time_to_minutes,
)
from src.data.models import (
    EVENT_TYPES,
    PRIORITIES,
    SHOPPING_CATEGORIES,
    TASK_CATEGORIES,
    TASK_STATUSES,
    Event,
    RecordKind,
)
from src.ports.calendar_port import MAX_TEXT_LENGTH, CalendarError, CalendarPort, EventInput
from src.ports.storage_port import StorageError, StoragePort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response type
# ---------------------------------------------------------------------------


@dataclass
class ActionResult:
    """Uniform envelope returned for every request.

    type is the intent type value ("create_reminder", "chat", ...). A failed
    result always carries a message the user can act on.
    """

    type: str
    success: bool
    message: str
    data: Any = None

    def __post_init__(self) -> None:
        if not self.success and not (self.message or "").strip():
            raise ValueError("A failed ActionResult needs a user-facing message")


def _ok(intent_type: IntentType, message: str, data: Any = None) -> ActionResult:
    return ActionResult(type=intent_type.value, success=True, message=message, data=data)


def _fail(intent_type: IntentType, message: str, data: Any = None) -> ActionResult:
    return ActionResult(type=intent_type.value, success=False, message=message, data=data)


# ---------------------------------------------------------------------------
# Copy
# ---------------------------------------------------------------------------

EMPTY_MESSAGE = (
    "I didn't catch that. Try something like \"add milk to the shopping list\" "
    "or \"remind me to call mom tomorrow at 3pm\"."
)

GENERIC_ERROR = "Sorry, something went wrong while handling that. Please try again."

CALENDAR_UNAVAILABLE = "Your calendar isn't available right now. Please try again in a moment."

HELP_MESSAGE = (
    "I'm here to help! You can ask me to add items to your shopping list, "
    "set reminders, schedule events, or create tasks. What would you like to do?"
)

_CHAT_SYSTEM_PROMPT = """\
You are Sara, a helpful AI assistant for busy parents. You help with family \
scheduling, shopping lists, reminders, and general parenting advice.

Keep responses concise, practical, and empathetic. Always consider the busy \
lifestyle of parents and provide actionable suggestions. Use a warm, supportive tone.

If the user asks about functionality, explain that you can:
- Add items to shopping lists ("add milk to shopping list")
- Set reminders ("remind me to call mom tomorrow at 3pm")
- Schedule events ("schedule dentist appointment next Friday")
- Create tasks ("create task to clean room")
- Answer general questions about parenting and family management
"""

_DATE_EXAMPLES = '(e.g., "today", "tomorrow", "2024-03-15")'


def _at(time_value: str | None) -> str:
    """' at 15:00' for a canonical time, '' when there is none."""
    return f" at {time_value[:5]}" if time_value else ""


def _pick(value: str | None, allowed: tuple[str, ...], default: str) -> str:
    lowered = (value or "").strip().lower().replace(" ", "_")
    return lowered if lowered in allowed else default


def _free_times(result: ConflictCheckResult) -> str:
    if result.suggestions:
        return " Free times later that day: " + ", ".join(str(s) for s in result.suggestions) + "."
    return " I couldn't find a free slot later that day."


def _conflict_message(title: str, day: str, result: ConflictCheckResult) -> str:
    clashes = ", ".join(str(e) for e in result.conflicting_events)
    return f"⚠️ '{title}' on {day} overlaps with {clashes}." + _free_times(result)


# Intent type -> handler method name. Unknown types fall through to chat.
_HANDLERS: dict[IntentType, str] = {
    t: f"_{t.value}" for t in IntentType if t is not IntentType.CHAT
}

# Which storage kind and wording each domain maps to.
_KIND_BY_DOMAIN: dict[str, RecordKind] = {
    "calendar": RecordKind.EVENT,
    "reminder": RecordKind.REMINDER,
    "shopping": RecordKind.SHOPPING,
    "task": RecordKind.TASK,
    "family": RecordKind.FAMILY,
}

ClassifyFn = Callable[..., Awaitable[Intent]]


class ActionService:
    """Turns classified intents into storage changes and user-facing replies."""

    def __init__(
        self,
        storage: StoragePort,
        calendar: CalendarPort,
        resolver: EntityResolver | None = None,
        conflicts: ConflictDetector | None = None,
        classify: ClassifyFn = classify_with_fallback,
    ) -> None:
        self._storage = storage
        self._calendar = calendar
        self._resolver = resolver or EntityResolver(
            storage, max_candidates=settings.MAX_DISAMBIGUATION_CANDIDATES,
        )
        self._conflicts = conflicts or ConflictDetector(
            storage,
            default_duration_minutes=settings.DEFAULT_EVENT_DURATION_MINUTES,
            suggestion_count=settings.CONFLICT_SUGGESTION_COUNT,
            day_end=settings.DAY_END,
        )
        self._classify = classify

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process_message(
        self,
        message: str,
        user_id: str,
        history: list[Turn] | None = None,
    ) -> ActionResult:
        """Classify and carry out one user message."""
        text = message.strip() if isinstance(message, str) else ""
        if not text:
            return _fail(IntentType.CHAT, EMPTY_MESSAGE)

        logger.info("Message from %s: %s", user_id, text[:80])
        try:
            summary = await self._calendar_summary(user_id)
            intent = await self._classify(text, summary, history)
            logger.info(
                "Intent %s (%s) for user %s", intent.type.value, intent.source, user_id,
            )
            return await self.dispatch(intent, user_id, message=text, history=history)
        except Exception as exc:
            logger.exception("Unexpected error handling message for %s: %s", user_id, exc)
            return _fail(IntentType.CHAT, GENERIC_ERROR)

    async def dispatch(
        self,
        intent: Intent,
        user_id: str,
        message: str | None = None,
        history: list[Turn] | None = None,
    ) -> ActionResult:
        """Route an intent to its handler and map collaborator failures."""
        slots = intent.typed_slots()
        method_name = _HANDLERS.get(intent.type)
        if method_name is None:
            return await self._chat(slots, message or "", history)

        handler = getattr(self, method_name)
        try:
            return await handler(slots, user_id)
        except (StorageError, CalendarError) as exc:
            logger.error("%s failed for user %s: %s", intent.type.value, user_id, exc)
            return _fail(intent.type, str(exc) or GENERIC_ERROR)

    async def _calendar_summary(self, user_id: str) -> str:
        try:
            return await build_calendar_summary(self._storage, user_id)
        except StorageError as exc:
            logger.warning("Calendar summary unavailable for %s: %s", user_id, exc)
            return f"Today is {date.today().isoformat()}."

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _resolve(
        self,
        kind: RecordKind,
        user_id: str,
        term: str,
        on_date: str | None = None,
    ) -> Resolution:
        return await self._resolver.resolve(user_id, kind, term, on_date=on_date)

    async def _delete_record(
        self, intent_type: IntentType, slots: RecordDeleteSlots, user_id: str,
    ) -> ActionResult:
        kind = _KIND_BY_DOMAIN[intent_type.domain]
        if not slots.search:
            return _fail(intent_type, f"Which {kind.noun} should I delete? Tell me its name.")

        resolution = await self._resolve(kind, user_id, slots.search)
        record = resolution.record
        if record is None:
            return _fail(intent_type, resolution.failure_message(kind.noun), resolution.matches)

        await self._storage.delete(kind, user_id, record.id)
        return _ok(intent_type, f"🗑️ Deleted {kind.noun}: {record.display_name}", record)

    async def _find_duplicate_event(self, user_id: str, title: str, day: str) -> Event | None:
        wanted = title.strip().lower()
        events = await self._storage.search(
            RecordKind.EVENT, user_id, term=wanted, filters={"event_date": day},
        )
        for event in events:
            if event.title.strip().lower() == wanted:
                return event
        return None

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    async def _create_calendar(self, slots: CalendarCreateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.CREATE_CALENDAR
        day = normalize_date(slots.date)
        if not day:
            return _fail(intent_type, f"Please provide a date for the event {_DATE_EXAMPLES}")

        # Stored titles are capped, so compare the capped form
        title = (slots.title or "New event")[:MAX_TEXT_LENGTH].strip()
        start = normalize_time(slots.time)
        end = normalize_time(slots.end_time) if start else None
        if end and time_to_minutes(end) <= time_to_minutes(start):
            end = None

        existing = await self._find_duplicate_event(user_id, title, day)
        if existing is not None:
            logger.info("Event '%s' on %s already exists for %s", title, day, user_id)
            return _ok(
                intent_type,
                f"✅ Already on your calendar: {existing.title} on {day}{_at(existing.start_time)}",
                {"id": existing.id, "created": False},
            )

        conflict = await self._conflicts.check_conflicts(user_id, day, start, end)
        if conflict.has_conflict:
            return _fail(intent_type, _conflict_message(title, day, conflict), conflict)

        if not self._calendar.is_available():
            logger.warning("Calendar provider unavailable for user %s", user_id)
            return _fail(intent_type, CALENDAR_UNAVAILABLE)

        created = await self._calendar.create_event(
            user_id,
            EventInput(
                title=title,
                date=day,
                start_time=start,
                end_time=end,
                location=slots.location,
                participants=slots.participants or [],
                description=slots.description,
                event_type=_pick(slots.event_type, EVENT_TYPES, "other"),
                source="ai",
            ),
        )
        return _ok(
            intent_type,
            f"✅ Scheduled: {title} on {day}{_at(start)}",
            {"id": created.id, "provider": created.provider, "created": created.created},
        )

    async def _query_calendar(self, slots: CalendarQuerySlots, user_id: str) -> ActionResult:
        intent_type = IntentType.QUERY_CALENDAR
        day = normalize_date(slots.date)
        end_day = normalize_date(slots.end_date)

        if slots.next_event:
            return await self._next_event(user_id)
        start = normalize_time(slots.time)
        if start:
            return await self._availability(
                user_id, day or date.today().isoformat(), start, normalize_time(slots.end_time),
            )

        if slots.search:
            events = await self._resolver.search(user_id, RecordKind.EVENT, slots.search, on_date=day)
            label = f"matching '{slots.search}'"
        elif day:
            last = end_day if end_day and end_day > day else day
            events = await self._storage.events_between(user_id, day, last)
            label = f"on {day}" if last == day else f"between {day} and {last}"
        else:
            today = date.today()
            events = await self._storage.events_between(
                user_id, today.isoformat(), (today + timedelta(days=7)).isoformat(),
            )
            label = "in the next 7 days"

        if not events:
            return _ok(intent_type, f"You have nothing scheduled {label}.", [])
        plural = "s" if len(events) > 1 else ""
        return _ok(
            intent_type,
            f"You have {len(events)} event{plural} {label}:\n{format_events(events)}",
            events,
        )

    async def _availability(
        self, user_id: str, day: str, start: str, end: str | None,
    ) -> ActionResult:
        """Free or busy at one time of day, with free slots when busy."""
        intent_type = IntentType.QUERY_CALENDAR
        if end and time_to_minutes(end) <= time_to_minutes(start):
            end = None
        when = (
            f"from {format_time_12h(start)} to {format_time_12h(end)}" if end
            else f"at {format_time_12h(start)}"
        )

        result = await self._conflicts.check_conflicts(user_id, day, start, end)
        if not result.has_conflict:
            return _ok(intent_type, f"✅ You're free on {day} {when}.", result)

        clashes = ", ".join(str(e) for e in result.conflicting_events)
        message = f"You're busy on {day} {when}: {clashes}." + _free_times(result)
        return _ok(intent_type, message, result)

    async def _next_event(self, user_id: str) -> ActionResult:
        intent_type = IntentType.QUERY_CALENDAR
        event = await find_next_event(self._storage, user_id)
        if event is None:
            return _ok(intent_type, "You have nothing coming up on your calendar.", None)
        where = f" at {event.location}" if event.location else ""
        return _ok(
            intent_type,
            f"Your next event is {event.title} on {event.event_date}{_at(event.start_time)}{where}.",
            event,
        )

    async def _update_calendar(self, slots: CalendarUpdateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.UPDATE_CALENDAR
        if not slots.search:
            return _fail(intent_type, "Which event should I change? Tell me its name.")

        new_date = normalize_date(slots.new_date)
        new_time = normalize_time(slots.new_time)
        new_end = normalize_time(slots.new_end_time)
        if not any((slots.new_title, new_date, new_time, new_end, slots.new_location)):
            return _fail(
                intent_type,
                f"What should I change about '{slots.search}'? Give me a new date, time or title.",
            )

        resolution = await self._resolve(
            RecordKind.EVENT, user_id, slots.search, on_date=normalize_date(slots.date),
        )
        event = resolution.record
        if event is None:
            return _fail(intent_type, resolution.failure_message("event"), resolution.matches)

        values: dict[str, Any] = {}
        if slots.new_title:
            values["title"] = slots.new_title
        if slots.new_location:
            values["location"] = slots.new_location
        if new_date:
            values["event_date"] = new_date

        start = event.start_time
        end = event.end_time
        if new_time:
            # Moving keeps the event's length
            interval = event_interval(event, settings.DEFAULT_EVENT_DURATION_MINUTES)
            start = new_time
            if new_end:
                end = new_end
            elif event.end_time and interval is not None:
                length = interval[1] - interval[0]
                end = minutes_to_time(min(time_to_minutes(start) + length, 24 * 60 - 1))
            else:
                end = None
            values["start_time"] = start
            values["end_time"] = end
        elif new_end:
            end = new_end
            values["end_time"] = end

        if new_end:
            if not start:
                return _fail(
                    intent_type, f"'{event.title}' has no start time. Tell me when it starts too.",
                )
            if time_to_minutes(new_end) <= time_to_minutes(start):
                return _fail(
                    intent_type,
                    f"The end time must be after the start time ({format_time_12h(start)}).",
                )

        target_day = new_date or event.event_date
        if new_date or new_time or new_end:
            conflict = await self._conflicts.check_conflicts(
                user_id, target_day, start, end, exclude_event_id=event.id,
            )
            if conflict.has_conflict:
                title = values.get("title", event.title)
                return _fail(intent_type, _conflict_message(title, target_day, conflict), conflict)

        updated = await self._storage.update(RecordKind.EVENT, user_id, event.id, values)
        return _ok(
            intent_type,
            f"✅ Updated: {updated.title} is now on {updated.event_date}{_at(updated.start_time)}",
            updated,
        )

    async def _delete_calendar(self, slots: CalendarDeleteSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.DELETE_CALENDAR
        day = normalize_date(slots.date)
        if not slots.search and not day:
            return _fail(intent_type, "Which event should I cancel? Tell me its name or date.")

        resolution = await self._resolve(RecordKind.EVENT, user_id, slots.search or "", on_date=day)
        event = resolution.record
        if event is None:
            return _fail(intent_type, resolution.failure_message("event"), resolution.matches)

        await self._storage.delete(RecordKind.EVENT, user_id, event.id)
        return _ok(
            intent_type,
            f"🗑️ Cancelled: {event.title} on {event.event_date}{_at(event.start_time)}",
            event,
        )

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def _create_reminder(self, slots: ReminderCreateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.CREATE_REMINDER
        day = normalize_date(slots.date)
        if not day:
            return _fail(intent_type, f"Please include a date for the reminder {_DATE_EXAMPLES}")

        title = slots.title or "Reminder"
        time_value = normalize_time(slots.time)
        reminder = await self._storage.insert(
            RecordKind.REMINDER,
            user_id,
            {
                "title": title,
                "reminder_date": day,
                "reminder_time": time_value,
                "description": slots.description,
                "priority": _pick(slots.priority, PRIORITIES, "medium"),
                "completed": False,
            },
        )
        return _ok(intent_type, f"✅ Reminder set for {day}{_at(time_value)}: {title}", reminder)

    async def _query_reminder(self, slots: ReminderQuerySlots, user_id: str) -> ActionResult:
        intent_type = IntentType.QUERY_REMINDER
        day = normalize_date(slots.date)
        if slots.search:
            reminders = await self._resolver.search(
                user_id, RecordKind.REMINDER, slots.search, on_date=day,
            )
        else:
            filters = {"reminder_date": day} if day else {}
            reminders = await self._storage.search(RecordKind.REMINDER, user_id, filters=filters)
        if not slots.include_completed:
            reminders = [r for r in reminders if not r.completed]

        if not reminders:
            return _ok(intent_type, "You have no reminders" + (f" on {day}." if day else "."), [])
        lines = [
            f"- {r.title} ({r.reminder_date}"
            + (f" at {format_time_12h(r.reminder_time)}" if r.reminder_time else "")
            + ")"
            + (" ✓" if r.completed else "")
            for r in reminders
        ]
        plural = "s" if len(reminders) > 1 else ""
        return _ok(
            intent_type,
            f"You have {len(reminders)} reminder{plural}:\n" + "\n".join(lines),
            reminders,
        )

    async def _update_reminder(self, slots: ReminderUpdateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.UPDATE_REMINDER
        if not slots.search:
            return _fail(intent_type, "Which reminder should I change? Tell me its name.")

        values: dict[str, Any] = {}
        if slots.new_title:
            values["title"] = slots.new_title
        new_date = normalize_date(slots.new_date)
        if new_date:
            values["reminder_date"] = new_date
        new_time = normalize_time(slots.new_time)
        if new_time:
            values["reminder_time"] = new_time
        if slots.priority:
            priority = _pick(slots.priority, PRIORITIES, "")
            if not priority:
                return _fail(intent_type, "Priority must be low, medium or high.")
            values["priority"] = priority
        if slots.completed is not None:
            values["completed"] = slots.completed
        if not values:
            return _fail(
                intent_type,
                f"What should I change about '{slots.search}'? Give me a new date, time or title.",
            )

        resolution = await self._resolve(RecordKind.REMINDER, user_id, slots.search)
        reminder = resolution.record
        if reminder is None:
            return _fail(intent_type, resolution.failure_message("reminder"), resolution.matches)

        updated = await self._storage.update(RecordKind.REMINDER, user_id, reminder.id, values)
        if values.get("completed"):
            return _ok(intent_type, f"✅ Marked done: {updated.title}", updated)
        return _ok(
            intent_type,
            f"✅ Reminder updated: {updated.title} on {updated.reminder_date}{_at(updated.reminder_time)}",
            updated,
        )

    async def _delete_reminder(self, slots: RecordDeleteSlots, user_id: str) -> ActionResult:
        return await self._delete_record(IntentType.DELETE_REMINDER, slots, user_id)

    # ------------------------------------------------------------------
    # Shopping
    # ------------------------------------------------------------------

    async def _create_shopping(self, slots: ShoppingCreateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.CREATE_SHOPPING
        if not slots.title:
            return _fail(intent_type, "What should I add to the shopping list?")

        quantity = slots.quantity if slots.quantity and slots.quantity > 0 else 1
        item = await self._storage.insert(
            RecordKind.SHOPPING,
            user_id,
            {
                "item": slots.title,
                "category": _pick(slots.category, SHOPPING_CATEGORIES, "other"),
                "quantity": quantity,
                "completed": False,
                "urgent": bool(slots.urgent),
                "notes": slots.notes,
            },
        )
        suffix = f" x{quantity}" if quantity > 1 else ""
        return _ok(intent_type, f"✅ Added to shopping list: {slots.title}{suffix}", item)

    async def _query_shopping(self, slots: ShoppingQuerySlots, user_id: str) -> ActionResult:
        intent_type = IntentType.QUERY_SHOPPING
        filters: dict[str, Any] = {}
        if not slots.include_completed:
            filters["completed"] = False
        category = _pick(slots.category, SHOPPING_CATEGORIES, "")
        if category:
            filters["category"] = category

        items = await self._storage.search(RecordKind.SHOPPING, user_id, filters=filters)
        if not items:
            where = f" in {category}" if category else ""
            return _ok(intent_type, f"Your shopping list is empty{where}.", [])

        lines = [
            f"- {i.item}"
            + (f" x{i.quantity}" if i.quantity > 1 else "")
            + (" (urgent)" if i.urgent else "")
            + (" ✓" if i.completed else "")
            for i in items
        ]
        plural = "s" if len(items) > 1 else ""
        return _ok(
            intent_type,
            f"Your shopping list ({len(items)} item{plural}):\n" + "\n".join(lines),
            items,
        )

    async def _update_shopping(self, slots: ShoppingUpdateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.UPDATE_SHOPPING
        if not slots.search:
            return _fail(intent_type, "Which shopping list item should I change?")

        values: dict[str, Any] = {}
        if slots.new_title:
            values["item"] = slots.new_title
        if slots.quantity is not None:
            if slots.quantity < 1:
                return _fail(intent_type, "Quantity must be at least 1.")
            values["quantity"] = slots.quantity
        if slots.category:
            values["category"] = _pick(slots.category, SHOPPING_CATEGORIES, "other")
        if slots.completed is not None:
            values["completed"] = slots.completed
        if slots.urgent is not None:
            values["urgent"] = slots.urgent
        if not values:
            return _fail(
                intent_type,
                f"What should I change about '{slots.search}'? A quantity, category or new name?",
            )

        resolution = await self._resolve(RecordKind.SHOPPING, user_id, slots.search)
        item = resolution.record
        if item is None:
            return _fail(
                intent_type, resolution.failure_message(RecordKind.SHOPPING.noun), resolution.matches,
            )

        updated = await self._storage.update(RecordKind.SHOPPING, user_id, item.id, values)
        if values.get("completed"):
            return _ok(intent_type, f"✅ Checked off: {updated.item}", updated)
        suffix = f" x{updated.quantity}" if updated.quantity > 1 else ""
        return _ok(intent_type, f"✅ Updated shopping list: {updated.item}{suffix}", updated)

    async def _delete_shopping(self, slots: RecordDeleteSlots, user_id: str) -> ActionResult:
        return await self._delete_record(IntentType.DELETE_SHOPPING, slots, user_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def _create_task(self, slots: TaskCreateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.CREATE_TASK
        title = slots.title or "New task"
        due_date = normalize_date(slots.date)
        task = await self._storage.insert(
            RecordKind.TASK,
            user_id,
            {
                "title": title,
                "due_date": due_date,
                "due_time": normalize_time(slots.time),
                "description": slots.description,
                "priority": _pick(slots.priority, PRIORITIES, "medium"),
                "status": "pending",
                "category": _pick(slots.category, TASK_CATEGORIES, "other"),
                "assigned_to": slots.assigned_to,
                "points": 0,
            },
        )
        due = f" due {due_date}" if due_date else ""
        return _ok(intent_type, f"✅ Task created: {title}{due}", task)

    async def _query_task(self, slots: TaskQuerySlots, user_id: str) -> ActionResult:
        intent_type = IntentType.QUERY_TASK
        filters: dict[str, Any] = {}
        status = _pick(slots.status, TASK_STATUSES, "")
        if status:
            filters["status"] = status
        day = normalize_date(slots.date)
        if day:
            filters["due_date"] = day

        tasks = await self._storage.search(RecordKind.TASK, user_id, filters=filters)
        if not status:
            tasks = [t for t in tasks if t.status != "completed"]
        if slots.assigned_to:
            who = slots.assigned_to.strip().lower()
            tasks = [t for t in tasks if (t.assigned_to or "").strip().lower() == who]

        if not tasks:
            return _ok(intent_type, "You have no open tasks." if not status else f"No {status} tasks.", [])
        lines = [
            f"- {t.title}"
            + (f" (due {t.due_date})" if t.due_date else "")
            + (f" [{t.assigned_to}]" if t.assigned_to else "")
            + (f" - {t.status.replace('_', ' ')}" if t.status != "pending" else "")
            for t in tasks
        ]
        plural = "s" if len(tasks) > 1 else ""
        return _ok(intent_type, f"You have {len(tasks)} task{plural}:\n" + "\n".join(lines), tasks)

    async def _update_task(self, slots: TaskUpdateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.UPDATE_TASK
        if not slots.search:
            return _fail(intent_type, "Which task should I change? Tell me its name.")

        values: dict[str, Any] = {}
        if slots.new_title:
            values["title"] = slots.new_title
        new_date = normalize_date(slots.new_date)
        if new_date:
            values["due_date"] = new_date
        new_time = normalize_time(slots.new_time)
        if new_time:
            values["due_time"] = new_time
        if slots.status:
            status = _pick(slots.status, TASK_STATUSES, "")
            if not status:
                return _fail(intent_type, "Status must be pending, in progress or completed.")
            values["status"] = status
        if slots.priority:
            priority = _pick(slots.priority, PRIORITIES, "")
            if not priority:
                return _fail(intent_type, "Priority must be low, medium or high.")
            values["priority"] = priority
        if slots.assigned_to:
            values["assigned_to"] = slots.assigned_to
        if not values:
            return _fail(
                intent_type,
                f"What should I change about '{slots.search}'? A due date, status or new title?",
            )

        resolution = await self._resolve(RecordKind.TASK, user_id, slots.search)
        task = resolution.record
        if task is None:
            return _fail(intent_type, resolution.failure_message("task"), resolution.matches)

        updated = await self._storage.update(RecordKind.TASK, user_id, task.id, values)
        if values.get("status") == "completed":
            return _ok(intent_type, f"✅ Task completed: {updated.title}", updated)
        due = f" due {updated.due_date}" if updated.due_date else ""
        return _ok(intent_type, f"✅ Task updated: {updated.title}{due}", updated)

    async def _delete_task(self, slots: RecordDeleteSlots, user_id: str) -> ActionResult:
        return await self._delete_record(IntentType.DELETE_TASK, slots, user_id)

    # ------------------------------------------------------------------
    # Family
    # ------------------------------------------------------------------

    async def _create_family(self, slots: FamilyCreateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.CREATE_FAMILY
        if not slots.name:
            return _fail(intent_type, "What's the family member's name?")
        if slots.age is not None and slots.age < 0:
            return _fail(intent_type, "Age can't be negative.")

        member = await self._storage.insert(
            RecordKind.FAMILY,
            user_id,
            {
                "name": slots.name,
                "age": slots.age,
                "gender": slots.gender,
                "school": slots.school,
                "grade": slots.grade,
                "medical_notes": slots.medical_notes,
                "allergies": slots.allergies or [],
            },
        )
        age = f" ({slots.age})" if slots.age is not None else ""
        return _ok(intent_type, f"✅ Added family member: {slots.name}{age}", member)

    async def _query_family(self, slots: FamilyQuerySlots, user_id: str) -> ActionResult:
        intent_type = IntentType.QUERY_FAMILY
        if slots.search:
            members = await self._resolver.search(user_id, RecordKind.FAMILY, slots.search)
        else:
            members = await self._storage.search(RecordKind.FAMILY, user_id)

        if not members:
            if slots.search:
                return _ok(intent_type, f"I don't have anyone called '{slots.search}'.", [])
            return _ok(intent_type, "You haven't added any family members yet.", [])

        lines = []
        for m in members:
            line = f"- {m.name}"
            if m.age is not None:
                line += f", {m.age}"
            if m.school:
                line += f", {m.school}" + (f" ({m.grade})" if m.grade else "")
            if m.allergies:
                line += f", allergies: {', '.join(m.allergies)}"
            lines.append(line)
        return _ok(intent_type, "Your family:\n" + "\n".join(lines), members)

    async def _update_family(self, slots: FamilyUpdateSlots, user_id: str) -> ActionResult:
        intent_type = IntentType.UPDATE_FAMILY
        if not slots.search:
            return _fail(intent_type, "Which family member should I update?")

        values: dict[str, Any] = {}
        if slots.new_name:
            values["name"] = slots.new_name
        if slots.age is not None:
            if slots.age < 0:
                return _fail(intent_type, "Age can't be negative.")
            values["age"] = slots.age
        for field_name in ("gender", "school", "grade", "medical_notes"):
            value = getattr(slots, field_name)
            if value:
                values[field_name] = value
        if slots.allergies:
            values["allergies"] = slots.allergies
        if not values:
            return _fail(
                intent_type,
                f"What should I change about {slots.search}? An age, school or allergies?",
            )

        resolution = await self._resolve(RecordKind.FAMILY, user_id, slots.search)
        member = resolution.record
        if member is None:
            return _fail(
                intent_type, resolution.failure_message(RecordKind.FAMILY.noun), resolution.matches,
            )

        updated = await self._storage.update(RecordKind.FAMILY, user_id, member.id, values)
        changed = ", ".join(k.replace("_", " ") for k in values)
        return _ok(intent_type, f"✅ Updated {updated.name}: {changed}", updated)

    async def _delete_family(self, slots: RecordDeleteSlots, user_id: str) -> ActionResult:
        return await self._delete_record(IntentType.DELETE_FAMILY, slots, user_id)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def _chat(
        self, slots: ChatSlots, message: str, history: list[Turn] | None = None,
    ) -> ActionResult:
        """Conversational reply. Falls back to canned help on any LLM failure."""
        query = slots.query or message
        try:
            reply = await asyncio.wait_for(
                complete(
                    system=_CHAT_SYSTEM_PROMPT,
                    user_message=query,
                    max_tokens=400,
                    history=history,
                ),
                timeout=settings.LLM_TIMEOUT_SECONDS,
            )
            reply = reply.strip()
        except Exception as exc:
            logger.warning("Chat reply unavailable (%s: %s), sending help text", type(exc).__name__, exc)
            reply = ""
        return _ok(IntentType.CHAT, reply or HELP_MESSAGE, {"query": query})
