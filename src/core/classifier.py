"""
Homebase Assistant - Intent Classifier.

Converts a free-form household request into one structured Intent using the
configured LLM provider. classify() is strict: anything other than a clean
JSON object with a known shape raises ClassificationError. The router calls
classify_with_fallback(), which recovers from every primary failure by
running the rule-based classifier instead.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date, timedelta
from typing import Awaitable, Callable

from src.config import settings
from src.core.fallback_classifier import fallback_classify
from src.core.intents import Intent, IntentType
from src.core.llm import Turn, complete

logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """The LLM answered, but not with a usable intent."""


# ---------------------------------------------------------------------------
# System prompt for LLM
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are the intent classifier for a household assistant that manages a family's
calendar, reminders, shopping list, tasks and family members.
Classify the user's message into exactly ONE intent and extract its details.

Today's date is {today}.

The user's calendar:
{calendar_summary}

Return ONLY valid JSON with this exact format:
{{"type": "<intent>", "details": {{...}}}}

**Intent types** (action_domain):
{intent_list}

**Details per intent** (omit anything the user did not say):
- create_calendar: {{"title": "event name", "date": "YYYY-MM-DD", "time": "HH:MM:SS", "end_time": "HH:MM:SS", "location": "place", "participants": ["name"], "event_type": "sports|party|meeting|medical|school|family|other"}}
- query_calendar: {{"date": "YYYY-MM-DD", "end_date": "YYYY-MM-DD", "search": "words from the event title", "time": "HH:MM:SS", "end_time": "HH:MM:SS", "next_event": true}} (time = "am I free at ..."; next_event = "what's my next event")
- update_calendar: {{"search": "how the user named the event", "date": "its current date", "new_title": "...", "new_date": "YYYY-MM-DD", "new_time": "HH:MM:SS", "new_end_time": "HH:MM:SS", "new_location": "..."}}
- delete_calendar: {{"search": "how the user named the event", "date": "YYYY-MM-DD"}}
- create_reminder: {{"title": "reminder text", "date": "YYYY-MM-DD", "time": "HH:MM:SS", "priority": "low|medium|high"}}
- query_reminder: {{"date": "YYYY-MM-DD", "search": "..."}}
- update_reminder: {{"search": "...", "new_title": "...", "new_date": "YYYY-MM-DD", "new_time": "HH:MM:SS", "priority": "low|medium|high", "completed": true}}
- create_shopping: {{"title": "item name", "quantity": 1, "category": "dairy|produce|meat|bakery|baby|household|other", "urgent": false}}
- query_shopping: {{"category": "..."}}
- update_shopping: {{"search": "item name", "new_title": "...", "quantity": 2, "category": "...", "completed": true, "urgent": true}}
- create_task: {{"title": "task name", "date": "YYYY-MM-DD", "time": "HH:MM:SS", "priority": "low|medium|high", "category": "chores|homework|sports|music|health|social|other", "assigned_to": "name"}}
- query_task: {{"status": "pending|in_progress|completed", "date": "YYYY-MM-DD", "assigned_to": "name"}}
- update_task: {{"search": "...", "new_title": "...", "new_date": "YYYY-MM-DD", "status": "pending|in_progress|completed", "priority": "..."}}
- create_family: {{"name": "...", "age": 8, "gender": "...", "school": "...", "grade": "...", "allergies": ["..."]}}
- query_family: {{"search": "name"}}
- update_family: {{"search": "current name", "new_name": "...", "age": 9, "school": "...", "grade": "...", "allergies": ["..."]}}
- delete_reminder / delete_shopping / delete_task / delete_family: {{"search": "how the user named it"}}
- chat: {{"query": "the user's question"}}

**Examples:**
"add milk to shopping list" -> {{"type": "create_shopping", "details": {{"title": "milk", "category": "dairy"}}}}
"remind me to call mom tomorrow at 3pm" -> {{"type": "create_reminder", "details": {{"title": "call mom", "date": "{tomorrow}", "time": "15:00:00"}}}}
"schedule dentist appointment next Friday" -> {{"type": "create_calendar", "details": {{"title": "dentist appointment", "date": "next friday"}}}}
"move my dentist appointment to 4pm" -> {{"type": "update_calendar", "details": {{"search": "dentist appointment", "new_time": "16:00:00"}}}}
"cancel soccer practice" -> {{"type": "delete_calendar", "details": {{"search": "soccer practice"}}}}
"what's on my calendar tomorrow?" -> {{"type": "query_calendar", "details": {{"date": "{tomorrow}"}}}}
"am I free tomorrow at 3pm?" -> {{"type": "query_calendar", "details": {{"date": "{tomorrow}", "time": "15:00:00"}}}}
"what's my next event?" -> {{"type": "query_calendar", "details": {{"next_event": true}}}}
"mark the homework task as done" -> {{"type": "update_task", "details": {{"search": "homework", "status": "completed"}}}}
"how do I get my toddler to sleep?" -> {{"type": "chat", "details": {{"query": "how do I get my toddler to sleep?"}}}}

**Rules:**
- Interpret relative dates ("tomorrow", "next Monday") relative to today; if unsure, copy the user's words.
- Times are 24-hour HH:MM:SS.
- Never invent a date or time the user did not give.
- Return ONLY the JSON object. No markdown, no explanation, no extra text.
"""


def build_system_prompt(calendar_summary: str, today: date | None = None) -> str:
    today = today or date.today()
    return _SYSTEM_PROMPT.format(
        today=f"{today.isoformat()} ({today:%A})",
        tomorrow=(today + timedelta(days=1)).isoformat(),
        calendar_summary=calendar_summary.strip() or "(no events)",
        intent_list=", ".join(t.value for t in IntentType),
    )


# ---------------------------------------------------------------------------
# Response cleaning
# ---------------------------------------------------------------------------

def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def parse_intent(raw_text: str) -> Intent:
    """Validate a raw LLM reply into an Intent, or raise ClassificationError."""
    cleaned = _clean_llm_response(raw_text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ClassificationError(f"LLM reply is not JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ClassificationError(f"Expected a JSON object, got {type(data).__name__}")

    raw_type = data.get("type")
    if not isinstance(raw_type, str) or not raw_type.strip():
        raise ClassificationError("LLM reply has no intent type")

    details = data.get("details", {})
    if details is None:
        details = {}
    if not isinstance(details, dict):
        raise ClassificationError(f"'details' must be an object, got {type(details).__name__}")

    intent_type = IntentType.coerce(raw_type, action=data.get("action") or details.get("action"))
    if intent_type is IntentType.CHAT and raw_type.strip().lower() != "chat":
        logger.warning("LLM returned unknown intent type: '%s'", raw_type)

    return Intent(type=intent_type, slots=details, source="llm")


# ---------------------------------------------------------------------------
# Classifiers
# ---------------------------------------------------------------------------

async def classify(
    message: str,
    calendar_summary: str,
    history: list[Turn] | None = None,
) -> Intent:
    """Classify one message with the LLM. Raises on timeout, API or parse failure."""
    system_prompt = build_system_prompt(calendar_summary)
    logger.debug("Classifier prompt:\n%s", system_prompt)

    raw_text = await asyncio.wait_for(
        complete(
            system=system_prompt,
            user_message=message,
            max_tokens=512,
            history=history,
        ),
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )
    logger.debug("LLM raw response: %s", raw_text)

    intent = parse_intent(raw_text)
    logger.info("LLM classification: %s %s", intent.type.value, intent.slots)
    return intent


Classifier = Callable[..., Awaitable[Intent]]


async def classify_with_fallback(
    message: str,
    calendar_summary: str,
    history: list[Turn] | None = None,
    *,
    primary: Classifier = classify,
    fallback: Callable[[str], Intent] = fallback_classify,
) -> Intent:
    """LLM first, rules second. Never raises for a primary failure."""
    try:
        return await primary(message, calendar_summary, history)
    except Exception as exc:
        logger.warning(
            "LLM classification failed (%s: %s), using rule-based classifier",
            type(exc).__name__, exc,
        )
    return fallback(message)
