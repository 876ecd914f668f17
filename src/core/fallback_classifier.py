"""
Homebase Assistant - Rule-Based Classifier.

Deterministic keyword/regex classifier used whenever the LLM is unreachable
or returns something unusable. `fallback_classify()` is total: every input,
including the empty string, produces an Intent.

Category order matters and the first match wins:

    shopping → reminder → task → calendar → family → chat

Inside a category the action is picked as delete → update → query → create.
Slot extraction is best-effort; dates/times go through the Temporal
Normalizer and anything not found is left as None so the handler can ask.
"""

from __future__ import annotations

import logging
import re
from datetime import date

from src.core.intents import Intent, IntentType
from src.core.temporal import normalize_date, normalize_time

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Keyword buckets
# ---------------------------------------------------------------------------

SHOPPING_CATEGORIES: dict[str, tuple[str, ...]] = {
    "dairy": ("milk", "cheese", "yogurt", "yoghurt", "butter", "cream", "egg"),
    "produce": (
        "apple", "banana", "carrot", "lettuce", "fruit", "vegetable", "veggie",
        "tomato", "potato", "onion", "spinach", "berry", "berries", "grape",
        "avocado", "orange", "lemon", "cucumber",
    ),
    "meat": ("chicken", "beef", "fish", "meat", "pork", "turkey", "bacon", "sausage", "salmon", "ham"),
    "bakery": ("bread", "cake", "muffin", "bakery", "bagel", "roll", "croissant", "bun", "tortilla"),
    "baby": ("diaper", "formula", "baby", "wipe", "pacifier"),
    "household": (
        "soap", "detergent", "cleaner", "household", "paper towel", "toilet paper",
        "trash bag", "sponge", "bleach", "dish soap",
    ),
}

_OTHER_GROCERIES = (
    "groceries", "cereal", "rice", "pasta", "coffee", "tea", "juice", "flour",
    "sugar", "salt", "oil", "snack", "water", "honey", "jam", "peanut butter",
)

TASK_CATEGORIES: dict[str, tuple[str, ...]] = {
    "chores": ("clean", "laundry", "dishes", "trash", "vacuum", "chore", "tidy", "mow", "garbage"),
    "homework": ("homework", "study", "essay", "project", "assignment", "read"),
    "sports": ("practice", "soccer", "football", "basketball", "swim", "training", "game"),
    "music": ("piano", "guitar", "violin", "music", "drum", "lesson"),
    "health": ("doctor", "medicine", "dentist", "vitamin", "checkup", "pill"),
    "social": ("party", "birthday", "playdate", "friend", "visit"),
}


def _word_regex(words: tuple[str, ...]) -> re.Pattern:
    alternatives = "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in words)
    return re.compile(rf"\b(?:{alternatives})(?:s|es)?\b", re.IGNORECASE)


_SHOPPING_BUCKET_RES = {cat: _word_regex(words) for cat, words in SHOPPING_CATEGORIES.items()}
_GROCERY_RE = _word_regex(
    tuple(w for words in SHOPPING_CATEGORIES.values() for w in words) + _OTHER_GROCERIES
)
_TASK_BUCKET_RES = {cat: _word_regex(words) for cat, words in TASK_CATEGORIES.items()}

# ---------------------------------------------------------------------------
# Category detectors (checked in order)
# ---------------------------------------------------------------------------

_SHOPPING_LIST_RE = re.compile(r"\b(?:shopping|grocery|groceries)\b", re.IGNORECASE)
_SHOPPING_VERB_RE = re.compile(r"\b(?:add|put|buy|get|need|pick\s+up|grab)\b", re.IGNORECASE)
_REMINDER_RE = re.compile(r"\bremind\s+me\b|\bset\s+(?:a\s+)?reminder\b|\breminders?\b", re.IGNORECASE)
_TASK_RE = re.compile(r"\b(?:tasks?|todos?|to-dos?|to\s+do|chores?|assign)\b", re.IGNORECASE)
_AVAILABILITY_RE = re.compile(
    r"\b(?:am\s+i|are\s+we|is\s+(?:my|our)\s+(?:calendar|schedule|day))\s+"
    r"(?:free|available|busy|open|clear)\b",
    re.IGNORECASE,
)
_NEXT_EVENT_RE = re.compile(
    r"\bnext\s+(?:events?|meetings?|appointments?|appts?)\b|\bwhat(?:'s|\s+is)\s+next\b",
    re.IGNORECASE,
)
_CALENDAR_RE = re.compile(
    r"\b(?:events?|meetings?|appointments?|appts?|schedule[sd]?|calendar|reschedule)\b"
    r"|\bon\s+\d|\bwhat\s+do\s+i\s+have\b|" + _AVAILABILITY_RE.pattern,
    re.IGNORECASE,
)
_FAMILY_RE = re.compile(
    r"\bfamily\b|\bmy\s+(?:son|daughter|kid|kids|child|children)\b", re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Action detectors
# ---------------------------------------------------------------------------

_DELETE_RE = re.compile(
    r"\b(?:cancel|delete|remove|erase)\b|^\s*(?:please\s+)?(?:clear|drop|get\s+rid\s+of)\b",
    re.IGNORECASE,
)
_UPDATE_RE = re.compile(
    r"\b(?:move|reschedule|postpone|push|change|rename|update|edit|mark|shift|"
    r"complete|finish(?:ed)?|check\s+off)\b|\b(?:as|is)\s+(?:done|completed|finished)\b",
    re.IGNORECASE,
)
_QUERY_RE = re.compile(
    r"^\s*(?:what|what's|whats|when|show|list|which|any|how\s+many|tell\s+me|"
    r"do\s+i|is\s+there|are\s+there|check)\b|\b(?:show\s+me|do\s+i\s+have|what's\s+on)\b|"
    + _AVAILABILITY_RE.pattern,
    re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Lightweight date/time spotting
# ---------------------------------------------------------------------------

_DATE_RE = re.compile(
    r"\b(?:(?:on|by|for|until|till)\s+)?("
    r"(?:the\s+)?day\s+after\s+tomorrow|today|tonight|tomorrow|tmrw|"
    r"next\s+week|in\s+\d{1,3}\s+(?:days?|weeks?)|"
    r"(?:next\s+|this\s+)?(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)|"
    r"\d{4}-\d{2}-\d{2}|\d{1,2}[/-]\d{1,2}(?:[/-]\d{2,4})?"
    r")\b",
    re.IGNORECASE,
)

_TIME_RES = (
    re.compile(r"(?:\b(?:at|by|around)\s+|@\s*)?\b(\d{1,2}(?::\d{2})?\s*(?:a\.?m\.?|p\.?m\.?))(?=\W|$)", re.IGNORECASE),
    re.compile(r"(?:\b(?:at|by|around)\s+)?\b(noon|midnight)\b", re.IGNORECASE),
    re.compile(r"(?:\b(?:at|by|around)\s+|@\s*)?\b(\d{1,2}:\d{2})\b"),
    re.compile(r"(?:\b(?:at|by|around)\s+|@\s*)(\d{1,2})\b(?![/:-]\d)", re.IGNORECASE),
)


def _take_date(text: str, today: date | None) -> tuple[str | None, str]:
    """Find the first date phrase; return (canonical date, text without it)."""
    m = _DATE_RE.search(text)
    if not m:
        return None, text
    normalized = normalize_date(re.sub(r"\s+", " ", m.group(1)), today=today)
    return normalized, _cut(text, m)


def _take_time(text: str) -> tuple[str | None, str]:
    """Find the most specific time phrase; return (canonical time, text without it)."""
    for pattern in _TIME_RES:
        m = pattern.search(text)
        if m:
            return normalize_time(re.sub(r"\s+", "", m.group(1))), _cut(text, m)
    return None, text


def _cut(text: str, m: re.Match) -> str:
    return f"{text[:m.start()]} {text[m.end():]}"


_LEADING_FILLER_RE = re.compile(r"^(?:(?:please|can\s+you|could\s+you|hey|ok|okay)\s+)+", re.IGNORECASE)
_TRAILING_JUNK_RE = re.compile(r"(?:\s+(?:at|on|by|for|to|from|in|until|till|around))+\s*$", re.IGNORECASE)
_ARTICLE_RE = re.compile(r"^(?:(?:my|the|our|a|an|some|more)\s+)+", re.IGNORECASE)


def _tidy(text: str | None) -> str | None:
    """Collapse whitespace, trim fillers, dangling prepositions and punctuation."""
    if not text:
        return None
    text = re.sub(r"\s+", " ", text).strip(" \t.,!?;:\"'")
    text = _LEADING_FILLER_RE.sub("", text)
    text = _TRAILING_JUNK_RE.sub("", text)
    text = text.strip(" \t.,!?;:\"'")
    return text or None


def _target(text: str | None) -> str | None:
    """A reference to an existing record: drop leading possessives/articles."""
    text = _tidy(text)
    if not text:
        return None
    return _tidy(_ARTICLE_RE.sub("", text))


# ---------------------------------------------------------------------------
# Per-domain slot extraction
# ---------------------------------------------------------------------------

_LIST_SUFFIX_RE = re.compile(
    r"\s+(?:to|on|in|onto|from|off)\s+(?:the\s+|my\s+|our\s+)?"
    r"(?:shopping\s+|grocery\s+|groceries\s+|todo\s+|to-do\s+|to\s+do\s+|task\s+)?list\b",
    re.IGNORECASE,
)
_CALENDAR_SUFFIX_RE = re.compile(
    r"\s+(?:to|on|in|from|off)\s+(?:the\s+|my\s+|our\s+)?calendar\b", re.IGNORECASE,
)
_FAMILY_SUFFIX_RE = re.compile(
    r"\s+(?:to|from|in)\s+(?:the\s+|my\s+|our\s+)?family(?:\s+members?)?\b", re.IGNORECASE,
)
_DELETE_TARGET_RE = re.compile(
    r"\b(?:cancel|delete|remove|erase|clear|drop|get\s+rid\s+of)\s+(?:all\s+)?(.+)$", re.IGNORECASE,
)
_UPDATE_SPLIT_RE = re.compile(
    r"\b(?:move|reschedule|postpone|push|change|rename|update|edit|shift|set)\s+"
    r"(?:back\s+)?(.+)\s+(?:to|until|till|for)\s+(.+)$",
    re.IGNORECASE,
)
_UPDATE_TARGET_RE = re.compile(
    r"\b(?:move|reschedule|postpone|push|change|rename|update|edit|shift)\s+(?:back\s+)?(.+)$",
    re.IGNORECASE,
)
_MARK_DONE_RE = re.compile(
    r"\b(?:mark|set)\s+(.+?)\s+(?:as\s+)?(?:done|complete|completed|finished)\b"
    r"|\b(?:complete|finish|finished|check\s+off|tick\s+off)\s+(.+)$"
    r"|^(.+?)\s+is\s+(?:done|complete|completed|finished)\b",
    re.IGNORECASE,
)
_DOMAIN_WORD_RE = {
    "calendar": re.compile(r"^(?:event|meeting|appointment)\s+(?:for|called|named)\s+", re.IGNORECASE),
    "reminder": re.compile(r"^reminders?\s+(?:to|about|for)?\s*", re.IGNORECASE),
    "task": re.compile(r"^(?:task|todo|to-do|chore)s?\s+(?:to|called|named|for)?\s*", re.IGNORECASE),
    "shopping": re.compile(r"^(?:item)\s+", re.IGNORECASE),
    "family": re.compile(r"^(?:family\s+member)\s+", re.IGNORECASE),
}


def _strip_domain_word(domain: str, text: str | None) -> str | None:
    if not text:
        return None
    stripped = _DOMAIN_WORD_RE[domain].sub("", text)
    return _tidy(stripped) or _tidy(text)


def _strip_suffixes(text: str) -> str:
    for pattern in (_LIST_SUFFIX_RE, _CALENDAR_SUFFIX_RE, _FAMILY_SUFFIX_RE):
        text = pattern.sub("", text)
    return text


def _shopping_category(text: str) -> str:
    for category, pattern in _SHOPPING_BUCKET_RES.items():
        if pattern.search(text):
            return category
    return "other"


def _task_category(text: str) -> str:
    for category, pattern in _TASK_BUCKET_RES.items():
        if pattern.search(text):
            return category
    return "other"


def _priority(text: str) -> str | None:
    if re.search(r"\b(?:urgent|urgently|asap|high\s+priority|important)\b", text, re.IGNORECASE):
        return "high"
    if re.search(r"\blow\s+priority\b", text, re.IGNORECASE):
        return "low"
    return None


def _create_shopping(text: str) -> dict:
    body = _strip_suffixes(text)
    body = re.sub(r"\b(?:shopping|grocery)\s+list\b", " ", body, flags=re.IGNORECASE)
    m = re.search(r"\b(?:add|put|buy|get|need|pick\s+up|grab)\s+(.+)$", body, re.IGNORECASE)
    title = _target(m.group(1) if m else body) or ""
    quantity = None
    qm = re.match(r"^(\d{1,3})\s*(?:x\s+)?(.+)$", title)
    if qm:
        quantity = int(qm.group(1))
        title = _target(qm.group(2)) or title
    title = re.sub(r"\b(?:please|urgently|asap)\b", "", title, flags=re.IGNORECASE)
    title = _tidy(title) or _tidy(text) or ""
    return {
        "title": title,
        "category": _shopping_category(title or text),
        "quantity": quantity,
        "urgent": bool(re.search(r"\b(?:urgent|urgently|asap)\b", text, re.IGNORECASE)) or None,
    }


def _create_reminder(text: str) -> dict:
    m = re.search(
        r"\bremind\s+me\s+(?:to\s+|about\s+|that\s+|of\s+)?(.+)$"
        r"|\bset\s+(?:a\s+)?reminder\s+(?:to\s+|for\s+|about\s+)?(.+)$",
        text,
        re.IGNORECASE,
    )
    title = _tidy(m.group(1) or m.group(2)) if m else None
    return {"title": title or _tidy(text), "priority": _priority(text)}


def _create_task(text: str) -> dict:
    body = _strip_suffixes(text)
    m = re.search(
        r"\b(?:create|add|make|new|assign)\s+(?:a\s+)?(?:new\s+)?(?:task|todo|to-do|chore)\s*"
        r"(?:called|named|to|for|:)?\s*(.+)$",
        body,
        re.IGNORECASE,
    )
    if m:
        title = _tidy(m.group(1))
    else:
        title = _tidy(re.sub(r"\b(?:add|create|new|tasks?|todos?|to-dos?)\b", " ", body, flags=re.IGNORECASE))
    title = title or _tidy(text)
    return {
        "title": title,
        "priority": _priority(text),
        "category": _task_category(title or text),
    }


_CAL_VERB_RE = re.compile(
    r"^(?:schedule|add|create|book|set\s+up|make|put|plan)\s+(?:an?\s+|my\s+|the\s+)?(?:new\s+)?",
    re.IGNORECASE,
)
_LOCATION_RE = re.compile(r"\s+(?:at|in)\s+((?:the\s+)?[A-Z][\w'&-]*(?:\s+[A-Z][\w'&-]*)*)")
_PARTICIPANTS_RE = re.compile(
    r"\bwith\s+([A-Z][a-z]+(?:(?:\s*,\s*|\s+and\s+|\s*&\s*)[A-Z][a-z]+)*)"
)


def _create_calendar(text: str) -> dict:
    body = _CALENDAR_SUFFIX_RE.sub("", text)
    body = _tidy(body) or ""
    body = _CAL_VERB_RE.sub("", body)
    location = None
    lm = _LOCATION_RE.search(body)
    if lm:
        location = _tidy(lm.group(1))
        body = body[:lm.start()] + body[lm.end():]
    participants = None
    pm = _PARTICIPANTS_RE.search(body)
    if pm:
        participants = [p.strip() for p in re.split(r"\s*,\s*|\s+and\s+|\s*&\s*", pm.group(1)) if p.strip()]
    return {
        "title": _tidy(body) or _tidy(text),
        "location": location,
        "participants": participants,
    }


def _create_family(text: str) -> dict:
    slots: dict = {}
    m = re.search(
        r"\b(?:add|new|register)\s+(?:a\s+)?(?:new\s+)?(?:family\s+member\s+)?"
        r"(?:my\s+)?(?:(son|daughter|kid|child)\s+)?(?:named\s+|called\s+)?([A-Za-z][\w'-]*)",
        text,
        re.IGNORECASE,
    )
    if m:
        name = m.group(2)
        if name.lower() not in ("family", "member", "to", "a", "the"):
            slots["name"] = name[:1].upper() + name[1:]
        relation = (m.group(1) or "").lower()
        if relation == "son":
            slots["gender"] = "Boy"
        elif relation == "daughter":
            slots["gender"] = "Girl"
    age = re.search(r"\b(?:age|aged)\s+(\d{1,3})\b|\b(\d{1,3})\s*(?:years?|yrs?)(?:\s+old)?\b", text, re.IGNORECASE)
    if age:
        slots["age"] = int(age.group(1) or age.group(2))
    return slots


def _apply_new_value(domain: str, slots: dict, new_text: str, today: date | None, rename: bool) -> None:
    """Interpret the part after "to" in an update request."""
    new_date, rest = _take_date(new_text, today)
    new_time, rest = _take_time(rest)
    if new_date:
        slots["new_date"] = new_date
    if new_time:
        slots["new_time"] = new_time
    leftover = _tidy(rest)
    if domain == "shopping" and leftover and re.fullmatch(r"\d{1,3}", leftover):
        slots["quantity"] = int(leftover)
        return
    if domain == "family":
        age = re.fullmatch(r"(\d{1,3})(?:\s*(?:years?|yrs?)(?:\s+old)?)?", leftover or "")
        if age:
            slots["age"] = int(age.group(1))
            return
    if leftover and (rename or not (new_date or new_time)):
        key = "new_name" if domain == "family" else "new_title"
        slots[key] = leftover


def _update_slots(domain: str, text: str, today: date | None) -> dict:
    slots: dict = {}
    done = _MARK_DONE_RE.search(text)
    if done:
        target = next(g for g in done.groups() if g)
        slots["search"] = _strip_domain_word(domain, _target(_strip_suffixes(target)))
        if domain == "task":
            slots["status"] = "completed"
        else:
            slots["completed"] = True
        return slots

    if domain == "family":
        fm = re.search(
            r"\b(?:change|update|set)\s+([A-Za-z][\w-]*)'s\s+(age|school|grade|name)\s+(?:to|is)\s+(.+)$",
            text,
            re.IGNORECASE,
        )
        if fm:
            field = fm.group(2).lower()
            value = _tidy(fm.group(3))
            slots["search"] = fm.group(1)
            if field == "age":
                age = re.match(r"\d{1,3}", value or "")
                slots["age"] = int(age.group(0)) if age else None
            elif field == "name":
                slots["new_name"] = value
            else:
                slots[field] = value
            return slots

    rename = bool(re.search(r"\brename\b", text, re.IGNORECASE))
    split = _UPDATE_SPLIT_RE.search(text)
    if split:
        target_text, new_text = split.group(1), split.group(2)
        _apply_new_value(domain, slots, new_text, today, rename)
    else:
        m = _UPDATE_TARGET_RE.search(text)
        target_text = m.group(1) if m else text

    if domain == "calendar":
        target_date, target_text = _take_date(target_text, today)
        _, target_text = _take_time(target_text)
        if target_date:
            slots["date"] = target_date
    target_text = re.sub(r"\s*\b(?:quantity|amount)\b\s*", " ", _strip_suffixes(target_text), flags=re.IGNORECASE)
    slots["search"] = _strip_domain_word(domain, _target(target_text))
    return slots


def _delete_slots(domain: str, text: str, today: date | None) -> dict:
    slots: dict = {}
    m = _DELETE_TARGET_RE.search(text)
    target_text = _strip_suffixes(m.group(1) if m else text)
    if domain == "calendar":
        target_date, target_text = _take_date(target_text, today)
        _, target_text = _take_time(target_text)
        if target_date:
            slots["date"] = target_date
    slots["search"] = _strip_domain_word(domain, _target(target_text))
    return slots


def _query_slots(domain: str, text: str, today: date | None) -> dict:
    slots: dict = {}
    if domain in ("calendar", "reminder", "task"):
        query_date, rest = _take_date(text, today)
        if query_date:
            slots["date"] = query_date
        if domain == "calendar" and _NEXT_EVENT_RE.search(rest):
            slots["next_event"] = True
        elif domain == "calendar" and _AVAILABILITY_RE.search(rest):
            slots["time"], rest = _take_time(rest)
            slots["end_time"], rest = _take_time(rest)
        elif domain == "calendar":
            m = re.search(r"\bwhen(?:'s|\s+is|\s+are)\s+(.+?)\??$", rest, re.IGNORECASE)
            if m:
                slots["search"] = _strip_domain_word(domain, _target(m.group(1)))
    if domain == "shopping":
        for category in SHOPPING_CATEGORIES:
            if re.search(rf"\b{category}\b", text, re.IGNORECASE):
                slots["category"] = category
                break
    if domain == "task":
        if re.search(r"\b(?:completed|finished|done)\b", text, re.IGNORECASE):
            slots["status"] = "completed"
    return slots


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_domain(message: str) -> str:
    """First matching category, in the fixed precedence order."""
    if _SHOPPING_LIST_RE.search(message) or (
        _SHOPPING_VERB_RE.search(message) and _GROCERY_RE.search(message)
    ):
        return "shopping"
    if _REMINDER_RE.search(message):
        return "reminder"
    if _TASK_RE.search(message):
        return "task"
    if _CALENDAR_RE.search(message):
        return "calendar"
    if _FAMILY_RE.search(message):
        return "family"
    return "chat"


def detect_action(message: str) -> str:
    if _DELETE_RE.search(message):
        return "delete"
    if _UPDATE_RE.search(message):
        return "update"
    if _QUERY_RE.search(message):
        return "query"
    return "create"


def fallback_classify(message: object, today: date | None = None) -> Intent:
    """Classify a message with keyword heuristics. Never raises."""
    if not isinstance(message, str):
        message = "" if message is None else str(message)
    text = message.strip()

    domain = detect_domain(text)
    if domain == "chat":
        logger.debug("No rule matched, treating as chat: %s", text[:80])
        return Intent(type=IntentType.CHAT, slots={"query": text}, source="rules")

    action = detect_action(text)
    intent_type = IntentType.of(action, domain)

    if action == "delete":
        slots = _delete_slots(domain, text, today)
    elif action == "update":
        slots = _update_slots(domain, text, today)
    elif action == "query":
        slots = _query_slots(domain, text, today)
    else:
        found_date, rest = _take_date(text, today)
        found_time, rest = _take_time(rest)
        if domain == "shopping":
            slots = _create_shopping(rest)
        elif domain == "reminder":
            slots = _create_reminder(rest)
        elif domain == "task":
            slots = _create_task(rest)
        elif domain == "calendar":
            slots = _create_calendar(rest)
        else:
            slots = _create_family(rest)
        slots = {k: v for k, v in slots.items() if v is not None}
        if domain in ("reminder", "task", "calendar"):
            # Explicit None tells the handler "not given, ask the user"
            slots["date"] = found_date
            slots["time"] = found_time

    if action != "create":
        slots = {k: v for k, v in slots.items() if v is not None}
    logger.info("Rule-based classification: %s %s", intent_type.value, slots)
    return Intent(type=intent_type, slots=slots, source="rules")
