"""
Homebase Assistant - Temporal Normalizer.

Pure functions that turn loosely formatted date/time text ("tomorrow",
"3/14", "2:30pm", "14") into canonical strings:

    dates → "YYYY-MM-DD"
    times → "HH:MM:SS"

Nothing here raises. Unparseable input yields None, which callers treat as
"value not provided" and answer by asking the user rather than guessing.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta

from dateutil.parser import ParserError
from dateutil.parser import parse as parse_datetime

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_MONTH_DAY_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})$")
_IN_N_RE = re.compile(r"^in\s+(\d{1,3})\s+(day|days|week|weeks)$")

_CANONICAL_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")
_HH_MM_RE = re.compile(r"^(\d{2}):(\d{2})$")
_AMPM_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([ap])\.?\s*m\.?$", re.IGNORECASE)
_BARE_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?$")

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_RELATIVE_DAYS = {
    "today": 0,
    "tonight": 0,
    "tomorrow": 1,
    "tmrw": 1,
    "day after tomorrow": 2,
    "the day after tomorrow": 2,
    "yesterday": -1,
}


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def today_iso(today: date | None = None) -> str:
    return (today or date.today()).isoformat()


def _next_weekday(today: date, weekday: int) -> date:
    """Next occurrence of `weekday` strictly after today."""
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def normalize_date(value: object, today: date | None = None) -> str | None:
    """Convert date-ish input into "YYYY-MM-DD", or None if unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    s = str(value).strip()
    if not s:
        return None
    today = today or date.today()

    m = _ISO_DATE_RE.match(s)
    if m:
        try:
            date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None
        return m.group(0)

    m = _MONTH_DAY_RE.match(s)
    if m:
        month = _clamp(int(m.group(1)), 1, 12)
        last_day = calendar.monthrange(today.year, month)[1]
        day = _clamp(int(m.group(2)), 1, last_day)
        return date(today.year, month, day).isoformat()

    lower = re.sub(r"\s+", " ", s.lower()).strip(" .,!?")
    if lower in _RELATIVE_DAYS:
        return (today + timedelta(days=_RELATIVE_DAYS[lower])).isoformat()

    if lower == "next week":
        return (today + timedelta(days=7)).isoformat()

    m = _IN_N_RE.match(lower)
    if m:
        n = int(m.group(1))
        days = n * 7 if m.group(2).startswith("week") else n
        return (today + timedelta(days=days)).isoformat()

    words = lower.split(" ")
    if len(words) <= 2 and words[-1] in WEEKDAYS and (len(words) == 1 or words[0] in ("next", "this", "on")):
        return _next_weekday(today, WEEKDAYS.index(words[-1])).isoformat()

    try:
        parsed = parse_datetime(s, default=datetime(today.year, today.month, today.day))
    except (ParserError, ValueError, OverflowError, TypeError):
        return None
    return parsed.date().isoformat()


def normalize_time(value: object) -> str | None:
    """Convert time-ish input into 24-hour "HH:MM:SS", or None if unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.strftime("%H:%M:%S")

    s = str(value).strip()
    if not s:
        return None
    lower = s.lower()

    if lower == "noon":
        return "12:00:00"
    if lower == "midnight":
        return "00:00:00"

    m = _CANONICAL_TIME_RE.match(s)
    if m:
        hh = _clamp(int(m.group(1)), 0, 23)
        mm = _clamp(int(m.group(2)), 0, 59)
        ss = _clamp(int(m.group(3)), 0, 59)
        return f"{hh:02d}:{mm:02d}:{ss:02d}"

    m = _HH_MM_RE.match(s)
    if m:
        hh = _clamp(int(m.group(1)), 0, 23)
        mm = _clamp(int(m.group(2)), 0, 59)
        return f"{hh:02d}:{mm:02d}:00"

    m = _AMPM_RE.match(s)
    if m:
        h = _clamp(int(m.group(1)), 1, 12)
        mm = _clamp(int(m.group(2) or 0), 0, 59)
        suffix = m.group(3).lower()
        if suffix == "p" and h != 12:
            h += 12
        if suffix == "a" and h == 12:
            h = 0
        return f"{h:02d}:{mm:02d}:00"

    m = _BARE_TIME_RE.match(s)
    if m:
        h = _clamp(int(m.group(1)), 0, 23)
        mm = _clamp(int(m.group(2) or 0), 0, 59)
        return f"{h:02d}:{mm:02d}:00"

    return None


# ---------------------------------------------------------------------------
# Minute arithmetic on canonical times
# ---------------------------------------------------------------------------


def time_to_minutes(value: str | None) -> int | None:
    """Minutes from midnight for a canonical or HH:MM time, else None."""
    canonical = normalize_time(value) if value else None
    if canonical is None:
        return None
    hh, mm, _ = canonical.split(":")
    return int(hh) * 60 + int(mm)


def minutes_to_time(minutes: int) -> str:
    """Inverse of time_to_minutes, wrapping past midnight."""
    minutes %= 24 * 60
    return f"{minutes // 60:02d}:{minutes % 60:02d}:00"


def format_time_12h(value: str | None) -> str:
    """'14:30:00' → '2:30 PM'. Empty string for missing or bad input."""
    minutes = time_to_minutes(value)
    if minutes is None:
        return ""
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{mins:02d} {period}"
