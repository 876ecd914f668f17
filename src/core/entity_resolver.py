"""
Homebase Assistant - Entity Resolver.

Turns the words a user used for an existing record ("my dentist appointment",
"the milk") into zero, one or several stored records. Update and delete
handlers act only on a UNIQUE resolution; anything else becomes a question
back to the user.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from src.data.models import Record, RecordKind
from src.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

# Words that name the kind of record rather than the record itself.
GENERIC_NOUNS = frozenset({
    "appointment", "appointments", "appt", "event", "events", "calendar",
    "reminder", "reminders", "task", "tasks", "todo", "chore",
    "item", "items", "thing", "stuff",
})

_STOPWORDS = frozenset({
    "a", "an", "the", "my", "our", "your", "his", "her", "their",
    "this", "that", "on", "at", "for", "of", "to", "with", "in",
})

_WORD_RE = re.compile(r"[\w']+")


class ResolutionStatus(str, Enum):
    NOT_FOUND = "not_found"
    UNIQUE = "unique"
    AMBIGUOUS = "ambiguous"


@dataclass
class Resolution:
    status: ResolutionStatus
    matches: list[Record] = field(default_factory=list)
    term: str = ""
    max_candidates: int = 5

    @property
    def record(self) -> Record | None:
        """The resolved record, only when exactly one matched."""
        if self.status is ResolutionStatus.UNIQUE:
            return self.matches[0]
        return None

    def failure_message(self, noun: str) -> str:
        matching = f" matching '{self.term}'" if self.term else ""
        if self.status is ResolutionStatus.NOT_FOUND:
            article = "an" if noun[:1].lower() in "aeiou" else "a"
            return f"I couldn't find {article} {noun}{matching}."

        shown = [r.display_name for r in self.matches[: self.max_candidates]]
        listing = ", ".join(shown)
        hidden = len(self.matches) - len(shown)
        if hidden > 0:
            listing += f" and {hidden} more"
        return (
            f"I found {len(self.matches)} {noun}s{matching}: "
            f"{listing}. Which one did you mean?"
        )


def _words(text: str) -> list[str]:
    return _WORD_RE.findall(text.lower())


def strip_generic_nouns(term: str) -> str:
    """'dentist appointment' -> 'dentist'; 'my meeting' -> 'meeting'."""
    kept = [w for w in _words(term) if w not in GENERIC_NOUNS and w not in _STOPWORDS]
    return " ".join(kept)


def significant_words(term: str) -> list[str]:
    return [
        w for w in _words(term)
        if w not in GENERIC_NOUNS and w not in _STOPWORDS and len(w) > 1
    ]


class EntityResolver:
    """Finds stored records by the name a user gave them."""

    def __init__(self, storage: StoragePort, max_candidates: int = 5) -> None:
        self._storage = storage
        self._max_candidates = max_candidates

    async def search(
        self,
        user_id: str,
        kind: RecordKind,
        term: str,
        on_date: str | None = None,
    ) -> list[Record]:
        """Case-insensitive lookup over the kind's display field.

        Tries the whole phrase, then the phrase without generic nouns, then
        records containing every significant word in any order. The first
        stage that finds anything wins.
        """
        filters = {}
        if on_date and kind.date_field:
            filters[kind.date_field] = on_date

        phrase = (term or "").strip()
        if phrase:
            matches = await self._storage.search(kind, user_id, term=phrase, filters=filters)
            if matches:
                return matches

        stripped = strip_generic_nouns(phrase)
        if stripped and stripped != phrase.lower():
            matches = await self._storage.search(kind, user_id, term=stripped, filters=filters)
            if matches:
                return matches
        elif not stripped and filters:
            # "cancel my appointment on friday": the date alone narrows it down
            return await self._storage.search(kind, user_id, filters=filters)

        words = significant_words(phrase)
        if len(words) < 2:
            return []
        candidates = await self._storage.search(kind, user_id, term=words[0], filters=filters)
        return [
            r for r in candidates
            if all(w in r.display_name.lower() for w in words)
        ]

    async def resolve(
        self,
        user_id: str,
        kind: RecordKind,
        term: str,
        on_date: str | None = None,
    ) -> Resolution:
        matches = await self.search(user_id, kind, term, on_date=on_date)
        term = (term or "").strip()

        # Several matches always go back to the user, even when one is exact.
        if not matches:
            status = ResolutionStatus.NOT_FOUND
        elif len(matches) == 1:
            status = ResolutionStatus.UNIQUE
        else:
            status = ResolutionStatus.AMBIGUOUS

        logger.debug(
            "Resolved %s '%s' for user %s: %s (%d match(es))",
            kind.value, term, user_id, status.value, len(matches),
        )
        return Resolution(
            status=status, matches=matches, term=term, max_candidates=self._max_candidates,
        )
