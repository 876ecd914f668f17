"""
Homebase Assistant - Household Database.

SQLite implementation of the storage port. One table per record kind, every
row scoped by user_id. sqlite3 is blocking, so each public coroutine runs its
work through asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from src.data.models import (
    Event,
    FamilyMember,
    Record,
    RecordKind,
    Reminder,
    ShoppingItem,
    Task,
)
from src.ports.storage_port import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Table:
    name: str
    model: type
    order_by: str
    json_columns: tuple[str, ...] = ()
    flag_columns: tuple[str, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(self.model))


_TABLES: dict[RecordKind, _Table] = {
    RecordKind.EVENT: _Table(
        "events", Event, "event_date, start_time IS NOT NULL, start_time",
        json_columns=("participants",),
    ),
    RecordKind.REMINDER: _Table(
        "reminders", Reminder, "reminder_date, reminder_time",
        flag_columns=("completed",),
    ),
    RecordKind.TASK: _Table(
        "tasks", Task, "due_date IS NULL, due_date, due_time",
    ),
    RecordKind.SHOPPING: _Table(
        "shopping_items", ShoppingItem, "completed, urgent DESC, created_at",
        flag_columns=("completed", "urgent"),
    ),
    RecordKind.FAMILY: _Table(
        "family_members", FamilyMember, "name COLLATE NOCASE",
        json_columns=("allergies",),
    ),
}

_SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    title       TEXT NOT NULL,
    event_date  TEXT NOT NULL,
    start_time  TEXT,
    end_time    TEXT,
    location    TEXT,
    description TEXT,
    participants TEXT NOT NULL DEFAULT '[]',
    event_type  TEXT NOT NULL DEFAULT 'other'
        CHECK (event_type IN ('sports','party','meeting','medical','school','family','other')),
    source      TEXT NOT NULL DEFAULT 'manual'
        CHECK (source IN ('manual','ai','calendar_sync')),
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_user_date ON events (user_id, event_date);

CREATE TABLE IF NOT EXISTS reminders (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    title         TEXT NOT NULL,
    reminder_date TEXT NOT NULL,
    reminder_time TEXT,
    description   TEXT,
    priority      TEXT NOT NULL DEFAULT 'medium'
        CHECK (priority IN ('low','medium','high')),
    completed     INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    title       TEXT NOT NULL,
    due_date    TEXT,
    due_time    TEXT,
    description TEXT,
    priority    TEXT NOT NULL DEFAULT 'medium'
        CHECK (priority IN ('low','medium','high')),
    status      TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending','in_progress','completed')),
    category    TEXT NOT NULL DEFAULT 'other'
        CHECK (category IN ('chores','homework','sports','music','health','social','other')),
    assigned_to TEXT,
    points      INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS shopping_items (
    id         TEXT PRIMARY KEY,
    user_id    TEXT NOT NULL,
    item       TEXT NOT NULL,
    category   TEXT NOT NULL DEFAULT 'other'
        CHECK (category IN ('dairy','produce','meat','bakery','baby','household','other')),
    quantity   INTEGER NOT NULL DEFAULT 1 CHECK (quantity >= 1),
    completed  INTEGER NOT NULL DEFAULT 0,
    urgent     INTEGER NOT NULL DEFAULT 0,
    notes      TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS family_members (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    name          TEXT NOT NULL,
    age           INTEGER CHECK (age IS NULL OR age >= 0),
    gender        TEXT,
    allergies     TEXT NOT NULL DEFAULT '[]',
    medical_notes TEXT,
    school        TEXT,
    grade         TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
"""

# Columns callers may never set directly.
_PROTECTED = ("id", "user_id", "created_at", "updated_at")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class HouseholdDB:
    """SQLite-backed storage for events, reminders, tasks, shopping and family."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Household tables initialized at %s", self._db_path)

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_record(kind: RecordKind, row: sqlite3.Row) -> Record:
        table = _TABLES[kind]
        values: dict[str, Any] = {}
        for column in table.columns:
            value = row[column]
            if column in table.json_columns:
                value = json.loads(value) if value else []
            elif column in table.flag_columns:
                value = bool(value)
            values[column] = value
        return table.model(**values)

    @staticmethod
    def _to_columns(kind: RecordKind, values: dict[str, Any]) -> dict[str, Any]:
        """Validate caller field names and encode values for SQLite."""
        table = _TABLES[kind]
        unknown = [k for k in values if k not in table.columns or k in _PROTECTED]
        if unknown:
            raise StorageError(f"Unknown {kind.noun} field(s): {', '.join(sorted(unknown))}")

        encoded: dict[str, Any] = {}
        for column, value in values.items():
            if column in table.json_columns:
                value = json.dumps(list(value or []))
            elif column in table.flag_columns:
                value = int(bool(value))
            encoded[column] = value
        return encoded

    def _run(self, action: str, kind: RecordKind, fn, *args):
        """Execute fn(conn, *args) in one transaction, mapping sqlite errors."""
        try:
            with self._connect() as conn:
                return fn(conn, *args)
        except sqlite3.IntegrityError as exc:
            logger.error("Failed to %s %s: %s", action, kind.noun, exc)
            raise StorageError(f"Couldn't {action} the {kind.noun}: {exc}") from exc
        except sqlite3.Error as exc:
            logger.error("Database error during %s %s: %s", action, kind.noun, exc)
            raise StorageError(
                f"Couldn't {action} the {kind.noun} right now. Please try again."
            ) from exc

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _insert_sync(self, kind: RecordKind, user_id: str, values: dict[str, Any]) -> Record:
        table = _TABLES[kind]
        now = datetime.now().isoformat(timespec="seconds")
        columns = {
            **self._to_columns(kind, values),
            "id": uuid.uuid4().hex,
            "user_id": user_id,
            "created_at": now,
            "updated_at": now,
        }

        def insert(conn: sqlite3.Connection) -> Record:
            names = ", ".join(columns)
            marks = ", ".join("?" for _ in columns)
            conn.execute(
                f"INSERT INTO {table.name} ({names}) VALUES ({marks})",
                list(columns.values()),
            )
            row = conn.execute(
                f"SELECT * FROM {table.name} WHERE id = ?", (columns["id"],)
            ).fetchone()
            return self._row_to_record(kind, row)

        record = self._run("save", kind, insert)
        logger.info(
            "%s added for user %s: %s '%s'",
            kind.value, user_id, record.id, record.display_name,
        )
        return record

    def _update_sync(
        self, kind: RecordKind, user_id: str, record_id: str, values: dict[str, Any]
    ) -> Record:
        table = _TABLES[kind]
        columns = self._to_columns(kind, values)
        columns["updated_at"] = datetime.now().isoformat(timespec="seconds")

        def update(conn: sqlite3.Connection) -> Record:
            assignments = ", ".join(f"{c} = ?" for c in columns)
            cursor = conn.execute(
                f"UPDATE {table.name} SET {assignments} WHERE id = ? AND user_id = ?",
                [*columns.values(), record_id, user_id],
            )
            if cursor.rowcount == 0:
                raise StorageError(f"That {kind.noun} no longer exists.")
            row = conn.execute(
                f"SELECT * FROM {table.name} WHERE id = ?", (record_id,)
            ).fetchone()
            return self._row_to_record(kind, row)

        record = self._run("update", kind, update)
        logger.info("%s %s updated: %s", kind.value, record_id, sorted(values))
        return record

    def _delete_sync(self, kind: RecordKind, user_id: str, record_id: str) -> None:
        table = _TABLES[kind]

        def delete(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                f"DELETE FROM {table.name} WHERE id = ? AND user_id = ?",
                (record_id, user_id),
            )
            return cursor.rowcount

        if self._run("delete", kind, delete) == 0:
            raise StorageError(f"That {kind.noun} no longer exists.")
        logger.info("%s %s deleted for user %s", kind.value, record_id, user_id)

    def _get_sync(self, kind: RecordKind, user_id: str, record_id: str) -> Record | None:
        table = _TABLES[kind]

        def fetch(conn: sqlite3.Connection) -> sqlite3.Row | None:
            return conn.execute(
                f"SELECT * FROM {table.name} WHERE id = ? AND user_id = ?",
                (record_id, user_id),
            ).fetchone()

        row = self._run("load", kind, fetch)
        if row is None:
            return None
        return self._row_to_record(kind, row)

    def _search_sync(
        self,
        kind: RecordKind,
        user_id: str,
        term: str | None,
        filters: dict[str, Any] | None,
        limit: int | None,
    ) -> list[Record]:
        table = _TABLES[kind]
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]

        if term:
            conditions.append(f"LOWER({kind.display_field}) LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(term.strip().lower())}%")

        for column, value in self._to_columns(kind, filters or {}).items():
            if value is None:
                conditions.append(f"{column} IS NULL")
            else:
                conditions.append(f"{column} = ?")
                params.append(value)

        query = (
            f"SELECT * FROM {table.name} WHERE {' AND '.join(conditions)} "
            f"ORDER BY {table.order_by}"
        )
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        def select(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(query, params).fetchall()

        return [self._row_to_record(kind, r) for r in self._run("search", kind, select)]

    def _events_between_sync(self, user_id: str, start_date: str, end_date: str) -> list[Event]:
        table = _TABLES[RecordKind.EVENT]

        def select(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(
                f"SELECT * FROM events WHERE user_id = ? AND event_date BETWEEN ? AND ? "
                f"ORDER BY {table.order_by}",
                (user_id, start_date, end_date),
            ).fetchall()

        rows = self._run("load", RecordKind.EVENT, select)
        return [self._row_to_record(RecordKind.EVENT, r) for r in rows]

    # ------------------------------------------------------------------
    # StoragePort
    # ------------------------------------------------------------------

    async def insert(self, kind: RecordKind, user_id: str, values: dict[str, Any]) -> Record:
        return await asyncio.to_thread(self._insert_sync, kind, user_id, values)

    async def update(
        self, kind: RecordKind, user_id: str, record_id: str, values: dict[str, Any]
    ) -> Record:
        return await asyncio.to_thread(self._update_sync, kind, user_id, record_id, values)

    async def delete(self, kind: RecordKind, user_id: str, record_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, kind, user_id, record_id)

    async def get(self, kind: RecordKind, user_id: str, record_id: str) -> Record | None:
        return await asyncio.to_thread(self._get_sync, kind, user_id, record_id)

    async def search(
        self,
        kind: RecordKind,
        user_id: str,
        term: str | None = None,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        return await asyncio.to_thread(
            self._search_sync, kind, user_id, term, filters, limit
        )

    async def events_between(self, user_id: str, start_date: str, end_date: str) -> list[Event]:
        """Events dated start_date..end_date inclusive, in chronological order."""
        return await asyncio.to_thread(self._events_between_sync, user_id, start_date, end_date)
