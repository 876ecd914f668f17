"""Storage port - abstract interface for household record persistence.

Core modules depend on this protocol, never on a specific database.
Every operation is scoped by user id.
"""

from __future__ import annotations

from typing import Any, Protocol

from src.data.models import Event, Record, RecordKind


class StorageError(Exception):
    """Raised when the storage collaborator rejects or fails an operation.

    The message is meant to be shown to the user verbatim (e.g. a
    constraint violation), so adapters keep it short and free of internals.
    """


class StoragePort(Protocol):
    """Abstract storage interface used by core modules."""

    async def insert(self, kind: RecordKind, user_id: str, values: dict[str, Any]) -> Record: ...

    async def update(
        self, kind: RecordKind, user_id: str, record_id: str, values: dict[str, Any]
    ) -> Record: ...

    async def delete(self, kind: RecordKind, user_id: str, record_id: str) -> None: ...

    async def get(self, kind: RecordKind, user_id: str, record_id: str) -> Record | None: ...

    async def search(
        self,
        kind: RecordKind,
        user_id: str,
        term: str | None = None,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[Record]: ...

    async def events_between(
        self, user_id: str, start_date: str, end_date: str
    ) -> list[Event]: ...
