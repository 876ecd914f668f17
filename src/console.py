"""
Homebase Assistant - Console front end.

A minimal chat loop over stdin/stdout for trying the router by hand. Each
reply is the ActionResult message; recent turns are kept as history so the
classifier and chat persona can follow up on the conversation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from src.adapters.local_calendar import LocalCalendarAdapter
from src.config import settings
from src.core.action_service import ActionService
from src.core.llm import Turn, is_configured, trim_history
from src.data.db import HouseholdDB

logger = logging.getLogger(__name__)

EXIT_WORDS = ("exit", "quit")

BANNER = (
    "Homebase Assistant. Ask me to schedule events, set reminders, manage the "
    "shopping list, tasks or family. Type 'exit' to leave."
)


def build_service(db_path: str | None = None) -> ActionService:
    """Wire the service to the SQLite store and the local calendar."""
    db = HouseholdDB(db_path=db_path)
    return ActionService(storage=db, calendar=LocalCalendarAdapter(db))


async def run_console(
    service: ActionService,
    user_id: str,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> list[Turn]:
    """Read-eval-print until exit/quit or end of input. Returns the history."""
    history: list[Turn] = []
    write(BANNER)
    if not is_configured():
        write("(No LLM key configured: using the built-in rules only.)")

    while True:
        try:
            line = await asyncio.to_thread(read_line, "you> ")
        except EOFError:
            break
        text = line.strip()
        if not text:
            continue
        if text.lower() in EXIT_WORDS:
            break

        result = await service.process_message(text, user_id, history=history)
        write(result.message)

        history.append({"role": "user", "content": text})
        history.append({"role": "assistant", "content": result.message})
        history = trim_history(history, settings.HISTORY_MAX_TURNS)

    write("Bye!")
    return history


def main() -> None:
    service = build_service()
    try:
        asyncio.run(run_console(service, settings.DEFAULT_USER_ID))
    except KeyboardInterrupt:
        logger.info("Console session interrupted")
