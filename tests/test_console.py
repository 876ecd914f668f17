"""Tests for src.console - the stdin/stdout chat loop."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.console import BANNER, build_service, run_console
from src.core.action_service import ActionResult, ActionService
from src.data.db import HouseholdDB
from src.data.models import RecordKind

USER = "family-1"


def _reader(*lines):
    """read_line stand-in that raises EOFError once the lines run out."""
    remaining = list(lines)

    def read_line(prompt):
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return read_line


def _fake_service(reply="ok"):
    service = MagicMock()
    service.process_message = AsyncMock(
        return_value=ActionResult(type="chat", success=True, message=reply),
    )
    return service


class TestRunConsole:
    @pytest.mark.asyncio
    async def test_banner_reply_and_goodbye(self):
        output = []
        service = _fake_service("✅ Added to shopping list: milk")

        await run_console(service, USER, read_line=_reader("add milk", "exit"), write=output.append)

        assert output[0] == BANNER
        assert "✅ Added to shopping list: milk" in output
        assert output[-1] == "Bye!"
        service.process_message.assert_awaited_once()
        assert service.process_message.call_args.args[:2] == ("add milk", USER)

    @pytest.mark.asyncio
    async def test_notes_missing_llm_key(self):
        output = []
        await run_console(_fake_service(), USER, read_line=_reader(), write=output.append)
        assert any("No LLM key" in line for line in output)

    @pytest.mark.asyncio
    async def test_blank_lines_are_skipped(self):
        service = _fake_service()
        await run_console(service, USER, read_line=_reader("", "   ", "quit"), write=lambda _: None)
        service.process_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_end_of_input_stops(self):
        service = _fake_service()
        history = await run_console(service, USER, read_line=_reader("hello"), write=lambda _: None)
        assert history == [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "ok"},
        ]

    @pytest.mark.asyncio
    async def test_history_is_capped(self):
        service = _fake_service()
        lines = [f"message {i}" for i in range(8)]
        with patch("src.console.settings") as mock_settings:
            mock_settings.HISTORY_MAX_TURNS = 4
            history = await run_console(service, USER, read_line=_reader(*lines), write=lambda _: None)

        assert len(history) == 4
        assert history[0] == {"role": "user", "content": "message 6"}
        assert history[-1]["role"] == "assistant"


class TestBuildService:
    @pytest.mark.asyncio
    async def test_wires_storage_and_calendar(self, tmp_db_path):
        service = build_service(db_path=tmp_db_path)
        assert isinstance(service, ActionService)

        result = await service.process_message("add milk to shopping list", USER)
        assert result.success is True

        items = await HouseholdDB(db_path=tmp_db_path).search(RecordKind.SHOPPING, USER)
        assert [i.item for i in items] == ["milk"]
