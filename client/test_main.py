"""
Tests for the terminal front-end: argument parsing, store selection and
command dispatch.

Run with: pytest test_main.py -v
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from config import ClientConfig
from main import build_parser, create_session_store, run_command
from services.notifications import SoundCue, SoundSettings
from stores.session_store import MemorySessionStore, SqliteSessionStore


def make_session():
    session = MagicMock()
    for name in ("send_buzz", "start_round", "continue_round", "kick", "set_admin", "leave"):
        setattr(session, name, AsyncMock(return_value=True))
    session.notices.sound_settings = SoundSettings()
    session.invite_link.return_value = "http://buzz.test?room=r1"
    session.roster.player_list.return_value = []
    return session


class TestParser:

    def test_create(self):
        args = build_parser().parse_args(["create", "Alice", "--answer-window-ms", "7000"])
        assert args.command == "create"
        assert args.name == "Alice"
        assert args.answer_window_ms == 7000

    def test_join_name_optional(self):
        args = build_parser().parse_args(["join", "r1"])
        assert args.room_id == "r1"
        assert args.name is None

    def test_resume(self):
        args = build_parser().parse_args(["resume"])
        assert args.room_id is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCreateSessionStore:

    @pytest.mark.asyncio
    async def test_memory(self):
        store = await create_session_store(ClientConfig(SESSION_STORE="memory"))
        assert isinstance(store, MemorySessionStore)

    @pytest.mark.asyncio
    async def test_sqlite(self, tmp_path):
        path = tmp_path / "sessions.db"
        store = await create_session_store(ClientConfig(SESSION_STORE="sqlite", SESSION_DB_PATH=str(path)))
        assert isinstance(store, SqliteSessionStore)
        assert path.exists()


class TestRunCommand:

    @pytest.mark.asyncio
    async def test_empty_line_buzzes(self):
        session = make_session()
        assert await run_command(session, "\n") is True
        session.send_buzz.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_admin_commands(self):
        session = make_session()
        await run_command(session, "s")
        await run_command(session, "c")
        await run_command(session, "k  Bob ")
        await run_command(session, "a Carol Smith")

        session.start_round.assert_awaited_once()
        session.continue_round.assert_awaited_once()
        session.kick.assert_awaited_once_with("Bob")
        session.set_admin.assert_awaited_once_with("Carol Smith")

    @pytest.mark.asyncio
    async def test_kick_without_name_shows_help(self, capsys):
        session = make_session()
        await run_command(session, "k")
        session.kick.assert_not_called()
        assert "Commands:" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_sound_toggles(self, capsys):
        session = make_session()
        settings = session.notices.sound_settings

        await run_command(session, "m win")
        assert not settings.is_enabled(SoundCue.WIN)

        await run_command(session, "m")
        assert not settings.any_enabled
        await run_command(session, "m")
        assert settings.is_enabled(SoundCue.LOSE)
        assert not settings.is_enabled(SoundCue.WIN)

        await run_command(session, "m kazoo")
        assert "Unknown cue" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_link(self, capsys):
        session = make_session()
        await run_command(session, "l")
        assert "http://buzz.test?room=r1" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_quit_leaves(self):
        session = make_session()
        assert await run_command(session, "q") is False
        session.leave.assert_awaited_once()
