"""Tests for CommandRegistry: registration, lookup, loading and execution."""

from textwrap import dedent
from unittest.mock import AsyncMock, MagicMock

import pytest

from sharpcore.commands import DEFAULT_COMMANDS
from sharpcore.commands.base import CommandContext, CommandInfo, CommandRegistry
from sharpcore.exceptions import CommandLoadError, DuplicateCommandError

from conftest import OWNER_ID, make_message, make_unit


def _write_unit(directory, relpath, body):
    path = directory / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dedent(body))
    return path


UNIT = """
info = {{"name": "{name}", "aliases": {aliases}, "description": "{desc}"}}

def run(ctx, args):
    return None
"""


# -------------------------------------------------------------------
# Registration and lookup
# -------------------------------------------------------------------

class TestRegistration:

    def test_name_and_aliases_resolve_to_same_unit(self):
        registry = CommandRegistry()
        unit = make_unit("help", aliases=["h", "commands"])
        registry.register(unit)
        assert registry.get("help") is unit
        assert registry.get("h") is unit
        assert registry.get("commands") is unit
        assert len(registry) == 1
        assert registry.names == frozenset({"help", "h", "commands"})

    def test_lookup_is_case_insensitive(self):
        registry = CommandRegistry()
        unit = make_unit("ping")
        registry.register(unit)
        assert registry.get("PiNg") is unit
        assert "PING" in registry

    def test_unknown_name_returns_none(self):
        registry = CommandRegistry()
        registry.register(make_unit("ping"))
        assert registry.get("!ping") is None
        assert registry.get("") is None
        assert registry.get(None) is None

    def test_info_normalizes_case(self):
        info = CommandInfo(name="Stats", aliases=["INFO"])
        assert info.name == "stats"
        assert info.aliases == frozenset({"info"})

    def test_info_rejects_whitespace_name(self):
        with pytest.raises(ValueError):
            CommandInfo(name="two words")

    def test_duplicate_name_raises(self):
        registry = CommandRegistry()
        first = make_unit("stats")
        registry.register(first)
        with pytest.raises(DuplicateCommandError) as exc:
            registry.register(make_unit("stats"))
        assert exc.value.key == "stats"
        assert registry.get("stats") is first

    def test_alias_colliding_with_name_raises(self):
        registry = CommandRegistry()
        registry.register(make_unit("info"))
        with pytest.raises(DuplicateCommandError):
            registry.register(make_unit("stats", aliases=["info"]))

    def test_alias_colliding_with_alias_leaves_registry_unchanged(self):
        registry = CommandRegistry()
        registry.register(make_unit("vote", aliases=["v"]))
        with pytest.raises(DuplicateCommandError):
            registry.register(make_unit("verify", aliases=["ver", "v"]))
        assert registry.get("ver") is None
        assert registry.get("verify") is None
        assert len(registry) == 1

    def test_alias_equal_to_own_name_raises(self):
        registry = CommandRegistry()
        with pytest.raises(DuplicateCommandError):
            registry.register(make_unit("ping", aliases=["ping"]))

    def test_commands_sorted_and_unique(self):
        registry = CommandRegistry()
        registry.register(make_unit("zeta", aliases=["z"]))
        registry.register(make_unit("alpha", aliases=["a", "al"]))
        assert [u.name for u in registry.commands] == ["alpha", "zeta"]


# -------------------------------------------------------------------
# Loading
# -------------------------------------------------------------------

class TestDirectoryLoading:

    def test_scan_registers_units_with_categories(self, tmp_path):
        _write_unit(tmp_path, "utility/ping.py", UNIT.format(name="ping", aliases="[]", desc="Pings"))
        _write_unit(tmp_path, "mafia_game/vote.py", UNIT.format(name="vote", aliases='["v"]', desc="Votes"))
        _write_unit(tmp_path, "top.py", UNIT.format(name="top", aliases="[]", desc=""))
        _write_unit(tmp_path, "utility/_helpers.py", "x = 1\n")

        registry = CommandRegistry()
        assert registry.load_commands(tmp_path) == 3
        assert registry.get("ping").info.category == "Utility"
        assert registry.get("v").info.category == "Mafia Game"
        assert registry.get("top").info.category == "General"
        assert registry.loaded

    def test_two_files_same_name_fail(self, tmp_path):
        _write_unit(tmp_path, "a/stats.py", UNIT.format(name="stats", aliases="[]", desc=""))
        _write_unit(tmp_path, "b/stats.py", UNIT.format(name="stats", aliases="[]", desc=""))
        registry = CommandRegistry()
        with pytest.raises(DuplicateCommandError):
            registry.load_commands(tmp_path)
        assert len(registry) == 0
        assert not registry.loaded

    def test_missing_info_fails(self, tmp_path):
        _write_unit(tmp_path, "bad.py", "def run(ctx, args):\n    pass\n")
        with pytest.raises(CommandLoadError, match="does not define 'info'"):
            CommandRegistry().load_commands(tmp_path)

    def test_missing_name_fails(self, tmp_path):
        _write_unit(tmp_path, "bad.py", "info = {'usage': 'x'}\ndef run(ctx, args):\n    pass\n")
        with pytest.raises(CommandLoadError, match="info.name"):
            CommandRegistry().load_commands(tmp_path)

    def test_missing_run_fails(self, tmp_path):
        _write_unit(tmp_path, "bad.py", "info = {'name': 'bad'}\nrun = 'not callable'\n")
        with pytest.raises(CommandLoadError, match="callable 'run'"):
            CommandRegistry().load_commands(tmp_path)

    def test_import_error_fails(self, tmp_path):
        _write_unit(tmp_path, "bad.py", "raise RuntimeError('boom')\n")
        with pytest.raises(CommandLoadError, match="boom"):
            CommandRegistry().load_commands(tmp_path)

    def test_missing_directory_fails(self, tmp_path):
        with pytest.raises(CommandLoadError, match="does not exist"):
            CommandRegistry().load_commands(tmp_path / "nope")

    def test_reload_picks_up_new_units(self, tmp_path):
        _write_unit(tmp_path, "ping.py", UNIT.format(name="ping", aliases="[]", desc=""))
        registry = CommandRegistry()
        registry.load_commands(tmp_path)
        _write_unit(tmp_path, "pong.py", UNIT.format(name="pong", aliases="[]", desc=""))
        assert registry.reload() == 2
        assert registry.get("pong") is not None

    def test_failed_reload_keeps_old_index(self, tmp_path):
        _write_unit(tmp_path, "ping.py", UNIT.format(name="ping", aliases="[]", desc=""))
        registry = CommandRegistry()
        registry.load_commands(tmp_path)
        old = registry.get("ping")
        _write_unit(tmp_path, "clash.py", UNIT.format(name="clash", aliases='["ping"]', desc=""))
        with pytest.raises(DuplicateCommandError):
            registry.reload()
        assert registry.get("ping") is old
        assert registry.get("clash") is None

    def test_reload_before_load_raises(self):
        with pytest.raises(RuntimeError):
            CommandRegistry().reload()


class TestModuleLoading:

    def test_default_commands_load(self):
        registry = CommandRegistry()
        assert registry.load_modules(DEFAULT_COMMANDS) == len(DEFAULT_COMMANDS)
        assert registry.get("commands") is registry.get("help")
        assert registry.get("mm") is registry.get("mafia")
        assert registry.get("ping").info.category == "Utility"
        assert registry.get("vote").info.category == "Mafia"

    def test_unknown_module_fails(self):
        with pytest.raises(CommandLoadError, match="failed to import"):
            CommandRegistry().load_modules(["sharpcore.commands.utility.nope"])

    def test_reload_modules(self):
        registry = CommandRegistry()
        registry.load_modules(DEFAULT_COMMANDS)
        assert registry.reload() == len(DEFAULT_COMMANDS)


# -------------------------------------------------------------------
# Execution
# -------------------------------------------------------------------

class TestExecute:

    def _ctx(self, app, unit, **msg):
        return CommandContext(app=app, message=make_message(**msg), command=unit)

    @pytest.mark.asyncio
    async def test_async_handler_receives_args(self, app):
        unit = make_unit("cmd")
        ctx = self._ctx(app, unit)
        assert await app.registry.execute(ctx, unit, ["a", "b"]) is True
        unit.execute.assert_awaited_once_with(ctx, ["a", "b"])
        assert app.stats.get("command-executions") == 1

    @pytest.mark.asyncio
    async def test_sync_handler_supported(self, app):
        handler = MagicMock(return_value=None)
        unit = make_unit("cmd", handler=handler)
        assert await app.registry.execute(self._ctx(app, unit), unit, []) is True
        handler.assert_called_once()

    @pytest.mark.asyncio
    async def test_handler_error_is_contained(self, app):
        unit = make_unit("boom", handler=AsyncMock(side_effect=ValueError("bad")))
        ctx = self._ctx(app, unit)
        assert await app.registry.execute(ctx, unit, []) is False
        app.logger.severe.assert_called_once()
        assert app.logger.severe.call_args.kwargs["command"] == "boom"
        assert app.stats.get("command-errors") == 1
        ctx.message.reply_fn.assert_awaited_once()
        assert "boom" in ctx.message.reply_fn.call_args.args[0]

    @pytest.mark.asyncio
    async def test_failure_notice_error_is_swallowed(self, app):
        unit = make_unit("boom", handler=AsyncMock(side_effect=ValueError("bad")))
        ctx = self._ctx(app, unit)
        ctx.message.reply_fn.side_effect = ConnectionError("gone")
        assert await app.registry.execute(ctx, unit, []) is False

    @pytest.mark.asyncio
    async def test_owner_only_denied_for_others(self, app):
        unit = make_unit("reload", owner_only=True)
        ctx = self._ctx(app, unit, author_id=7)
        assert await app.registry.execute(ctx, unit, []) is False
        unit.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_owner_only_allowed_for_owner(self, app):
        unit = make_unit("reload", owner_only=True)
        ctx = self._ctx(app, unit, author_id=OWNER_ID)
        assert await app.registry.execute(ctx, unit, []) is True
        unit.execute.assert_awaited_once()
