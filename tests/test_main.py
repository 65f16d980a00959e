"""Tests for startup exit codes and application wiring."""

import json
import sys
from unittest.mock import AsyncMock, patch

import pytest

from sharpcore import main as main_module
from sharpcore.bot import SharpCoreClient
from sharpcore.config import Config, reset_config
from sharpcore.logging_config import SeverityLogger
from sharpcore.store import SqliteStore


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    reset_config()
    yield
    reset_config()


def _use_config(tmp_path, monkeypatch, **settings):
    data = {
        "botToken": "abc.def",
        "prefix": "!",
        "dataDir": str(tmp_path / "data"),
        "logDir": str(tmp_path / "logs"),
    }
    data.update(settings)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    monkeypatch.setenv("SHARPCORE_CONFIG", str(path))
    return path


@pytest.mark.asyncio
async def test_missing_config_exits_1(tmp_path, monkeypatch):
    monkeypatch.setenv("SHARPCORE_CONFIG", str(tmp_path / "absent.json"))
    assert await main_module.main() == 1


@pytest.mark.asyncio
async def test_invalid_token_exits_1(tmp_path, monkeypatch):
    _use_config(tmp_path, monkeypatch, botToken="not a token!")
    assert await main_module.main() == 1


@pytest.mark.asyncio
async def test_command_load_failure_exits_1_before_connecting(tmp_path, monkeypatch):
    units = tmp_path / "units"
    for category in ("a", "b"):
        (units / category).mkdir(parents=True)
        (units / category / "stats.py").write_text(
            "info = {'name': 'stats'}\ndef run(ctx, args):\n    pass\n"
        )
    _use_config(tmp_path, monkeypatch, commandsDir=str(units))
    with patch.object(SharpCoreClient, "start", new_callable=AsyncMock) as start:
        assert await main_module.main() == 1
    start.assert_not_awaited()


@pytest.mark.asyncio
async def test_clean_client_exit_returns_0(tmp_path, monkeypatch):
    _use_config(tmp_path, monkeypatch)
    with patch.object(SharpCoreClient, "start", new_callable=AsyncMock) as start, \
            patch.object(SharpCoreClient, "close", new_callable=AsyncMock) as close:
        assert await main_module.main() == 0
    start.assert_awaited_once_with("abc.def")
    close.assert_awaited_once()


@pytest.mark.asyncio
async def test_build_app_wires_relay_and_client(tmp_path, monkeypatch):
    config = Config(_use_config(tmp_path, monkeypatch))
    app, router, client = main_module.build_app(config, SeverityLogger())
    assert client.router is router
    assert router.app is app
    assert isinstance(app.store, SqliteStore)
    assert len(router.subscribers("message_update")) == 1
    assert len(router.subscribers("message_delete")) == 1
    await app.store.close()


def test_run_exits_with_main_code():
    with patch.object(main_module, "main", new=AsyncMock(return_value=1)):
        with pytest.raises(SystemExit) as exc:
            main_module.run()
    assert exc.value.code == 1
