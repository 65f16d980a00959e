"""Shared fixtures: a real Config on disk and an app context with fakes."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from sharpcore.commands.base import BotContext, CommandInfo, CommandRegistry, CommandUnit
from sharpcore.config import Config
from sharpcore.events import Author, InboundMessage
from sharpcore.logging_config import SeverityLogger
from sharpcore.stats import StatsRecorder
from sharpcore.store import MemoryStore

BOT_USER = Author(id=1000, name="SharpCore", bot=True)
OWNER_ID = 42


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("SHARPCORE_BOT_TOKEN", "SHARPCORE_PREFIX", "SHARPCORE_CONFIG"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(**settings):
        data = {"botToken": "abc.DEF-123_x", "prefix": "!"}
        data.update(settings)
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data))
        return Config(path)
    return _write


@pytest.fixture
def config(write_config):
    return write_config(ownerId=str(OWNER_ID))


@pytest.fixture
def app(config):
    return BotContext(
        config=config,
        logger=MagicMock(spec=SeverityLogger),
        stats=StatsRecorder(),
        registry=CommandRegistry(),
        store=MemoryStore(),
        send_direct=AsyncMock(),
        set_presence=AsyncMock(),
    )


@pytest.fixture
def ready_app(app):
    app.bot_user = BOT_USER
    return app


def make_message(
    content="",
    author_id=7,
    bot=False,
    channel_id=500,
    guild_id=900,
    mentions_bot=False,
    name="alice",
):
    """Build an InboundMessage whose reply() is an AsyncMock."""
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    sent = MagicMock()
    sent.created_at = created + timedelta(milliseconds=120)
    sent.edit = AsyncMock()
    return InboundMessage(
        id=1,
        content=content,
        author=Author(id=author_id, name=name, bot=bot),
        channel_id=channel_id,
        guild_id=guild_id,
        channel_name="town-square",
        created_at=created,
        mentions_bot=mentions_bot,
        reply_fn=AsyncMock(return_value=sent),
    )


def make_unit(name, aliases=(), handler=None, **info):
    return CommandUnit(
        info=CommandInfo(name=name, aliases=set(aliases), **info),
        execute=handler or AsyncMock(),
        source=f"test:{name}",
    )
