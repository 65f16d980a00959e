"""Moderator relay for mafia game channels.

Moderators of a guild get a direct message whenever someone else edits
or deletes a message in one of the guild's watched channels. The
moderator and channel lists live in the key-value store so the
``mafia`` command and this relay share them.
"""

from typing import List, Optional

import structlog

from .commands.base import BotContext
from .events import EventRouter, InboundMessage
from .store import KeyValueStore

logger = structlog.get_logger("sharpcore.moderation")

# Discord rejects messages over 2000 characters
MAX_DM_LENGTH = 2000


def moderators_key(guild_id: int) -> str:
    return f"mafia:moderators:{guild_id}"


def channels_key(guild_id: int) -> str:
    return f"mafia:channels:{guild_id}"


async def get_moderators(store: KeyValueStore, guild_id: int) -> List[int]:
    return [int(m) for m in await store.get(moderators_key(guild_id), [])]


async def get_watched_channels(store: KeyValueStore, guild_id: int) -> List[int]:
    return [int(c) for c in await store.get(channels_key(guild_id), [])]


async def add_id(store: KeyValueStore, key: str, value: int) -> bool:
    """Append ``value`` to the list at ``key``. False if already present."""
    current = [int(v) for v in await store.get(key, [])]
    if value in current:
        return False
    current.append(value)
    await store.set(key, current)
    return True


async def remove_id(store: KeyValueStore, key: str, value: int) -> bool:
    """Remove ``value`` from the list at ``key``. False if it was absent."""
    current = [int(v) for v in await store.get(key, [])]
    if value not in current:
        return False
    current.remove(value)
    await store.set(key, current)
    return True


def _quote(text: str) -> str:
    if not text:
        return "> *(no text)*"
    return "\n".join(f"> {line}" for line in text.split("\n"))


def _truncate(text: str) -> str:
    if len(text) <= MAX_DM_LENGTH:
        return text
    return text[: MAX_DM_LENGTH - 3] + "..."


class ModeratorRelay:
    """Subscriber for message_update and message_delete events."""

    def __init__(self, app: BotContext):
        self.app = app

    def attach(self, router: EventRouter) -> None:
        router.subscribe("message_update", self.on_message_update)
        router.subscribe("message_delete", self.on_message_delete)

    async def _moderators_to_notify(self, message: InboundMessage) -> Optional[List[int]]:
        """Moderators to notify about ``message``, or None if it isn't relayed."""
        if message.guild_id is None or message.author.bot:
            return None
        store = self.app.store
        if message.channel_id not in await get_watched_channels(store, message.guild_id):
            return None
        moderators = await get_moderators(store, message.guild_id)
        if message.author.id in moderators:
            return None
        return moderators

    async def on_message_update(self, before: InboundMessage, after: InboundMessage) -> None:
        if before.content == after.content:
            return  # embed unfurl, pin, etc.
        moderators = await self._moderators_to_notify(after)
        if not moderators:
            return
        text = (
            f":pencil: **{after.author.tag}** edited a message in "
            f"#{after.channel_name or after.channel_id}\n"
            f"**Before:**\n{_quote(before.content)}\n"
            f"**After:**\n{_quote(after.content)}"
        )
        await self._relay(moderators, text, kind="edit", message=after)

    async def on_message_delete(self, message: InboundMessage) -> None:
        moderators = await self._moderators_to_notify(message)
        if not moderators:
            return
        text = (
            f":wastebasket: **{message.author.tag}** deleted a message in "
            f"#{message.channel_name or message.channel_id}\n"
            f"{_quote(message.content)}"
        )
        await self._relay(moderators, text, kind="delete", message=message)

    async def _relay(
        self, moderators: List[int], text: str, kind: str, message: InboundMessage
    ) -> None:
        text = _truncate(text)
        delivered = 0
        for moderator_id in moderators:
            try:
                await self.app.send_direct(moderator_id, text)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "relay_dm_failed",
                    moderator_id=moderator_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        self.app.stats.increment(f"relayed-{kind}s")
        logger.info(
            "relay_sent",
            kind=kind,
            guild_id=message.guild_id,
            channel_id=message.channel_id,
            delivered=delivered,
            moderators=len(moderators),
        )
