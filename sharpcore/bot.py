"""Discord transport for SharpCore.

``SharpCoreClient`` is a thin discord.py client: it converts gateway
objects into the transport-neutral types in ``events`` and forwards
every event to the EventRouter. It also supplies the outbound
callables (direct messages, presence) that BotContext exposes to
commands.
"""

import sys
from typing import Any, Optional

import discord
import structlog

from .events import Author, EventRouter, InboundMessage, ReadyInfo
from .exceptions import SharpCoreError

logger = structlog.get_logger("sharpcore.bot")


def build_intents() -> discord.Intents:
    """Intents for guild messages with content, plus DMs."""
    intents = discord.Intents.default()
    intents.message_content = True
    return intents


def author_from(user: Any) -> Author:
    return Author(
        id=user.id,
        name=user.name,
        bot=bool(getattr(user, "bot", False)),
        discriminator=str(getattr(user, "discriminator", "0") or "0"),
    )


class SharpCoreClient(discord.Client):
    """discord.py client that feeds an EventRouter.

    ``exit_code`` becomes 1 when a fatal error (e.g. command loading)
    forces the client to close.
    """

    def __init__(self, *, intents: Optional[discord.Intents] = None, **options: Any):
        super().__init__(intents=intents or build_intents(), **options)
        self.router: Optional[EventRouter] = None
        self.exit_code = 0

    def attach(self, router: EventRouter) -> None:
        self.router = router

    # --- Conversion ---

    def to_inbound(self, message: discord.Message) -> InboundMessage:
        mentions_bot = self.user is not None and self.user.mentioned_in(message)
        return InboundMessage(
            id=message.id,
            content=message.content or "",
            author=author_from(message.author),
            channel_id=message.channel.id,
            guild_id=message.guild.id if message.guild else None,
            channel_name=getattr(message.channel, "name", None) or "DM",
            created_at=message.created_at,
            edited_at=message.edited_at,
            mentions_bot=mentions_bot,
            reply_fn=message.channel.send,
        )

    def ready_info(self) -> ReadyInfo:
        users = list(self.users)
        return ReadyInfo(
            user=author_from(self.user),
            users=sum(1 for u in users if not u.bot),
            bots=sum(1 for u in users if u.bot),
            channels=sum(1 for _ in self.get_all_channels()),
            guilds=len(self.guilds),
        )

    # --- Outbound, exposed through BotContext ---

    async def send_direct(self, user_id: int, text: str) -> discord.Message:
        user = self.get_user(user_id) or await self.fetch_user(user_id)
        return await user.send(text)

    async def set_presence(self, text: str) -> None:
        await self.change_presence(activity=discord.Game(name=text))

    # --- Routing ---

    async def _route(self, event: str, *args: Any) -> None:
        if self.router is None:
            logger.warning("event_before_router_attached", event_type=event)
            return
        try:
            await self.router.dispatch(event, *args)
        except SharpCoreError as e:
            self.router.app.logger.severe(
                "fatal_error_shutting_down", event_type=event, error=str(e)
            )
            self.exit_code = 1
            await self.close()

    # --- discord.py event hooks ---

    async def on_ready(self) -> None:
        await self._route("ready", self.ready_info())

    async def on_message(self, message: discord.Message) -> None:
        await self._route("message", self.to_inbound(message))

    async def on_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        await self._route("message_update", self.to_inbound(before), self.to_inbound(after))

    async def on_message_delete(self, message: discord.Message) -> None:
        await self._route("message_delete", self.to_inbound(message))

    async def on_resumed(self) -> None:
        await self._route("warn", "gateway session resumed")

    async def on_disconnect(self) -> None:
        await self._route("disconnect")

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        error = sys.exc_info()[1]
        if error is None:
            error = f"error in {event_method}"
        await self._route("error", error)
