"""Event routing for SharpCore.

The transport (``bot.SharpCoreClient``) turns gateway events into the
plain types below and hands them to ``EventRouter.dispatch``. The
router fans each event out to every subscriber, each behind its own
error boundary, and owns the built-in subscribers: startup, stats
instrumentation and command dispatch.

Key classes:
    Author, InboundMessage, ReadyInfo: transport-neutral event data.
    EventRouter: subscriber fan-out and the command path.

Key functions:
    parse_command: prefix strip + split into (name, args).
"""

import inspect
import re
import traceback
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import structlog

from .commands import DEFAULT_COMMANDS
from .commands.base import BotContext, CommandContext
from .exceptions import SharpCoreError
from .logging_config import shorten_paths
from .utils import invite_url

logger = structlog.get_logger("sharpcore.bot")

EVENTS = frozenset({
    "ready", "message", "message_update", "message_delete",
    "error", "warn", "disconnect",
})

# Single space or newline; runs of delimiters yield empty arguments
_ARG_SPLIT = re.compile(r"[ \n]")


@dataclass(frozen=True)
class Author:
    id: int
    name: str
    bot: bool = False
    discriminator: str = "0"

    @property
    def tag(self) -> str:
        if self.discriminator in ("", "0"):
            return self.name
        return f"{self.name}#{self.discriminator}"


@dataclass
class InboundMessage:
    """One message notification. Not kept beyond its event."""

    id: int
    content: str
    author: Author
    channel_id: int
    guild_id: Optional[int] = None
    channel_name: str = ""
    created_at: Optional[datetime] = None
    edited_at: Optional[datetime] = None
    mentions_bot: bool = False
    reply_fn: Optional[Callable[[str], Awaitable[Any]]] = field(
        default=None, repr=False, compare=False
    )

    async def reply(self, text: str) -> Any:
        """Send ``text`` to this message's channel."""
        if self.reply_fn is None:
            raise RuntimeError(f"Message {self.id} has no reply channel")
        return await self.reply_fn(text)


@dataclass(frozen=True)
class ReadyInfo:
    """Snapshot the gateway gives us when a session becomes ready."""

    user: Author
    users: int = 0
    bots: int = 0
    channels: int = 0
    guilds: int = 0


class RouterState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


def parse_command(content: str, prefix: str) -> Optional[Tuple[str, List[str]]]:
    """Split a prefixed message into a lowercase command name and args.

    The prefix is a literal match stripped once ("!!help" → "!help").
    Returns None when ``content`` does not start with ``prefix``.
    """
    if not prefix or not content.startswith(prefix):
        return None
    split = _ARG_SPLIT.split(content)
    name = split[0][len(prefix):].lower()
    return name, split[1:]


Subscriber = Callable[..., Any]


class EventRouter:
    """Routes transport events to subscribers and commands.

    Built-in subscribers are attached at construction; features such
    as the moderator relay add their own with ``subscribe``.

    Args:
        app: Shared application context.
    """

    def __init__(self, app: BotContext):
        self.app = app
        self.state = RouterState.UNINITIALIZED
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)

        self.subscribe("ready", self.on_ready)
        self.subscribe("message", self.on_message)
        self.subscribe("error", self.on_transport_error)
        self.subscribe("warn", self.on_transport_warning)
        self.subscribe("disconnect", self.on_disconnect)

    # --- Subscription ---

    def subscribe(self, event: str, handler: Subscriber) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown event type: {event}")
        self._subscribers[event].append(handler)

    def subscribers(self, event: str) -> List[Subscriber]:
        return list(self._subscribers.get(event, ()))

    async def dispatch(self, event: str, *args: Any) -> None:
        """Call every subscriber of ``event`` in registration order.

        A subscriber that raises is logged as severe and skipped; the
        rest still run. Fatal SharpCoreErrors (configuration, command
        loading) are re-raised after the fan-out so the transport can
        shut down.
        """
        fatal: Optional[SharpCoreError] = None
        for handler in self.subscribers(event):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.app.logger.severe(
                    "event_handler_failed",
                    event_type=event,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                    error_type=type(e).__name__,
                    traceback=shorten_paths(traceback.format_exc()),
                )
                if isinstance(e, SharpCoreError) and e.is_fatal and fatal is None:
                    fatal = e
        if fatal is not None:
            raise fatal

    # --- Lifecycle ---

    def load_commands(self) -> int:
        """Populate the registry from config. Only the first call loads.

        Raises:
            CommandLoadError: On a malformed unit or a name/alias clash.
        """
        registry = self.app.registry
        if registry.loaded:
            return len(registry)
        config = self.app.config
        if config.commands_dir is not None:
            return registry.load_commands(config.commands_dir)
        return registry.load_modules(config.command_modules or DEFAULT_COMMANDS)

    async def on_ready(self, info: ReadyInfo) -> None:
        """One-time startup; later calls (gateway reconnects) are no-ops."""
        self.app.bot_user = info.user
        if self.state is RouterState.READY:
            self.app.stats.increment("reconnects")
            logger.info("ready_repeated", reconnects=self.app.stats.get("reconnects"))
            return

        self.load_commands()

        self.app.logger.info(
            "bot_stats",
            user=info.user.tag,
            user_id=info.user.id,
            users=info.users,
            bots=info.bots,
            channels=info.channels,
            guilds=info.guilds,
        )
        self.app.stats.mark_started()
        self.app.stats.set("guilds", info.guilds)

        try:
            await self.app.set_presence(f"{self.app.config.prefix}help")
        except Exception as e:
            logger.warning("presence_update_failed", error=str(e))

        self.state = RouterState.READY
        self.app.logger.info(
            "bot_loaded",
            commands=len(self.app.registry),
            invite=invite_url(info.user.id, self.app.config.invite_permissions),
        )

    # --- Messages ---

    async def on_message(self, message: InboundMessage) -> None:
        """Record stats, then dispatch the message if it is a command."""
        app = self.app
        is_self = app.is_ready and message.author.id == app.bot_user.id
        app.stats.increment("messages-sent" if is_self else "messages-received")
        if message.mentions_bot:
            app.stats.increment("mentions")

        parsed = parse_command(message.content, app.config.prefix)
        if parsed is None or message.author.bot:
            return

        name, args = parsed
        command = app.registry.get(name)
        if command is None:
            logger.debug("unknown_command", command=name)
            return

        ctx = CommandContext(app=app, message=message, command=command, invoked_as=name)
        await app.registry.execute(ctx, command, args)

    # --- Transport problems ---

    def on_transport_error(self, error: Any) -> None:
        if isinstance(error, BaseException):
            text = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
            self.app.logger.severe("transport_error", traceback=shorten_paths(text))
        else:
            self.app.logger.severe("transport_error", error=str(error))

    def on_transport_warning(self, warning: Any) -> None:
        self.app.logger.warning("transport_warning", warning=str(warning))

    def on_disconnect(self, *details: Any) -> None:
        self.app.stats.increment("disconnects")
        self.app.logger.warning(
            "transport_disconnected", details=[str(d) for d in details]
        )
