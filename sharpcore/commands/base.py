"""Base types for the command unit framework.

A command unit is a module exposing ``info`` (metadata) and
``run(ctx, args)``. Units are wrapped in ``CommandUnit`` and indexed by
a ``CommandRegistry`` under their name and every alias.

Key classes:
    CommandInfo: Validated command metadata.
    CommandUnit: A registered, immutable command.
    BotContext: Application context shared by the router and commands.
    CommandContext: Per-invocation context handed to ``run``.
    CommandRegistry: name/alias index with load, lookup and execution.
"""

from __future__ import annotations

import inspect
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Tuple,
)

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import DuplicateCommandError
from ..logging_config import shorten_paths

if TYPE_CHECKING:
    from ..config import Config
    from ..events import Author, InboundMessage
    from ..logging_config import SeverityLogger
    from ..stats import StatsRecorder
    from ..store import KeyValueStore

logger = structlog.get_logger("sharpcore.commands")

CommandHandler = Callable[["CommandContext", List[str]], Optional[Awaitable[None]]]

FAILURE_NOTICE = ":warning: Something went wrong while running `{name}`."


class CommandInfo(BaseModel):
    """Metadata a command unit declares about itself.

    Names and aliases are stored lowercase; the dispatcher lowercases
    the invoked token before lookup.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    aliases: FrozenSet[str] = Field(default_factory=frozenset)
    usage: str = ""
    description: str = ""
    category: str = "General"
    owner_only: bool = False

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        value = value.strip().lower()
        if not value or any(c.isspace() for c in value):
            raise ValueError("command name must be a single non-empty word")
        return value

    @field_validator("aliases", mode="before")
    @classmethod
    def _normalize_aliases(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = [value]
        aliases = []
        for alias in value:
            if not isinstance(alias, str) or not alias.strip():
                raise ValueError("aliases must be non-empty strings")
            aliases.append(alias.strip().lower())
        return frozenset(aliases)

    @property
    def lookup_keys(self) -> Tuple[str, ...]:
        """Name followed by the sorted aliases."""
        return (self.name, *sorted(self.aliases))


@dataclass(frozen=True)
class CommandUnit:
    """A registered command: metadata, handler and where it came from."""

    info: CommandInfo
    execute: CommandHandler
    source: str = ""

    @property
    def name(self) -> str:
        return self.info.name


@dataclass
class BotContext:
    """Application context, built once in main() and passed by reference.

    ``bot_user`` is only known once the gateway reports ready; reading
    it earlier raises RuntimeError.
    """

    config: "Config"
    logger: "SeverityLogger"
    stats: "StatsRecorder"
    registry: "CommandRegistry"
    store: "KeyValueStore"
    send_direct: Callable[[int, str], Awaitable[Any]]
    set_presence: Callable[[str], Awaitable[Any]]
    _bot_user: Optional["Author"] = field(default=None, repr=False)

    @property
    def bot_user(self) -> "Author":
        if self._bot_user is None:
            raise RuntimeError("Bot not ready: bot_user not available")
        return self._bot_user

    @bot_user.setter
    def bot_user(self, user: "Author") -> None:
        self._bot_user = user

    @property
    def is_ready(self) -> bool:
        return self._bot_user is not None

    def is_owner(self, user_id: int) -> bool:
        owner = self.config.owner_id
        return owner is not None and owner == user_id


@dataclass
class CommandContext:
    """Everything a command's ``run`` needs for one invocation."""

    app: BotContext
    message: "InboundMessage"
    command: CommandUnit
    invoked_as: str = ""

    @property
    def prefix(self) -> str:
        return self.app.config.prefix

    async def reply(self, text: str) -> Any:
        """Send ``text`` to the channel the command came from."""
        return await self.message.reply(text)


class CommandRegistry:
    """Maps command names and aliases to command units.

    Written during a load (startup or ``reload``), read-only in between.
    Every name and alias resolves to exactly one unit; a second unit
    claiming an existing key raises DuplicateCommandError.
    """

    def __init__(self):
        self._index: Dict[str, CommandUnit] = {}
        self._units: List[CommandUnit] = []
        self._last_load: Optional[Tuple[str, Any]] = None

    # --- Registration ---

    def register(self, unit: CommandUnit) -> None:
        """Index ``unit`` under its name and aliases.

        Raises:
            DuplicateCommandError: If any key is already taken. The
                registry is left unchanged.
        """
        keys = unit.info.lookup_keys
        if len(set(keys)) != len(keys):
            raise DuplicateCommandError(
                f"Command '{unit.name}' lists its own name as an alias",
                key=unit.name,
                source=unit.source,
            )
        for key in keys:
            existing = self._index.get(key)
            if existing is not None:
                raise DuplicateCommandError(
                    f"Command key '{key}' from {unit.source or unit.name} "
                    f"is already registered by {existing.source or existing.name}",
                    key=key,
                    existing=existing.source or existing.name,
                    source=unit.source,
                )
        for key in keys:
            self._index[key] = unit
        self._units.append(unit)
        logger.debug(
            "command_registered",
            command=unit.name,
            aliases=sorted(unit.info.aliases),
            source=unit.source,
        )

    def register_all(self, units: Iterable[CommandUnit]) -> None:
        for unit in units:
            self.register(unit)

    def load_commands(self, directory: Path) -> int:
        """Replace the registry contents with the units found under ``directory``.

        Subdirectories are categories. Returns the number of units.

        Raises:
            CommandLoadError: A unit is malformed or failed to import.
            DuplicateCommandError: Two units share a name or alias.
        """
        from .loader import scan_directory

        self._swap_in(scan_directory(Path(directory)))
        self._last_load = ("directory", Path(directory))
        logger.info(
            "commands_loaded", source=str(directory), commands=len(self._units)
        )
        return len(self._units)

    def load_modules(self, module_names: Iterable[str], reload: bool = False) -> int:
        """Replace the registry contents with units from dotted module paths.

        Raises:
            CommandLoadError: A module is missing or malformed.
            DuplicateCommandError: Two units share a name or alias.
        """
        from .loader import import_modules

        names = list(module_names)
        self._swap_in(import_modules(names, reload=reload))
        self._last_load = ("modules", names)
        logger.info("commands_loaded", source="modules", commands=len(self._units))
        return len(self._units)

    def reload(self) -> int:
        """Repeat the last load from scratch.

        The current index stays active if the new load fails; the
        error propagates to the caller.
        """
        if self._last_load is None:
            raise RuntimeError("Commands were never loaded")
        kind, arg = self._last_load
        if kind == "directory":
            return self.load_commands(arg)
        return self.load_modules(arg, reload=True)

    def _swap_in(self, units: Iterable[CommandUnit]) -> None:
        fresh = CommandRegistry()
        fresh.register_all(units)
        self._index = fresh._index
        self._units = fresh._units

    # --- Lookup ---

    def get(self, name: str) -> Optional[CommandUnit]:
        """Look up a unit by name or alias. Unknown names return None."""
        if not isinstance(name, str):
            return None
        return self._index.get(name.lower())

    @property
    def commands(self) -> List[CommandUnit]:
        """Unique registered units, sorted by name."""
        return sorted(self._units, key=lambda u: u.name)

    @property
    def names(self) -> FrozenSet[str]:
        """Every registered name and alias."""
        return frozenset(self._index.keys())

    @property
    def loaded(self) -> bool:
        return self._last_load is not None

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    # --- Execution ---

    async def execute(
        self, ctx: CommandContext, command: CommandUnit, args: List[str]
    ) -> bool:
        """Run ``command`` with ``args``, containing any failure.

        Returns True if the handler completed, False if it raised or
        the caller was not allowed to run it. Handler exceptions are
        logged as severe and reported in the originating channel; they
        never propagate.
        """
        app = ctx.app
        app.stats.increment("command-executions")

        if command.info.owner_only and not app.is_owner(ctx.message.author.id):
            logger.info(
                "command_denied",
                command=command.name,
                author_id=ctx.message.author.id,
            )
            await self._send_notice(
                ctx, ":no_entry: That command is restricted to the bot owner."
            )
            return False

        try:
            result = command.execute(ctx, list(args))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            app.stats.increment("command-errors")
            app.logger.severe(
                "command_failed",
                command=command.name,
                source=command.source,
                error=str(e),
                error_type=type(e).__name__,
                traceback=shorten_paths(traceback.format_exc()),
            )
            await self._send_notice(ctx, FAILURE_NOTICE.format(name=command.name))
            return False

        logger.info(
            "command_executed",
            command=command.name,
            invoked_as=ctx.invoked_as or command.name,
            args=len(args),
        )
        return True

    @staticmethod
    async def _send_notice(ctx: CommandContext, text: str) -> None:
        try:
            await ctx.reply(text)
        except Exception as e:
            logger.warning(
                "command_notice_failed", command=ctx.command.name, error=str(e)
            )
