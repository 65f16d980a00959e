"""Command unit framework for SharpCore.

Provides CommandInfo/CommandUnit, the BotContext application context,
the CommandRegistry, and the default list of built-in command modules.
"""

from .base import (
    BotContext,
    CommandContext,
    CommandInfo,
    CommandRegistry,
    CommandUnit,
)

# Built-in units, registered in this order when config has no
# "commands" list or "commandsDir".
DEFAULT_COMMANDS = (
    "sharpcore.commands.utility.help",
    "sharpcore.commands.utility.ping",
    "sharpcore.commands.utility.stats",
    "sharpcore.commands.utility.reload",
    "sharpcore.commands.mafia.mafia",
    "sharpcore.commands.mafia.vote",
)

__all__ = [
    "BotContext",
    "CommandContext",
    "CommandInfo",
    "CommandRegistry",
    "CommandUnit",
    "DEFAULT_COMMANDS",
]
