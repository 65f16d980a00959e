"""Lists commands, or shows details for one."""

from collections import defaultdict

from sharpcore.commands.base import CommandInfo

info = CommandInfo(
    name="help",
    aliases={"commands"},
    usage="help [command]",
    description="Shows the list of commands or help for one command",
)


def _detail(prefix, unit):
    lines = [f"**{prefix}{unit.info.usage or unit.name}**"]
    if unit.info.description:
        lines.append(unit.info.description)
    if unit.info.aliases:
        aliases = ", ".join(f"`{a}`" for a in sorted(unit.info.aliases))
        lines.append(f"Aliases: {aliases}")
    return "\n".join(lines)


async def run(ctx, args):
    registry = ctx.app.registry
    prefix = ctx.prefix

    if args and args[0]:
        wanted = args[0]
        if wanted.startswith(prefix):
            wanted = wanted[len(prefix):]
        unit = registry.get(wanted)
        if unit is None:
            await ctx.reply(f":x: Unknown command `{wanted}`")
            return
        await ctx.reply(_detail(prefix, unit))
        return

    by_category = defaultdict(list)
    for unit in registry.commands:
        by_category[unit.info.category].append(unit)

    lines = []
    for category in sorted(by_category):
        lines.append(f"__**{category}**__")
        for unit in by_category[category]:
            desc = f" - {unit.info.description}" if unit.info.description else ""
            lines.append(f"`{prefix}{unit.name}`{desc}")
    lines.append(f"\nUse `{prefix}help <command>` for details.")
    await ctx.reply("\n".join(lines))
