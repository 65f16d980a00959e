"""Owner-only: reload every command unit."""

from sharpcore.exceptions import CommandLoadError

info = {
    "name": "reload",
    "usage": "reload",
    "description": "Reloads all commands",
    "owner_only": True,
}


async def run(ctx, args):
    try:
        count = ctx.app.registry.reload()
    except CommandLoadError as e:
        ctx.app.logger.warning("command_reload_failed", error=str(e))
        await ctx.reply(f":x: Reload failed, keeping the old commands:\n`{e.message}`")
        return
    ctx.app.logger.info("commands_reloaded", commands=count)
    await ctx.reply(f":white_check_mark: Reloaded {count} commands.")
