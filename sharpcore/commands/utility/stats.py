"""Shows bot statistics."""

from sharpcore.utils import format_duration

info = {
    "name": "stats",
    "aliases": ["info"],
    "usage": "stats",
    "description": "Shows bot statistics",
}


async def run(ctx, args):
    stats = ctx.app.stats
    uptime = stats.uptime()
    lines = [
        ":bar_chart: **Stats**",
        f"Uptime: {format_duration(uptime) if uptime is not None else 'starting'}",
        f"Messages sent: {stats.get('messages-sent', 0)}",
        f"Messages received: {stats.get('messages-received', 0)}",
        f"Mentions: {stats.get('mentions', 0)}",
        f"Commands run: {stats.get('command-executions', 0)}"
        f" ({stats.get('command-errors', 0)} failed)",
        f"Guilds: {stats.get('guilds', 0)}",
        f"Commands loaded: {len(ctx.app.registry)}",
    ]
    await ctx.reply("\n".join(lines))
