"""Round-trip latency check with a small animation."""

from sharpcore.utils import play_animation

info = {
    "name": "ping",
    "usage": "ping",
    "description": "Pings the bot",
}

FRAME_INTERVAL = 0.5


async def run(ctx, args):
    sent = await ctx.reply(":stopwatch: Ping")
    if sent is None:
        return
    latency = None
    if ctx.message.created_at is not None:
        created = getattr(sent, "created_at", None)
        if created is not None:
            latency = int((created - ctx.message.created_at).total_seconds() * 1000)
    result = f"`{latency}ms`" if latency is not None else "`?ms`"
    await play_animation(sent, FRAME_INTERVAL, [
        ":stopwatch: __P__ing",
        ":stopwatch: __Pi__ng",
        ":stopwatch: __Pin__g",
        ":stopwatch: __Ping__",
        f":stopwatch: ***Pong!*** {result}",
    ])
