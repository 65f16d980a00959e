"""Small helpers shared by command units."""

import asyncio
from typing import Any, Sequence

INVITE_TEMPLATE = (
    "https://discord.com/api/oauth2/authorize"
    "?client_id={client_id}&scope=bot&permissions={permissions}"
)


def invite_url(client_id: int, permissions: int = 3072) -> str:
    """OAuth2 link that adds the bot to a server."""
    return INVITE_TEMPLATE.format(client_id=client_id, permissions=permissions)


async def play_animation(message: Any, interval: float, frames: Sequence[str]) -> None:
    """Edit ``message`` through ``frames``, ``interval`` seconds apart."""
    for frame in frames:
        await asyncio.sleep(interval)
        await message.edit(content=frame)


def format_duration(seconds: float) -> str:
    """Render a duration as ``1d 2h 3m 4s`` (zero parts dropped)."""
    total = int(seconds)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
