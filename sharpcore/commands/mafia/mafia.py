"""Manage mafia moderators and watched channels for a guild.

Edits and deletions in watched channels are relayed to the guild's
moderators by ``sharpcore.moderation.ModeratorRelay``.
"""

import re

from sharpcore.moderation import (
    add_id,
    channels_key,
    get_moderators,
    get_watched_channels,
    moderators_key,
    remove_id,
)

info = {
    "name": "mafia",
    "aliases": ["mm"],
    "usage": "mafia <watch|unwatch|addmod|removemod|list> [user]",
    "description": "Manage mafia game moderators and watched channels",
}

_MENTION = re.compile(r"^<@!?(\d+)>$")


def parse_user_id(token):
    """Accept ``<@123>``, ``<@!123>`` or a bare id."""
    match = _MENTION.match(token)
    if match:
        return int(match.group(1))
    if token.isdigit():
        return int(token)
    return None


def _allowed(ctx, moderators):
    author_id = ctx.message.author.id
    if ctx.app.is_owner(author_id) or author_id in moderators:
        return True
    # No moderators yet: only the owner may set the guild up, or anyone
    # when no owner is configured
    return not moderators and ctx.app.config.owner_id is None


async def run(ctx, args):
    message = ctx.message
    if message.guild_id is None:
        await ctx.reply(":x: Mafia commands only work in a server.")
        return

    store = ctx.app.store
    guild_id = message.guild_id
    action = args[0].lower() if args else "list"
    moderators = await get_moderators(store, guild_id)

    if action == "list":
        channels = await get_watched_channels(store, guild_id)
        mods = ", ".join(f"<@{m}>" for m in moderators) or "none"
        watched = ", ".join(f"<#{c}>" for c in channels) or "none"
        await ctx.reply(f"**Moderators:** {mods}\n**Watched channels:** {watched}")
        return

    if not _allowed(ctx, moderators):
        await ctx.reply(":no_entry: Only mafia moderators can do that.")
        return

    if action == "watch":
        added = await add_id(store, channels_key(guild_id), message.channel_id)
        await ctx.reply(
            ":eye: Now watching this channel." if added
            else "This channel is already watched."
        )
    elif action == "unwatch":
        removed = await remove_id(store, channels_key(guild_id), message.channel_id)
        await ctx.reply(
            "Stopped watching this channel." if removed
            else "This channel wasn't being watched."
        )
    elif action in ("addmod", "removemod"):
        user_id = parse_user_id(args[1]) if len(args) > 1 else None
        if user_id is None:
            await ctx.reply(f"Usage: `{ctx.prefix}mafia {action} <@user|id>`")
            return
        if action == "addmod":
            changed = await add_id(store, moderators_key(guild_id), user_id)
            await ctx.reply(
                f"<@{user_id}> is now a moderator." if changed
                else f"<@{user_id}> is already a moderator."
            )
        else:
            changed = await remove_id(store, moderators_key(guild_id), user_id)
            await ctx.reply(
                f"<@{user_id}> is no longer a moderator." if changed
                else f"<@{user_id}> wasn't a moderator."
            )
        if changed:
            ctx.app.logger.info(
                "mafia_moderator_changed",
                action=action,
                guild_id=guild_id,
                user_id=user_id,
                by=message.author.id,
            )
    else:
        await ctx.reply(f"Usage: `{ctx.prefix}{info['usage']}`")
