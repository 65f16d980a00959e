"""Per-channel vote tallies for mafia games.

Votes are persisted in the store under ``mafia:votes:<channel>`` and
cached in memory, since every vote needs the whole tally.
"""

from collections import Counter

from sharpcore.moderation import get_moderators

info = {
    "name": "vote",
    "aliases": ["v"],
    "usage": "vote <target|tally|retract|clear>",
    "description": "Vote for a player, or show/clear the tally",
}

# channel id -> {voter id (str): target}
_cache = {}


def votes_key(channel_id):
    return f"mafia:votes:{channel_id}"


async def _load(store, channel_id):
    if channel_id not in _cache:
        _cache[channel_id] = dict(await store.get(votes_key(channel_id), {}))
    return _cache[channel_id]


async def _save(store, channel_id, votes):
    await store.set(votes_key(channel_id), votes)
    _cache[channel_id] = votes


def format_tally(votes):
    if not votes:
        return "No votes yet."
    counts = Counter(votes.values())
    lines = [":ballot_box: **Tally**"]
    for target, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
        voters = ", ".join(f"<@{v}>" for v, t in votes.items() if t == target)
        lines.append(f"{target}: **{count}** ({voters})")
    return "\n".join(lines)


async def run(ctx, args):
    message = ctx.message
    if message.guild_id is None:
        await ctx.reply(":x: Voting only works in a server.")
        return

    store = ctx.app.store
    channel_id = message.channel_id
    votes = await _load(store, channel_id)
    voter = str(message.author.id)
    target = " ".join(a for a in args if a)

    if not target:
        await ctx.reply(f"Usage: `{ctx.prefix}{info['usage']}`")
    elif target.lower() == "tally":
        await ctx.reply(format_tally(votes))
    elif target.lower() == "retract":
        if voter not in votes:
            await ctx.reply("You haven't voted.")
            return
        remaining = {v: t for v, t in votes.items() if v != voter}
        await _save(store, channel_id, remaining)
        await ctx.reply("Vote retracted.")
    elif target.lower() == "clear":
        moderators = await get_moderators(store, message.guild_id)
        if message.author.id not in moderators and not ctx.app.is_owner(message.author.id):
            await ctx.reply(":no_entry: Only mafia moderators can clear votes.")
            return
        await _save(store, channel_id, {})
        await ctx.reply("Votes cleared.")
    else:
        await _save(store, channel_id, {**votes, voter: target})
        await ctx.reply(f"<@{voter}> votes for **{target}**.")
