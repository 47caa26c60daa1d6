from __future__ import annotations

import logging

import discord
from discord.ext import commands

log = logging.getLogger(__name__)


async def member_role_ids(ctx: commands.Context) -> set[int]:
    """
    Role ids of the invoking member in the guild the message was posted in.
    A failed lookup is logged and yields an empty set.
    """
    roles = getattr(ctx.author, "roles", None)
    if roles is None:
        if ctx.guild is None:
            log.error("role lookup for %s failed: not in a guild", ctx.author)
            return set()
        try:
            member = await ctx.guild.fetch_member(ctx.author.id)
        except discord.HTTPException as e:
            log.error("role lookup for %s failed: %s", ctx.author, e)
            return set()
        roles = member.roles
    return {r.id for r in roles}


async def has_role(ctx: commands.Context, role_id: int) -> bool:
    return role_id in await member_role_ids(ctx)
