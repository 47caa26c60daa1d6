from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from exceptions import ArgumentError, PermissionDenied, RconError, UnrecognizedCommand
from services.whitelist import add_to_whitelist, list_whitelist, remove_from_whitelist
from utils.permissions import has_role
from utils.rcon_client import RconSession

log = logging.getLogger(__name__)

COOLDOWN_SECONDS = 5.0
MAX_MSG = 2000  # Discord message length cap


def _chunks(text: str, size: int = MAX_MSG) -> list[str]:
    if not text:
        return ["(empty response)"]
    out: list[str] = []
    while len(text) > size:
        # cut after the last newline or ", " that fits, so names stay whole
        cut = max(text.rfind("\n", 0, size) + 1, text.rfind(", ", 0, size) + 2)
        if cut < 2:
            cut = size
        out.append(text[:cut])
        text = text[cut:]
    out.append(text)
    return out


def _require_username(ctx: commands.Context, username: str | None) -> str:
    if not username:
        raise ArgumentError(
            f"Missing username. Usage: {ctx.clean_prefix}whitelist {ctx.invoked_with} <username>"
        )
    return username


class WhitelistCog(commands.Cog):
    """Whitelist management for the Minecraft server via RCON."""

    def __init__(
        self,
        bot: commands.Bot,
        rcon: RconSession,
        authorized_role_id: int,
        max_concurrent: int = 4,
    ):
        self.bot = bot
        self.rcon = rcon
        self.authorized_role_id = authorized_role_id
        self._slots = asyncio.Semaphore(max_concurrent)

    async def _reply(self, ctx: commands.Context, text: str) -> None:
        await ctx.reply(text, mention_author=False)

    # ---------- whitelist group --------------------------------------

    @commands.group(name="whitelist", aliases=["wl"], case_insensitive=True, usage="<option> [username]")
    @commands.cooldown(1, COOLDOWN_SECONDS, commands.BucketType.user)
    async def whitelist(self, ctx: commands.Context):
        """Whitelists the specified minecraft user to the server.

        Example: whitelist add Steve
        """
        if ctx.invoked_subcommand is None:
            raise UnrecognizedCommand(ctx.message.content)

    @whitelist.command(name="add", usage="<username>")
    async def whitelist_add(self, ctx: commands.Context, username: str | None = None):
        """Add a player to the whitelist."""
        username = _require_username(ctx, username)
        log.info("Add user %s requested by %s", username, ctx.author)
        async with self._slots:
            ok = await add_to_whitelist(self.rcon, username)
        if ok:
            await self._reply(ctx, f"Whitelisted {username}.")
        else:
            await self._reply(ctx, f"Could not whitelist {username}. Server appears down.")

    @whitelist.command(name="remove", aliases=["rm"], usage="<username>")
    async def whitelist_remove(self, ctx: commands.Context, username: str | None = None):
        """Remove a player from the whitelist (requires the authorized role)."""
        username = _require_username(ctx, username)
        log.info("Remove user %s requested by %s", username, ctx.author)
        if not await has_role(ctx, self.authorized_role_id):
            raise PermissionDenied(username)
        async with self._slots:
            ok = await remove_from_whitelist(self.rcon, username)
        if ok:
            await self._reply(ctx, f"Removed {username} from whitelist.")
        else:
            await self._reply(ctx, f"Could not remove {username} from whitelist. Server appears down.")

    @whitelist.command(name="list", aliases=["ls"])
    async def whitelist_list(self, ctx: commands.Context):
        """Show whitelisted players."""
        log.info("List users requested by %s", ctx.author)
        async with self._slots:
            out = await list_whitelist(self.rcon)
        for part in _chunks(out):
            await self._reply(ctx, part)

    # ---------- reconnect --------------------------------------------

    @commands.command(name="reconnect")
    @commands.cooldown(1, COOLDOWN_SECONDS, commands.BucketType.user)
    async def reconnect(self, ctx: commands.Context):
        """Attempts to reconnect to the Minecraft Server."""
        log.info("Reconnect requested by %s", ctx.author)
        async with self._slots:
            try:
                await self.rcon.reconnect()
            except RconError as e:
                log.error("Could not connect: %s", e)
                await self._reply(ctx, "Could not reconnect to server.")
                return
        log.warning("Reconnected to server!")

    # ---------- ping -------------------------------------------------

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        me = self.bot.user
        if message.author.bot or me is None:
            return
        if message.content.strip() in (f"<@{me.id}>", f"<@!{me.id}>"):
            await message.reply("Pong!", mention_author=False)

    # ---------- errors -----------------------------------------------

    async def cog_command_error(self, ctx: commands.Context, error: commands.CommandError):
        if isinstance(error, commands.CommandOnCooldown):
            await self._reply(ctx, "You are being rate limited!")
            return
        original = getattr(error, "original", error)
        if isinstance(original, UnrecognizedCommand):
            log.warning("invalid command %s", original)
            await self._reply(ctx, "I don't recognize that command!")
        elif isinstance(original, PermissionDenied):
            log.warning("%s is not allowed to remove %s", ctx.author, original)
            await self._reply(ctx, f"You are not allowed to remove {original} from the whitelist.")
        elif isinstance(original, ArgumentError):
            await self._reply(ctx, str(original))
        else:
            log.error("command %s failed", ctx.command, exc_info=original)
