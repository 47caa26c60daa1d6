# main.py
from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
import time

import discord
import uvicorn
from discord.ext import commands
from fastapi import FastAPI

# silence PyNaCl warning (no voice support needed)
discord.VoiceClient.warn_nacl = False

# --- project utils
from api.health_router import router as health_router
from exceptions import RconError
from services.whitelist_cog import WhitelistCog
from utils.config import get_settings
from utils.lifecycle import gateway_failed, run_gateway
from utils.logging import configure_logging
from utils.prefix import ignore_case_prefix
from utils.rcon_client import RconSession

settings = get_settings()

# ---------- logging
configure_logging(settings.log_level, settings.log_file)
log = logging.getLogger("main")


def _mask_token(tok: str | None) -> str:
    if not tok:
        return "<empty>"
    if len(tok) <= 8:
        return "***"
    return tok[:4] + "…" + tok[-4:]


# ---------- discord bot
intents = discord.Intents.default()
intents.message_content = True
intents.guilds = True

rcon = RconSession(
    settings.minecraft.host,
    settings.minecraft.port,
    settings.minecraft.password,
    timeout=settings.rcon_timeout,
)


class CerberusBot(commands.Bot):
    async def setup_hook(self) -> None:
        log.info("[discord] setup_hook: loading cogs")
        await self.add_cog(
            WhitelistCog(
                self,
                rcon,
                settings.authorized_role_id,
                max_concurrent=settings.max_concurrent_commands,
            )
        )


bot = CerberusBot(
    command_prefix=ignore_case_prefix(settings.command_prefix),
    case_insensitive=True,
    intents=intents,
)


@bot.event
async def on_ready():
    log.info("[discord] on_ready as %s (guilds=%s)", bot.user, [g.name for g in bot.guilds])


@bot.event
async def on_disconnect():
    log.warning("[discord] on_disconnect")


@bot.event
async def on_command_error(ctx: commands.Context, error: commands.CommandError):
    if isinstance(error, commands.CommandNotFound):
        return
    if ctx.cog is not None and ctx.cog.has_error_handler():
        return
    log.error("[discord] command %s failed: %s", ctx.command, error)


# ---------- app
app = FastAPI(title="Cerberus")
app.include_router(health_router)
app.state.bot = bot
app.state.rcon = rcon


# ---------- lifecycle

@app.on_event("startup")
async def on_startup():
    if getattr(app.state, "started", False):
        log.info("Startup already executed; skipping.")
        return

    t0 = time.perf_counter()
    log.info("Starting up… pid=%s, py=%s", os.getpid(), sys.version.split()[0])
    log.info("Discord token present=%s (%s)", bool(settings.bot_token), _mask_token(settings.bot_token))

    # 1) RCON; no point running the bot without it
    try:
        await rcon.connect()
    except RconError:
        log.exception("[1/2] Could not connect to server. Is it up?")
        raise

    # 2) Discord login fails fast on a bad token; the gateway runs in the background
    try:
        await bot.login(settings.bot_token)
    except discord.LoginFailure:
        log.exception("[2/2] Discord login failed")
        raise
    app.state.bot_task = asyncio.create_task(run_gateway(bot))

    app.state.started = True
    log.info("Bot is now running. Startup complete in %.2fs", time.perf_counter() - t0)


@app.on_event("shutdown")
async def on_shutdown():
    log.info("Received SIGTERM - shutting down")
    # Stop Discord
    bot_task = getattr(app.state, "bot_task", None)
    if not bot.is_closed():
        with contextlib.suppress(Exception):
            await bot.close()
    if bot_task and not bot_task.done():
        bot_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await bot_task
    await rcon.close()
    log.info("Shutdown complete.")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.http_port)
    if gateway_failed():
        sys.exit(1)
