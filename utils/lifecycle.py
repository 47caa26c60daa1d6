from __future__ import annotations

import asyncio
import logging
import os
import signal

from discord.ext import commands

log = logging.getLogger(__name__)

_failed = False


def gateway_failed() -> bool:
    return _failed


def stop_process() -> None:
    # uvicorn turns SIGTERM into its normal shutdown sequence
    os.kill(os.getpid(), signal.SIGTERM)


async def run_gateway(bot: commands.Bot) -> None:
    """
    Keep the Discord gateway open. Losing it for good is fatal: the process
    is stopped rather than left serving health checks without a bot.
    """
    global _failed
    try:
        await bot.connect(reconnect=True)
    except asyncio.CancelledError:
        pass
    except Exception:
        log.exception("[discord] gateway session failed; stopping")
        _failed = True
        stop_process()
