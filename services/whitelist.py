# services/whitelist.py
from __future__ import annotations

import logging

from exceptions import RconError
from utils.rcon_client import RconSession

log = logging.getLogger(__name__)

LIST_ERROR = "Error: could not list users."


async def _reload(rcon: RconSession) -> None:
    # the reply doesn't depend on the reload outcome
    try:
        await rcon.send("whitelist reload")
    except RconError as e:
        log.warning("whitelist reload failed: %s", e)


async def add_to_whitelist(rcon: RconSession, username: str) -> bool:
    try:
        out = await rcon.send(f"whitelist add {username}")
    except RconError as e:
        log.error("Could not add user %s: %s", username, e)
        return False
    await _reload(rcon)
    log.info("Response: %s", out)
    return True


async def remove_from_whitelist(rcon: RconSession, username: str) -> bool:
    try:
        out = await rcon.send(f"whitelist remove {username}")
    except RconError as e:
        log.error("Could not remove user %s: %s", username, e)
        return False
    await _reload(rcon)
    log.info("Response: %s", out)
    return True


async def list_whitelist(rcon: RconSession) -> str:
    try:
        return await rcon.send("whitelist list")
    except RconError as e:
        log.error("Could not list users: %s", e)
        return LIST_ERROR
