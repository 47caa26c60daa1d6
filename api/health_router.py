from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/")
async def status():
    return {"message": "Status OK"}


@router.get("/health")
async def health(request: Request):
    state = request.app.state
    bot = getattr(state, "bot", None)
    rcon = getattr(state, "rcon", None)
    return {
        "status": "ok",
        "started": bool(getattr(state, "started", False)),
        "discord_logged_in": bot is not None and bot.user is not None,
        "rcon_connected": rcon is not None and rcon.connected,
    }
