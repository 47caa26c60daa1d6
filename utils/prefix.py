from __future__ import annotations

from typing import Callable

import discord
from discord.ext import commands


def ignore_case_prefix(prefix: str) -> Callable[[commands.Bot, discord.Message], str]:
    """Prefix resolver for `commands.Bot`: "C+wl ls" works like "c+wl ls"."""

    def resolve(bot: commands.Bot, message: discord.Message) -> str:
        head = message.content[: len(prefix)]
        return head if head.lower() == prefix.lower() else prefix

    return resolve
