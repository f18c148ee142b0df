from __future__ import annotations

import discord

from .base import Component, strip_system_prefix
from ..ui.embeds import embed_help_system


class SystemHelp(Component):
    """Handles `!** help` and `!** bochi help`."""

    name = "system_help"

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or not message.guild:
            return

        tokens = [t.lower() for t in strip_system_prefix(message.content).split()]
        if not tokens:
            return
        if tokens[0] == "bochi":
            tokens = tokens[1:]
        if tokens[:1] in (["help"], ["h"], ["?"]):
            await message.channel.send(embed=embed_help_system())
