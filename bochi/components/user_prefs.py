from __future__ import annotations

import logging

import discord

from .base import BOCHI_PREFIX, Component

logger = logging.getLogger(__name__)


class UserPrefs(Component):
    """`!bochi block` / `!bochi unblock`: opt yourself out of reactions and comments."""

    name = "user_prefs"

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        parts = (message.content or "").strip().split()
        if len(parts) < 2 or parts[0].lower() != BOCHI_PREFIX:
            return
        action = parts[1].lower()
        if action not in ("block", "unblock"):
            return

        if not self.can_use_user_commands(message):
            allowed = sorted(self.store.global_settings.allowed_channels)
            where = ", ".join(f"<#{c}>" for c in allowed)
            await message.channel.send(f"❌ This command can only be used in: {where}")
            return

        uid = message.author.id
        try:
            if action == "block":
                self.store.block_user(uid)
                logger.info("User %s opted out", uid)
                await message.reply("✅ Got it, I won't react to or comment on your images any more. `!bochi unblock` to undo.")
            else:
                self.store.unblock_user(uid)
                logger.info("User %s opted back in", uid)
                await message.reply("✅ Welcome back! I'll react to your images again.")
        except discord.HTTPException as e:
            logger.warning("Could not confirm %s for %s: %s", action, uid, e)
