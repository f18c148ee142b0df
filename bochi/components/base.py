from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import discord
from discord.ext import commands

from ..config import BotConfig
from ..reactions import ReactionSelector
from ..settings_store import SettingsStore

logger = logging.getLogger(__name__)

SYSTEM_PREFIX = "!**"
BOCHI_PREFIX = "!bochi"

# Past this age we don't answer a failed command (user has moved on).
STALE_COMMAND_S = 14 * 60


def strip_system_prefix(content: str) -> str:
    s = (content or "").strip()
    if not s.startswith(SYSTEM_PREFIX):
        return ""
    return s[len(SYSTEM_PREFIX) :].lstrip()


@dataclass
class BotState:
    store: SettingsStore
    reactions: ReactionSelector


class Component:
    name: str = "component"

    def __init__(self, bot: commands.Bot, cfg: BotConfig, state: BotState):
        self.bot = bot
        self.cfg = cfg
        self.state = state

    @property
    def store(self) -> SettingsStore:
        return self.state.store

    def is_admin(self, member) -> bool:
        """Global admin, server owner, or someone on the allowed-users list."""
        if member is None:
            return False
        uid = int(member.id)
        if self.cfg.global_admin_id and uid == int(self.cfg.global_admin_id):
            return True
        guild = getattr(member, "guild", None)
        if guild is not None and getattr(guild, "owner_id", None) == uid:
            return True
        return uid in self.store.global_settings.allowed_users

    def can_use_user_commands(self, message: discord.Message) -> bool:
        if self.is_admin(message.author):
            return True
        return self.store.channel_allowed(message.channel.id)

    async def safe_error_reply(self, message: discord.Message, text: str) -> None:
        created = getattr(message, "created_at", None)
        if created is not None:
            age = (datetime.now(timezone.utc) - created).total_seconds()
            if age > STALE_COMMAND_S:
                logger.info("Skipping error reply for stale command (%ds old)", int(age))
                return
        try:
            await message.channel.send(text)
        except discord.HTTPException as e:
            logger.error("Could not send error reply: %s", e)

    async def on_ready(self) -> None:
        return

    async def on_message(self, message: discord.Message) -> None:
        return
