from __future__ import annotations

import logging
import re
from typing import List, Optional

import discord

from .base import Component, strip_system_prefix
from ..ui.embeds import embed_channel_settings, embed_channel_stats, embed_panel

logger = logging.getLogger(__name__)

USER_ID_RE = re.compile(r"^<?@?!?(\d{17,19})>?$")
CHANNEL_ID_RE = re.compile(r"^<?#?(\d{15,20})>?$")

_FLAG_WORDS = {
    "reaction": "auto_reaction",
    "reactions": "auto_reaction",
    "react": "auto_reaction",
    "comment": "ai_comment",
    "comments": "ai_comment",
}


def _parse_user_id(raw: str) -> Optional[int]:
    m = USER_ID_RE.match((raw or "").strip())
    return int(m.group(1)) if m else None


def _parse_channel_id(raw: str) -> Optional[int]:
    m = CHANNEL_ID_RE.match((raw or "").strip())
    return int(m.group(1)) if m else None


def _target_channel_id(message: discord.Message, args: List[str]) -> int:
    if message.channel_mentions:
        return int(message.channel_mentions[0].id)
    for a in args:
        cid = _parse_channel_id(a)
        if cid:
            return cid
    return int(message.channel.id)


class BotSettingsCommands(Component):
    """Admin controls under `!** bochi ...` (AI controls live in ai_settings)."""

    name = "settings"

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or not message.guild:
            return

        tail = strip_system_prefix(message.content)
        tokens = tail.split()
        if not tokens or tokens[0].lower() != "bochi":
            return
        args = tokens[1:]
        if args and args[0].lower() in ("ai", "help", "h", "?"):
            return  # ai_settings / system_help

        if not self.is_admin(message.author):
            await message.channel.send("❌ You don't have permission to use this command.")
            return

        try:
            await self._dispatch(message, args)
        except Exception:
            logger.exception("Settings command failed: %s", message.content)
            await self.safe_error_reply(message, "⚠️ Something went wrong running that command.")

    async def _dispatch(self, message: discord.Message, args: List[str]) -> None:
        guild_id = message.guild.id
        head = args[0].lower() if args else "status"
        rest = args[1:]

        if head in ("status", "panel"):
            await message.channel.send(embed=embed_panel(self.store, guild_id))
            return

        if head in _FLAG_WORDS:
            flag = _FLAG_WORDS[head]
            new = self.store.toggle(guild_id, flag)
            label = "Image reactions" if flag == "auto_reaction" else "AI comments"
            await message.channel.send(
                f"✅ {label} for this server: **{'on' if new else 'off'}**. All channel overrides were cleared."
            )
            return

        if head == "channel":
            await self._channel(message, rest)
            return

        if head == "emojis":
            await self._emojis(message, rest)
            return

        if head == "prompt":
            text = " ".join(rest).strip()
            if not self.store.set_prompt(text):
                await message.channel.send(f"**Current prompt:**\n{self.store.global_settings.ai_prompt}")
                return
            await message.channel.send("✅ AI prompt updated.")
            return

        if head == "stats":
            if not self.store.global_settings.channel_stats:
                await message.channel.send("📊 No channel stats yet. They appear once I've handled an image in a channel.")
                return
            await message.channel.send(embed=embed_channel_stats(self.store, message.guild))
            return

        if head == "users":
            await self._users(message, rest)
            return

        if head == "channels":
            await self._allowed_channels(message, rest)
            return

        if head == "clear":
            await self._clear(message, rest)
            return

        await message.channel.send("❌ Unknown command. Try `!** bochi help`.")

    async def _channel(self, message: discord.Message, rest: List[str]) -> None:
        guild_id = message.guild.id
        action = rest[0].lower() if rest and rest[0].lower() in (*_FLAG_WORDS, "reset") else None
        cid = _target_channel_id(message, rest[1:] if action else rest)

        if action == "reset":
            dropped = self.store.clear_channel_override(guild_id, cid)
            await message.channel.send(
                f"✅ <#{cid}> now follows the server settings." if dropped else f"ℹ️ <#{cid}> has no override."
            )
            return
        if action:
            self.store.toggle_channel(guild_id, cid, _FLAG_WORDS[action])
        await message.channel.send(embed=embed_channel_settings(self.store, guild_id, cid))

    async def _emojis(self, message: discord.Message, rest: List[str]) -> None:
        guild = message.guild
        if not rest:
            pool = " ".join(self.state.reactions.pool(guild.id)) or "(empty)"
            await message.channel.send(f"**Reaction pool:** {pool}")
            return

        sub = rest[0].lower()
        if sub == "scan":
            found = [str(e) for e in guild.emojis]
            if not found:
                await message.channel.send("❌ This server has no custom emoji.")
                return
            n = self.store.cache_server_emojis(guild.id, found)
            preview = " ".join(found[:8]) + (f" … {n} total" if n > 8 else "")
            await message.channel.send(f"✅ Found {n} server emoji: {preview}\nPick with `!** bochi emojis pick <emoji> ...`")
            return

        if sub == "pick":
            if len(rest) == 1:
                self.store.clear_selected_emojis(guild.id)
                await message.channel.send("✅ Server emoji selection cleared; only the global pool is used.")
                return
            srv = self.store.server(guild.id)
            by_name = {}
            for full in srv.server_emojis_cache:
                parts = full.strip("<>").split(":")
                if len(parts) >= 2:
                    by_name[parts[-2].lower()] = full
            wanted = [by_name.get(w.strip(":").lower(), w) for w in rest[1:]]
            chosen = self.store.select_server_emojis(guild.id, wanted)
            if not chosen:
                await message.channel.send("❌ None of those are in the scanned list. Run `!** bochi emojis scan` first.")
                return
            await message.channel.send(f"✅ Using {len(chosen)} server emoji for reactions: {' '.join(chosen[:20])}")
            return

        if sub == "clear":
            n = self.store.clear_emoji_cache(guild.id)
            await message.channel.send(f"✅ Cleared {n} cached server emoji and the selection.")
            return

        self.store.set_reaction_emojis(rest)
        await message.channel.send(f"✅ Global reaction emoji set: {' '.join(self.store.global_settings.reaction_emojis)}")

    async def _users(self, message: discord.Message, rest: List[str]) -> None:
        g = self.store.global_settings
        if not rest or rest[0].lower() == "list":
            users = sorted(g.allowed_users)
            body = "\n".join(f"• <@{u}> (`{u}`)" for u in users[:25]) or "None"
            await message.channel.send(f"**Authorised users ({len(users)}):**\n{body}")
            return

        sub = rest[0].lower()
        uid = _parse_user_id(rest[1]) if len(rest) >= 2 else None
        if sub not in ("add", "remove") or uid is None:
            await message.channel.send("❌ Usage: `!** bochi users add|remove <user id>` (17-19 digits)")
            return

        if sub == "add":
            if not self.store.add_allowed_user(uid):
                await message.channel.send("⚠️ That user already has admin access.")
                return
            logger.info("Added %s to allowed users", uid)
            await message.channel.send(f"✅ <@{uid}> can now manage Bochi.")
            return

        if not self.store.remove_allowed_user(uid):
            await message.channel.send("⚠️ That user isn't on the list.")
            return
        logger.info("Removed %s from allowed users", uid)
        await message.channel.send(f"✅ Removed <@{uid}>.")

    async def _allowed_channels(self, message: discord.Message, rest: List[str]) -> None:
        sub = rest[0].lower() if rest else ""
        if sub == "clear":
            self.store.clear_allowed_channels()
            await message.channel.send("✅ User commands are allowed in every channel again.")
            return
        if sub == "allow":
            ids = [int(c.id) for c in message.channel_mentions]
            ids += [cid for cid in (_parse_channel_id(a) for a in rest[1:]) if cid and cid not in ids]
            if not ids:
                await message.channel.send("❌ Usage: `!** bochi channels allow #channel ...`")
                return
            self.store.set_allowed_channels(ids)
            await message.channel.send("✅ User commands allowed in: " + ", ".join(f"<#{c}>" for c in ids))
            return

        allowed = sorted(self.store.global_settings.allowed_channels)
        body = ", ".join(f"<#{c}>" for c in allowed) if allowed else "all channels"
        await message.channel.send(f"**User commands allowed in:** {body}")

    async def _clear(self, message: discord.Message, rest: List[str]) -> None:
        what = rest[0].lower() if rest else ""
        if what == "stats":
            n = self.store.clear_channel_stats()
            await message.channel.send(f"✅ Cleared stats for {n} channel(s).")
        elif what == "blocked":
            n = self.store.clear_blocked_users()
            await message.channel.send(f"✅ Cleared {n} blocked user(s); everyone gets reactions again.")
        elif what == "emojis":
            n = self.store.clear_emoji_cache(message.guild.id)
            await message.channel.send(f"✅ Cleared {n} cached server emoji.")
        elif what == "all":
            before = self.store.clear_all()
            await message.channel.send(
                "🔥 **Cleared all runtime data**\n"
                f"• {before['channels']} channel stats\n"
                f"• {before['blocked_users']} blocked users\n"
                f"• {before['emojis']} cached emoji\n"
                f"• {before['total_reactions']} recorded reactions"
            )
        else:
            await message.channel.send("❌ Usage: `!** bochi clear stats|blocked|emojis|all`")
