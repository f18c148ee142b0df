from __future__ import annotations

from typing import Optional

import discord

from ..settings_store import ChannelOverride, SettingsStore

COLOR_PRIMARY = 0xFFB6C1
COLOR_INFO = 0x2F80ED
COLOR_WARN = 0xF2C94C
COLOR_DANGER = 0xFF6B6B


def _onoff(v: bool) -> str:
    return "✅ On" if v else "❌ Off"


def describe_override(ov: ChannelOverride) -> str:
    parts = []
    if ov.auto_reaction is not None:
        parts.append("✅reactions" if ov.auto_reaction else "❌reactions")
    if ov.ai_comment is not None:
        parts.append("✅comments" if ov.ai_comment else "❌comments")
    return " ".join(parts)


def embed_panel(store: SettingsStore, guild_id: Optional[int]) -> discord.Embed:
    """Main status panel (`!** bochi`)."""
    g = store.global_settings
    api = store.api

    blocked = sorted(g.blocked_users)
    blocked_txt = ", ".join(f"<@{u}>" for u in blocked[:5]) if blocked else "None"
    if len(blocked) > 5:
        blocked_txt += f" (+{len(blocked) - 5} more)"

    e = discord.Embed(title="🐕 Bochi control panel", description="📊 **Status overview**", color=COLOR_PRIMARY)
    if guild_id is not None:
        srv = store.server(guild_id)
        e.add_field(name="🎨 Image reactions (this server)", value=_onoff(srv.auto_reaction), inline=True)
        e.add_field(name="💬 AI comments (this server)", value=_onoff(srv.ai_comment), inline=True)
    else:
        e.add_field(name="🎨 Image reactions (global)", value=_onoff(g.auto_reaction), inline=True)
        e.add_field(name="💬 AI comments (global)", value=_onoff(g.ai_comment), inline=True)

    configured = bool(api.gemini_keys) or bool(api.openai_keys)
    e.add_field(name="🤖 AI service", value=f"`{api.provider_name}` / `{api.mode.value}` ({'configured' if configured else 'not configured'})", inline=True)
    e.add_field(name="📺 Channels with stats", value=str(len(g.channel_stats)), inline=True)
    e.add_field(name="📊 Total reactions", value=str(store.total_reactions()), inline=True)
    e.add_field(name="🚫 Blocked users", value=blocked_txt, inline=True)

    special = "None"
    if guild_id is not None:
        overrides = store.channel_overrides(guild_id)
        if overrides:
            lines = [f"<#{cid}> ({describe_override(ov)})" for cid, ov in list(overrides.items())[:5]]
            if len(overrides) > 5:
                lines.append(f"… {len(overrides)} channels total")
            special = "\n".join(lines)
    e.add_field(name="⚙️ Channels with their own settings", value=special, inline=False)
    e.set_footer(text="Use `!** bochi help` for all commands.")
    return e


def embed_channel_settings(store: SettingsStore, guild_id: int, channel_id: int) -> discord.Embed:
    srv = store.server(guild_id)
    ov = srv.channel_settings.get(int(channel_id))
    react = store.resolve(guild_id, "auto_reaction", channel_id)
    comment = store.resolve(guild_id, "ai_comment", channel_id)

    e = discord.Embed(
        title="📺 Channel settings",
        description=f"Channel: <#{channel_id}>",
        color=COLOR_INFO,
    )
    src_r = "channel" if ov is not None and ov.auto_reaction is not None else "server"
    src_c = "channel" if ov is not None and ov.ai_comment is not None else "server"
    e.add_field(name="🎨 Image reactions", value=f"{_onoff(react)} (from {src_r})", inline=True)
    e.add_field(name="💬 AI comments", value=f"{_onoff(comment)} (from {src_c})", inline=True)
    e.set_footer(text="Toggle: `!** bochi channel reaction` / `!** bochi channel comment` / reset: `!** bochi channel reset`")
    return e


def embed_channel_stats(store: SettingsStore, guild: Optional[discord.Guild] = None) -> discord.Embed:
    e = discord.Embed(title="📊 Channel reaction stats", description="Reactions per channel:", color=COLOR_PRIMARY)
    for cid, stat in store.top_channel_stats(10):
        ch = guild.get_channel(cid) if guild else None
        name = f"#{ch.name}" if ch is not None else stat.name
        e.add_field(
            name=name,
            value=f"Reactions: {stat.reaction_count}\nLast activity: {stat.last_update:%Y-%m-%d}",
            inline=True,
        )
    e.set_footer(text=f"Total reactions: {store.total_reactions()}")
    return e


def embed_ai_status(store: SettingsStore) -> discord.Embed:
    api = store.api
    e = discord.Embed(title="🔧 AI API settings", color=COLOR_INFO)
    e.add_field(name="Provider", value=f"`{api.provider_name}`", inline=True)
    e.add_field(name="Image mode", value=f"`{api.mode.value}`", inline=True)
    gem_keys = ", ".join(api.gemini_keys.masked()) or "None"
    e.add_field(name="Gemini", value=f"Model: `{api.gemini_model}`\nKeys ({len(api.gemini_keys)}): {gem_keys}", inline=False)
    oa_keys = ", ".join(api.openai_keys.masked()) or "None"
    e.add_field(
        name="OpenAI-compatible",
        value=f"URL: `{api.openai_base_url or '(unset)'}`\nModel: `{api.openai_model}`\nKeys ({len(api.openai_keys)}): {oa_keys}",
        inline=False,
    )
    prompt = store.global_settings.ai_prompt
    e.add_field(name="Prompt", value=(prompt[:1000] + ("…" if len(prompt) > 1000 else "")), inline=False)
    return e


def embed_help_system() -> discord.Embed:
    """System/admin help (`!** help`)."""
    e = discord.Embed(
        title="Bochi: system commands",
        description="Admin controls (prefix `!**`). Available to the server owner and authorised users.",
        color=COLOR_WARN,
    )
    e.add_field(
        name="Server & channel switches",
        value=(
            "• `!** bochi` (status panel)\n"
            "• `!** bochi reaction` / `!** bochi comment` (server-wide; resets channel overrides)\n"
            "• `!** bochi channel [#channel]` (view)\n"
            "• `!** bochi channel reaction|comment [#channel]` (toggle override)\n"
            "• `!** bochi channel reset [#channel]`"
        ),
        inline=False,
    )
    e.add_field(
        name="Emoji & prompt",
        value=(
            "• `!** bochi emojis 👍 ❤️ ✨` (global pool)\n"
            "• `!** bochi emojis scan` / `!** bochi emojis pick <:a:1> <:b:2>` (no emoji = unpick) / `!** bochi emojis clear`\n"
            "• `!** bochi prompt <text>`"
        ),
        inline=False,
    )
    e.add_field(
        name="AI",
        value=(
            "• `!** bochi ai` (status)\n"
            "• `!** bochi ai provider <gemini|openai>`\n"
            "• `!** bochi ai mode <url|download|smart|urlonly>`\n"
            "• `!** bochi ai gemini keys k1,k2` / `!** bochi ai gemini model <name>`\n"
            "• `!** bochi ai openai url <base>` / `keys k1,k2` / `model <name>`\n"
            "• `!** bochi ai test` / `!** bochi ai models`"
        ),
        inline=False,
    )
    e.add_field(
        name="Access & data",
        value=(
            "• `!** bochi users` / `users add <id>` / `users remove <id>`\n"
            "• `!** bochi channels allow #a #b` / `!** bochi channels clear`\n"
            "• `!** bochi stats`\n"
            "• `!** bochi clear stats|blocked|emojis|all`"
        ),
        inline=False,
    )
    e.add_field(
        name="Everyone",
        value="• `!bochi block` / `!bochi unblock` (stop / allow reactions to your images)",
        inline=False,
    )
    return e
