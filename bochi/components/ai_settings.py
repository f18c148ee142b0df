from __future__ import annotations

import logging
from typing import List

import discord

from .base import Component, strip_system_prefix
from ..ai import router
from ..ai.credentials import parse_keys
from ..settings_store import ProcessingMode
from ..ui.embeds import embed_ai_status

logger = logging.getLogger(__name__)

_MODES = ", ".join(m.value for m in ProcessingMode)


class AISettings(Component):
    """Handles `!** bochi ai ...`: provider, keys, models and image mode."""

    name = "ai_settings"

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or not message.guild:
            return

        tokens = strip_system_prefix(message.content).split()
        if len(tokens) < 2 or tokens[0].lower() != "bochi" or tokens[1].lower() != "ai":
            return

        if not self.is_admin(message.author):
            await message.channel.send("❌ You don't have permission to use this command.")
            return

        try:
            await self._handle(message, tokens[2:])
        except Exception:
            logger.exception("AI settings command failed")
            await self.safe_error_reply(message, "⚠️ Something went wrong updating the AI settings.")

    async def _forget_secret(self, message: discord.Message) -> None:
        # keys were typed in the clear
        try:
            await message.delete()
        except discord.HTTPException as e:
            logger.warning("Could not delete message containing API keys: %s", e)

    async def _handle(self, message: discord.Message, tokens: List[str]) -> None:
        api = self.store.api
        head = tokens[0].lower() if tokens else "status"

        if head in ("status", "current"):
            await message.channel.send(embed=embed_ai_status(self.store))
            return

        if head == "provider":
            if len(tokens) < 2:
                await message.channel.send(
                    f"**Provider:** `{api.provider_name}`\n"
                    f"Set: `!** bochi ai provider <{'|'.join(router.SUPPORTED_PROVIDERS)}>`"
                )
                return
            newp = tokens[1].lower()
            if newp not in router.SUPPORTED_PROVIDERS:
                await message.channel.send(f"❌ Unknown provider. Supported: {', '.join(router.SUPPORTED_PROVIDERS)}")
                return
            api.use_gemini = newp == "gemini"
            logger.info("AI provider set to %s", newp)
            note = "" if router.provider_usable(api, newp) else " ⚠️ No credentials configured for it yet."
            await message.channel.send(f"✅ Provider set to `{newp}`.{note}")
            return

        if head == "mode":
            if len(tokens) < 2:
                await message.channel.send(f"**Image mode:** `{api.mode.value}`\nOptions: {_MODES}")
                return
            wanted = tokens[1].lower()
            if wanted not in [m.value for m in ProcessingMode]:
                await message.channel.send(f"❌ Unknown mode. Options: {_MODES}")
                return
            api.mode = ProcessingMode(wanted)
            logger.info("Image processing mode set to %s", wanted)
            await message.channel.send(f"✅ Image mode set to `{wanted}`.")
            return

        if head in ("gemini", "openai"):
            await self._provider_field(message, head, tokens[1:])
            return

        if head == "test":
            async with message.channel.typing():
                ok, detail = await router.test_connection(self.store, self.cfg)
            await message.channel.send(("✅ " if ok else "❌ ") + detail[:1800])
            return

        if head == "models":
            try:
                models = await router.refresh_models(self.store, self.cfg)
            except Exception as e:
                logger.warning("Model list refresh failed: %s", e)
                await message.channel.send(f"⚠️ Model list error: {e}")
                models = api.available_models
            lines = []
            for name in router.SUPPORTED_PROVIDERS:
                found = models.get(name) or []
                lines.append(f"**{name}** ({len(found)}):")
                lines += [f"- `{m}`" for m in found[:15]]
                if len(found) > 15:
                    lines.append(f"… +{len(found) - 15} more")
            await message.channel.send("\n".join(lines)[:1900])
            return

        await message.channel.send("❌ Unknown AI command. Try `!** bochi help`.")

    async def _provider_field(self, message: discord.Message, provider: str, tokens: List[str]) -> None:
        api = self.store.api
        field = tokens[0].lower() if tokens else ""
        value = " ".join(tokens[1:]).strip()
        usage = f"❌ Usage: `!** bochi ai {provider} {'keys|model' if provider == 'gemini' else 'url|keys|model'} <value>`"

        if field == "keys":
            keys = parse_keys(value)
            if not keys:
                await message.channel.send(usage)
                return
            rotator = api.gemini_keys if provider == "gemini" else api.openai_keys
            rotator.replace(keys)
            logger.info("%s keys replaced (%d)", provider, len(keys))
            await self._forget_secret(message)
            await message.channel.send(f"✅ {len(keys)} {provider} key(s) configured: {', '.join(rotator.masked())}")
            return

        if field == "model" and value:
            if provider == "gemini":
                api.gemini_model = value
            else:
                api.openai_model = value
            await message.channel.send(f"✅ {provider} model set to `{value}`.")
            return

        if provider == "openai" and field == "url" and value:
            api.openai_base_url = value.rstrip("/")
            await message.channel.send(f"✅ OpenAI-compatible base URL set to `{api.openai_base_url}`.")
            return

        await message.channel.send(usage)
