from __future__ import annotations

import logging

import discord
from discord.ext import commands
from dotenv import load_dotenv

from .config import load_config
from .components.base import BotState
from .components.ai_settings import AISettings
from .components.image_pipeline import ImagePipeline
from .components.settings import BotSettingsCommands
from .components.system_help import SystemHelp
from .components.user_prefs import UserPrefs
from .reactions import ReactionSelector
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


_COMPONENTS = {
    "image_pipeline": ImagePipeline,
    "settings": BotSettingsCommands,
    "ai_settings": AISettings,
    "user_prefs": UserPrefs,
    # handles !** help
    "system_help": SystemHelp,
}


def build_bot():
    load_dotenv()
    cfg = load_config()

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    intents = discord.Intents.default()
    intents.message_content = True
    intents.messages = True
    intents.guilds = True
    intents.emojis_and_stickers = True

    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    store = SettingsStore.from_config(cfg)
    state = BotState(store=store, reactions=ReactionSelector(store))

    components = []
    for name in cfg.components:
        cls = _COMPONENTS.get(name)
        if not cls:
            raise RuntimeError(f"Unknown component in COMPONENTS: {name}")
        components.append(cls(bot, cfg, state))

    @bot.event
    async def on_ready():
        logger.info("Logged in as %s (%d guild(s))", bot.user, len(bot.guilds))
        api = store.api
        logger.info(
            "AI provider: %s, mode: %s, gemini keys: %d, openai keys: %d",
            api.provider_name,
            api.mode.value,
            len(api.gemini_keys),
            len(api.openai_keys),
        )
        for c in components:
            await c.on_ready()

    @bot.event
    async def on_message(message: discord.Message):
        for c in components:
            try:
                await c.on_message(message)
            except Exception:
                logger.exception("Component %s failed on message %s", c.name, message.id)

    return bot, cfg


def main():
    bot, cfg = build_bot()
    try:
        bot.run(cfg.token, log_handler=None)
    except discord.PrivilegedIntentsRequired:
        logger.error(
            "The Message Content intent is not enabled for this bot. "
            "Enable it under Bot > Privileged Gateway Intents in the Discord developer portal and restart."
        )
        raise


if __name__ == "__main__":
    main()
