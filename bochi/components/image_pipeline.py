from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

import discord

from .base import Component
from ..ai import router
from ..ai.fetch import fetch_image
from ..ai.refusals import RefusalPolicy
from ..errors import ReactionFailed

logger = logging.getLogger(__name__)

MAX_REPLY_CHARS = 1900


def is_image(attachment) -> bool:
    return (getattr(attachment, "content_type", None) or "").startswith("image/")


def split_attachments(attachments) -> List:
    images = []
    for a in attachments:
        if is_image(a):
            logger.info("Image attachment: %s (%s)", a.filename, a.content_type)
            images.append(a)
        else:
            logger.debug("Skipping non-image attachment: %s (%s)", a.filename, a.content_type or "unknown")
    return images


def _channel_name(channel) -> str:
    return getattr(channel, "name", None) or str(channel.id)


class ImagePipeline(Component):
    """
    Per image-bearing message:
      - react to every image concurrently (if auto_reaction resolves true)
      - comment on each image in order, paced (if ai_comment resolves true)
    Nothing here ever posts an error to the channel.
    """

    name = "image_pipeline"

    def __init__(
        self,
        bot,
        cfg,
        state,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        fetch=fetch_image,
    ):
        super().__init__(bot, cfg, state)
        self.sleep = sleep
        self.fetch = fetch
        self.refusals = RefusalPolicy(extra=cfg.refusal_phrases)

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        # blocked authors get nothing at all
        if self.store.is_blocked(message.author.id):
            return
        if not message.attachments:
            return

        logger.info("Message from %s with %d attachment(s)", message.author, len(message.attachments))
        images = split_attachments(message.attachments)
        if not images:
            return

        self.store.touch_channel_stat(message.channel.id, _channel_name(message.channel))

        results = await asyncio.gather(
            self.react_all(message, images),
            self.comment_all(message, images),
            return_exceptions=True,
        )
        for r in results:
            if isinstance(r, BaseException):
                logger.error("Image pipeline step failed", exc_info=r)

    # --- reactions ---

    async def react_all(self, message: discord.Message, images: List) -> int:
        outcomes = await asyncio.gather(*(self.react_one(message, a) for a in images), return_exceptions=True)
        ok = sum(1 for o in outcomes if o is True)
        for o in outcomes:
            if isinstance(o, BaseException):
                logger.error("Reaction task crashed", exc_info=o)
        logger.info("Reactions done: %d/%d", ok, len(images))
        return ok

    async def _add_reaction(self, message: discord.Message, emoji: str) -> None:
        try:
            await message.add_reaction(emoji)
        except discord.HTTPException as e:
            raise ReactionFailed(emoji, str(e)) from e

    async def react_one(self, message: discord.Message, attachment=None) -> bool:
        guild_id = message.guild.id if message.guild else None
        channel_id = message.channel.id
        if not self.store.resolve(guild_id, "auto_reaction", channel_id):
            return False

        selector = self.state.reactions
        emoji = selector.pick(selector.pool(guild_id))
        if emoji is None:
            return False

        try:
            await self._add_reaction(message, emoji)
        except ReactionFailed as e:
            logger.warning("%s", e)
            fallback = selector.fallback_pick(emoji)
            if fallback is None:
                return False
            try:
                await self._add_reaction(message, fallback)
            except ReactionFailed as e2:
                logger.warning("Fallback emoji failed too: %s", e2)
                return False
            emoji = fallback

        self.store.record_reaction(channel_id, _channel_name(message.channel))
        logger.info("Reacted with %s to %s", emoji, getattr(attachment, "filename", "image"))
        return True

    # --- AI comments ---

    def build_strategy(self) -> Optional[router.AnnotationStrategy]:
        provider = router.active_provider(self.store, self.cfg)
        if not provider.usable:
            logger.info("AI comments are on but no %s credentials are configured; skipping", provider.name)
            return None
        return router.AnnotationStrategy(
            provider,
            refusals=self.refusals,
            fetch=self.fetch,
            fetch_timeout_s=self.cfg.image_fetch_timeout_s,
        )

    async def comment_all(self, message: discord.Message, images: List) -> int:
        guild_id = message.guild.id if message.guild else None
        if not self.store.resolve(guild_id, "ai_comment", message.channel.id):
            return 0

        strategy = self.build_strategy()
        if strategy is None:
            return 0

        posted = 0
        for i, attachment in enumerate(images):
            if i > 0:
                await self.sleep(self.cfg.comment_pacing_s)
                # settings may have changed while we were suspended
                if not self.store.resolve(guild_id, "ai_comment", message.channel.id):
                    logger.info("AI comments turned off mid-message; skipping %d image(s)", len(images) - i)
                    break
            prompt = self.store.global_settings.ai_prompt
            mode = self.store.api.mode
            try:
                async with message.channel.typing():
                    comment = await strategy.annotate(attachment.url, prompt, mode)
                if not comment:
                    logger.info("No comment produced for %s", attachment.filename)
                    continue
                await message.reply(comment[:MAX_REPLY_CHARS])
                posted += 1
                logger.info("Posted comment: %.30s...", comment)
            except discord.HTTPException as e:
                logger.warning("Could not post comment for %s: %s", attachment.filename, e)
            except Exception:
                logger.exception("Comment failed for %s", attachment.filename)
        return posted
