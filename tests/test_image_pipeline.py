"""
End-to-end message handling for image posts, with providers and sleep stubbed.
"""
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from bochi.ai import gemini_client
from bochi.components.image_pipeline import ImagePipeline, split_attachments
from bochi.config import DEFAULT_REACTION_EMOJIS
from bochi.errors import ProviderCallFailed
from bochi.settings_store import ProcessingMode
from conftest import CHANNEL_ID, GUILD_ID, make_attachment, make_message


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def fetch():
    return AsyncMock(return_value=(b"\x89PNG", "image/png"))


@pytest.fixture
def gemini(monkeypatch):
    by_url = AsyncMock(return_value="What a lovely picture!")
    by_bytes = AsyncMock(return_value="Nice colours!")
    monkeypatch.setattr(gemini_client, "describe_image_url", by_url)
    monkeypatch.setattr(gemini_client, "describe_image_bytes", by_bytes)
    return by_url, by_bytes


@pytest.fixture
def pipeline(cfg, state, sleeps, fetch):
    return ImagePipeline(MagicMock(), cfg, state, sleep=sleeps, fetch=fetch)


def enable(store, reaction=True, comment=True):
    srv = store.server(GUILD_ID)
    srv.auto_reaction = reaction
    srv.ai_comment = comment


def test_split_attachments_keeps_images_only():
    pdf = make_attachment(2, content_type="application/pdf")
    img = make_attachment(1)
    none = make_attachment(3, content_type=None)
    assert split_attachments([pdf, img, none]) == [img]


@pytest.mark.asyncio
async def test_single_image_gets_reaction_and_comment(pipeline, store, gemini):
    enable(store)
    msg = make_message(attachments=[make_attachment(1)])

    await pipeline.on_message(msg)

    msg.add_reaction.assert_awaited_once()
    assert msg.add_reaction.await_args.args[0] in DEFAULT_REACTION_EMOJIS
    msg.reply.assert_awaited_once_with("What a lovely picture!")
    assert msg.channel.typing_count == 1
    assert store.global_settings.channel_stats[CHANNEL_ID].reaction_count == 1


@pytest.mark.asyncio
async def test_reactions_off_comment_on(pipeline, store, gemini):
    enable(store, reaction=False, comment=True)
    msg = make_message(attachments=[make_attachment(1)])

    await pipeline.on_message(msg)

    msg.add_reaction.assert_not_awaited()
    msg.reply.assert_awaited_once()
    # channel is still tracked even with no reaction
    assert store.global_settings.channel_stats[CHANNEL_ID].reaction_count == 0


@pytest.mark.asyncio
async def test_three_images_are_paced(pipeline, store, gemini, sleeps):
    enable(store)
    msg = make_message(attachments=[make_attachment(i) for i in (1, 2, 3)])

    await pipeline.on_message(msg)

    assert msg.add_reaction.await_count == 3
    assert msg.reply.await_count == 3
    assert sleeps.calls == [1.0, 1.0]
    assert store.total_reactions() == 3


@pytest.mark.asyncio
async def test_blocked_author_gets_nothing(pipeline, store, gemini):
    enable(store)
    msg = make_message(attachments=[make_attachment(1)])
    store.block_user(msg.author.id)

    await pipeline.on_message(msg)

    msg.add_reaction.assert_not_awaited()
    msg.reply.assert_not_awaited()
    assert store.global_settings.channel_stats == {}


@pytest.mark.asyncio
async def test_bot_authors_and_plain_text_are_ignored(pipeline, store, gemini):
    enable(store)
    from_bot = make_message(attachments=[make_attachment(1)], bot=True)
    text_only = make_message(content="hello")

    await pipeline.on_message(from_bot)
    await pipeline.on_message(text_only)

    from_bot.add_reaction.assert_not_awaited()
    text_only.reply.assert_not_awaited()


@pytest.mark.asyncio
async def test_channel_override_disables_server_setting(pipeline, store, gemini):
    enable(store)
    store.set_channel_override(GUILD_ID, CHANNEL_ID, "ai_comment", False)
    msg = make_message(attachments=[make_attachment(1)])

    await pipeline.on_message(msg)

    msg.add_reaction.assert_awaited_once()
    msg.reply.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_reaction_retries_with_another_emoji(pipeline, store, gemini):
    enable(store, comment=False)
    msg = make_message(attachments=[make_attachment(1)])
    bad = discord.HTTPException(MagicMock(status=400, reason="Bad Request"), "Unknown Emoji")
    msg.add_reaction = AsyncMock(side_effect=[bad, None])

    await pipeline.on_message(msg)

    assert msg.add_reaction.await_count == 2
    first, second = (c.args[0] for c in msg.add_reaction.await_args_list)
    assert first != second
    assert store.total_reactions() == 1


@pytest.mark.asyncio
async def test_refused_url_reply_falls_back_to_download(pipeline, store, gemini, fetch):
    enable(store, reaction=False)
    by_url, by_bytes = gemini
    by_url.return_value = "I'm sorry, I cannot access external links."
    msg = make_message(attachments=[make_attachment(1)])

    await pipeline.on_message(msg)

    fetch.assert_awaited_once()
    by_bytes.assert_awaited_once()
    msg.reply.assert_awaited_once_with("Nice colours!")


@pytest.mark.asyncio
async def test_no_credentials_skips_comments_silently(pipeline, store, gemini):
    enable(store)
    store.api.gemini_keys.replace([])
    msg = make_message(attachments=[make_attachment(1)])

    await pipeline.on_message(msg)

    msg.add_reaction.assert_awaited_once()
    msg.reply.assert_not_awaited()
    msg.channel.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_prompt_change_mid_message_is_picked_up(pipeline, store, gemini, sleeps):
    enable(store, reaction=False)
    by_url, _ = gemini

    async def change_prompt(seconds):
        sleeps.calls.append(seconds)
        store.set_prompt("Be brief")

    pipeline.sleep = change_prompt
    msg = make_message(attachments=[make_attachment(1), make_attachment(2)])

    await pipeline.on_message(msg)

    prompts = [c.args[1] for c in by_url.await_args_list]
    assert prompts[0] != "Be brief"
    assert prompts[1] == "Be brief"


@pytest.mark.asyncio
async def test_long_comment_is_truncated(pipeline, store, gemini):
    enable(store, reaction=False)
    gemini[0].return_value = "x" * 2500
    msg = make_message(attachments=[make_attachment(1)])

    await pipeline.on_message(msg)

    assert len(msg.reply.await_args.args[0]) == 1900


@pytest.mark.asyncio
async def test_two_images_react_from_global_pool(pipeline, store, gemini):
    enable(store, comment=False)
    store.set_reaction_emojis(["👍", "❤️"])
    msg = make_message(attachments=[make_attachment(1), make_attachment(2)])

    await pipeline.on_message(msg)

    assert msg.add_reaction.await_count == 2
    assert all(c.args[0] in ("👍", "❤️") for c in msg.add_reaction.await_args_list)


@pytest.mark.asyncio
async def test_urlonly_network_error_leaves_reactions_alone(pipeline, store, gemini, fetch):
    enable(store)
    store.api.mode = ProcessingMode.URLONLY
    by_url, _ = gemini
    by_url.side_effect = ProviderCallFailed("Gemini error: connection reset")
    msg = make_message(attachments=[make_attachment(1)])

    await pipeline.on_message(msg)

    msg.reply.assert_not_awaited()
    fetch.assert_not_awaited()
    msg.add_reaction.assert_awaited_once()


@pytest.mark.asyncio
async def test_download_mode_replies_in_order(pipeline, store, gemini, sleeps, fetch):
    enable(store, reaction=False)
    store.api.mode = ProcessingMode.DOWNLOAD
    _, by_bytes = gemini
    by_bytes.side_effect = ["first", "second", "third"]
    images = [make_attachment(i) for i in (1, 2, 3)]
    msg = make_message(attachments=images)

    await pipeline.on_message(msg)

    assert [c.args[0] for c in msg.reply.await_args_list] == ["first", "second", "third"]
    assert [c.args[0] for c in fetch.await_args_list] == [a.url for a in images]
    assert len(sleeps.calls) == 2 and all(s >= 1.0 for s in sleeps.calls)


@pytest.mark.asyncio
async def test_comments_turned_off_mid_message_stop_the_rest(pipeline, store, gemini):
    enable(store, reaction=False)

    async def admin_turns_comments_off(seconds):
        store.toggle(GUILD_ID, "ai_comment")

    pipeline.sleep = admin_turns_comments_off
    msg = make_message(attachments=[make_attachment(i) for i in (1, 2, 3)])

    await pipeline.on_message(msg)

    msg.reply.assert_awaited_once_with("What a lovely picture!")
    assert gemini[0].await_count == 1
