"""
Shared fixtures: an in-memory store, a config built without touching the
environment, and lightweight fakes for discord messages.
"""
import random
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from bochi.components.base import BotState
from bochi.config import DEFAULT_PROMPT, DEFAULT_REACTION_EMOJIS, BotConfig
from bochi.reactions import ReactionSelector
from bochi.settings_store import SettingsStore

GUILD_ID = 1000
CHANNEL_ID = 2000
OWNER_ID = 111111111111111111
USER_ID = 222222222222222222


class FakeTyping:
    def __init__(self, channel):
        self.channel = channel

    async def __aenter__(self):
        self.channel.typing_count += 1
        return self

    async def __aexit__(self, *exc):
        return False


class FakeChannel:
    def __init__(self, id=CHANNEL_ID, name="art"):
        self.id = id
        self.name = name
        self.send = AsyncMock()
        self.typing_count = 0

    def typing(self):
        return FakeTyping(self)


def make_attachment(n=1, content_type="image/png"):
    return SimpleNamespace(
        url=f"https://cdn.discordapp.com/attachments/1/{n}/pic{n}.png",
        filename=f"pic{n}.png",
        content_type=content_type,
    )


def make_message(content="", attachments=None, author_id=USER_ID, guild_id=GUILD_ID, channel=None, bot=False):
    guild = None
    if guild_id is not None:
        guild = MagicMock()
        guild.id = guild_id
        guild.owner_id = OWNER_ID
        guild.emojis = []
        guild.get_channel = MagicMock(return_value=None)
    author = SimpleNamespace(id=author_id, bot=bot, guild=guild)
    msg = MagicMock()
    msg.id = 555
    msg.content = content
    msg.author = author
    msg.guild = guild
    msg.channel = channel or FakeChannel()
    msg.attachments = list(attachments or [])
    msg.channel_mentions = []
    msg.created_at = datetime.now(timezone.utc)
    msg.add_reaction = AsyncMock()
    msg.reply = AsyncMock()
    msg.delete = AsyncMock()
    return msg


@pytest.fixture
def cfg():
    return BotConfig(
        token="test-token",
        global_admin_id=0,
        ai_provider="gemini",
        gemini_api_keys=["gem-key-aaaaaaaa-1"],
        gemini_model="gemini-2.5-flash",
        openai_base_url="",
        openai_api_keys=[],
        openai_model="gpt-4o-mini",
        openai_timeout_s=45.0,
        openai_max_tokens=300,
        image_processing_mode="smart",
        image_fetch_timeout_s=30.0,
        comment_pacing_s=1.0,
        ai_prompt=DEFAULT_PROMPT,
        reaction_emojis=list(DEFAULT_REACTION_EMOJIS),
        global_auto_reaction=True,
        global_ai_comment=True,
        refusal_phrases=[],
        components=["image_pipeline", "settings", "ai_settings", "user_prefs", "system_help"],
        log_level="INFO",
    )


@pytest.fixture
def store(cfg):
    return SettingsStore.from_config(cfg)


@pytest.fixture
def state(store):
    return BotState(store=store, reactions=ReactionSelector(store, rng=random.Random(7)))


class FakeResponse:
    def __init__(self, status=200, body=b"", headers=None, payload=None, text=""):
        self.status = status
        self.body = body
        self.headers = headers or {}
        self.payload = payload
        self.text_body = text

    async def read(self):
        return self.body

    async def json(self):
        return self.payload

    async def text(self):
        return self.text_body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, http, **kwargs):
        self.http = http
        self.kwargs = kwargs

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def _request(self, method, url, **kw):
        self.http.calls.append({"method": method, "url": url, "session": self.kwargs, **kw})
        if self.http.error is not None:
            raise self.http.error
        return self.http.response

    def get(self, url, **kw):
        return self._request("GET", url, **kw)

    def post(self, url, **kw):
        return self._request("POST", url, **kw)


class FakeHttp:
    """Stands in for aiohttp.ClientSession; records every request."""

    def __init__(self):
        self.calls = []
        self.response = FakeResponse()
        self.error = None

    def session(self, **kwargs):
        return FakeSession(self, **kwargs)


class FakeGemini:
    """Stands in for google.genai.Client; records the key each client was built with."""

    def __init__(self):
        self.keys = []
        self.generate = AsyncMock(return_value=SimpleNamespace(text="  Pretty colours!  "))

    def client(self, api_key=None):
        self.keys.append(api_key)
        return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=self.generate)))


@pytest.fixture
def http(monkeypatch):
    import aiohttp

    fake = FakeHttp()
    monkeypatch.setattr(aiohttp, "ClientSession", fake.session)
    return fake


@pytest.fixture
def gemini_sdk(monkeypatch):
    from bochi.ai import gemini_client

    fake = FakeGemini()
    monkeypatch.setattr(gemini_client.genai, "Client", fake.client)
    return fake
