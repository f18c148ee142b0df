from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from .ai.credentials import CredentialRotator
from .config import DEFAULT_PROMPT, DEFAULT_REACTION_EMOJIS, BotConfig

logger = logging.getLogger(__name__)

SCOPED_FLAGS = ("auto_reaction", "ai_comment")


def _check_flag(name: str) -> str:
    if name not in SCOPED_FLAGS:
        raise ValueError(f"Unknown scoped setting: {name!r} (expected one of {', '.join(SCOPED_FLAGS)})")
    return name


class ProcessingMode(str, Enum):
    URL = "url"  # URL only, saves bandwidth
    DOWNLOAD = "download"  # download only, most reliable
    SMART = "smart"  # URL first, download on failure
    URLONLY = "urlonly"  # URL only, skip on failure

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ProcessingMode":
        v = (raw or "").strip().lower()
        for m in cls:
            if m.value == v:
                return m
        logger.warning("Unknown image processing mode %r, using smart", raw)
        return cls.SMART


@dataclass
class ChannelOverride:
    auto_reaction: Optional[bool] = None
    ai_comment: Optional[bool] = None

    def get(self, name: str) -> Optional[bool]:
        return getattr(self, _check_flag(name))

    def is_empty(self) -> bool:
        return self.auto_reaction is None and self.ai_comment is None


@dataclass
class ChannelStat:
    name: str
    reaction_count: int = 0
    last_update: datetime = field(default_factory=datetime.now)


@dataclass
class ServerSettings:
    # opt-in per server; not inherited from global
    auto_reaction: bool = False
    ai_comment: bool = False
    selected_server_emojis: List[str] = field(default_factory=list)
    server_emojis_cache: List[str] = field(default_factory=list)
    channel_settings: Dict[int, ChannelOverride] = field(default_factory=dict)


@dataclass
class GlobalSettings:
    auto_reaction: bool = True
    ai_comment: bool = True
    reaction_emojis: List[str] = field(default_factory=lambda: list(DEFAULT_REACTION_EMOJIS))
    ai_prompt: str = DEFAULT_PROMPT
    allowed_users: Set[int] = field(default_factory=set)
    allowed_channels: Set[int] = field(default_factory=set)  # empty = unrestricted
    blocked_users: Set[int] = field(default_factory=set)
    channel_stats: Dict[int, ChannelStat] = field(default_factory=dict)


@dataclass
class ApiSettings:
    use_gemini: bool = True
    gemini_keys: CredentialRotator = field(default_factory=lambda: CredentialRotator("Gemini"))
    gemini_model: str = "gemini-2.5-flash"
    openai_base_url: str = ""
    openai_keys: CredentialRotator = field(default_factory=lambda: CredentialRotator("OpenAI"))
    openai_model: str = "gpt-4o-mini"
    mode: ProcessingMode = ProcessingMode.SMART
    available_models: Dict[str, List[str]] = field(default_factory=lambda: {"gemini": [], "openai": []})

    @property
    def provider_name(self) -> str:
        return "gemini" if self.use_gemini else "openai"


class SettingsStore:
    """In-memory bot settings: global -> server -> channel.

    Lives for the process lifetime; nothing is written to disk.
    """

    def __init__(self, global_settings: Optional[GlobalSettings] = None, api: Optional[ApiSettings] = None):
        self.global_settings = global_settings or GlobalSettings()
        self.api = api or ApiSettings()
        self.servers: Dict[int, ServerSettings] = {}

    @classmethod
    def from_config(cls, cfg: BotConfig) -> "SettingsStore":
        g = GlobalSettings(
            auto_reaction=cfg.global_auto_reaction,
            ai_comment=cfg.global_ai_comment,
            reaction_emojis=list(cfg.reaction_emojis),
            ai_prompt=cfg.ai_prompt,
        )
        api = ApiSettings(
            use_gemini=cfg.ai_provider == "gemini",
            gemini_keys=CredentialRotator("Gemini", cfg.gemini_api_keys),
            gemini_model=cfg.gemini_model,
            openai_base_url=cfg.openai_base_url,
            openai_keys=CredentialRotator("OpenAI", cfg.openai_api_keys),
            openai_model=cfg.openai_model,
            mode=ProcessingMode.parse(cfg.image_processing_mode),
        )
        return cls(global_settings=g, api=api)

    def reset(self) -> None:
        self.global_settings = GlobalSettings()
        self.api = ApiSettings()
        self.servers = {}

    # --- scoped flags ---

    def server(self, server_id: int) -> ServerSettings:
        sid = int(server_id)
        if sid not in self.servers:
            self.servers[sid] = ServerSettings()
        return self.servers[sid]

    def resolve(self, server_id: Optional[int], name: str, channel_id: Optional[int] = None) -> bool:
        _check_flag(name)
        if server_id is None:
            # DMs and other server-less contexts
            return bool(getattr(self.global_settings, name))

        srv = self.server(server_id)
        if channel_id is not None:
            ov = srv.channel_settings.get(int(channel_id))
            if ov is not None:
                v = ov.get(name)
                if v is not None:
                    return v
        return bool(getattr(srv, name))

    def toggle(self, server_id: int, name: str) -> bool:
        _check_flag(name)
        srv = self.server(server_id)
        new = not getattr(srv, name)
        setattr(srv, name, new)
        dropped = self.reset_child_overrides(server_id)
        logger.info("Server %s %s -> %s (cleared %d channel overrides)", server_id, name, new, dropped)
        return new

    def reset_child_overrides(self, server_id: int) -> int:
        srv = self.server(server_id)
        dropped = len(srv.channel_settings)
        srv.channel_settings = {}
        return dropped

    def toggle_channel(self, server_id: int, channel_id: int, name: str) -> bool:
        _check_flag(name)
        srv = self.server(server_id)
        cid = int(channel_id)
        ov = srv.channel_settings.get(cid)
        if ov is None:
            # seed both flags so the new override never half-inherits
            ov = ChannelOverride(auto_reaction=srv.auto_reaction, ai_comment=srv.ai_comment)
            srv.channel_settings[cid] = ov
        current = ov.get(name)
        if current is None:
            current = bool(getattr(srv, name))
        setattr(ov, name, not current)
        return not current

    def set_channel_override(self, server_id: int, channel_id: int, name: str, value: Optional[bool]) -> None:
        _check_flag(name)
        srv = self.server(server_id)
        cid = int(channel_id)
        ov = srv.channel_settings.get(cid) or ChannelOverride()
        setattr(ov, name, value)
        if ov.is_empty():
            srv.channel_settings.pop(cid, None)
        else:
            srv.channel_settings[cid] = ov

    def clear_channel_override(self, server_id: int, channel_id: int) -> bool:
        return self.server(server_id).channel_settings.pop(int(channel_id), None) is not None

    def channel_overrides(self, server_id: int) -> Dict[int, ChannelOverride]:
        srv = self.server(server_id)
        return {cid: ov for cid, ov in srv.channel_settings.items() if not ov.is_empty()}

    # --- users & channels ---

    def is_blocked(self, user_id: int) -> bool:
        return int(user_id) in self.global_settings.blocked_users

    def block_user(self, user_id: int) -> None:
        self.global_settings.blocked_users.add(int(user_id))

    def unblock_user(self, user_id: int) -> None:
        self.global_settings.blocked_users.discard(int(user_id))

    def clear_blocked_users(self) -> int:
        n = len(self.global_settings.blocked_users)
        self.global_settings.blocked_users.clear()
        return n

    def add_allowed_user(self, user_id: int) -> bool:
        uid = int(user_id)
        if uid in self.global_settings.allowed_users:
            return False
        self.global_settings.allowed_users.add(uid)
        return True

    def remove_allowed_user(self, user_id: int) -> bool:
        uid = int(user_id)
        if uid not in self.global_settings.allowed_users:
            return False
        self.global_settings.allowed_users.discard(uid)
        return True

    def set_allowed_channels(self, channel_ids: Iterable[int]) -> None:
        self.global_settings.allowed_channels = {int(c) for c in channel_ids}

    def clear_allowed_channels(self) -> None:
        self.global_settings.allowed_channels.clear()

    def channel_allowed(self, channel_id: int) -> bool:
        allowed = self.global_settings.allowed_channels
        return not allowed or int(channel_id) in allowed

    # --- emoji & prompt ---

    def set_reaction_emojis(self, emojis: Iterable[str]) -> None:
        self.global_settings.reaction_emojis = [e.strip() for e in emojis if e and e.strip()]

    def set_prompt(self, prompt: str) -> bool:
        p = (prompt or "").strip()
        if not p:
            return False
        self.global_settings.ai_prompt = p
        return True

    def cache_server_emojis(self, server_id: int, emojis: Iterable[str]) -> int:
        srv = self.server(server_id)
        srv.server_emojis_cache = list(emojis)
        return len(srv.server_emojis_cache)

    def select_server_emojis(self, server_id: int, emojis: Iterable[str]) -> List[str]:
        srv = self.server(server_id)
        cached = set(srv.server_emojis_cache)
        srv.selected_server_emojis = [e for e in emojis if e in cached]
        return list(srv.selected_server_emojis)

    def clear_selected_emojis(self, server_id: int) -> None:
        self.server(server_id).selected_server_emojis = []

    def clear_emoji_cache(self, server_id: int) -> int:
        srv = self.server(server_id)
        n = len(srv.server_emojis_cache)
        srv.server_emojis_cache = []
        srv.selected_server_emojis = []
        return n

    # --- channel statistics ---

    def touch_channel_stat(self, channel_id: int, name: str) -> ChannelStat:
        cid = int(channel_id)
        stat = self.global_settings.channel_stats.get(cid)
        if stat is None:
            stat = ChannelStat(name=name)
            self.global_settings.channel_stats[cid] = stat
        return stat

    def record_reaction(self, channel_id: int, name: str) -> ChannelStat:
        stat = self.touch_channel_stat(channel_id, name)
        stat.reaction_count += 1
        stat.last_update = datetime.now()
        stat.name = name
        return stat

    def top_channel_stats(self, limit: int = 10) -> List[tuple]:
        items = sorted(
            self.global_settings.channel_stats.items(),
            key=lambda kv: kv[1].reaction_count,
            reverse=True,
        )
        return items[: max(0, limit)]

    def total_reactions(self) -> int:
        return sum(s.reaction_count for s in self.global_settings.channel_stats.values())

    def clear_channel_stats(self) -> int:
        n = len(self.global_settings.channel_stats)
        self.global_settings.channel_stats = {}
        return n

    def clear_all(self) -> Dict[str, int]:
        before = {
            "channels": len(self.global_settings.channel_stats),
            "blocked_users": len(self.global_settings.blocked_users),
            "emojis": sum(len(s.server_emojis_cache) for s in self.servers.values()),
            "total_reactions": self.total_reactions(),
        }
        self.clear_channel_stats()
        self.clear_blocked_users()
        for sid in list(self.servers):
            self.clear_emoji_cache(sid)
        return before
