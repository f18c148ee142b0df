from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List


DEFAULT_PROMPT = (
    "Give a short, warm and positive comment on this image. "
    "Be sincere and specific, don't exaggerate. Keep it under 50 words."
)
DEFAULT_REACTION_EMOJIS = ["👍", "❤️", "🎨", "✨", "🔥"]
DEFAULT_COMPONENTS = "image_pipeline,settings,ai_settings,user_prefs,system_help"


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name, str(default)).strip().lower()
    return v in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)).strip())
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)).strip())
    except Exception:
        return default


def _env_csv(name: str) -> List[str]:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return []
    parts = [p.strip() for p in raw.split(",")]
    return [p for p in parts if p]


@dataclass(frozen=True)
class BotConfig:
    token: str
    global_admin_id: int

    # Provider routing
    ai_provider: str  # "gemini" or "openai" (OpenAI-compatible)

    # Gemini
    gemini_api_keys: List[str]
    gemini_model: str

    # OpenAI-compatible
    openai_base_url: str
    openai_api_keys: List[str]
    openai_model: str
    openai_timeout_s: float
    openai_max_tokens: int

    # Image handling
    image_processing_mode: str
    image_fetch_timeout_s: float
    comment_pacing_s: float
    ai_prompt: str
    reaction_emojis: List[str]
    global_auto_reaction: bool
    global_ai_comment: bool
    refusal_phrases: List[str]

    components: List[str]
    log_level: str


def load_config() -> BotConfig:
    token = os.getenv("DISCORD_TOKEN", "").strip()
    global_admin_id = _env_int("BOCHI_GLOBAL_ADMIN_ID", 0)

    ai_provider = (os.getenv("AI_PROVIDER", "gemini") or "gemini").strip().lower()
    if ai_provider not in ("gemini", "openai"):
        ai_provider = "gemini"

    # Gemini (several keys rotate round-robin)
    gemini_api_keys = _env_csv("GEMINI_API_KEYS")
    gemini_model = (os.getenv("GEMINI_MODEL", "gemini-2.5-flash") or "gemini-2.5-flash").strip()

    # OpenAI-compatible (OpenAI, Groq, proxies, etc.)
    openai_base_url = (os.getenv("OPENAI_BASE_URL", "") or "").strip().rstrip("/")
    openai_api_keys = _env_csv("OPENAI_API_KEYS") or _env_csv("OPENAI_API_KEY")
    openai_model = (os.getenv("OPENAI_MODEL", "gpt-4o-mini") or "gpt-4o-mini").strip()
    openai_timeout_s = _env_float("OPENAI_TIMEOUT_S", 45.0)
    openai_max_tokens = _env_int("OPENAI_MAX_TOKENS", 300)

    image_processing_mode = (os.getenv("IMAGE_PROCESSING_MODE", "smart") or "smart").strip().lower()
    image_fetch_timeout_s = _env_float("IMAGE_FETCH_TIMEOUT_S", 30.0)
    comment_pacing_s = max(0.0, _env_float("COMMENT_PACING_S", 1.0))
    ai_prompt = (os.getenv("AI_PROMPT", "") or "").strip() or DEFAULT_PROMPT

    emojis_raw = (os.getenv("REACTION_EMOJIS", "") or "").strip()
    reaction_emojis = emojis_raw.split() if emojis_raw else list(DEFAULT_REACTION_EMOJIS)

    global_auto_reaction = _env_bool("GLOBAL_AUTO_REACTION", True)
    global_ai_comment = _env_bool("GLOBAL_AI_COMMENT", True)
    refusal_phrases = _env_csv("REFUSAL_PHRASES")

    comps_raw = os.getenv("COMPONENTS", DEFAULT_COMPONENTS).strip()
    components = [c.strip() for c in comps_raw.split(",") if c.strip()]

    log_level = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()

    if not token:
        raise RuntimeError("Missing DISCORD_TOKEN (set in .env)")

    return BotConfig(
        token=token,
        global_admin_id=global_admin_id,
        ai_provider=ai_provider,
        gemini_api_keys=gemini_api_keys,
        gemini_model=gemini_model,
        openai_base_url=openai_base_url,
        openai_api_keys=openai_api_keys,
        openai_model=openai_model,
        openai_timeout_s=openai_timeout_s,
        openai_max_tokens=openai_max_tokens,
        image_processing_mode=image_processing_mode,
        image_fetch_timeout_s=image_fetch_timeout_s,
        comment_pacing_s=comment_pacing_s,
        ai_prompt=ai_prompt,
        reaction_emojis=reaction_emojis,
        global_auto_reaction=global_auto_reaction,
        global_ai_comment=global_ai_comment,
        refusal_phrases=refusal_phrases,
        components=components,
        log_level=log_level,
    )
