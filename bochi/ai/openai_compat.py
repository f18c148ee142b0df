from __future__ import annotations

import asyncio
import base64
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import BotConfig
from ..errors import NoCredentialsAvailable, ProviderCallFailed
from ..settings_store import ApiSettings


def _auth_headers(api_key: str) -> Dict[str, str]:
    if not api_key:
        return {}
    return {"Authorization": f"Bearer {api_key}"}


def _join(base: str, path: str) -> str:
    base = (base or "").rstrip("/")
    path = (path or "").lstrip("/")
    return f"{base}/{path}"


def is_configured(api: ApiSettings) -> bool:
    return bool(api.openai_keys) and bool(api.openai_base_url)


def _image_message(prompt: str, image_url: str) -> List[Dict[str, Any]]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        }
    ]


async def chat_messages(
    api: ApiSettings,
    cfg: BotConfig,
    messages: List[Dict[str, Any]],
    max_tokens: int,
    api_key: Optional[str] = None,
) -> str:
    if not api.openai_base_url:
        raise NoCredentialsAvailable("Missing OPENAI_BASE_URL")
    key = api_key or api.openai_keys.draw()

    payload = {
        "model": api.openai_model,
        "messages": messages,
        "max_tokens": int(max_tokens),
    }

    url = _join(api.openai_base_url, "v1/chat/completions")
    timeout = aiohttp.ClientTimeout(total=cfg.openai_timeout_s)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=_auth_headers(key)) as resp:
                if resp.status != 200:
                    txt = await resp.text()
                    raise ProviderCallFailed(f"OpenAI-compatible error {resp.status}: {txt[:500]}")
                data = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ProviderCallFailed(f"OpenAI-compatible request failed: {e!r}") from e

    if not isinstance(data, dict):
        raise ProviderCallFailed(f"OpenAI-compatible reply was not an object: {str(data)[:200]}")
    choices = data.get("choices") or []
    if not choices:
        return ""
    msg = (choices[0].get("message") or {}).get("content")
    return (msg or "").strip()


async def describe_image_url(api: ApiSettings, cfg: BotConfig, prompt: str, image_url: str) -> str:
    return await chat_messages(api, cfg, _image_message(prompt, image_url), max_tokens=cfg.openai_max_tokens)


async def describe_image_bytes(api: ApiSettings, cfg: BotConfig, prompt: str, data: bytes, mime_type: str) -> str:
    b64 = base64.b64encode(data).decode("ascii")
    data_uri = f"data:{mime_type};base64,{b64}"
    return await chat_messages(api, cfg, _image_message(prompt, data_uri), max_tokens=cfg.openai_max_tokens)


async def ping(api: ApiSettings, cfg: BotConfig) -> str:
    msgs = [{"role": "user", "content": "Connection test"}]
    return await chat_messages(api, cfg, msgs, max_tokens=10, api_key=api.openai_keys.peek_first())


async def list_models(api: ApiSettings, cfg: BotConfig) -> List[str]:
    if not is_configured(api):
        raise NoCredentialsAvailable("Missing OPENAI_BASE_URL / OPENAI_API_KEYS")

    url = _join(api.openai_base_url, "v1/models")
    timeout = aiohttp.ClientTimeout(total=min(15.0, cfg.openai_timeout_s))
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, headers=_auth_headers(api.openai_keys.peek_first())) as resp:
                if resp.status != 200:
                    txt = await resp.text()
                    raise ProviderCallFailed(f"OpenAI-compatible error {resp.status}: {txt[:500]}")
                data = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ProviderCallFailed(f"OpenAI-compatible request failed: {e!r}") from e

    out: List[str] = []
    for m in (data.get("data") or []):
        mid = (m.get("id") or "").strip()
        if mid:
            out.append(mid)
    out = sorted(set(out))
    return out
