from __future__ import annotations

import asyncio
from typing import Tuple

import aiohttp

from ..errors import ProviderCallFailed

USER_AGENT = "DiscordBot (https://discord.com)"
DEFAULT_MIME = "image/jpeg"


def _mime_from_header(content_type: str) -> str:
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    return mime or DEFAULT_MIME


async def fetch_image(url: str, timeout_s: float = 30.0) -> Tuple[bytes, str]:
    """Download an image; returns (bytes, mime_type)."""
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    headers = {"User-Agent": USER_AGENT}
    try:
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise ProviderCallFailed(f"Image download error {resp.status}: {url[:200]}")
                data = await resp.read()
                mime = _mime_from_header(resp.headers.get("Content-Type", ""))
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ProviderCallFailed(f"Image download failed: {e!r}") from e
    if not data:
        raise ProviderCallFailed("Image download returned no data")
    return data, mime
