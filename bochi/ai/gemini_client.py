from __future__ import annotations

from typing import List, Optional

from google import genai
from google.genai import types

from ..errors import ProviderCallFailed
from ..settings_store import ApiSettings

# Shown by `!** bochi ai models`; Gemini has no cheap per-key listing we rely on.
KNOWN_MODELS = [
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.0-flash",
    "gemini-1.5-flash",
    "gemini-1.5-pro",
]


def is_configured(api: ApiSettings) -> bool:
    return bool(api.gemini_keys)


async def _generate(api_key: str, model: str, contents, config: Optional[types.GenerateContentConfig] = None) -> str:
    client = genai.Client(api_key=api_key)
    try:
        resp = await client.aio.models.generate_content(model=model, contents=contents, config=config)
    except Exception as e:
        raise ProviderCallFailed(f"Gemini error: {e}") from e
    return (resp.text or "").strip()


async def describe_image_url(api: ApiSettings, prompt: str, image_url: str) -> str:
    # URL context tool lets the model fetch the image itself (no download on our side)
    key = api.gemini_keys.draw()
    config = types.GenerateContentConfig(tools=[types.Tool(url_context=types.UrlContext())])
    contents = [f"{prompt}\n\nPlease analyse this image: {image_url}"]
    return await _generate(key, api.gemini_model, contents, config=config)


async def describe_image_bytes(api: ApiSettings, prompt: str, data: bytes, mime_type: str) -> str:
    key = api.gemini_keys.draw()
    image_part = types.Part.from_bytes(data=data, mime_type=mime_type)
    return await _generate(key, api.gemini_model, [prompt, image_part])


async def ping(api: ApiSettings) -> str:
    return await _generate(api.gemini_keys.peek_first(), api.gemini_model, "Connection test")


def list_models() -> List[str]:
    return list(KNOWN_MODELS)
