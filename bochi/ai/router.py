from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from ..config import BotConfig
from ..errors import BochiError, NoCredentialsAvailable, ProviderCallFailed
from ..settings_store import ApiSettings, ProcessingMode, SettingsStore
from . import gemini_client, openai_compat
from .fetch import fetch_image
from .refusals import RefusalPolicy

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "openai")  # openai = OpenAI-compatible (OpenAI, Groq, proxies, etc.)

# Only keep models that can take images when listing OpenAI-compatible endpoints.
_VISION_MODEL_HINTS = ("vision", "gpt-4", "gpt-4o")

UrlCall = Callable[[str, str], Awaitable[str]]
BytesCall = Callable[[str, bytes, str], Awaitable[str]]
Fetcher = Callable[..., Awaitable[Tuple[bytes, str]]]


@dataclass
class VisionProvider:
    name: str
    usable: bool
    by_url: UrlCall
    by_bytes: BytesCall


def provider_usable(api: ApiSettings, name: str) -> bool:
    if name == "gemini":
        return gemini_client.is_configured(api)
    if name == "openai":
        return openai_compat.is_configured(api)
    return False


def active_provider(store: SettingsStore, cfg: BotConfig) -> VisionProvider:
    api = store.api
    if api.use_gemini:

        async def by_url(prompt: str, url: str) -> str:
            return await gemini_client.describe_image_url(api, prompt, url)

        async def by_bytes(prompt: str, data: bytes, mime: str) -> str:
            return await gemini_client.describe_image_bytes(api, prompt, data, mime)

        return VisionProvider("gemini", provider_usable(api, "gemini"), by_url, by_bytes)

    async def oa_by_url(prompt: str, url: str) -> str:
        return await openai_compat.describe_image_url(api, cfg, prompt, url)

    async def oa_by_bytes(prompt: str, data: bytes, mime: str) -> str:
        return await openai_compat.describe_image_bytes(api, cfg, prompt, data, mime)

    return VisionProvider("openai", provider_usable(api, "openai"), oa_by_url, oa_by_bytes)


class AnnotationStrategy:
    """Turn an image URL into comment text using one processing mode.

    `annotate()` never raises: every failure is logged and comes back as None.
    """

    def __init__(
        self,
        provider: VisionProvider,
        refusals: Optional[RefusalPolicy] = None,
        fetch: Fetcher = fetch_image,
        fetch_timeout_s: float = 30.0,
    ):
        self.provider = provider
        self.refusals = refusals or RefusalPolicy()
        self.fetch = fetch
        self.fetch_timeout_s = fetch_timeout_s

    async def by_url(self, image_url: str, prompt: str) -> str:
        logger.info("[%s] describing image by URL", self.provider.name)
        text = await self.provider.by_url(prompt, image_url)
        return self.refusals.check(text)

    async def by_download(self, image_url: str, prompt: str) -> str:
        logger.info("[%s] describing image by download", self.provider.name)
        data, mime = await self.fetch(image_url, timeout_s=self.fetch_timeout_s)
        text = await self.provider.by_bytes(prompt, data, mime)
        if not text:
            raise ProviderCallFailed("empty reply")
        return text

    async def _dispatch(self, image_url: str, prompt: str, mode: ProcessingMode) -> str:
        if mode in (ProcessingMode.URL, ProcessingMode.URLONLY):
            return await self.by_url(image_url, prompt)
        if mode is ProcessingMode.DOWNLOAD:
            return await self.by_download(image_url, prompt)

        try:
            return await self.by_url(image_url, prompt)
        except NoCredentialsAvailable:
            raise
        except ProviderCallFailed as e:
            logger.warning("[%s] URL path failed (%s), falling back to download", self.provider.name, e)
        except Exception:
            logger.warning("[%s] URL path crashed, falling back to download", self.provider.name, exc_info=True)
        return await self.by_download(image_url, prompt)

    async def annotate(self, image_url: str, prompt: str, mode: Union[ProcessingMode, str]) -> Optional[str]:
        if not isinstance(mode, ProcessingMode):
            mode = ProcessingMode.parse(mode)
        try:
            return await self._dispatch(image_url, prompt, mode)
        except BochiError as e:
            logger.warning("[%s] no comment for %s (%s mode): %s", self.provider.name, image_url[:120], mode.value, e)
        except Exception:
            logger.exception("[%s] unexpected error describing %s", self.provider.name, image_url[:120])
        return None


async def test_connection(store: SettingsStore, cfg: BotConfig) -> Tuple[bool, str]:
    api = store.api
    name = api.provider_name
    try:
        if name == "gemini":
            await gemini_client.ping(api)
        else:
            if not api.openai_base_url:
                return False, "OpenAI base URL is not configured"
            await openai_compat.ping(api, cfg)
    except NoCredentialsAvailable as e:
        return False, str(e)
    except ProviderCallFailed as e:
        return False, str(e)
    return True, f"{name} connection OK"


async def refresh_models(store: SettingsStore, cfg: BotConfig) -> Dict[str, List[str]]:
    """Refresh `api.available_models`; OpenAI errors propagate after Gemini is filled."""
    api = store.api
    api.available_models["gemini"] = gemini_client.list_models()
    models = await openai_compat.list_models(api, cfg)
    api.available_models["openai"] = [m for m in models if any(h in m for h in _VISION_MODEL_HINTS)]
    return api.available_models
