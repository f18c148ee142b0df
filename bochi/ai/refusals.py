from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from ..errors import ProviderDeclined

logger = logging.getLogger(__name__)

# Phrases a model uses when it can't actually open a linked image.
DEFAULT_REFUSAL_PHRASES: Tuple[str, ...] = (
    "cannot access",
    "unable to access",
    "cannot see",
    "cannot view",
    "unable to see",
    "unable to view",
    "i cannot",
    "i'm unable",
    "cannot directly",
    "unable to directly",
    "无法访问",
    "无法直接",
    "我无法",
    "无法查看",
    "无法看到",
    "抱歉，我无法",
    "很抱歉，我无法",
    "无法分析",
    "无法处理",
)


class RefusalPolicy:
    """Case-insensitive substring match on URL-path replies."""

    def __init__(self, phrases: Optional[Iterable[str]] = None, extra: Optional[Iterable[str]] = None):
        base = DEFAULT_REFUSAL_PHRASES if phrases is None else tuple(phrases)
        merged = list(base) + list(extra or [])
        self.phrases = tuple(p.strip().lower() for p in merged if p and p.strip())

    def match(self, text: str) -> Optional[str]:
        low = (text or "").lower()
        for phrase in self.phrases:
            if phrase in low:
                return phrase
        return None

    def check(self, text: str) -> str:
        """Return the text, or raise ProviderDeclined if it reads like a refusal."""
        if not (text or "").strip():
            raise ProviderDeclined("<empty>", text or "")
        phrase = self.match(text)
        if phrase:
            logger.info("URL reply looks like a refusal (matched %r): %.50s", phrase, text)
            raise ProviderDeclined(phrase, text)
        return text
