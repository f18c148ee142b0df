from __future__ import annotations

from typing import Iterable, List, Optional

from ..errors import NoCredentialsAvailable


def parse_keys(raw: str) -> List[str]:
    """Split a comma-separated key list, dropping blanks."""
    return [k.strip() for k in (raw or "").split(",") if k.strip()]


class CredentialRotator:
    """Round-robin over the API keys of one provider.

    `draw()` reads and advances the cursor with no await in between, so
    concurrent tasks on the event loop never hand out the same slot twice.
    """

    def __init__(self, name: str, keys: Optional[Iterable[str]] = None):
        self.name = name
        self.keys: List[str] = []
        self.cursor = 0
        self.replace(keys or [])

    def replace(self, keys: Iterable[str]) -> None:
        self.keys = [k.strip() for k in keys if k and k.strip()]
        self.cursor = 0

    def draw(self) -> str:
        if not self.keys:
            raise NoCredentialsAvailable(f"No {self.name} API key configured")
        key = self.keys[self.cursor]
        self.cursor = (self.cursor + 1) % len(self.keys)
        return key

    def peek_first(self) -> str:
        # connection test: does not rotate
        if not self.keys:
            raise NoCredentialsAvailable(f"No {self.name} API key configured")
        return self.keys[0]

    def masked(self) -> List[str]:
        out = []
        for k in self.keys:
            out.append(f"{k[:4]}…{k[-4:]}" if len(k) > 10 else "****")
        return out

    def __len__(self) -> int:
        return len(self.keys)

    def __bool__(self) -> bool:
        return bool(self.keys)

    def __repr__(self) -> str:
        return f"CredentialRotator({self.name!r}, keys={len(self.keys)}, cursor={self.cursor})"
