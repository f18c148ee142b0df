from __future__ import annotations

import random
from typing import List, Optional, Sequence

from .settings_store import SettingsStore


class ReactionSelector:
    def __init__(self, store: SettingsStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()

    def pool(self, server_id: Optional[int]) -> List[str]:
        # global first, then server picks; duplicates are kept on purpose
        base = list(self.store.global_settings.reaction_emojis)
        if server_id is None:
            return base
        return base + list(self.store.server(server_id).selected_server_emojis)

    def pick(self, pool: Sequence[str]) -> Optional[str]:
        if not pool:
            return None
        return pool[self.rng.randrange(len(pool))]

    def fallback_pick(self, failed: str) -> Optional[str]:
        """Random global emoji other than the one that just failed."""
        candidates = [e for e in self.store.global_settings.reaction_emojis if e != failed]
        return self.pick(candidates)
