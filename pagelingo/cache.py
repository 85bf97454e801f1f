"""Per-session cache of translated text batches."""

from __future__ import annotations

import json
from collections import OrderedDict
from typing import Dict, Optional, Sequence, Tuple

DEFAULT_MAX_ENTRIES = 256


def cache_key(target_language: str, texts: Sequence[str]) -> str:
    """Serialise a language and an ordered batch into a deterministic key."""

    return f"{target_language}:{json.dumps(list(texts), ensure_ascii=False)}"


class TranslationCache:
    """Maps (target language, exact ordered batch) to translated strings.

    Entries are immutable tuples. When ``max_entries`` is set, the least
    recently used entry is evicted once the bound is exceeded.
    """

    def __init__(self, max_entries: Optional[int] = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive or None.")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Tuple[str, ...]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, target_language: str, texts: Sequence[str]) -> Optional[Tuple[str, ...]]:
        key = cache_key(target_language, texts)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return entry

    def put(
        self,
        target_language: str,
        texts: Sequence[str],
        translations: Sequence[str],
    ) -> Tuple[str, ...]:
        if len(texts) != len(translations):
            raise ValueError(
                f"Expected {len(texts)} translations, received {len(translations)}."
            )
        key = cache_key(target_language, texts)
        existing = self._entries.get(key)
        if existing is not None:
            self._entries.move_to_end(key)
            return existing
        entry = tuple(translations)
        self._entries[key] = entry
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return entry

    def stats(self) -> Dict[str, int]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}
