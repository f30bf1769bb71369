import hashlib
from collections import OrderedDict


class EmbeddingCache:
    """In-process LRU cache for real embedding vectors with model awareness.

    Keys include the model name so switching models never serves stale vectors.
    Mock vectors are cheap to recompute and are never stored here.
    """

    def __init__(self, max_entries: int = 2048):
        self.max_entries = max_entries
        self._entries: OrderedDict[str, list[float]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def cache_key(text: str, model: str) -> str:
        return hashlib.md5(f"{model}::{text}".encode()).hexdigest()

    def get_cached(self, text: str, model: str) -> list[float] | None:
        """Return the cached vector for this text and model, if any."""
        key = self.cache_key(text, model)
        vector = self._entries.get(key)
        if vector is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return vector

    def store(self, text: str, model: str, embedding: list[float]) -> None:
        if self.max_entries <= 0:
            return
        key = self.cache_key(text, model)
        self._entries[key] = embedding
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
