"""Small in-process TTL + LRU cache for API responses."""

import time
from collections import OrderedDict
from typing import Any, Callable, Optional


class ResponseCache:
    def __init__(self, ttl_seconds: float = 300, max_entries: int = 500, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._data: "OrderedDict[str, tuple]" = OrderedDict()  # key -> (expires_at, value)
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        item = self._data.get(key)
        if item is None:
            self.misses += 1
            return None
        expires_at, value = item
        if self._clock() >= expires_at:
            del self._data[key]
            self.misses += 1
            return None
        self._data.move_to_end(key)
        self.hits += 1
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + (ttl if ttl is not None else self.ttl_seconds)
        self._data[key] = (expires_at, value)
        self._data.move_to_end(key)
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Drop every entry, or only keys starting with prefix."""
        if prefix is None:
            count = len(self._data)
            self._data.clear()
            return count
        keys = [k for k in self._data if k.startswith(prefix)]
        for k in keys:
            del self._data[k]
        return len(keys)

    def stats(self) -> dict:
        return {"hits": self.hits, "misses": self.misses, "size": len(self._data)}
