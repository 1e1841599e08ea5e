"""
Process-local cache keyed by tag, with explicit invalidation after writes.
"""
import threading
import time
from typing import Any, Callable, Optional


class TaggedCache:
    """Caches one loaded value per tag until it expires or is invalidated."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get_or_load(self, tag: str, loader: Callable[[], Any], ttl_seconds: Optional[float] = None) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(tag)
            if entry and entry[0] > now:
                return entry[1]
            generation = self._generations.get(tag, 0)

        value = loader()
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            # An invalidate during the load means the value may already be stale
            if self._generations.get(tag, 0) == generation:
                self._entries[tag] = (now + ttl, value)
        return value

    def invalidate(self, tag: str) -> bool:
        """Drop the cached value for ``tag``. Returns True if one was present."""
        with self._lock:
            self._generations[tag] = self._generations.get(tag, 0) + 1
            return self._entries.pop(tag, None) is not None

    def clear(self) -> None:
        with self._lock:
            for tag in set(self._entries) | set(self._generations):
                self._generations[tag] = self._generations.get(tag, 0) + 1
            self._entries.clear()


BUSINESS_CONFIG_TAG = 'business-config'

business_cache = TaggedCache()
