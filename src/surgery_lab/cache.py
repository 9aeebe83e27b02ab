"""Bounded key/value cache with LRU eviction and lazy TTL expiry.

Expired entries are only removed when they are next read, or when they
happen to be the eviction victim. Nothing sweeps the cache in the background.
The cache is not thread-safe; callers sharing one across threads must lock
around it. Keys should carry the caller's identity (e.g. a user id).
"""
import logging
import time

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL = 5 * 60

# namespace -> (max_size, ttl seconds)
DEFAULT_NAMESPACES = {
    "cases": (50, 10 * 60),
    "resources": (30, 15 * 60),
    "quiz_results": (20, 5 * 60),
    "user_progress": (10, 2 * 60),
    "conversations": (15, 8 * 60),
    "dashboard": (150, 8 * 60),
}


class _Entry:
    __slots__ = ("value", "inserted_at", "accessed_at")

    def __init__(self, value, now: float):
        self.value = value
        self.inserted_at = now
        self.accessed_at = now


class BoundedCache:
    def __init__(self, max_size: int = DEFAULT_MAX_SIZE, ttl: float = DEFAULT_TTL, clock=time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._entries = {}
        self.hits = 0
        self.misses = 0

    def _expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.inserted_at > self.ttl

    def get(self, key, default=None):
        """Value for ``key``, or ``default`` on a miss.

        Stored values may be None, so callers that need to tell a miss apart
        pass their own sentinel as ``default``.
        """
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return default
        now = self._clock()
        if self._expired(entry, now):
            del self._entries[key]
            self.misses += 1
            logger.debug("Cache entry %r expired", key)
            return default
        entry.accessed_at = now
        self.hits += 1
        return entry.value

    def set(self, key, value) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_lru()
        self._entries[key] = _Entry(value, self._clock())

    def _evict_lru(self) -> None:
        oldest_key = None
        oldest_time = None
        for key, entry in self._entries.items():
            if oldest_time is None or entry.accessed_at < oldest_time:
                oldest_key = key
                oldest_time = entry.accessed_at
        if oldest_key is not None:
            del self._entries[oldest_key]
            logger.debug("Evicted least recently used cache entry %r", oldest_key)

    def has(self, key) -> bool:
        """Freshness check that touches neither counters nor access times."""
        entry = self._entries.get(key)
        return entry is not None and not self._expired(entry, self._clock())

    def delete(self, key) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "size": len(self._entries),
            "hit_rate": self.hits / total if total else 0.0,
            "total_requests": total,
            "hits": self.hits,
            "misses": self.misses,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key) -> bool:
        return self.has(key)


def make_caches(namespaces: dict | None = None, clock=time.monotonic) -> dict[str, BoundedCache]:
    """Build one independent cache per namespace."""
    namespaces = DEFAULT_NAMESPACES if namespaces is None else namespaces
    return {
        name: BoundedCache(max_size=size, ttl=ttl, clock=clock)
        for name, (size, ttl) in namespaces.items()
    }


def cache_stats(caches: dict[str, BoundedCache]) -> dict[str, dict]:
    return {name: cache.stats() for name, cache in caches.items()}


def clear_caches(caches: dict[str, BoundedCache], name: str | None = None) -> None:
    """Clear one namespace, or every namespace when ``name`` is None."""
    if name is not None:
        if name not in caches:
            raise KeyError(f"Unknown cache namespace: {name!r}")
        caches[name].clear()
        return
    for cache in caches.values():
        cache.clear()
