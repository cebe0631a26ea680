"""
Bounded in-memory LRU cache with per-entry TTL.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)


class LRUCache:
    """
    In-memory LRU cache with a fixed capacity and optional TTL.

    Reads move an entry to the most-recently-used end; inserts beyond
    capacity evict from the least-recently-used end. Expired entries are
    dropped lazily on access and eagerly by ``purge_expired``.
    """

    def __init__(
        self,
        capacity: int = 1024,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("Cache capacity must be positive")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[Any, float]]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _is_expired(self, stored_at: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return (self._clock() - stored_at) > self.ttl_seconds

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Get a value and mark it as recently used. Returns ``default`` on miss."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return default

        value, stored_at = entry
        if self._is_expired(stored_at):
            del self._entries[key]
            self._misses += 1
            return default

        self._entries.move_to_end(key)
        self._hits += 1
        return value

    def set(self, key: Hashable, value: Any) -> None:
        """Insert or replace a value, evicting the least recently used entry when full."""
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = (value, self._clock())

        while len(self._entries) > self.capacity:
            evicted_key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted cache entry: {evicted_key}")

    def touch(self, key: Hashable) -> bool:
        """Refresh the timestamp of an entry without changing its value."""
        entry = self._entries.get(key)
        if entry is None or self._is_expired(entry[1]):
            return False
        self._entries[key] = (entry[0], self._clock())
        self._entries.move_to_end(key)
        return True

    def delete(self, key: Hashable) -> bool:
        """Remove a key. Returns True if it was present."""
        return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        if self.ttl_seconds is None:
            return 0
        expired = [key for key, (_, stored_at) in self._entries.items() if self._is_expired(stored_at)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        """Clear all entries and counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def items(self) -> Iterator[Tuple[Hashable, Any]]:
        """Iterate over live (unexpired) entries without updating recency."""
        for key, (value, stored_at) in list(self._entries.items()):
            if not self._is_expired(stored_at):
                yield key, value

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._is_expired(entry[1])

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }
