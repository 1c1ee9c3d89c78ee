"""
Time-bounded LRU cache for downloaded price series.

Entries expire after a fixed time-to-live measured by an injectable clock,
and the least recently used entry is evicted once capacity is reached.
"""

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple

from frontier_engine.config import CACHE_MAX_ENTRIES, CACHE_TTL_SECONDS


class TTLCache:
    """
    Thread-safe cache with per-entry expiry and LRU eviction.

    Attributes:
        ttl: Seconds an entry stays valid after it was stored.
        max_entries: Capacity before the least recently used entry is evicted.

    Example:
        >>> cache = TTLCache(ttl=60, max_entries=2)
        >>> cache.set(("AAPL", "compact"), series)
        >>> cache.get(("AAPL", "compact")) is series
        True
    """

    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        max_entries: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")

        self.ttl: float = ttl
        self.max_entries: int = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        """
        Return the cached value for ``key``, or None on a miss.

        An expired entry is dropped and counts as a miss. A hit marks the
        entry as most recently used.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return value

    def set(self, key: Hashable, value: Any) -> None:
        """Store ``value`` under ``key``, evicting the oldest entry if full."""
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
