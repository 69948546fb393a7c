"""In-memory LRU cache with per-entry expiry for resolved configuration."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_MAX_SIZE = 1000
DEFAULT_TTL = 600.0  # seconds


@dataclass
class CacheEntry:
    """A cached value and the clock reading after which it is stale."""

    data: Any
    expiry: float


class TTLCache:
    """Bounded string-keyed cache.

    Entries expire ``ttl`` seconds after insertion.  When the cache is full,
    inserting a new key evicts exactly one entry, the least recently used.
    A successful :meth:`get` marks the entry as most recently used.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            msg = f"max_size must be positive, got {max_size}"
            raise ValueError(msg)
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on miss or expiry."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() > entry.expiry:
                del self._store[key]
                self._misses += 1
                return None
            self._store.move_to_end(key)
            self._hits += 1
            return entry.data

    def set(self, key: str, data: Any, ttl: float | None = None) -> None:
        """Store *data* under *key* for *ttl* seconds (default TTL if None)."""
        lifetime = self._default_ttl if ttl is None else ttl
        with self._lock:
            if key in self._store:
                del self._store[key]
            elif len(self._store) >= self._max_size:
                self._store.popitem(last=False)
                self._evictions += 1
            self._store[key] = CacheEntry(data=data, expiry=self._clock() + lifetime)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._store.clear()

    def keys(self) -> list[str]:
        """Keys in LRU order, least recently used first."""
        with self._lock:
            return list(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def stats(self) -> dict[str, int]:
        """Return cache statistics."""
        return {
            "entries": len(self._store),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }
