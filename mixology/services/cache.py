"""Thread-safe in-memory LRU cache with entry TTL and a byte-size ceiling.

Used by the TheCocktailDB client for reference data that changes rarely
(ingredient / category / glass lists, lookups by drink id).

Design decisions
────────────────
• **OrderedDict** for O(1) LRU eviction and promotion.
• **TTL per entry** — an expired entry is treated as absent and dropped on
  the next read.
• **Size tracking** via ``json.dumps`` byte length of the cached value.
• **threading.Lock** because request handlers run on a thread pool.
• Only successful lookups are stored; failures are never cached.

>>> cache = TTLCache(ttl_seconds=3600)
>>> cache.put("categories", ["Cocktail", "Shot"])
>>> cache.get("categories")
['Cocktail', 'Shot']
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_TTL_SECONDS = 3600.0

_MISSING = object()


class TTLCache:
    """Least-Recently-Used cache bounded by total byte size and entry age."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_bytes = max_bytes
        self._clock = clock
        self._current_bytes = 0
        # key → (value, size_bytes, expires_at)
        self._store: OrderedDict[str, tuple[Any, int, float]] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def _estimate_bytes(value: Any) -> int:
        try:
            return len(json.dumps(value, default=str).encode("utf-8"))
        except (TypeError, ValueError, OverflowError):
            return len(str(value).encode("utf-8"))

    def _drop(self, key: str) -> None:
        _, size, _ = self._store.pop(key)
        self._current_bytes -= size

    # ── Core operations ──────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value (promoting it to MRU) or *default*."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return default
            value, _, expires_at = entry
            if self._clock() >= expires_at:
                self._drop(key)
                logger.debug("Cache: %s expired", key)
                return default
            self._store.move_to_end(key)
            return value

    def put(self, key: str, value: Any) -> None:
        """Insert or overwrite *key*.  Evicts LRU entries if needed."""
        size = self._estimate_bytes(value)
        if size > self._max_bytes:
            logger.debug(
                "Cache: skipping key %s (size %d > max %d)",
                key, size, self._max_bytes,
            )
            return

        with self._lock:
            if key in self._store:
                self._drop(key)

            while self._current_bytes + size > self._max_bytes and self._store:
                evicted_key, (_, evicted_size, _) = self._store.popitem(last=False)
                self._current_bytes -= evicted_size
                logger.debug("Cache: evicted %s (%d bytes)", evicted_key, evicted_size)

            self._store[key] = (value, size, self._clock() + self._ttl)
            self._current_bytes += size

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, calling *loader* on a miss.

        The loader runs outside the lock; if it raises, nothing is stored
        and the exception propagates.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = loader()
        self.put(key, value)
        return value

    def invalidate(self, key: str) -> bool:
        """Remove a single key.  Returns ``True`` if the key existed."""
        with self._lock:
            if key in self._store:
                self._drop(key)
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._current_bytes = 0

    # ── Introspection ────────────────────────────────────────────────

    @property
    def current_bytes(self) -> int:
        return self._current_bytes

    @property
    def entry_count(self) -> int:
        return len(self._store)
