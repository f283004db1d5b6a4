"""
agora.engine.cache — Path-Keyed Response Cache
===============================================

In-memory cache for rendered forum responses (forum list, forum view,
topic view).  Entries carry a per-entry TTL; mutations invalidate by
path prefix, so ``invalidate("/api/forum/topic/")`` drops every topic
view at once.  Invalidation is deliberately coarse: dropping too much
only costs a re-render.

Usage:
    cache = ResponseCache(default_ttl=300, max_entries=2048)
    cache.set("/api/forum", payload)
    cache.get("/api/forum")          # payload, or None once expired
    cache.invalidate("/api/forum")   # removes /api/forum and everything below
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

logger = logging.getLogger(__name__)


class ResponseCache:
    """Thread-safe path → value cache with TTL and oldest-first eviction."""

    def __init__(self, default_ttl: int = 300, max_entries: int = 2048) -> None:
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._lock = threading.Lock()
        # path → (expires_at_monotonic, value); dicts keep insertion order
        self._entries: dict[str, tuple[float, Any]] = {}
        self._hits = 0
        self._misses = 0

    # -------------------------------------------------------------------
    # Reads / writes
    # -------------------------------------------------------------------
    def get(self, path: str) -> Any | None:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                self._misses += 1
                return None
            expires_at, value = entry
            if expires_at <= now:
                del self._entries[path]
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, path: str, value: Any, ttl: int | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        expires_at = time.monotonic() + ttl
        with self._lock:
            # Re-insert so the key moves to the newest position
            self._entries.pop(path, None)
            self._entries[path] = (expires_at, value)
            while len(self._entries) > self._max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    # -------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------
    def invalidate(self, prefix: str) -> int:
        """Remove every key starting with *prefix*.  Returns the count removed."""
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Cache invalidated %d keys for prefix %s", len(doomed), prefix)
        return len(doomed)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Response cache cleared (%d keys)", count)
        return count

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "keys": len(self._entries),
            }
