#!/usr/bin/env python3
"""
a3t Forever Cache
In-memory memoization of every resolution, keyed by (asset key, context)

Implements:
- get(cache_key) → CacheEntry | None
- set(cache_key, found, value)
- clear() → entries dropped
- stats() → {size, keys, hits, misses, writes, clears}

Entries never expire. There is no TTL and no size bound: clear() is the only
eviction, and it is what a nonce increment triggers.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Tagged result: found with a value, or a remembered miss."""
    found: bool
    value: Any = None


class ForeverCache:
    """
    Dict-backed cache of resolution outcomes.

    Design principles:
    - O(1) lookups, no eviction policy
    - Misses are cached too, so an unresolvable key is probed once
    - Entries are replaced, never mutated
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "clears": 0,
            "start_time": time.time(),
        }

    def get(self, cache_key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(cache_key)
        if entry is None:
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        return entry

    def set(self, cache_key: str, found: bool, value: Any = None) -> CacheEntry:
        entry = CacheEntry(found=found, value=value if found else None)
        self._entries[cache_key] = entry
        self._stats["writes"] += 1
        logger.debug(f"Cached {cache_key} (found={found})")
        return entry

    def clear(self) -> int:
        """Drop every entry. Returns how many were removed."""
        cleared = len(self._entries)
        self._entries = {}
        self._stats["clears"] += 1
        if cleared > 0:
            logger.info(f"Cleared {cleared} cache entries")
        return cleared

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "keys": list(self._entries.keys()),
            "hits": self._stats["hits"],
            "misses": self._stats["misses"],
            "writes": self._stats["writes"],
            "clears": self._stats["clears"],
            "uptime_seconds": int(time.time() - self._stats["start_time"]),
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, cache_key: str) -> bool:
        return cache_key in self._entries
