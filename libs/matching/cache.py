"""In-memory LRU cache for AI match results, with TTL expiry."""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from libs.matching.models import Job, UserPreferences


def generate_cache_key(user: UserPreferences, jobs: Sequence[Job]) -> str:
    """User identity plus the sorted job hashes of the batch"""
    user_key = f"{user.email}-{user.entry_level_preference}-{user.career_keywords}-{user.subscription_tier}"
    jobs_key = ",".join(sorted(j.job_hash for j in jobs))
    return f"{user_key}|{jobs_key}"


class LRUMatchCache:
    """Thread-safe fixed-capacity cache evicting the least recently used entry"""

    def __init__(self, capacity: int = 500, ttl_seconds: float = 1800.0,
                 clock: Callable[[], float] = time.monotonic):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            value, stored_at = entry
            if self.clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, self.clock())
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {"size": len(self._entries), "capacity": self.capacity, "hits": self.hits, "misses": self.misses}
