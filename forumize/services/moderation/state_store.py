"""
In-process per-user state store with per-entry TTL.

Backed by a `cachetools.TLRUCache`: expired entries are evicted on every
write, and once `maxsize` is reached the least recently used entry goes.
Moderation services receive a store instance instead of reaching for
module globals, so tests (or a future shared backend) can swap it out.
"""
from __future__ import annotations

import math
import threading
import time
from typing import Any, Callable, Iterator, List, Optional, Tuple

from cachetools import TLRUCache

from forumize.core.config import get_settings

settings = get_settings()

Clock = Callable[[], float]

_MISSING = object()


def _time_to_use(key: str, entry: Tuple[Optional[float], Any], now: float) -> float:
    ttl = entry[0]
    return math.inf if ttl is None else now + ttl


class UserStateStore:
    """Mapping keyed by user id; each entry may carry its own TTL in seconds."""

    def __init__(
        self,
        default_ttl: Optional[float] = None,
        clock: Clock = time.time,
        maxsize: int = None,
    ):
        self.default_ttl = default_ttl
        self.clock = clock
        self.cache = TLRUCache(
            maxsize=maxsize or settings.state_store_max_entries,
            ttu=_time_to_use,
            timer=clock,
        )
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self.cache.get(key, _MISSING)
        return default if entry is _MISSING else entry[1]

    def set(self, key: str, value: Any, ttl: Optional[float] = _MISSING) -> None:
        ttl = self.default_ttl if ttl is _MISSING else ttl
        with self._lock:
            if ttl is not None and ttl <= 0:
                # TLRUCache skips already-expired writes, so drop any old value
                self.cache.pop(key, None)
                return
            self.cache[key] = (ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self.cache.pop(key, None)

    def pop(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self.cache.pop(key, _MISSING)
        return default if entry is _MISSING else entry[1]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self.cache

    def purge(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            return len(self.cache.expire())

    def items(self) -> Iterator[Tuple[str, Any]]:
        with self._lock, self.cache.timer:
            self.cache.expire()
            snapshot = [(k, self.cache[k][1]) for k in list(self.cache)]
        return iter(snapshot)

    def values(self) -> List[Any]:
        return [v for _, v in self.items()]

    def __len__(self) -> int:
        with self._lock:
            return len(self.cache)

    def clear(self) -> None:
        with self._lock:
            self.cache.clear()
