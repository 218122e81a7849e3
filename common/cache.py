"""TTL cache helpers for the aggregated room view."""
from __future__ import annotations

import logging
from threading import RLock
from typing import Callable, Generic, Optional, Tuple, TypeVar

from cachetools import TTLCache

T = TypeVar("T")

ROOMS_VIEW_KEY = "rooms-with-bookings"

logger = logging.getLogger(__name__)


class SimpleTTLCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 256) -> None:
        self._cache: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = RLock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._cache.get(key)

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._cache[key] = value

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


class RoomsViewCache(Generic[T]):
    """Read-through cache injected into the lifecycle and the aggregator.

    Entries are tagged with the data version read from the database; a reader
    passing a different version recomputes. Writers in this process also call
    :meth:`invalidate` after every successful commit.
    """

    def __init__(self, ttl: int, maxsize: int = 32) -> None:
        self._store: SimpleTTLCache[Tuple[Optional[int], T]] = SimpleTTLCache(ttl=ttl, maxsize=maxsize)

    def get_or_compute(self, key: str, compute: Callable[[], T], version: Optional[int] = None) -> T:
        cached = self._store.get(key)
        if cached is not None and cached[0] == version:
            return cached[1]
        value = compute()
        self._store.set(key, (version, value))
        return value

    def invalidate(self) -> None:
        self._store.clear()
        logger.info("Rooms view cache invalidated after a data change")
