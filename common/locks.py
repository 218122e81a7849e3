"""Per-room mutual exclusion for the check-then-commit window."""
from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterable, Iterator


class RoomLockRegistry:
    """One in-process lock per room id, created on first use."""

    def __init__(self) -> None:
        self._locks: Dict[int, Lock] = {}
        self._guard = Lock()

    def _lock_for(self, room_id: int) -> Lock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = self._locks[room_id] = Lock()
            return lock

    @contextmanager
    def hold(self, room_ids: Iterable[int]) -> Iterator[None]:
        # Ascending order so two multi-room reschedules cannot deadlock.
        locks = [self._lock_for(room_id) for room_id in sorted(set(room_ids))]
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


room_locks = RoomLockRegistry()
