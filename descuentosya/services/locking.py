from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Tuple

LockKey = Tuple[str, Hashable]


class EntityLockRegistry:
    """
    Per-entity mutexes for the marketplace critical sections.

    Claims serialize on ``("deal", deal_id)`` and redemptions on
    ``("coupon", coupon_id)``. One registry must be shared by every service
    instance that touches the same catalog store; the Flask app keeps one in
    ``app.extensions``. An entry exists only while some thread holds or waits
    on it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[LockKey, List] = {}

    def _acquire_entry(self, key: LockKey) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: LockKey) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, kind: str, entity_id: Hashable) -> Iterator[None]:
        key = (kind, entity_id)
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
