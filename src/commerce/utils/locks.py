"""Keyed in-process locks.

Serialises work on one aggregate (a product, an order) across request threads
while letting unrelated keys proceed in parallel. A key's lock exists only
while some thread holds or waits for it, so the table stays as small as the
number of aggregates currently being written.
"""

import threading
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class KeyedLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, _Entry] = {}

    def _acquire_entry(self, key: str) -> _Entry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _Entry()
            entry.users += 1
            return entry

    def _release_entry(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key):
        """Hold the lock for ``key``. Re-entrant within one thread."""
        key = str(key)
        entry = self._acquire_entry(key)
        try:
            with entry.lock:
                yield
        finally:
            self._release_entry(key, entry)

    def __len__(self):
        return len(self._locks)
