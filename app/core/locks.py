"""
In-process keyed locks.

Serializes writers touching the same RFQ inside one process. Row locks
(``SELECT ... FOR UPDATE``) and guarded status updates cover writers in
other processes.
"""
import threading
from contextlib import contextmanager
from typing import Iterator
from weakref import WeakValueDictionary


class _KeyLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self):
        self.lock = threading.RLock()


class KeyedLockRegistry:
    """Hands out one re-entrant lock per key; unused locks are reclaimed."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "WeakValueDictionary[str, _KeyLock]" = WeakValueDictionary()

    def _lock_for(self, key: str) -> _KeyLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._locks[key] = entry
            return entry

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        entry = self._lock_for(key)
        with entry.lock:
            yield


rfq_locks = KeyedLockRegistry()
