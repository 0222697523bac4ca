"""
Per-key lock table.

Serializes work per job id without a single mutex for the whole registry:
operations on different job ids never wait on each other.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class KeyedLock:
    """
    A table of locks keyed by string.

    Entries are reference-counted and dropped once no thread holds or waits
    on them, so the table does not grow with every job id ever seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._refs: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for key for the duration of the block."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._refs[key] = self._refs.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._refs[key] -= 1
                if self._refs[key] == 0:
                    del self._refs[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
