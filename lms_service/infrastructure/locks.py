import threading
from contextlib import contextmanager


class KeyedLocks:
    """In-process mutexes keyed by storage collection.

    Locks are always taken in sorted key order so that overlapping callers
    cannot deadlock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    @contextmanager
    def hold(self, *keys: str):
        acquired = []
        try:
            for key in sorted(set(keys)):
                lock = self.lock(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
