"""Per-key mutual exclusion for read-modify-write on SyncRecords."""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class KeyedLocks:
    """
    One lock per key, created on demand and dropped once nobody holds or
    waits for it.

    The registry lock is held only while looking up, creating or releasing a
    key's entry, never while the caller's critical section runs, so work on
    different keys proceeds in parallel.

    Locks are process-local. Writers in other processes are caught by the
    store's versioned update instead.
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        # key -> [lock, number of holders plus waiters]
        self._locks: Dict[Hashable, List] = {}

    def _acquire_entry(self, key: Hashable) -> threading.Lock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: Hashable) -> None:
        with self._registry_lock:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)

    def __len__(self) -> int:
        return len(self._locks)
