import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Tuple


def user_lock_key(user_id) -> str:
    return f"user:{user_id}"


class AdmissionLockRegistry:
    """In-process exclusive locks keyed by activity id or participant.

    Locks are always taken in sorted key order, so two callers asking for
    overlapping sets can never wait on each other in a cycle. The database
    row locks taken by the admission transaction follow the same order.

    A lock only lives while someone holds or waits for it, so unknown ids
    sent by clients do not pile up.
    """

    def __init__(self):
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users == 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    @contextmanager
    def hold(self, keys: Iterable) -> Iterator[List[str]]:
        """
        Hold the locks of every key until the block exits

        Args:
            keys: activity ids or ``user_lock_key`` values, duplicates are ignored

        Yields:
            The keys in the order they were locked
        """
        ordered = sorted({str(k) for k in keys})
        checked_out: List[str] = []
        acquired: List[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                lock.acquire()
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)

    def is_locked(self, key) -> bool:
        with self._guard:
            entry = self._locks.get(str(key))
        return entry is not None and entry[0].locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


admission_locks = AdmissionLockRegistry()
