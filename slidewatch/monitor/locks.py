"""
Per-key mutual exclusion for polling cycles.

Cycles for the same presentation id must not interleave (the read of the
previous snapshot and the write of the new one would race). Cycles for
different ids never block each other.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from ..errors import CycleBusyError


class KeyedLock:
    """
    Registry of one ``threading.Lock`` per key.

    An entry lives only while some thread holds or waits for its lock, so
    ids that are no longer polled (or were cleared) do not accumulate.
    """

    def __init__(self) -> None:
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[str, List] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _checkout(self, key: str) -> threading.Lock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._registry_lock:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the ``with`` block.

        Args:
            key: Presentation id
            timeout: Seconds to wait; None blocks indefinitely

        Raises:
            CycleBusyError: If the lock could not be acquired within ``timeout``
        """
        lock = self._checkout(key)
        try:
            acquired = lock.acquire() if timeout is None else lock.acquire(timeout=timeout)
            if not acquired:
                raise CycleBusyError(key, timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)
