"""
Per-key mutual exclusion for session operations.

attach_order and close on the same session must not interleave. The store
already serializes them through the session row lock (SELECT ... FOR UPDATE
on PostgreSQL); this registry additionally serializes them inside one
process, which is what makes SQLite (no row locks) safe and keeps
PostgreSQL from queueing many transactions on one row.

LOCK ORDERING:
The registry's _meta_lock only guards the dict of key locks and is never
held while waiting on a key lock. A key lock must be acquired before the
operation's database transaction starts.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.utils.exceptions import LockTimeoutError

logger = get_logger(__name__)


class _KeyLock:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.refs = 0  # Threads holding or waiting for this lock


class KeyedLockRegistry:
    """
    Lazily created locks, one per key.

    An entry is dropped as soon as no thread holds or waits for it, so the
    registry never grows beyond the number of keys in use.
    """

    def __init__(self, timeout_seconds: float | None = None):
        self._timeout = settings.session_lock_timeout_seconds if timeout_seconds is None else timeout_seconds
        self._locks: dict[str, _KeyLock] = {}
        self._meta_lock = threading.Lock()

    @property
    def lock_count(self) -> int:
        """Number of keys currently locked or awaited."""
        with self._meta_lock:
            return len(self._locks)

    def _checkout(self, key: str) -> _KeyLock:
        with self._meta_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.refs += 1
            return entry

    def _release(self, key: str, entry: _KeyLock) -> None:
        with self._meta_lock:
            entry.refs -= 1
            if entry.refs == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout_seconds: float | None = None) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not obtained within the timeout.
        """
        timeout = self._timeout if timeout_seconds is None else timeout_seconds
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=timeout):
                raise LockTimeoutError(key, timeout)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._release(key, entry)


def session_lock_key(session_id: int) -> str:
    return f"session:{session_id}"


# Process-wide registry used by the session service
session_locks = KeyedLockRegistry()
