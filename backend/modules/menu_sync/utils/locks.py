# backend/modules/menu_sync/utils/locks.py

"""
Per-key mutual exclusion for master menu writers and branch syncs.

Each key gets its own lock, so work on different keys never blocks. These
locks serialize threads inside one process; row locks taken by the services
cover multi-process deployments.
"""

import logging
from contextlib import contextmanager
from threading import Lock
from typing import Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class LockTimeout(Exception):
    """The lock for a key could not be acquired in time"""

    def __init__(self, key: Hashable, timeout: Optional[float]):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out acquiring lock {key!r} after {timeout}s")


class KeyedLockRegistry:
    """Thread-safe registry of one lock per key"""

    def __init__(self, name: str):
        self.name = name
        self._guard = Lock()
        self._locks: Dict[Hashable, Lock] = {}

    def _lock_for(self, key: Hashable) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable, timeout: Optional[float] = None):
        """
        Hold the lock for ``key`` for the duration of the block.

        ``timeout=None`` waits indefinitely, ``0`` fails immediately when the
        lock is taken.
        """
        lock = self._lock_for(key)
        if timeout is None:
            acquired = lock.acquire()
        elif timeout <= 0:
            acquired = lock.acquire(blocking=False)
        else:
            acquired = lock.acquire(timeout=timeout)

        if not acquired:
            logger.warning(f"{self.name} lock contention on {key!r}")
            raise LockTimeout(key, timeout)

        try:
            yield
        finally:
            lock.release()


# Serializes version creation per master menu
master_menu_locks = KeyedLockRegistry("master_menu")

# Serializes syncs per branch sync link
branch_sync_locks = KeyedLockRegistry("branch_sync")
