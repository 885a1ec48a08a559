"""Per-owner mutual exclusion for read-modify-write of whole documents"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

from rcard_gateway.config import settings
from rcard_gateway.domain.exceptions import LockTimeoutError
from rcard_gateway.infrastructure.observability.metrics import lock_timeout_counter

logger = logging.getLogger(__name__)

NONCE_LOCK = "nonces"


def user_lock_key(user_id: str) -> str:
    return f"user:{user_id}"


def org_lock_key(org_id: str) -> str:
    return f"org:{org_id}"


class KeyedLockRegistry:
    """
    One lock per owner key ("user:<id>", "org:<id>", "nonces").

    Acquisition waits at most `timeout` seconds. Locks are process-local;
    the document version stamp catches writers in other processes.

    Entries are reference counted and dropped once no holder or waiter is
    left, so the map only contains keys that are in use.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else settings.lock_timeout_seconds
        # key -> [lock, holders + waiters]
        self._locks: Dict[str, List] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """
        Hold the lock for `key` for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not acquired within the timeout
        """
        lock = self._checkout(key)
        if not lock.acquire(timeout=self.timeout):
            self._checkin(key)
            lock_timeout_counter.labels(scope=key.split(":", 1)[0]).inc()
            logger.warning("Lock acquisition timed out", extra={"lock_key": key, "timeout": self.timeout})
            raise LockTimeoutError(key, self.timeout)
        try:
            yield
        finally:
            lock.release()
            self._checkin(key)


# Process-wide registry shared by every request
lock_registry = KeyedLockRegistry()
