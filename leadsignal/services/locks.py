"""
Per-lead locks for the reprocessing check-then-act step.

LocalLeadLocks serializes threads inside one process. RedisLeadLocks uses a
Redis lock per lead so several RQ workers can sweep the corpus at once.
Different leads never block each other.
"""
import logging
import threading
from contextlib import contextmanager

from leadsignal.config import LEAD_LOCK_TIMEOUT

logger = logging.getLogger('services.locks')


class LocalLeadLocks:
    """One threading.Lock per lead id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def _lock_for(self, lead_id):
        with self._guard:
            lock = self._locks.get(lead_id)
            if lock is None:
                lock = self._locks[lead_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, lead_id):
        lock = self._lock_for(lead_id)
        with lock:
            yield


class RedisLeadLocks:
    """Redis lock on lead-lock:{id}. Raises redis.exceptions.LockError if not acquired in time."""

    def __init__(self, client, timeout: int = LEAD_LOCK_TIMEOUT, blocking_timeout: float = None):
        self.client = client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout if blocking_timeout is not None else timeout

    @contextmanager
    def hold(self, lead_id):
        lock = self.client.lock(
            f'lead-lock:{lead_id}',
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        with lock:
            yield


# Shared by every in-process sweep that does not bring its own locks
default_locks = LocalLeadLocks()
