"""
Replay store for x402 payments.

A key-value store with per-key expiry, used as a lock keyed by transaction
hash. Values are the literal strings "pending" and "used".

Implementations:
- MemoryReplayStore: in-process, for tests and single-worker deployments
- ShelveReplayStore: file-backed, shared by worker processes on one host
  through an fcntl lock file

Both offer put_if_absent, which the payment gate uses to make the
check-then-acquire step atomic. A store shared across hosts needs its own
compare-and-set (e.g. Redis SET NX).
"""
import abc
import fcntl
import shelve
import threading
import time
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger("replay_store")

PENDING = "pending"
USED = "used"

# Pending locks expire on their own if a worker dies mid-verification
PENDING_TTL = 300
REPLAY_TTL = 86400


class LockState(str, Enum):
    ABSENT = "absent"
    PENDING = "pending"
    USED = "used"


class ReplayStore(abc.ABC):
    """get/put/delete with TTL. Keys are transaction hashes."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abc.abstractmethod
    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        ...

    def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """
        Write value only if key has no live record.

        Stores without an atomic primitive fall back to get-then-put, which
        leaves a race window between two concurrent callers.
        """
        if self.get(key) is not None:
            return False
        self.put(key, value, ttl_seconds)
        return True

    @property
    def atomic(self) -> bool:
        """Whether put_if_absent is a true compare-and-set."""
        return False

    def state(self, key: str) -> LockState:
        value = self.get(key)
        if value is None:
            return LockState.ABSENT
        if value == USED:
            return LockState.USED
        return LockState.PENDING


class MemoryReplayStore(ReplayStore):
    """In-process store. Expired records are evicted lazily on access."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._records: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    @property
    def atomic(self) -> bool:
        return True

    def _live(self, key: str) -> Optional[str]:
        record = self._records.get(key)
        if record is None:
            return None
        value, expires_at = record
        if self._clock() >= expires_at:
            del self._records[key]
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            self._records[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            if self._live(key) is not None:
                return False
            self._records[key] = (value, self._clock() + ttl_seconds)
            return True

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for key in list(self._records) if self._live(key) is not None)

    def clear(self):
        """Drop every record (for testing)."""
        with self._lock:
            self._records.clear()


class ShelveReplayStore(ReplayStore):
    """
    File-backed store. Records are (value, expires_at) tuples keyed by hash.

    Wall-clock time is used so expiry survives restarts. Every operation
    holds an exclusive flock on a sidecar "<path>.lock" file for the whole
    open/read/write/close cycle, so worker processes sharing the file never
    interleave. POSIX only.
    """

    def __init__(self, path: str, clock: Callable[[], float] = time.time):
        self.path = path
        self.lock_path = f"{path}.lock"
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def atomic(self) -> bool:
        return True

    @contextmanager
    def _open(self):
        # The shelf is closed (index flushed) before the file lock is released
        with self._lock, open(self.lock_path, "a") as lock_fh:
            fcntl.flock(lock_fh, fcntl.LOCK_EX)
            try:
                with shelve.open(self.path) as db:
                    yield db
            finally:
                fcntl.flock(lock_fh, fcntl.LOCK_UN)

    def _live(self, db, key: str) -> Optional[str]:
        record = db.get(key)
        if record is None:
            return None
        value, expires_at = record
        if self._clock() >= expires_at:
            del db[key]
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        with self._open() as db:
            return self._live(db, key)

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._open() as db:
            db[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._open() as db:
            if key in db:
                del db[key]

    def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._open() as db:
            if self._live(db, key) is not None:
                return False
            db[key] = (value, self._clock() + ttl_seconds)
            return True

    def purge_expired(self) -> int:
        """Remove expired records. Returns how many were dropped."""
        removed = 0
        with self._open() as db:
            now = self._clock()
            for key in list(db.keys()):
                _, expires_at = db[key]
                if now >= expires_at:
                    del db[key]
                    removed += 1
        if removed:
            logger.info(f"Purged {removed} expired replay records")
        return removed
