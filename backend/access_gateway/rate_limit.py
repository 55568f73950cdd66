"""In-memory login throttling and account lockout.

State lives in process memory only; a restart resets every counter.
Each key gets its own lock so unrelated identities never wait on each other.
"""
import math
import threading
import time
from typing import Callable

from access_gateway.config import settings


class _KeyedLocks:
    """Lazily created lock per key. The guard only covers lock creation."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def __getitem__(self, key: str) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is None:
            with self._guard:
                lock = self._locks.setdefault(key, threading.Lock())
        return lock


class RateWindow:
    __slots__ = ("window_start", "count")

    def __init__(self, window_start: float, count: int = 1):
        self.window_start = window_start
        self.count = count


class RateGate:
    """Fixed-window request counter keyed by operation and identity."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._locks = _KeyedLocks()
        self._windows: dict[str, RateWindow] = {}

    def check_and_consume(self, key: str, window_seconds: float, max_per_window: int) -> bool:
        """Count one request against ``key``. Returns True if it is limited."""
        with self._locks[key]:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.window_start + window_seconds:
                self._windows[key] = RateWindow(now)
                return False
            if window.count >= max_per_window:
                return True
            window.count += 1
            return False

    def remaining(self, key: str, window_seconds: float, max_per_window: int) -> int:
        with self._locks[key]:
            window = self._windows.get(key)
            if window is None or self._clock() >= window.window_start + window_seconds:
                return max_per_window
            return max(0, max_per_window - window.count)


class LockoutRecord:
    __slots__ = ("failures", "locked_until")

    def __init__(self):
        self.failures = 0
        self.locked_until: float | None = None


class LockoutTracker:
    """Track consecutive failed logins per identity. Lock after ``threshold`` failures.

    The lockout runs for ``lockout_seconds`` from the failure that triggered it;
    further failures while locked do not extend it. Expiry is checked lazily in
    ``is_locked_out``, which also drops the record.
    """

    def __init__(
        self,
        threshold: int,
        lockout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold = threshold
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._locks = _KeyedLocks()
        self._records: dict[str, LockoutRecord] = {}

    def record_failure(self, identity: str) -> bool:
        """Count a failed attempt. Returns True if the identity is now locked."""
        with self._locks[identity]:
            now = self._clock()
            record = self._records.get(identity)
            if record is None:
                record = self._records[identity] = LockoutRecord()
            elif record.locked_until is not None:
                if now < record.locked_until:
                    return True
                # lock elapsed but was never purged
                record.failures = 0
                record.locked_until = None
            record.failures += 1
            if record.failures >= self.threshold:
                record.locked_until = now + self.lockout_seconds
                return True
            return False

    def record_success(self, identity: str) -> None:
        with self._locks[identity]:
            self._records.pop(identity, None)

    def is_locked_out(self, identity: str) -> bool:
        with self._locks[identity]:
            record = self._records.get(identity)
            if record is None or record.locked_until is None:
                return False
            if self._clock() < record.locked_until:
                return True
            del self._records[identity]
            return False

    def retry_after(self, identity: str) -> int:
        """Seconds until the lockout lifts (0 if not locked)."""
        with self._locks[identity]:
            record = self._records.get(identity)
            if record is None or record.locked_until is None:
                return 0
            return max(0, math.ceil(record.locked_until - self._clock()))

    def failures(self, identity: str) -> int:
        with self._locks[identity]:
            record = self._records.get(identity)
            return record.failures if record else 0


# Singletons shared by the auth routes
rate_gate = RateGate()
lockout_tracker = LockoutTracker(
    threshold=settings.lockout_threshold,
    lockout_seconds=settings.lockout_minutes * 60,
)
