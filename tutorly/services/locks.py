from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator
import weakref

from ..core.errors import BookingContendedError
from .conflict_index import ParticipantKey

logger = logging.getLogger(__name__)


class _Gate:
    """Shared/exclusive gate; a waiting exclusive holder blocks new shared ones."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._shared = 0
        self._exclusive = False
        self._exclusive_waiting = 0

    def acquire_shared(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        with self._cond:
            while self._exclusive or self._exclusive_waiting:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or not self._cond.wait(remaining):
                    if self._exclusive or self._exclusive_waiting:
                        return False
            self._shared += 1
            return True

    def release_shared(self) -> None:
        with self._cond:
            self._shared -= 1
            if self._shared == 0:
                self._cond.notify_all()

    def acquire_exclusive(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        with self._cond:
            self._exclusive_waiting += 1
            try:
                while self._exclusive or self._shared:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0 or not self._cond.wait(remaining):
                        if self._exclusive or self._shared:
                            return False
                self._exclusive = True
                return True
            finally:
                self._exclusive_waiting -= 1
                if not self._exclusive:
                    self._cond.notify_all()

    def release_exclusive(self) -> None:
        with self._cond:
            self._exclusive = False
            self._cond.notify_all()


class ParticipantLocks:
    """Exclusive locks scoped to participant keys.

    Keys are always taken in ascending ``(role, id)`` order so two bookings
    naming the same participants can never deadlock, and every wait is bounded.
    Every ``hold`` also enters a shared gate; ``exclusive`` closes that gate
    and waits until no participant lock is held, so a full index rebuild
    never interleaves with a write.
    """

    def __init__(self, timeout: float = 2.0) -> None:
        self.timeout = timeout
        # Entries disappear once no thread holds or waits on the lock.
        self._locks: "weakref.WeakValueDictionary[ParticipantKey, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()
        self._gate = _Gate()

    def _lock_for(self, key: ParticipantKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, *keys: ParticipantKey, timeout: float | None = None) -> Iterator[None]:
        wait = self.timeout if timeout is None else timeout
        if not self._gate.acquire_shared(wait):
            logger.warning("Booking engine busy rebuilding")
            raise BookingContendedError("Index rebuild in progress, retry later")
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys), key=lambda item: item.sort_key):
                lock = self._lock_for(key)
                if not lock.acquire(timeout=wait):
                    logger.warning("Participant lock contended", extra={"participant": str(key)})
                    raise BookingContendedError(f"Timed out waiting for {key}, retry later")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            self._gate.release_shared()

    @contextmanager
    def exclusive(self, timeout: float | None = None) -> Iterator[None]:
        wait = self.timeout if timeout is None else timeout
        if not self._gate.acquire_exclusive(wait):
            logger.warning("Writers still active, rebuild refused")
            raise BookingContendedError("Bookings in progress, retry the rebuild later")
        try:
            yield
        finally:
            self._gate.release_exclusive()


__all__ = ["ParticipantLocks"]
