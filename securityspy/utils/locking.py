import threading
import time
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    A multiple-reader / single-writer lock.

    Any number of readers may hold the lock at once. A writer waits until all
    readers are gone and then holds it alone. Waiting writers block new readers
    so a steady stream of dispatch lookups cannot starve bind/unbind calls.
    Works across threads, so it is safe to bind from outside the event loop.
    """

    def __init__(self, timeout=None):
        self.timeout = timeout
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def _wait(self, predicate, what):
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        while not predicate():
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                logger.error(f"Timeout acquiring {what} lock")
                raise TimeoutError(f"Could not acquire {what} lock")
            self._cond.wait(remaining)

    def acquire_read(self):
        """Acquire the lock for reading, waiting while a writer holds or wants it."""
        with self._cond:
            self._wait(lambda: not self._writer and not self._writers_waiting, "read")
            self._readers += 1

    def release_read(self):
        with self._cond:
            if self._readers == 0:
                raise RuntimeError("release_read() called on an unlocked ReadWriteLock")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        """Acquire the lock exclusively, waiting for readers and other writers."""
        with self._cond:
            self._writers_waiting += 1
            try:
                self._wait(lambda: not self._writer and self._readers == 0, "write")
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called on an unlocked ReadWriteLock")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield self
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield self
        finally:
            self.release_write()

    @property
    def readers(self) -> int:
        """Number of readers currently holding the lock."""
        return self._readers

    @property
    def write_held(self) -> bool:
        return self._writer
