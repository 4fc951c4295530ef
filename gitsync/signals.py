"""Synchronisation helpers for the mirror."""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional


class Signal:
    """
    Single-slot mailbox with non-blocking, drop-when-full sends.

    Any number of `send()` calls before a `wait()` consumes the slot collapse
    into one pending wake-up.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = False

    def send(self) -> bool:
        """
        Put a wake-up in the slot without blocking.

        Returns:
            True if the slot was empty, False if a wake-up was already pending
        """
        with self._cond:
            if self._pending:
                return False
            self._pending = True
            self._cond.notify()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until a wake-up arrives, then consume it.

        Args:
            timeout: Seconds to wait (None waits forever)

        Returns:
            True if a wake-up was consumed, False on timeout
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._pending, timeout=timeout):
                return False
            self._pending = False
            return True


class RWLock:
    """
    Readers-writer lock.

    Many readers may hold the lock together; a writer holds it alone.
    Waiting writers block new readers so that a steady stream of reads
    cannot starve a state change.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock shared for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock exclusively for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
