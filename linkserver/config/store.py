"""
Current configuration holder shared by request handlers and the watcher.

Readers take a shared lock only long enough to copy the reference out; the
writer takes it exclusively only for the assignment. Decoding and rendering
happen outside the lock. Configuration values are immutable, so a reference
returned by get() stays valid after a later replace().
"""

import threading

import structlog

from linkserver.config.schemas import Configuration

logger = structlog.get_logger(__name__)


class ReadWriteLock:
    """Shared/exclusive lock. Writer-preferring: waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
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
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class ConfigStore:
    """Single source of truth for the current Configuration."""

    def __init__(self, initial: Configuration):
        self._lock = ReadWriteLock()
        self._config = initial
        self._version = 1

    def get(self) -> Configuration:
        """Return the current configuration snapshot."""
        self._lock.acquire_read()
        try:
            return self._config
        finally:
            self._lock.release_read()

    @property
    def version(self) -> int:
        """Incremented on every replace(); starts at 1 for the initial load."""
        self._lock.acquire_read()
        try:
            return self._version
        finally:
            self._lock.release_read()

    def replace(self, new: Configuration) -> None:
        """Atomically swap in a new configuration. No validation here."""
        self._lock.acquire_write()
        try:
            self._config = new
            self._version += 1
            version = self._version
        finally:
            self._lock.release_write()
        logger.info("config_replaced", links=len(new.links), version=version)
