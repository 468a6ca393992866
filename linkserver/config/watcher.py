"""
Hot reload: watchdog observer on the directory that contains the config file.

The directory is watched rather than the file because orchestrator-managed
config volumes expose the file as a symlink that is repointed by creating a new
link and renaming it over `..data`; a watch on the old file would go silent
after the first swap. Reloads run on the observer thread (or a debounce timer
thread) and publish through ConfigStore.replace(). A failed reload keeps the
last-known-good configuration.
"""

import os
import threading
from enum import Enum
from pathlib import Path
from typing import Callable

import structlog
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from linkserver.config.loader import load_config
from linkserver.config.schemas import Configuration
from linkserver.config.store import ConfigStore
from linkserver.errors import ConfigLoadError, WatcherFatalError

logger = structlog.get_logger(__name__)

RELEVANT_EVENT_TYPES = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED})

# Symlink that Kubernetes atomically renames on every ConfigMap update.
CONFIGMAP_DATA_LINK = "..data"


class WatcherState(str, Enum):
    INITIALIZING = "initializing"
    WATCHING = "watching"
    RELOADING = "reloading"
    FATAL = "fatal"
    STOPPED = "stopped"


class _ConfigDirHandler(FileSystemEventHandler):
    def __init__(self, watcher: "ConfigWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if self.watcher.is_relevant(event):
            logger.info("config_change_detected", event_type=event.event_type, path=os.fsdecode(event.src_path))
            self.watcher.notify_change()


class ConfigWatcher:
    """
    Watches the config directory and reloads the store on create/write/move events.

    Args:
        config_path: Path to the links file; its parent directory is watched.
        store: Store that receives successfully loaded configurations.
        watch_any_file: When True, any relevant event in the directory reloads
            (unrelated files included). When False, only events naming the
            config file or the `..data` link do.
        debounce_seconds: When > 0, bursts of events collapse into one reload
            after this quiet period.
        observer_factory: Callable returning a watchdog observer (tests).
    """

    def __init__(
        self,
        config_path: str | Path,
        store: ConfigStore,
        watch_any_file: bool = True,
        debounce_seconds: float = 0.0,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.config_path = Path(config_path).absolute()
        self.watch_dir = self.config_path.parent
        self.store = store
        self.watch_any_file = watch_any_file
        self.debounce_seconds = debounce_seconds
        self._observer_factory = observer_factory
        self._observer = None
        self._handler = _ConfigDirHandler(self)
        self._state = WatcherState.INITIALIZING
        self._state_lock = threading.Lock()
        self._reload_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._stopping = threading.Event()
        self.last_error: str | None = None

    @property
    def state(self) -> WatcherState:
        """Current state; an observer or emitter thread that died turns it fatal."""
        with self._state_lock:
            state = self._state
        if state in (WatcherState.WATCHING, WatcherState.RELOADING) and not self._observer_alive():
            self._fatal(WatcherFatalError(f"watch on {self.watch_dir} stopped unexpectedly"))
            return WatcherState.FATAL
        return state

    def _set_state(self, state: WatcherState) -> None:
        with self._state_lock:
            if self._state in (WatcherState.FATAL, WatcherState.STOPPED):
                return
            self._state = state

    def _observer_alive(self) -> bool:
        obs = self._observer
        if obs is None or self._stopping.is_set():
            return True
        if not obs.is_alive():
            return False
        return all(e.is_alive() for e in obs.emitters)

    def _fatal(self, exc: BaseException) -> None:
        with self._state_lock:
            if self._state == WatcherState.FATAL:
                return
            self._state = WatcherState.FATAL
        self.last_error = str(exc)
        logger.error(
            "config_watcher_fatal",
            directory=str(self.watch_dir),
            error=str(exc),
            detail="serving last loaded configuration; no further reloads",
        )

    def start(self) -> None:
        """Schedule a non-recursive watch on the config directory and start the observer thread."""
        if self._observer is not None:
            return
        observer = self._observer_factory()
        try:
            observer.schedule(self._handler, str(self.watch_dir), recursive=False)
            observer.start()
        except OSError as e:
            self._fatal(e)
            return
        self._observer = observer
        self._set_state(WatcherState.WATCHING)
        logger.info("config_watcher_started", directory=str(self.watch_dir), watch_any_file=self.watch_any_file)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the observer, cancel a pending debounce and join the thread."""
        self._stopping.set()
        with self._state_lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout)
            self._observer = None
        with self._state_lock:
            if self._state != WatcherState.FATAL:
                self._state = WatcherState.STOPPED
        logger.info("config_watcher_stopped", directory=str(self.watch_dir))

    def is_relevant(self, event: FileSystemEvent) -> bool:
        """Create, modify or move of a non-directory entry; optionally filtered by name."""
        if event.is_directory or event.event_type not in RELEVANT_EVENT_TYPES:
            return False
        if self.watch_any_file:
            return True
        names = {self.config_path.name, CONFIGMAP_DATA_LINK}
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(p and os.path.basename(os.fsdecode(p)) in names for p in paths)

    def notify_change(self) -> None:
        """Reload now, or (re)arm the debounce timer."""
        if self._stopping.is_set():
            return
        if self.debounce_seconds <= 0:
            self._reload_quietly()
            return
        with self._state_lock:
            # stop() may have run since the check above
            if self._stopping.is_set():
                return
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self._debounced_reload)
            self._timer.daemon = True
            self._timer.start()

    def _debounced_reload(self) -> None:
        with self._state_lock:
            self._timer = None
            if self._stopping.is_set():
                return
        self._reload_quietly()

    def _reload_quietly(self) -> None:
        try:
            self.reload()
        except ConfigLoadError as e:
            logger.warning("config_reload_failed", path=str(self.config_path), error=str(e))

    def reload(self) -> Configuration:
        """
        Load the config file and publish it to the store.

        Returns:
            The newly published Configuration.

        Raises:
            ConfigLoadError: If the file cannot be read or decoded (the store is unchanged).
        """
        with self._reload_lock:
            self._set_state(WatcherState.RELOADING)
            try:
                config = load_config(self.config_path)
                self.store.replace(config)
            finally:
                self._set_state(WatcherState.WATCHING if self._observer is not None else WatcherState.INITIALIZING)
        logger.info("config_reloaded", path=str(self.config_path), links=len(config.links))
        return config
