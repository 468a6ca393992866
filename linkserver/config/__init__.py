"""Configuration loading, storage, and hot reload."""

from linkserver.config.loader import load_config
from linkserver.config.store import ConfigStore
from linkserver.config.watcher import ConfigWatcher

__all__ = ["ConfigStore", "ConfigWatcher", "load_config"]
