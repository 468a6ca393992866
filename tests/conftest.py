"""Pytest fixtures: temp config files, store, templates, fake observer, app client."""

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from linkserver.config.loader import load_config
from linkserver.config.store import ConfigStore
from linkserver.config.watcher import ConfigWatcher
from linkserver.main import create_app
from linkserver.render import load_templates

CONFIG_X = """
links:
  - name: X
    url: http://x
"""

CONFIG_Y = """
links:
  - name: Y
    url: http://y
"""


class FakeObserver:
    """Stands in for a watchdog observer; events are dispatched by the test."""

    def __init__(self, start_error: Exception | None = None):
        self.start_error = start_error
        self.scheduled: list[tuple[object, str, bool]] = []
        self.started = False
        self.stopped = False
        self.joined = False
        self.alive = True
        self.emitters: set = set()

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        self.joined = True

    def is_alive(self):
        return self.alive and not self.stopped


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.05) -> bool:
    """Poll until predicate() is true or timeout; returns the last result."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def config_file(tmp_path) -> Path:
    """links.yaml with a single link X in its own directory."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    path = conf_dir / "config.yaml"
    path.write_text(CONFIG_X, encoding="utf-8")
    return path


@pytest.fixture
def store(config_file) -> ConfigStore:
    return ConfigStore(load_config(config_file))


@pytest.fixture
def templates():
    return load_templates()


@pytest.fixture
def fake_observer() -> FakeObserver:
    return FakeObserver()


@pytest.fixture
def watcher(config_file, store, fake_observer) -> ConfigWatcher:
    return ConfigWatcher(config_file, store, observer_factory=lambda: fake_observer)


@pytest.fixture
def client(store, templates, watcher):
    """TestClient with lifespan running against a fake observer."""
    app = create_app(store, templates, watcher)
    with TestClient(app) as c:
        yield c
