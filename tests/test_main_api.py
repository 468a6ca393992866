"""
FastAPI endpoint tests using TestClient.

The app lifespan runs against a fake observer, except for the end-to-end test
which uses a real watchdog observer on a temp directory.
"""

import pytest
from fastapi.testclient import TestClient

from linkserver.config.loader import load_config
from linkserver.config.store import ConfigStore
from linkserver.config.watcher import ConfigWatcher
from linkserver.main import create_app
from linkserver.render import load_templates
from tests.conftest import CONFIG_Y, FakeObserver, wait_for


def test_index_renders_links(client: TestClient):
    r = client.get("/")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert ">X</a>" in r.text
    assert "http://x" in r.text


def test_index_reflects_store_replace(client: TestClient, store: ConfigStore, tmp_path):
    p = tmp_path / "y.yaml"
    p.write_text(CONFIG_Y)
    store.replace(load_config(p))
    r = client.get("/")
    assert ">Y</a>" in r.text
    assert ">X</a>" not in r.text


def test_index_render_error_returns_500(store, watcher, tmp_path):
    tdir = tmp_path / "templates"
    tdir.mkdir()
    (tdir / "links.html").write_text("{{ links[0].name }} {{ missing.value }}")
    app = create_app(store, load_templates(tdir), watcher)
    with TestClient(app) as c:
        r = c.get("/")
    assert r.status_code == 500
    assert r.headers["content-type"].startswith("text/plain")
    assert r.text.startswith("Error rendering template:")
    assert "missing" in r.text


def test_lifespan_starts_and_stops_watcher(store, templates, watcher, fake_observer):
    app = create_app(store, templates, watcher)
    with TestClient(app) as c:
        assert fake_observer.started
        assert c.get("/health").json()["watcher"] == "watching"
    assert fake_observer.stopped
    assert fake_observer.joined


def test_health_ok(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["watcher"] == "watching"
    assert data["config_version"] == 1
    assert data["links"] == 1


def test_health_degraded_when_watcher_fatal(store, templates, config_file):
    obs = FakeObserver(start_error=OSError(28, "inotify watch limit reached"))
    watcher = ConfigWatcher(config_file, store, observer_factory=lambda: obs)
    app = create_app(store, templates, watcher)
    with TestClient(app) as c:
        r = c.get("/health")
        index = c.get("/")
    assert r.status_code == 503
    assert r.json()["status"] == "degraded"
    assert r.json()["watcher"] == "fatal"
    assert "inotify" in r.json()["error"]
    # still serving the last loaded config
    assert index.status_code == 200
    assert ">X</a>" in index.text


def test_admin_reload(client: TestClient, config_file):
    config_file.write_text(CONFIG_Y, encoding="utf-8")
    r = client.post("/admin/reload")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "message": "config reloaded", "links": 1}
    assert ">Y</a>" in client.get("/").text


def test_admin_reload_invalid_keeps_previous(client: TestClient, config_file):
    config_file.write_text("links: [{name: broken", encoding="utf-8")
    r = client.post("/admin/reload")
    assert r.status_code == 422
    assert "invalid YAML" in r.json()["detail"]
    assert ">X</a>" in client.get("/").text


def test_admin_reload_missing_file(client: TestClient, config_file):
    config_file.unlink()
    r = client.post("/admin/reload")
    assert r.status_code == 422
    assert ">X</a>" in client.get("/").text


@pytest.mark.parametrize("path", ["/missing", "/links"])
def test_unknown_route_404(client: TestClient, path):
    assert client.get(path).status_code == 404


def test_end_to_end_file_change_updates_page(config_file, templates):
    """Start with X, overwrite the file with Y, page shows Y and no longer X."""
    store = ConfigStore(load_config(config_file))
    watcher = ConfigWatcher(config_file, store)
    app = create_app(store, templates, watcher)
    with TestClient(app) as c:
        first = c.get("/")
        assert ">X</a>" in first.text and "http://x" in first.text
        config_file.write_text(CONFIG_Y, encoding="utf-8")
        assert wait_for(lambda: ">Y</a>" in c.get("/").text)
        final = c.get("/")
    assert "http://y" in final.text
    assert ">X</a>" not in final.text
    assert "http://x" not in final.text
