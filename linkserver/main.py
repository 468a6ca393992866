"""
FastAPI app: GET / (links page), GET /health, POST /admin/reload.

The store, templates and watcher are built by the caller and injected through
create_app(); the lifespan starts the watcher and stops it on shutdown. GET /
is a sync endpoint so each request runs on the server threadpool and the store
lock never blocks the event loop.
"""

import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from jinja2 import Environment

from linkserver import __version__
from linkserver.config.store import ConfigStore
from linkserver.config.watcher import ConfigWatcher, WatcherState
from linkserver.errors import ConfigLoadError, RenderError
from linkserver.render import render_links

logger = structlog.get_logger(__name__)


def create_app(store: ConfigStore, templates: Environment, watcher: ConfigWatcher) -> FastAPI:
    """Build the app around an already-loaded store and parsed templates."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: start config watcher. Shutdown: stop and join it."""
        logger.info("startup_start", links=len(store.get().links))
        watcher.start()
        logger.info("application_ready")
        yield
        logger.info("shutdown_start")
        watcher.stop()

    app = FastAPI(title="Link Server", version=__version__, lifespan=lifespan)
    app.state.store = store
    app.state.templates = templates
    app.state.watcher = watcher

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request (method, path, status, duration)."""
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response

    @app.get("/", response_class=HTMLResponse)
    def index():
        """Render the current links. Every request re-renders; no caching."""
        config = store.get()
        try:
            body = render_links(templates, config)
        except RenderError as e:
            logger.error("render_failed", error=str(e))
            return PlainTextResponse(f"Error rendering template: {e}", status_code=500)
        return HTMLResponse(body)

    @app.get("/health")
    def health() -> JSONResponse:
        """Readiness: 503 once the watcher is fatal (config can no longer reload)."""
        state = watcher.state
        degraded = state == WatcherState.FATAL
        body = {
            "status": "degraded" if degraded else "ok",
            "watcher": state.value,
            "config_version": store.version,
            "links": len(store.get().links),
        }
        if degraded and watcher.last_error:
            body["error"] = watcher.last_error
        return JSONResponse(body, status_code=503 if degraded else 200)

    @app.post("/admin/reload")
    def admin_reload() -> dict:
        """Hot reload config from disk; the previous config stays on failure."""
        try:
            config = watcher.reload()
        except ConfigLoadError as e:
            logger.warning("admin_reload_failed", error=str(e))
            raise HTTPException(status_code=422, detail=str(e)) from e
        return {"status": "ok", "message": "config reloaded", "links": len(config.links)}

    return app
