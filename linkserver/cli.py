"""
Command-line entry point: parse flags, load the initial config, parse templates, serve.

Any startup failure (missing config, invalid config, template parse error,
listener failure) is logged and exits with status 1.
"""

import argparse
import os
import sys
from pathlib import Path

import structlog
from fastapi import FastAPI
from pydantic import ValidationError

from linkserver import __version__
from linkserver.config.loader import load_config
from linkserver.config.logging import configure_logging
from linkserver.config.schemas import AppSettings
from linkserver.config.store import ConfigStore
from linkserver.config.watcher import ConfigWatcher
from linkserver.errors import LinkServerError, ListenError, StartupConfigMissing
from linkserver.main import create_app
from linkserver.render import load_templates

logger = structlog.get_logger(__name__)

EPILOG = """\
Examples:
  linkserver -c ./myconfig.yaml -p 3000
  linkserver --config=/etc/links/config.yaml --bind-addr=127.0.0.1 --port=9090
"""


def build_parser() -> argparse.ArgumentParser:
    defaults = AppSettings()
    parser = argparse.ArgumentParser(
        prog="linkserver",
        description="A simple link manager with auto-reloading configuration.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", dest="config_file", default=defaults.config_file,
                        help=f"Path to configuration file (default: {defaults.config_file})")
    parser.add_argument("-a", "--bind-addr", dest="bind_addr", default=defaults.bind_addr,
                        help=f"Bind address for the server (default: {defaults.bind_addr})")
    parser.add_argument("-p", "--port", type=int, default=defaults.port,
                        help=f"Port to bind the server (default: {defaults.port})")
    parser.add_argument("--templates-dir", default=None,
                        help="Directory containing links.html (default: bundled templates)")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", defaults.log_level).upper(),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Log level (default: INFO, or LOG_LEVEL env)")
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--strict-watch", action="store_true",
                        help="Only reload on events naming the config file (or a ConfigMap ..data swap)")
    parser.add_argument("--debounce", dest="debounce_seconds", type=float, default=defaults.debounce_seconds,
                        help="Seconds to wait for a burst of file events to settle (default: 0, reload immediately)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def settings_from_args(args: argparse.Namespace) -> AppSettings:
    """Validate parsed flags into AppSettings."""
    return AppSettings(
        config_file=args.config_file,
        bind_addr=args.bind_addr,
        port=args.port,
        templates_dir=args.templates_dir,
        log_level=args.log_level,
        log_json=args.log_json,
        watch_any_file=not args.strict_watch,
        debounce_seconds=args.debounce_seconds,
    )


def bootstrap(settings: AppSettings) -> FastAPI:
    """
    Load the initial configuration and templates and build the app.

    Raises:
        StartupConfigMissing: If the config file does not exist.
        ConfigLoadError: If the initial config cannot be read or decoded.
        TemplateParseError: If templates fail to load.
    """
    if not Path(settings.config_file).exists():
        raise StartupConfigMissing(settings.config_file)
    config = load_config(settings.config_file)
    logger.info("config_loaded", path=settings.config_file, links=len(config.links))
    store = ConfigStore(config)
    templates = load_templates(settings.templates_dir)
    watcher = ConfigWatcher(
        settings.config_file,
        store,
        watch_any_file=settings.watch_any_file,
        debounce_seconds=settings.debounce_seconds,
    )
    return create_app(store, templates, watcher)


def serve(app: FastAPI, settings: AppSettings) -> None:
    """Run Uvicorn until shutdown."""
    import uvicorn

    logger.info("server_starting", host=settings.bind_addr, port=settings.port)
    try:
        uvicorn.run(app, host=settings.bind_addr, port=settings.port, log_config=None)
    except OSError as e:
        raise ListenError(f"cannot listen on {settings.bind_addr}:{settings.port}: {e}") from e
    except SystemExit as e:
        # uvicorn logs bind failures itself and exits non-zero
        if e.code:
            raise ListenError(f"cannot listen on {settings.bind_addr}:{settings.port} (exit {e.code})") from e
        raise


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        parser.error(str(e))
    configure_logging(settings.log_level, settings.log_json)
    logger.info(
        "starting",
        config_file=settings.config_file,
        bind_addr=settings.bind_addr,
        port=settings.port,
        version=__version__,
    )
    try:
        app = bootstrap(settings)
        serve(app, settings)
    except LinkServerError as e:
        logger.error("startup_failed", error_type=type(e).__name__, error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
