"""
Error taxonomy.

Startup errors (missing config, initial load, template parse, listen) are fatal
and map to exit code 1 in the CLI. Load errors raised during a reload are logged
and the previous configuration stays in effect. Render errors only fail the
request that hit them.
"""


class LinkServerError(Exception):
    """Base class for all linkserver errors."""


class StartupConfigMissing(LinkServerError):
    """Configuration file does not exist at startup."""

    def __init__(self, path: str):
        super().__init__(f"Configuration file not found: {path}")
        self.path = path


class ConfigLoadError(LinkServerError):
    """Configuration file could not be loaded (read or decode)."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class ReadError(ConfigLoadError):
    """File could not be opened or read."""


class DecodeError(ConfigLoadError):
    """File is not valid YAML or does not match the links schema."""


class TemplateParseError(LinkServerError):
    """A template failed to load or compile."""


class RenderError(LinkServerError):
    """Template execution failed for a request."""


class WatcherFatalError(LinkServerError):
    """The file-system watch could not be started or died."""


class ListenError(LinkServerError):
    """HTTP listener failed to bind or serve."""
