"""Link page server with hot-reloaded YAML configuration."""

__version__ = "0.1.0"
