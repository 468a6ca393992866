"""Pydantic schemas for the links file and application settings."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Link(BaseModel):
    """One named link. No URL validation: values are rendered as-is."""

    model_config = {"frozen": True, "extra": "ignore", "coerce_numbers_to_str": True}

    name: str = ""
    url: str = ""

    @field_validator("name", "url", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class Configuration(BaseModel):
    """Root of the links file. Immutable; replaced wholesale on reload."""

    model_config = {"frozen": True, "extra": "ignore"}

    links: tuple[Link, ...] = Field(default_factory=tuple, description="Links in file order; duplicates allowed")

    @field_validator("links", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        # `links:` with no value decodes to None
        return () if v is None else v


class AppSettings(BaseModel):
    """Process settings, built from CLI flags."""

    model_config = {"extra": "ignore"}

    config_file: str = Field("config.yaml", description="Path to the links YAML file")
    bind_addr: str = Field("0.0.0.0", description="Bind address for the HTTP server")
    port: int = Field(8080, ge=1, le=65535, description="Bind port for the HTTP server")
    templates_dir: str | None = Field(None, description="Directory with links.html; bundled templates when unset")
    log_level: LogLevel = "INFO"
    log_json: bool = Field(False, description="Render logs as JSON lines instead of console output")
    # True matches the historic behavior: any create/write in the directory reloads.
    watch_any_file: bool = Field(True, description="Reload on any file event in the config directory")
    debounce_seconds: float = Field(0.0, ge=0.0, description="Collapse bursts of events; 0 reloads immediately")
