"""
Jinja2 templates: parsed eagerly at startup, rendered per request.

Bundled templates live in linkserver/templates; a directory given with
--templates-dir replaces them.
"""

from pathlib import Path

import structlog
from jinja2 import (
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateError,
    select_autoescape,
)

from linkserver.config.schemas import Configuration
from linkserver.errors import RenderError, TemplateParseError

logger = structlog.get_logger(__name__)

LINKS_TEMPLATE = "links.html"


def load_templates(templates_dir: str | Path | None = None) -> Environment:
    """
    Build the template environment and compile every template in it.

    Raises:
        TemplateParseError: If the directory is missing, links.html is absent,
            or any template has a syntax error.
    """
    if templates_dir is None:
        loader = PackageLoader("linkserver", "templates")
    else:
        path = Path(templates_dir)
        if not path.is_dir():
            raise TemplateParseError(f"templates directory not found: {path}")
        loader = FileSystemLoader(str(path))
    env = Environment(
        loader=loader,
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
    )
    names = env.list_templates(extensions=["html"])
    if LINKS_TEMPLATE not in names:
        raise TemplateParseError(f"template {LINKS_TEMPLATE} not found")
    for name in names:
        try:
            env.get_template(name)
        except TemplateError as e:
            raise TemplateParseError(f"failed to parse template {name}: {e}") from e
    logger.info("templates_loaded", templates=names)
    return env


def render_links(env: Environment, config: Configuration) -> str:
    """Render the links page for one configuration snapshot."""
    try:
        return env.get_template(LINKS_TEMPLATE).render(links=config.links, config=config)
    except Exception as e:
        raise RenderError(str(e)) from e
