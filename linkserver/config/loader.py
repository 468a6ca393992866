"""
Config loader: read the links YAML file and validate it into a Configuration.

- Read failures (missing file, permissions, directory, I/O) raise ReadError.
- YAML syntax errors and shape mismatches raise DecodeError.
- Permissive on content: an empty file, a missing `links` key, or missing
  `name`/`url` fields all default to empty values. Scalars keep their
  literal text, so `name: on` or `name: 2024-01-01` stay strings.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from linkserver.config.schemas import Configuration
from linkserver.errors import DecodeError, ReadError


# Tags whose implicit resolution would turn link text into bool, int, float or date.
_NON_STRING_TAGS = frozenset(
    "tag:yaml.org,2002:" + t for t in ("bool", "int", "float", "timestamp")
)


class LiteralScalarLoader(yaml.SafeLoader):
    """SafeLoader that leaves plain scalars as text (`on`, `0755`, `2024-01-01`); null still resolves."""


LiteralScalarLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _NON_STRING_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _decode(raw: bytes, path: str) -> Any:
    """Parse YAML bytes; PyYAML detects UTF-8/UTF-16 itself."""
    try:
        return yaml.load(raw, Loader=LiteralScalarLoader)
    except yaml.YAMLError as e:
        raise DecodeError(path, f"invalid YAML: {e}") from e


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc or '<root>'}: {err.get('msg', '')}")
    return "; ".join(parts)


def parse_config(data: Any, path: str = "<memory>") -> Configuration:
    """Validate already-decoded YAML data into a Configuration."""
    if data is None:
        return Configuration()
    if not isinstance(data, dict):
        raise DecodeError(path, f"expected a mapping at top level, got {type(data).__name__}")
    try:
        return Configuration.model_validate(data)
    except ValidationError as e:
        raise DecodeError(path, _format_validation_error(e)) from e


def load_config(path: str | Path) -> Configuration:
    """
    Load and validate the links file.

    Args:
        path: Path to the YAML file (symlinks are followed).

    Returns:
        Validated, immutable Configuration.

    Raises:
        ReadError: If the file cannot be opened or read.
        DecodeError: If the bytes are not valid YAML or do not match the schema.
    """
    p = Path(path)
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise ReadError(str(p), e.strerror or str(e)) from e
    return parse_config(_decode(raw, str(p)), str(p))
