"""Naming helpers shared by the generators."""

import re

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def to_snake_case(name: str) -> str:
    """Convert a CamelCase type name to snake_case (``HTTPRequest`` -> ``http_request``)."""
    return _WORD_BOUNDARY.sub("_", name).lower()


def indent(lines: list[str], depth: int = 1) -> list[str]:
    """Indent code lines by four spaces per level."""
    pad = "    " * depth
    return [pad + line if line else line for line in lines]
