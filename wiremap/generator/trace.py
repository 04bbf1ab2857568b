"""Decision tracing for generated conversions.

Set ``WIREMAP_DEBUG`` to choose which types log their decisions to the
``wiremap.decisions`` logger:

- ``all`` (or ``1``, ``true``, ``*``): every type
- ``User``: one type
- ``User*``, ``*Request``: shell-style patterns
- ``User,Order``: a comma separated list of any of the above
- unset, empty, ``0``, ``false`` or ``none``: nothing
"""

import logging
import os
from fnmatch import fnmatchcase

logger = logging.getLogger("wiremap.decisions")

DEBUG_ENV = "WIREMAP_DEBUG"

_ALL = frozenset(["all", "1", "true", "*"])
_NONE = frozenset(["", "0", "false", "none"])


def debug_patterns() -> list[str]:
    """Return the active type-name patterns from the environment."""
    raw = os.environ.get(DEBUG_ENV, "").strip()
    if raw.lower() in _NONE:
        return []
    if raw.lower() in _ALL:
        return ["*"]
    return [p.strip() for p in raw.split(",") if p.strip()]


def tracing_enabled(type_name: str) -> bool:
    """Check whether decisions for a type should be logged."""
    return any(fnmatchcase(type_name, pattern) for pattern in debug_patterns())


class DecisionTrace:
    """Records the decisions taken while generating one type."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        self.enabled = tracing_enabled(type_name)
        self.steps: list[tuple[str, str, str]] = []

    def decision(self, field_name: str | None, step: str, outcome: object, reason: str = "") -> None:
        """Log one decision, e.g. the strategy chosen for a field and the rule that chose it."""
        if not self.enabled:
            return
        where = f"{self.type_name}.{field_name}" if field_name else self.type_name
        self.steps.append((where, step, str(outcome)))
        if reason:
            logger.debug("%s: %s -> %s (%s)", where, step, outcome, reason)
        else:
            logger.debug("%s: %s -> %s", where, step, outcome)
