"""Selection of the conversion strategy of a field."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin

from .error_mode import ErrorMode, ErrorModeKind
from .metadata import FieldDescriptor
from .shapes import CollectionKind, ShapeKind
from .trace import DecisionTrace


class StrategyKind(StrEnum):
    """Conversion algorithm used for one field in both directions."""

    IGNORE = auto()
    CUSTOM = auto()
    TRANSPARENT = auto()
    COLLECTION = auto()
    OPTION_OR_DEFAULT = auto()
    DIRECT = auto()


@dataclass(frozen=True)
class StrategyDecision(DataClassJsonMixin):
    """Resolved strategy of a field.

    ``collect_with_error`` marks a collection whose emptiness counts as a
    missing value and is reported through the error mode.
    """

    kind: StrategyKind
    collection: CollectionKind | None = None
    collect_with_error: bool = False

    def __str__(self) -> str:
        if self.kind == StrategyKind.COLLECTION:
            suffix = ", with error" if self.collect_with_error else ""
            return f"collection({self.collection}{suffix})"
        return str(self.kind)


StrategyRule = Callable[[FieldDescriptor, ErrorMode], StrategyDecision | None]


def _ignore(field: FieldDescriptor, mode: ErrorMode) -> StrategyDecision | None:
    return StrategyDecision(StrategyKind.IGNORE) if field.ignored else None


def _custom(field: FieldDescriptor, mode: ErrorMode) -> StrategyDecision | None:
    return StrategyDecision(StrategyKind.CUSTOM) if field.custom is not None else None


def _transparent(field: FieldDescriptor, mode: ErrorMode) -> StrategyDecision | None:
    return StrategyDecision(StrategyKind.TRANSPARENT) if field.transparent else None


def _collection(field: FieldDescriptor, mode: ErrorMode) -> StrategyDecision | None:
    if field.collection is None:
        return None
    with_error = field.error.explicit and mode.kind in (ErrorModeKind.ERROR, ErrorModeKind.PANIC)
    return StrategyDecision(StrategyKind.COLLECTION, field.collection, with_error)


def _option_or_default(field: FieldDescriptor, mode: ErrorMode) -> StrategyDecision | None:
    if field.shape.kind == ShapeKind.OPTIONAL or mode.kind != ErrorModeKind.NONE:
        return StrategyDecision(StrategyKind.OPTION_OR_DEFAULT)
    return None


# First match wins; DIRECT covers whatever is left
STRATEGY_RULES: tuple[tuple[str, StrategyRule], ...] = (
    ("ignored", _ignore),
    ("custom functions", _custom),
    ("transparent", _transparent),
    ("collection shape", _collection),
    ("optional or error mode", _option_or_default),
)


def resolve_strategy(
    field: FieldDescriptor,
    mode: ErrorMode,
    trace: DecisionTrace | None = None,
) -> StrategyDecision:
    """Resolve the conversion strategy of a field given its error mode."""
    for rule_name, rule in STRATEGY_RULES:
        decision = rule(field, mode)
        if decision is not None:
            if trace:
                trace.decision(field.native_name, "strategy", decision, rule_name)
            return decision

    decision = StrategyDecision(StrategyKind.DIRECT)
    if trace:
        trace.decision(field.native_name, "strategy", decision, "structural")
    return decision
