"""Resolution of how an absent wire value is handled."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin

from .metadata import ConfigurationError, FieldDescriptor, FunctionRef, RecordDescriptor
from .shapes import ShapeKind
from .trace import DecisionTrace


class ErrorModeKind(StrEnum):
    """Policy for a missing wire value."""

    NONE = auto()
    PANIC = auto()
    ERROR = auto()
    DEFAULT = auto()


@dataclass(frozen=True)
class ErrorMode(DataClassJsonMixin):
    """Resolved error mode of a field.

    For DEFAULT, ``function`` builds the default value (None: type default).
    For ERROR, ``function`` builds the error from the wire field name
    (None: the record's generated error type).
    """

    kind: ErrorModeKind
    function: FunctionRef | None = None

    @property
    def uses_generated_error(self) -> bool:
        return self.kind == ErrorModeKind.ERROR and self.function is None

    def __str__(self) -> str:
        if self.kind == ErrorModeKind.ERROR:
            return f"error({self.function or 'generated'})"
        if self.kind == ErrorModeKind.DEFAULT:
            return f"default({self.function or 'type default'})"
        return str(self.kind)


ErrorModeRule = Callable[[FieldDescriptor, RecordDescriptor], ErrorMode | None]


def _default(field: FieldDescriptor, record: RecordDescriptor) -> ErrorMode | None:
    if field.default is None:
        return None
    return ErrorMode(ErrorModeKind.DEFAULT, field.default.function)


def _forced_error(field: FieldDescriptor, record: RecordDescriptor) -> ErrorMode | None:
    if record.error_type is None or field.ignored:
        return None
    function = field.error.error_fn or record.error_fn
    if function is None:
        raise ConfigurationError(
            f"@error_type {record.error_type} needs an @error_fn, on the record or on the field"
        )
    return ErrorMode(ErrorModeKind.ERROR, function)


def _explicit_panic(field: FieldDescriptor, record: RecordDescriptor) -> ErrorMode | None:
    if not field.error.explicit_panic:
        return None
    return ErrorMode(ErrorModeKind.PANIC)


def _explicit_error(field: FieldDescriptor, record: RecordDescriptor) -> ErrorMode | None:
    if not field.error.explicit_error:
        return None
    return ErrorMode(ErrorModeKind.ERROR, field.error.error_fn or record.error_fn)


def _custom_panic(field: FieldDescriptor, record: RecordDescriptor) -> ErrorMode | None:
    # Complex types with both custom functions must be present on the wire
    if field.custom is None or not field.custom.complete:
        return None
    if field.shape.kind in (ShapeKind.PRIMITIVE, ShapeKind.OPTIONAL):
        return None
    return ErrorMode(ErrorModeKind.PANIC)


# First match wins
ERROR_MODE_RULES: tuple[tuple[str, ErrorModeRule], ...] = (
    ("default", _default),
    ("record error type", _forced_error),
    ("expect(panic)", _explicit_panic),
    ("expect(error)", _explicit_error),
    ("custom conversion", _custom_panic),
)


def resolve_error_mode(
    field: FieldDescriptor,
    record: RecordDescriptor,
    trace: DecisionTrace | None = None,
) -> ErrorMode:
    """Resolve the error mode of a field within its record."""
    for rule_name, rule in ERROR_MODE_RULES:
        mode = rule(field, record)
        if mode is not None:
            if trace:
                trace.decision(field.native_name, "error mode", mode, rule_name)
            return mode

    mode = ErrorMode(ErrorModeKind.NONE)
    if trace:
        trace.decision(field.native_name, "error mode", mode, "no rule matched")
    return mode
