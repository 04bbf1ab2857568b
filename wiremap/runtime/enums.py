"""Name based matching between native and wire enum variants."""

from enum import Enum
from typing import Any, TypeVar

from .errors import EnumDriftError

TEnum = TypeVar("TEnum", bound=Enum)


def screaming_snake(name: str) -> str:
    """Convert a variant name to SCREAMING_SNAKE_CASE.

    Every uppercase letter after the first starts a new word.
    """
    out: list[str] = []
    for i, c in enumerate(name):
        if c.isupper() and i > 0:
            out.append("_")
        out.append(c.upper())
    return "".join(out)


def candidate_names(enum_name: str, variant: str) -> tuple[str, ...]:
    """Return the wire names a native variant may appear under, in match order."""
    return (variant, f"{enum_name.upper()}_{screaming_snake(variant)}")


def wire_name(wire_enum: Any, value: Any) -> str:
    """Return the symbolic name of a wire enum value.

    Accepts ``enum.Enum`` members and the integer values used by protobuf
    enum wrappers.
    """
    if isinstance(value, Enum):
        return value.name
    if hasattr(wire_enum, "Name"):
        try:
            return wire_enum.Name(value)
        except ValueError:
            pass
    return str(value)


def wire_member(wire_enum: Any, name: str) -> Any | None:
    """Look up a wire enum value by name, or None if the wire enum has no such name."""
    if isinstance(wire_enum, type) and issubclass(wire_enum, Enum):
        return wire_enum.__members__.get(name)
    if hasattr(wire_enum, "Value"):
        try:
            return wire_enum.Value(name)
        except ValueError:
            return None
    return None


def match_from_wire(table: dict[str, TEnum], wire_enum: Any, value: Any, enum_name: str) -> TEnum:
    """Resolve a wire value through a name table built from candidate names."""
    name = wire_name(wire_enum, value)
    try:
        return table[name]
    except KeyError:
        raise EnumDriftError(f"No matching {enum_name} variant for wire value {name}") from None


def match_to_wire(wire_enum: Any, candidates: tuple[str, ...], variant: Enum) -> Any:
    """Return the first wire value named by one of a variant's candidates."""
    for candidate in candidates:
        member = wire_member(wire_enum, candidate)
        if member is not None:
            return member
    raise EnumDriftError(f"No matching wire variant for {type(variant).__name__}.{variant.name}")


def enum_from_wire(native_enum: type[TEnum], wire_enum: Any, value: Any) -> TEnum:
    """Convert a wire value to a variant of an enum not declared in the definition file."""
    table: dict[str, TEnum] = {}
    for variant in native_enum:
        for candidate in candidate_names(native_enum.__name__, variant.name):
            table.setdefault(candidate, variant)
    return match_from_wire(table, wire_enum, value, native_enum.__name__)


def enum_to_wire(wire_enum: Any, variant: Enum) -> Any:
    """Convert a variant of an enum not declared in the definition file to its wire value."""
    return match_to_wire(wire_enum, candidate_names(type(variant).__name__, variant.name), variant)
