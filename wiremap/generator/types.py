"""Type definitions for definition-file parsing."""

from dataclasses import dataclass, field
from typing import Any

from dataclasses_json import DataClassJsonMixin


@dataclass
class TypeRef(DataClassJsonMixin):
    """Represents a type expression on a native field.

    - args: generic arguments (optional[T], list[T], dict[K, V], ...)
    - wire=True: a type supplied by the wire module (wire.Dotted.Name)
    """

    name: str
    args: list["TypeRef"] = field(default_factory=list)
    wire: bool = False

    def __str__(self) -> str:
        prefix = "wire." if self.wire else ""
        if self.args:
            return f"{prefix}{self.name}[{', '.join(str(a) for a in self.args)}]"
        return f"{prefix}{self.name}"


@dataclass
class AnnotationArg(DataClassJsonMixin):
    """Represents an argument to an annotation."""

    name: str | None
    value: Any


@dataclass
class Annotation(DataClassJsonMixin):
    """Represents an annotation on a definition element."""

    name: str
    arguments: list[AnnotationArg]


@dataclass
class FieldDef(DataClassJsonMixin):
    """Represents a named field of a record."""

    name: str
    type: TypeRef
    comment: str | None
    annotations: list[Annotation]


@dataclass
class RecordDef(DataClassJsonMixin):
    """Represents a native record definition.

    A newtype record (``struct UserId(uint64)``) holds a single unnamed
    field, stored here as a field called ``value``.
    """

    name: str
    fields: list[FieldDef]
    comment: str | None
    annotations: list[Annotation]
    newtype: bool = False


@dataclass
class EnumVariantDef(DataClassJsonMixin):
    """Represents a single enum variant."""

    name: str
    comment: str | None
    annotations: list[Annotation]


@dataclass
class EnumDef(DataClassJsonMixin):
    """Represents a native enum definition."""

    name: str
    variants: list[EnumVariantDef]
    comment: str | None
    annotations: list[Annotation]


@dataclass
class ConfigOption(DataClassJsonMixin):
    """Represents an entry of the options block."""

    name: str
    value: Any
    comment: str | None


PRIMITIVE_TYPES = frozenset(
    [
        "bool",
        "int8",
        "int16",
        "int32",
        "int64",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "float32",
        "float64",
        "bytes",
        "string",
    ]
)

# Generic type constructors and the number of arguments each takes
GENERIC_TYPES = {
    "optional": 1,
    "list": 1,
    "set": 1,
    "deque": 1,
    "dict": 2,
}

KNOWN_OPTIONS = frozenset(["wireModule", "helpers"])


def is_primitive(t: TypeRef) -> bool:
    """Check if a type is a primitive type."""
    return not t.wire and not t.args and t.name in PRIMITIVE_TYPES
