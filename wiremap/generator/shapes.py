"""Structural classification of native field types."""

from dataclasses import dataclass, field
from enum import StrEnum, auto

from .types import EnumDef, RecordDef, TypeRef, is_primitive


class ShapeKind(StrEnum):
    """Structural category of a native type."""

    PRIMITIVE = auto()
    OPTIONAL = auto()
    SEQUENCE = auto()
    MAP = auto()
    WIRE = auto()
    ENUM = auto()
    CUSTOM = auto()


class CollectionKind(StrEnum):
    """Container family of a collection-shaped field."""

    VEC = auto()
    SET = auto()
    DEQUE = auto()
    MAP = auto()


_SEQUENCES = {
    "list": CollectionKind.VEC,
    "set": CollectionKind.SET,
    "deque": CollectionKind.DEQUE,
}


@dataclass(frozen=True)
class Shape:
    """Classified native type.

    ``args`` holds the classified inner types: one for OPTIONAL and
    SEQUENCE, key and value for MAP, none otherwise.
    """

    kind: ShapeKind
    name: str
    args: tuple["Shape", ...] = ()
    collection: CollectionKind | None = None

    @property
    def inner(self) -> "Shape":
        return self.args[-1]

    def is_collection(self) -> bool:
        return self.kind in (ShapeKind.SEQUENCE, ShapeKind.MAP)

    def is_optional_collection(self) -> bool:
        return self.kind == ShapeKind.OPTIONAL and self.inner.is_collection()

    def referenced_types(self) -> set[str]:
        """Names of the enum and custom types used anywhere in this shape."""
        names = {self.name} if self.kind in (ShapeKind.ENUM, ShapeKind.CUSTOM) else set()
        for arg in self.args:
            names |= arg.referenced_types()
        return names

    def __str__(self) -> str:
        if self.kind == ShapeKind.OPTIONAL:
            return f"Optional<{self.inner}>"
        if self.kind == ShapeKind.SEQUENCE:
            return f"{self.name}<{self.inner}>"
        if self.kind == ShapeKind.MAP:
            return f"Map<{self.args[0]}, {self.args[1]}>"
        return self.name


@dataclass(frozen=True)
class SymbolTable:
    """Names declared by a definition file.

    Built once from every declaration before any field is classified, so
    classification never depends on declaration order.
    """

    enums: frozenset[str] = frozenset()
    records: dict[str, RecordDef] = field(default_factory=dict)

    @classmethod
    def build(cls, enums: list[EnumDef], records: list[RecordDef]) -> "SymbolTable":
        return cls(
            enums=frozenset(e.name for e in enums),
            records={r.name: r for r in records},
        )

    def is_enum(self, name: str) -> bool:
        return name in self.enums

    def record(self, name: str) -> RecordDef | None:
        return self.records.get(name)


def classify(type_ref: TypeRef, symbols: SymbolTable, *, enum_flag: bool = False) -> Shape:
    """Classify a native type into its structural shape.

    Total and pure: anything that is not recognised falls back to CUSTOM.
    The explicit enum flag marks the element type, through any containers.
    """
    if type_ref.wire:
        return Shape(ShapeKind.WIRE, type_ref.name)

    if type_ref.args:
        if type_ref.name == "optional" and len(type_ref.args) == 1:
            inner = classify(type_ref.args[0], symbols, enum_flag=enum_flag)
            return Shape(ShapeKind.OPTIONAL, "optional", (inner,))
        if type_ref.name in _SEQUENCES and len(type_ref.args) == 1:
            inner = classify(type_ref.args[0], symbols, enum_flag=enum_flag)
            return Shape(
                ShapeKind.SEQUENCE, type_ref.name, (inner,), collection=_SEQUENCES[type_ref.name]
            )
        if type_ref.name == "dict" and len(type_ref.args) == 2:
            key = classify(type_ref.args[0], symbols)
            value = classify(type_ref.args[1], symbols, enum_flag=enum_flag)
            return Shape(ShapeKind.MAP, "dict", (key, value), collection=CollectionKind.MAP)
        return Shape(ShapeKind.CUSTOM, str(type_ref))

    if is_primitive(type_ref):
        return Shape(ShapeKind.PRIMITIVE, type_ref.name)

    if enum_flag or symbols.is_enum(type_ref.name):
        return Shape(ShapeKind.ENUM, type_ref.name)

    return Shape(ShapeKind.CUSTOM, type_ref.name)
