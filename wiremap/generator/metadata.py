"""Normalized per-field and per-record conversion configuration.

Annotations from the definition file are read exactly once, here, into
immutable descriptors. Everything downstream works from the descriptors and
never looks at annotation text again.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from dataclasses_json import DataClassJsonMixin

from .shapes import CollectionKind, Shape, ShapeKind, SymbolTable, classify
from .types import Annotation, EnumDef, FieldDef, RecordDef, TypeRef

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
_DOTTED = rf"{_IDENT}(?:\.{_IDENT})*"
_FUNCTION_REF = re.compile(rf"^(?:(?P<module>{_DOTTED}):)?(?P<path>{_DOTTED})$")
_IDENTIFIER = re.compile(rf"^{_IDENT}$")


class ConfigurationError(RuntimeError):
    """Raised when a type's conversion configuration is invalid."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)

    def at(self, path: str) -> "ConfigurationError":
        """Return the same error annotated with a location, unless it already has one."""
        if self.path:
            return self
        return ConfigurationError(self.message, path)


@dataclass(frozen=True)
class GeneratorConfig:
    """Settings shared by every type of one generation run."""

    wire_module: str
    helpers_module: str | None = None
    runtime_import: str = "wiremap.runtime"


@dataclass(frozen=True)
class FunctionRef(DataClassJsonMixin):
    """A validated reference to a module-level callable or class attribute."""

    module: str
    path: str

    @classmethod
    def parse(cls, text: Any, config: GeneratorConfig) -> "FunctionRef":
        """Parse ``"pkg.mod:Name.attr"`` or a bare ``"Name.attr"`` relative to the helpers module."""
        match = _FUNCTION_REF.match(text) if isinstance(text, str) else None
        if not match:
            raise ConfigurationError(f"Malformed function reference {text!r}")

        module = match.group("module") or config.helpers_module
        if module is None:
            raise ConfigurationError(
                f"Function reference {text!r} has no module and no helpers module is configured"
            )
        return cls(module=module, path=match.group("path"))

    @property
    def expression(self) -> str:
        return f"{self.module}.{self.path}"

    def __str__(self) -> str:
        return f"{self.module}:{self.path}"


@dataclass(frozen=True)
class DefaultSpec(DataClassJsonMixin):
    """Default fill for an absent wire value; no function means the type default."""

    function: FunctionRef | None = None


@dataclass(frozen=True)
class ErrorSpec(DataClassJsonMixin):
    """Field-level error handling requests."""

    explicit_panic: bool = False
    explicit_error: bool = False
    error_fn: FunctionRef | None = None

    @property
    def explicit(self) -> bool:
        return self.explicit_panic or self.explicit_error


@dataclass(frozen=True)
class CustomConversion(DataClassJsonMixin):
    """User functions replacing the structural conversion of a field."""

    from_fn: FunctionRef | None = None
    to_fn: FunctionRef | None = None

    @property
    def complete(self) -> bool:
        return self.from_fn is not None and self.to_fn is not None


@dataclass(frozen=True)
class FieldDescriptor:
    """Normalized configuration of one native field."""

    native_name: str
    wire_name: str
    type: TypeRef
    shape: Shape
    wire_optional: bool
    ignored: bool = False
    default: DefaultSpec | None = None
    error: ErrorSpec = field(default_factory=ErrorSpec)
    custom: CustomConversion | None = None
    collection: CollectionKind | None = None
    transparent: bool = False
    key: str | None = None
    explicit_optionality: bool | None = None


@dataclass(frozen=True)
class RecordDescriptor:
    """Normalized configuration of one native record."""

    name: str
    wire_name: str
    fields: tuple[FieldDescriptor, ...]
    error_type: FunctionRef | None = None
    error_fn: FunctionRef | None = None
    newtype: bool = False
    comment: str | None = None


@dataclass(frozen=True)
class EnumDescriptor:
    """Normalized configuration of one native enum."""

    name: str
    wire_name: str
    variants: tuple[str, ...]
    comment: str | None = None


_FIELD_ANNOTATIONS = frozenset(
    [
        "rename",
        "transparent",
        "optional",
        "required",
        "default",
        "expect",
        "error_fn",
        "from_fn",
        "to_fn",
        "ignore",
        "enum",
        "key",
    ]
)
_RECORD_ANNOTATIONS = frozenset(["rename", "error_type", "error_fn", "ignore"])
_ENUM_ANNOTATIONS = frozenset(["rename"])

_TRUE = ("true", "True", 1)
_FALSE = ("false", "False", 0)


def _index_annotations(annotations: list[Annotation], allowed: frozenset[str], what: str) -> dict:
    by_name: dict[str, Annotation] = {}
    for annotation in annotations:
        if annotation.name not in allowed:
            raise ConfigurationError(f"Unknown {what} annotation @{annotation.name}")
        if annotation.name in by_name:
            raise ConfigurationError(f"@{annotation.name} given more than once")
        by_name[annotation.name] = annotation
    return by_name


def _values(annotation: Annotation, min_args: int, max_args: int | None) -> list[Any]:
    named = [arg.name for arg in annotation.arguments if arg.name is not None]
    if named:
        raise ConfigurationError(
            f"@{annotation.name} does not take named arguments, got {named[0]}="
        )
    values = [arg.value for arg in annotation.arguments]
    if len(values) < min_args or (max_args is not None and len(values) > max_args):
        if min_args == max_args:
            expected = f"{min_args} argument{'s' if min_args != 1 else ''}"
        elif max_args is None:
            expected = f"at least {min_args} argument{'s' if min_args != 1 else ''}"
        else:
            expected = f"{min_args} to {max_args} arguments"
        raise ConfigurationError(f"@{annotation.name} takes {expected}, got {len(values)}")
    return values


def _string(annotation: Annotation) -> str:
    (value,) = _values(annotation, 1, 1)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"@{annotation.name} expects a name, got {value!r}")
    return value


def _identifier(annotation: Annotation) -> str:
    value = _string(annotation)
    if not _IDENTIFIER.match(value):
        raise ConfigurationError(f"@{annotation.name} expects an identifier, got {value!r}")
    return value


def _flag(annotation: Annotation) -> bool:
    values = _values(annotation, 0, 1)
    if not values or values[0] in _TRUE:
        return True
    if values[0] in _FALSE:
        return False
    raise ConfigurationError(f"@{annotation.name} expects true or false, got {values[0]!r}")


def infer_wire_optional(
    shape: Shape,
    symbols: SymbolTable,
    *,
    explicit: bool | None = None,
    expects: bool = False,
    has_default: bool = False,
    transparent: bool = False,
) -> bool:
    """Decide whether the wire counterpart of a field can be absent.

    An explicit setting always wins; otherwise the rule is structural:
    native optionals are optional, collections are required, a field
    asking for presence checks or defaults is optional, scalars and enums
    are required, and message-typed fields are optional.
    """
    if explicit is not None:
        return explicit
    if shape.kind == ShapeKind.OPTIONAL:
        return True
    if shape.is_collection():
        return False
    if expects or has_default:
        return True
    if shape.kind in (ShapeKind.PRIMITIVE, ShapeKind.ENUM):
        return False
    if transparent:
        return False
    record = symbols.record(shape.name) if shape.kind == ShapeKind.CUSTOM else None
    if record is not None and record.newtype:
        return False
    return True


def normalize_field(
    field_def: FieldDef,
    symbols: SymbolTable,
    config: GeneratorConfig,
    *,
    bulk_ignored: bool = False,
) -> FieldDescriptor:
    """Normalize the annotations of one field."""
    ann = _index_annotations(field_def.annotations, _FIELD_ANNOTATIONS, "field")

    if "optional" in ann and "required" in ann:
        raise ConfigurationError("@optional and @required are mutually exclusive")
    if "transparent" in ann and ("from_fn" in ann or "to_fn" in ann):
        raise ConfigurationError("@transparent cannot be combined with @from_fn/@to_fn")

    explicit_optionality: bool | None = None
    if "optional" in ann:
        explicit_optionality = _flag(ann["optional"])
    elif "required" in ann:
        _values(ann["required"], 0, 0)
        explicit_optionality = False

    default: DefaultSpec | None = None
    if "default" in ann:
        values = _values(ann["default"], 0, 1)
        default = DefaultSpec(FunctionRef.parse(values[0], config) if values else None)

    explicit_panic = explicit_error = False
    if "expect" in ann:
        values = _values(ann["expect"], 0, 1)
        kind = values[0] if values else "error"
        if kind == "panic":
            explicit_panic = True
        elif kind == "error":
            explicit_error = True
        else:
            raise ConfigurationError(f"@expect takes error or panic, got {kind!r}")

    error_fn = FunctionRef.parse(_string(ann["error_fn"]), config) if "error_fn" in ann else None
    error = ErrorSpec(explicit_panic=explicit_panic, explicit_error=explicit_error, error_fn=error_fn)

    custom: CustomConversion | None = None
    if "from_fn" in ann or "to_fn" in ann:
        custom = CustomConversion(
            from_fn=FunctionRef.parse(_string(ann["from_fn"]), config) if "from_fn" in ann else None,
            to_fn=FunctionRef.parse(_string(ann["to_fn"]), config) if "to_fn" in ann else None,
        )

    for flag_name in ("transparent", "ignore", "enum"):
        if flag_name in ann:
            _values(ann[flag_name], 0, 0)
    transparent = "transparent" in ann

    shape = classify(field_def.type, symbols, enum_flag="enum" in ann)

    key: str | None = None
    if "key" in ann:
        key = _identifier(ann["key"])
        inner = shape.inner if shape.kind == ShapeKind.OPTIONAL else shape
        if inner.kind != ShapeKind.MAP:
            raise ConfigurationError(f"@key requires a dict field, not {shape}")

    collection_shape = shape.inner if shape.kind == ShapeKind.OPTIONAL else shape
    collection = collection_shape.collection if collection_shape.is_collection() else None

    wire_optional = infer_wire_optional(
        shape,
        symbols,
        explicit=explicit_optionality,
        expects=error.explicit,
        has_default=default is not None,
        transparent=transparent,
    )

    return FieldDescriptor(
        native_name=field_def.name,
        wire_name=_string(ann["rename"]) if "rename" in ann else field_def.name,
        type=field_def.type,
        shape=shape,
        wire_optional=wire_optional,
        ignored="ignore" in ann or bulk_ignored,
        default=default,
        error=error,
        custom=custom,
        collection=collection,
        transparent=transparent,
        key=key,
        explicit_optionality=explicit_optionality,
    )


def normalize_record(
    record: RecordDef, symbols: SymbolTable, config: GeneratorConfig
) -> RecordDescriptor:
    """Normalize a record and all of its fields.

    Errors are annotated with the offending ``Record.field`` path.
    """
    try:
        ann = _index_annotations(record.annotations, _RECORD_ANNOTATIONS, "record")
        wire_name = _string(ann["rename"]) if "rename" in ann else record.name
        error_type = (
            FunctionRef.parse(_string(ann["error_type"]), config) if "error_type" in ann else None
        )
        error_fn = (
            FunctionRef.parse(_string(ann["error_fn"]), config) if "error_fn" in ann else None
        )
        bulk_ignore = (
            {str(v) for v in _values(ann["ignore"], 1, None)} if "ignore" in ann else set()
        )
        if record.newtype and (error_type or error_fn or bulk_ignore):
            raise ConfigurationError("newtype records only accept @rename")
    except ConfigurationError as e:
        raise e.at(record.name) from None

    unknown = sorted(bulk_ignore - {f.name for f in record.fields})
    if unknown:
        raise ConfigurationError(f"@ignore names unknown field {unknown[0]!r}", record.name)

    fields: list[FieldDescriptor] = []
    for field_def in record.fields:
        try:
            fields.append(
                normalize_field(
                    field_def, symbols, config, bulk_ignored=field_def.name in bulk_ignore
                )
            )
        except ConfigurationError as e:
            raise e.at(f"{record.name}.{field_def.name}") from None

    if error_type is not None and error_fn is None:
        if not any(f.error.error_fn for f in fields):
            raise ConfigurationError(
                f"@error_type {error_type} needs an @error_fn, on the record or on a field",
                record.name,
            )
        missing = [
            f.native_name
            for f in fields
            if not f.ignored and f.default is None and f.error.error_fn is None
        ]
        if missing:
            raise ConfigurationError(
                f"@error_type {error_type} needs an @error_fn, on the record or on the field",
                f"{record.name}.{missing[0]}",
            )

    return RecordDescriptor(
        name=record.name,
        wire_name=wire_name,
        fields=tuple(fields),
        error_type=error_type,
        error_fn=error_fn,
        newtype=record.newtype,
        comment=record.comment,
    )


def normalize_enum(enum: EnumDef) -> EnumDescriptor:
    """Normalize an enum definition."""
    try:
        ann = _index_annotations(enum.annotations, _ENUM_ANNOTATIONS, "enum")
        for variant in enum.variants:
            if variant.annotations:
                raise ConfigurationError(
                    f"Unknown variant annotation @{variant.annotations[0].name}"
                ).at(f"{enum.name}.{variant.name}")
        if not enum.variants:
            raise ConfigurationError("enum has no variants")
        wire_name = _string(ann["rename"]) if "rename" in ann else enum.name
    except ConfigurationError as e:
        raise e.at(enum.name) from None

    return EnumDescriptor(
        name=enum.name,
        wire_name=wire_name,
        variants=tuple(v.name for v in enum.variants),
        comment=enum.comment,
    )
