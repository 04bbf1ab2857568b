"""Synthesis of per-field conversion code.

Every field produces a block of statements that binds ``<field>_`` from the
wire value ``wire`` and an expression that builds the wire keyword argument
from the native value ``native``.
"""

from dataclasses import dataclass

from .error_mode import ErrorMode, ErrorModeKind
from .metadata import ConfigurationError, FieldDescriptor, GeneratorConfig, RecordDescriptor
from .shapes import CollectionKind, Shape, ShapeKind, SymbolTable, classify
from .strategy import StrategyDecision, StrategyKind
from .util import indent, to_snake_case

PRIMITIVE_TYPE_MAP = {
    "bool": "bool",
    "int8": "int",
    "int16": "int",
    "int32": "int",
    "int64": "int",
    "uint8": "int",
    "uint16": "int",
    "uint32": "int",
    "uint64": "int",
    "float32": "float",
    "float64": "float",
    "bytes": "bytes",
    "string": "str",
}

PRIMITIVE_DEFAULTS = {
    "bool": "False",
    "int8": "0",
    "int16": "0",
    "int32": "0",
    "int64": "0",
    "uint8": "0",
    "uint16": "0",
    "uint32": "0",
    "uint64": "0",
    "float32": "0.0",
    "float64": "0.0",
    "bytes": 'b""',
    "string": '""',
}

_SEQUENCE_ANNOTATIONS = {
    CollectionKind.VEC: "list",
    CollectionKind.SET: "set",
    CollectionKind.DEQUE: "deque",
}

WIRE_ALIAS = "_wire"


@dataclass(frozen=True)
class ConversionArtifact:
    """Generated code for one field.

    ``to_wire`` is None when the field has no wire counterpart.
    """

    native_name: str
    wire_name: str
    from_wire: list[str]
    to_wire: str | None
    fallible: bool

    @property
    def local(self) -> str:
        return f"{self.native_name}_"


class CodeSynthesizer:
    """Turns resolved strategies and error modes into Python source fragments."""

    def __init__(self, symbols: SymbolTable, config: GeneratorConfig) -> None:
        self.symbols = symbols
        self.config = config

    # Names ------------------------------------------------------------------

    def from_wire_function(self, type_name: str) -> str:
        return f"{to_snake_case(type_name)}_from_wire"

    def to_wire_function(self, type_name: str) -> str:
        return f"{to_snake_case(type_name)}_to_wire"

    def wire_type(self, wire_name: str) -> str:
        return f"{WIRE_ALIAS}.{wire_name}"

    def error_class(self, record: RecordDescriptor) -> str:
        """Name of the error type raised by a record's fallible conversion."""
        if record.error_type is not None:
            return record.error_type.expression
        return f"{record.name}ConversionError"

    def _external_enum(self, shape: Shape) -> str:
        if self.config.helpers_module is None:
            raise ConfigurationError(
                f"@enum type {shape.name} is not declared and no helpers module is configured"
            )
        return f"{self.config.helpers_module}.{shape.name}"

    def _declared(self, shape: Shape) -> bool:
        return self.symbols.record(shape.name) is not None

    # Types ------------------------------------------------------------------

    def annotation(self, shape: Shape) -> str:
        """Python type annotation of a native shape."""
        if shape.kind == ShapeKind.PRIMITIVE:
            return PRIMITIVE_TYPE_MAP[shape.name]
        if shape.kind == ShapeKind.OPTIONAL:
            return f"{self.annotation(shape.inner)} | None"
        if shape.kind == ShapeKind.SEQUENCE:
            return f"{_SEQUENCE_ANNOTATIONS[shape.collection]}[{self.annotation(shape.inner)}]"
        if shape.kind == ShapeKind.MAP:
            return f"dict[{self.annotation(shape.args[0])}, {self.annotation(shape.args[1])}]"
        if shape.kind == ShapeKind.WIRE:
            return self.wire_type(shape.name)
        if shape.kind == ShapeKind.ENUM and not self.symbols.is_enum(shape.name):
            return self._external_enum(shape)
        return shape.name

    def has_type_default(self, shape: Shape, _seen: frozenset[str] = frozenset()) -> bool:
        """Check whether a native shape has a type default.

        Undeclared custom types have none; a declared record has one when
        each of its fields does or names a default function. A record
        reached again through its own fields has none.
        """
        if shape.kind == ShapeKind.ENUM and not self.symbols.is_enum(shape.name):
            return self.config.helpers_module is not None
        if shape.kind != ShapeKind.CUSTOM:
            return True
        record = self.symbols.record(shape.name)
        if record is None:
            return False
        if shape.name in _seen:
            return False
        for field_def in record.fields:
            named_default = any(
                a.name == "default" and a.arguments for a in field_def.annotations
            )
            enum_flag = any(a.name == "enum" for a in field_def.annotations)
            field_shape = classify(field_def.type, self.symbols, enum_flag=enum_flag)
            if not named_default and not self.has_type_default(field_shape, _seen | {shape.name}):
                return False
        return True

    def type_default(self, shape: Shape) -> str:
        """Expression building the type default of a native shape."""
        if shape.kind == ShapeKind.PRIMITIVE:
            return PRIMITIVE_DEFAULTS[shape.name]
        if shape.kind == ShapeKind.OPTIONAL:
            return "None"
        if shape.kind == ShapeKind.SEQUENCE:
            return {"list": "[]", "set": "set()", "deque": "deque()"}[shape.name]
        if shape.kind == ShapeKind.MAP:
            return "{}"
        if shape.kind == ShapeKind.WIRE:
            return f"{self.wire_type(shape.name)}()"
        if shape.kind == ShapeKind.ENUM:
            if self.symbols.is_enum(shape.name):
                return f"next(iter({shape.name}))"
            return f"next(iter({self._external_enum(shape)}))"
        if not self.has_type_default(shape):
            raise ConfigurationError(
                f"{shape.name} has no type default; name a function with @default(\"...\")"
            )
        return f"{shape.name}()"

    def dataclass_default(self, field: FieldDescriptor) -> str | None:
        """Right-hand side of a native dataclass field, or None for a required field."""
        if field.default is not None and field.default.function is not None:
            return f"_field(default_factory={field.default.function.expression})"
        if not self.has_type_default(field.shape):
            return None
        value = self.type_default(field.shape)
        if value in ("[]", "{}", "set()", "deque()"):
            factory = {"[]": "list", "{}": "dict", "set()": "set", "deque()": "deque"}[value]
            return f"_field(default_factory={factory})"
        if field.shape.kind in (ShapeKind.PRIMITIVE, ShapeKind.OPTIONAL, ShapeKind.ENUM):
            return value
        return f"_field(default_factory=lambda: {value})"

    # Values -----------------------------------------------------------------

    def value_from_wire(self, shape: Shape, expr: str, depth: int = 0) -> str:
        """Expression converting a present wire value to the native shape."""
        if shape.kind in (ShapeKind.PRIMITIVE, ShapeKind.WIRE):
            return expr
        if shape.kind == ShapeKind.ENUM:
            if self.symbols.is_enum(shape.name):
                return f"{self.from_wire_function(shape.name)}({expr})"
            return (
                f"enum_from_wire({self._external_enum(shape)}, "
                f"{self.wire_type(shape.name)}, {expr})"
            )
        if shape.kind == ShapeKind.CUSTOM:
            if not self._declared(shape):
                raise ConfigurationError(
                    f"{shape.name} is not declared; declare it or convert it with @from_fn/@to_fn"
                )
            return f"{self.from_wire_function(shape.name)}({expr})"
        if shape.kind == ShapeKind.OPTIONAL:
            inner = self.value_from_wire(shape.inner, expr, depth)
            if inner == expr:
                return expr
            return f"None if {expr} is None else {inner}"
        if shape.kind == ShapeKind.SEQUENCE:
            var = f"_v{depth}"
            inner = self.value_from_wire(shape.inner, var, depth + 1)
            if shape.collection == CollectionKind.VEC:
                return f"list({expr})" if inner == var else f"[{inner} for {var} in {expr}]"
            if shape.collection == CollectionKind.SET:
                return f"set({expr})" if inner == var else f"{{{inner} for {var} in {expr}}}"
            if inner == var:
                return f"deque({expr})"
            return f"deque({inner} for {var} in {expr})"
        # MAP
        key_var, value_var = f"_k{depth}", f"_v{depth}"
        key = self.value_from_wire(shape.args[0], key_var, depth + 1)
        value = self.value_from_wire(shape.args[1], value_var, depth + 1)
        if key == key_var and value == value_var:
            return f"dict({expr})"
        return f"{{{key}: {value} for {key_var}, {value_var} in {expr}.items()}}"

    def value_to_wire(self, shape: Shape, expr: str, depth: int = 0) -> str:
        """Expression converting a native value to its wire representation."""
        if shape.kind in (ShapeKind.PRIMITIVE, ShapeKind.WIRE):
            return expr
        if shape.kind == ShapeKind.ENUM:
            if self.symbols.is_enum(shape.name):
                return f"{self.to_wire_function(shape.name)}({expr})"
            return f"enum_to_wire({self.wire_type(shape.name)}, {expr})"
        if shape.kind == ShapeKind.CUSTOM:
            if not self._declared(shape):
                raise ConfigurationError(
                    f"{shape.name} is not declared; declare it or convert it with @from_fn/@to_fn"
                )
            return f"{self.to_wire_function(shape.name)}({expr})"
        if shape.kind == ShapeKind.OPTIONAL:
            inner = self.value_to_wire(shape.inner, expr, depth)
            if inner == expr:
                return expr
            return f"None if {expr} is None else {inner}"
        if shape.kind == ShapeKind.SEQUENCE:
            var = f"_v{depth}"
            inner = self.value_to_wire(shape.inner, var, depth + 1)
            return f"list({expr})" if inner == var else f"[{inner} for {var} in {expr}]"
        key_var, value_var = f"_k{depth}", f"_v{depth}"
        key = self.value_to_wire(shape.args[0], key_var, depth + 1)
        value = self.value_to_wire(shape.args[1], value_var, depth + 1)
        if key == key_var and value == value_var:
            return f"dict({expr})"
        return f"{{{key}: {value} for {key_var}, {value_var} in {expr}.items()}}"

    def _keyed_from_wire(self, shape: Shape, key: str, expr: str) -> str:
        # Wire side is a sequence of values; the native dict is keyed by an attribute of each value
        value = self.value_from_wire(shape.args[1], "_w0", 1)
        if value == "_w0":
            return f"{{_v0.{key}: _v0 for _v0 in {expr}}}"
        return f"{{_v0.{key}: _v0 for _v0 in ({value} for _w0 in {expr})}}"

    def _keyed_to_wire(self, shape: Shape, expr: str) -> str:
        value = self.value_to_wire(shape.args[1], "_v0", 1)
        if value == "_v0":
            return f"list({expr}.values())"
        return f"[{value} for _v0 in {expr}.values()]"

    # Absence handling -------------------------------------------------------

    def default_value(self, field: FieldDescriptor, mode: ErrorMode | None = None) -> str:
        """Expression for a field's default: its default function or its type default."""
        function = mode.function if mode and mode.kind == ErrorModeKind.DEFAULT else None
        if function is None and field.default is not None:
            function = field.default.function
        if function is not None:
            return f"{function.expression}()"
        return self.type_default(field.shape)

    def on_missing(
        self, field: FieldDescriptor, mode: ErrorMode, record: RecordDescriptor
    ) -> list[str]:
        """Statements run when the wire value of a field is missing."""
        local = f"{field.native_name}_"
        name = field.wire_name
        if mode.kind == ErrorModeKind.DEFAULT:
            return [f"{local} = {self.default_value(field, mode)}"]
        if mode.kind == ErrorModeKind.PANIC:
            return [f'raise ConversionPanic("Missing required field: {name}")']
        if mode.kind == ErrorModeKind.ERROR:
            if mode.function is None:
                return [f'raise {self.error_class(record)}("{name}")']
            error = f'{mode.function.expression}("{name}")'
            if record.error_type is not None:
                return [f"raise check_error({error}, {record.error_type.expression})"]
            return [f"raise {error}"]
        return [f'raise ConversionPanic("Wire field {name} is absent")']

    def enforces_presence(self, field: FieldDescriptor, mode: ErrorMode) -> bool:
        """Check whether a field's error mode runs when its wire value is absent.

        A native optional absorbs absence unless presence was explicitly
        expected or a default is given.
        """
        if not field.wire_optional or mode.kind == ErrorModeKind.NONE:
            return False
        if mode.kind == ErrorModeKind.DEFAULT:
            return True
        if field.shape.kind == ShapeKind.OPTIONAL:
            return field.error.explicit
        return True

    def _guarded(
        self,
        field: FieldDescriptor,
        mode: ErrorMode,
        record: RecordDescriptor,
        condition: str,
        present: str,
    ) -> list[str]:
        local = f"{field.native_name}_"
        missing = self.on_missing(field, mode, record)
        if missing[0].startswith("raise"):
            return [f"if {condition}:", *indent(missing), f"{local} = {present}"]
        return [f"if {condition}:", *indent(missing), "else:", *indent([f"{local} = {present}"])]

    # Strategies -------------------------------------------------------------

    def synthesize(
        self,
        field: FieldDescriptor,
        decision: StrategyDecision,
        mode: ErrorMode,
        record: RecordDescriptor,
    ) -> ConversionArtifact:
        """Generate both directions of one field."""
        builder = {
            StrategyKind.IGNORE: self._ignore,
            StrategyKind.CUSTOM: self._custom,
            StrategyKind.TRANSPARENT: self._transparent,
            StrategyKind.COLLECTION: self._collection,
            StrategyKind.OPTION_OR_DEFAULT: self._option_or_default,
            StrategyKind.DIRECT: self._direct,
        }[decision.kind]
        from_wire, to_wire = builder(field, decision, mode, record)
        return ConversionArtifact(
            native_name=field.native_name,
            wire_name=field.wire_name,
            from_wire=from_wire,
            to_wire=to_wire,
            fallible=mode.kind == ErrorModeKind.ERROR,
        )

    def newtype(self, field: FieldDescriptor) -> ConversionArtifact:
        """Generate the wrap/unwrap expressions of a newtype around its wire value."""
        return ConversionArtifact(
            native_name=field.native_name,
            wire_name=field.wire_name,
            from_wire=[self.value_from_wire(field.shape, "wire")],
            to_wire=self.value_to_wire(field.shape, f"native.{field.native_name}"),
            fallible=False,
        )

    def _ignore(self, field, decision, mode, record) -> tuple[list[str], str | None]:
        return [f"{field.native_name}_ = {self.default_value(field)}"], None

    def _custom(self, field, decision, mode, record) -> tuple[list[str], str | None]:
        custom = field.custom
        src = f"wire.{field.wire_name}"
        local = f"{field.native_name}_"

        if custom.from_fn is not None:
            present = f"{custom.from_fn.expression}({src})"
        else:
            present = self.value_from_wire(field.shape, src)

        if self.enforces_presence(field, mode):
            from_wire = self._guarded(field, mode, record, f"{src} is None", present)
        else:
            from_wire = [f"{local} = {present}"]

        value = f"native.{field.native_name}"
        if custom.to_fn is not None:
            to_wire = f"{custom.to_fn.expression}({value})"
        else:
            to_wire = self.value_to_wire(field.shape, value)
        return from_wire, to_wire

    def _transparent_target(self, field: FieldDescriptor) -> tuple[str, str, Shape]:
        shape = field.shape.inner if field.shape.kind == ShapeKind.OPTIONAL else field.shape
        record = self.symbols.record(shape.name) if shape.kind == ShapeKind.CUSTOM else None
        if record is None or len(record.fields) != 1:
            raise ConfigurationError(
                f"@transparent requires a declared single-field record, not {field.shape}"
            )
        inner = record.fields[0]
        enum_flag = any(a.name == "enum" for a in inner.annotations)
        return record.name, inner.name, classify(inner.type, self.symbols, enum_flag=enum_flag)

    def _transparent(self, field, decision, mode, record) -> tuple[list[str], str | None]:
        type_name, inner_name, inner_shape = self._transparent_target(field)
        src = f"wire.{field.wire_name}"
        local = f"{field.native_name}_"
        wrapped = f"{type_name}({inner_name}={self.value_from_wire(inner_shape, src)})"

        if self.enforces_presence(field, mode):
            from_wire = self._guarded(field, mode, record, f"{src} is None", wrapped)
        elif field.shape.kind == ShapeKind.OPTIONAL:
            from_wire = [f"{local} = None if {src} is None else {wrapped}"]
        elif field.wire_optional:
            unchecked = ErrorMode(ErrorModeKind.NONE)
            from_wire = self._guarded(field, unchecked, record, f"{src} is None", wrapped)
        else:
            from_wire = [f"{local} = {wrapped}"]

        value = f"native.{field.native_name}"
        unwrapped = self.value_to_wire(inner_shape, f"{value}.{inner_name}")
        if field.shape.kind == ShapeKind.OPTIONAL:
            return from_wire, f"None if {value} is None else {unwrapped}"
        return from_wire, unwrapped

    def _collection(self, field, decision, mode, record) -> tuple[list[str], str | None]:
        optional = field.shape.is_optional_collection()
        shape = field.shape.inner if optional else field.shape
        src = f"wire.{field.wire_name}"
        local = f"{field.native_name}_"
        value = f"native.{field.native_name}"

        def convert(source: str) -> str:
            if field.key is not None:
                return self._keyed_from_wire(shape, field.key, source)
            return self.value_from_wire(shape, source)

        if field.key is not None:
            to_wire = self._keyed_to_wire(shape, value)
        else:
            to_wire = self.value_to_wire(shape, value)

        if decision.collect_with_error:
            from_wire = self._guarded(field, mode, record, f"not {src}", convert(src))
        elif mode.kind == ErrorModeKind.DEFAULT:
            condition = f"not {src}" if optional else f"{src} is None"
            from_wire = self._guarded(field, mode, record, condition, convert(src))
        elif optional:
            # Absent and empty both become None
            from_wire = [f"{local} = {convert(src)} if {src} else None"]
        elif shape.kind == ShapeKind.MAP and field.key is None:
            from_wire = [f"{local} = {convert(f'({src} or {{}})')}"]
        else:
            from_wire = [f"{local} = {convert(f'{src} or ()')}"]

        if optional:
            empty = "None" if field.wire_optional else "[]"
            to_wire = f"{to_wire} if {value} else {empty}"
        return from_wire, to_wire

    def _option_or_default(self, field, decision, mode, record) -> tuple[list[str], str | None]:
        src = f"wire.{field.wire_name}"
        local = f"{field.native_name}_"
        value = f"native.{field.native_name}"

        if field.shape.kind == ShapeKind.OPTIONAL:
            inner = self.value_from_wire(field.shape.inner, src)
            if self.enforces_presence(field, mode):
                from_wire = self._guarded(field, mode, record, f"{src} is None", inner)
            elif inner == src:
                from_wire = [f"{local} = {src}"]
            else:
                from_wire = [f"{local} = None if {src} is None else {inner}"]
            return from_wire, self.value_to_wire(field.shape, value)

        convert = self.value_from_wire(field.shape, src)
        if self.enforces_presence(field, mode):
            from_wire = self._guarded(field, mode, record, f"{src} is None", convert)
        else:
            from_wire = [f"{local} = {convert}"]
        return from_wire, self.value_to_wire(field.shape, value)

    def _direct(self, field, decision, mode, record) -> tuple[list[str], str | None]:
        src = f"wire.{field.wire_name}"
        convert = self.value_from_wire(field.shape, src)
        if field.wire_optional:
            from_wire = self._guarded(field, mode, record, f"{src} is None", convert)
        else:
            from_wire = [f"{field.native_name}_ = {convert}"]
        return from_wire, self.value_to_wire(field.shape, f"native.{field.native_name}")
