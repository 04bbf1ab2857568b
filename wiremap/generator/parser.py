"""Definition file parser using Lark."""

import ast
import keyword
import os
from dataclasses import dataclass
from typing import Any, TypeVar

from lark import Lark
from lark.visitors import Transformer

from .types import (
    GENERIC_TYPES,
    KNOWN_OPTIONS,
    Annotation,
    AnnotationArg,
    ConfigOption,
    EnumDef,
    EnumVariantDef,
    FieldDef,
    RecordDef,
    TypeRef,
)

_g_parser: Lark | None = None


class ValidationError(RuntimeError):
    """Raised when definition file validation fails."""


@dataclass
class _Doc:
    value: str


@dataclass
class _Name:
    value: str


@dataclass
class _Value:
    value: Any


@dataclass
class _Options:
    options: list[ConfigOption]


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise RuntimeError(f"Found more than one {class_type}")

    if hasattr(filtered[0], "value") and not isinstance(filtered[0], AnnotationArg):
        return filtered[0].value
    return filtered[0]


TMany = TypeVar("TMany")


def _find_many(args: list[Any], class_type: type[TMany]) -> list[TMany]:
    return _filter(args, class_type)


class TreeTransformer(Transformer):
    """Transform parse tree into definition types."""

    def annotation(self, args: list[Any]) -> Annotation:
        return Annotation(name=str(args[0]), arguments=_find_many(args, AnnotationArg))

    def argument(self, args: list[Any]) -> AnnotationArg:
        return AnnotationArg(name=None, value=args[0].value)

    def named_argument(self, args: list[Any]) -> AnnotationArg:
        return AnnotationArg(name=str(args[0]), value=args[1].value)

    def doc(self, args: list[Any]) -> _Doc:
        lines = [str(line)[2:].strip() for line in args]
        return _Doc(value="\n".join(lines))

    def enum(self, args: list[Any]) -> EnumDef:
        return EnumDef(
            name=_find_one(args, _Name),
            variants=_find_many(args, EnumVariantDef),
            comment=_find_one(args, _Doc),
            annotations=_find_many(args, Annotation),
        )

    def variant(self, args: list[Any]) -> EnumVariantDef:
        return EnumVariantDef(
            name=_find_one(args, _Name),
            comment=_find_one(args, _Doc),
            annotations=_find_many(args, Annotation),
        )

    def field(self, args: list[Any]) -> FieldDef:
        return FieldDef(
            name=_find_one(args, _Name),
            type=_find_one(args, TypeRef),
            comment=_find_one(args, _Doc),
            annotations=_find_many(args, Annotation),
        )

    def name(self, args: list[Any]) -> _Name:
        return _Name(value=str(args[0]))

    def string(self, args: list[Any]) -> _Value:
        return _Value(value=ast.literal_eval(str(args[0])))

    def number(self, args: list[Any]) -> _Value:
        text = str(args[0])
        if any(c in text for c in ".eE"):
            return _Value(value=float(text))
        return _Value(value=int(text))

    def symbol(self, args: list[Any]) -> _Value:
        return _Value(value=str(args[0]))

    def option(self, args: list[Any]) -> ConfigOption:
        return ConfigOption(
            name=_find_one(args, _Name),
            value=_find_one(args, _Value),
            comment=_find_one(args, _Doc),
        )

    def options(self, args: list[Any]) -> _Options:
        return _Options(options=_find_many(args, ConfigOption))

    def struct(self, args: list[Any]) -> RecordDef:
        return RecordDef(
            name=_find_one(args, _Name),
            fields=_find_many(args, FieldDef),
            comment=_find_one(args, _Doc),
            annotations=_find_many(args, Annotation),
        )

    def newtype(self, args: list[Any]) -> RecordDef:
        inner = FieldDef(name="value", type=_find_one(args, TypeRef), comment=None, annotations=[])
        return RecordDef(
            name=_find_one(args, _Name),
            fields=[inner],
            comment=_find_one(args, _Doc),
            annotations=_find_many(args, Annotation),
            newtype=True,
        )

    def simple(self, args: list[Any]) -> TypeRef:
        return TypeRef(name=str(args[0]))

    def generic(self, args: list[Any]) -> TypeRef:
        return TypeRef(name=str(args[0]), args=_find_many(args, TypeRef))

    def wire_type(self, args: list[Any]) -> TypeRef:
        return TypeRef(name=".".join(str(a) for a in args), wire=True)


def _validate_type(t: TypeRef, where: str) -> None:
    if t.wire:
        return
    if t.args:
        arity = GENERIC_TYPES.get(t.name)
        if arity is None:
            raise ValidationError(f"{where}: unknown generic type {t.name}")
        if arity != len(t.args):
            raise ValidationError(
                f"{where}: {t.name} takes {arity} type argument{'s' if arity != 1 else ''}, "
                f"got {len(t.args)}"
            )
        for arg in t.args:
            _validate_type(arg, where)
    elif t.name in GENERIC_TYPES:
        raise ValidationError(f"{where}: {t.name} requires type arguments")


def validate(
    enums: list[EnumDef],
    records: list[RecordDef],
    options: list[ConfigOption],
) -> None:
    """Validate parsed definitions."""
    seen: set[str] = set()
    for name in [e.name for e in enums] + [r.name for r in records]:
        if name in seen:
            raise ValidationError(f"{name} is declared more than once")
        if keyword.iskeyword(name):
            raise ValidationError(f"{name} is a Python keyword and cannot name a type")
        seen.add(name)

    for enum in enums:
        variant_names = [v.name for v in enum.variants]
        for variant in variant_names:
            if variant_names.count(variant) > 1:
                raise ValidationError(f"{enum.name}.{variant} is declared more than once")
            if keyword.iskeyword(variant):
                raise ValidationError(f"{enum.name}.{variant}: {variant} is a Python keyword")

    for record in records:
        field_names = [f.name for f in record.fields]
        for field in record.fields:
            if field_names.count(field.name) > 1:
                raise ValidationError(f"{record.name}.{field.name} is declared more than once")
            if keyword.iskeyword(field.name):
                raise ValidationError(
                    f"{record.name}.{field.name}: {field.name} is a Python keyword"
                )
            _validate_type(field.type, f"{record.name}.{field.name}")

    option_names = [o.name for o in options]
    for option in options:
        if option.name not in KNOWN_OPTIONS:
            raise ValidationError(f"Unknown option {option.name}")
        if option_names.count(option.name) > 1:
            raise ValidationError(f"Option {option.name} is set more than once")


def parse(
    text: str,
) -> tuple[list[EnumDef], list[RecordDef], list[ConfigOption]]:
    """Parse a definition file."""
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/wiremap.lark", encoding="utf-8") as f:
            grammar = f.read()

        _g_parser = Lark(grammar)

    tree = _g_parser.parse(text)
    tree = TreeTransformer().transform(tree)

    items = tree.children

    enums = _find_many(items, EnumDef)
    records = _find_many(items, RecordDef)
    options = [opt for block in _find_many(items, _Options) for opt in block.options]

    validate(enums, records, options)

    return (enums, records, options)
