"""Assembly of whole-type conversions from per-field decisions."""

import logging
from dataclasses import dataclass, field

from .enums import EnumMapping, map_enum
from .error_mode import ErrorMode, resolve_error_mode
from .metadata import (
    ConfigurationError,
    EnumDescriptor,
    FieldDescriptor,
    GeneratorConfig,
    RecordDescriptor,
    normalize_enum,
    normalize_record,
)
from .shapes import SymbolTable
from .strategy import StrategyDecision, resolve_strategy
from .synth import CodeSynthesizer, ConversionArtifact
from .trace import DecisionTrace
from .types import EnumDef, RecordDef

logger = logging.getLogger(__name__)


@dataclass
class FieldPlan:
    """Every decision taken for one field, plus its generated code."""

    descriptor: FieldDescriptor
    mode: ErrorMode
    strategy: StrategyDecision
    artifact: ConversionArtifact
    annotation: str
    default: str | None


@dataclass
class RecordAssembly:
    """A record ready to be rendered.

    ``error_class`` is the exception raised by the fallible direction, and
    ``generated_error`` tells whether that class must be emitted. It is None
    when only field-level error functions decide what is raised.
    """

    descriptor: RecordDescriptor
    fields: list[FieldPlan]
    fallible: bool
    error_class: str | None
    generated_error: bool
    from_wire_function: str
    to_wire_function: str

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def wire_fields(self) -> list[FieldPlan]:
        return [p for p in self.fields if p.artifact.to_wire is not None]


@dataclass
class EnumAssembly:
    """An enum ready to be rendered."""

    descriptor: EnumDescriptor
    mapping: EnumMapping
    from_wire_function: str
    to_wire_function: str

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass
class Assembly:
    """Result of one generation run.

    Types whose configuration failed are absent from ``records``/``enums``
    and reported in ``errors``.
    """

    config: GeneratorConfig
    records: list[RecordAssembly] = field(default_factory=list)
    enums: list[EnumAssembly] = field(default_factory=list)
    errors: list[ConfigurationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class StructAssembler:
    """Runs the decision engine over every declared type."""

    def __init__(self, enums: list[EnumDef], records: list[RecordDef], config: GeneratorConfig):
        self.enums = enums
        self.records = records
        self.config = config
        self.symbols = SymbolTable.build(enums, records)
        self.synth = CodeSynthesizer(self.symbols, config)

    def assemble_enum(self, enum: EnumDef) -> EnumAssembly:
        descriptor = normalize_enum(enum)
        mapping = map_enum(descriptor, DecisionTrace(enum.name))
        return EnumAssembly(
            descriptor=descriptor,
            mapping=mapping,
            from_wire_function=self.synth.from_wire_function(enum.name),
            to_wire_function=self.synth.to_wire_function(enum.name),
        )

    def plan_field(
        self, descriptor: FieldDescriptor, record: RecordDescriptor, trace: DecisionTrace
    ) -> FieldPlan:
        trace.decision(descriptor.native_name, "shape", descriptor.shape)
        trace.decision(descriptor.native_name, "wire optional", descriptor.wire_optional)
        mode = resolve_error_mode(descriptor, record, trace)
        strategy = resolve_strategy(descriptor, mode, trace)
        artifact = self.synth.synthesize(descriptor, strategy, mode, record)
        return FieldPlan(
            descriptor=descriptor,
            mode=mode,
            strategy=strategy,
            artifact=artifact,
            annotation=self.synth.annotation(descriptor.shape),
            default=self.synth.dataclass_default(descriptor),
        )

    def assemble_record(self, record: RecordDef) -> RecordAssembly:
        """Assemble one record; any configuration error aborts the whole record."""
        trace = DecisionTrace(record.name)
        descriptor = normalize_record(record, self.symbols, self.config)
        if not descriptor.fields:
            raise ConfigurationError("record has no fields", record.name)

        if descriptor.newtype:
            inner = descriptor.fields[0]
            try:
                mode = resolve_error_mode(inner, descriptor, trace)
                plan = FieldPlan(
                    descriptor=inner,
                    mode=mode,
                    strategy=resolve_strategy(inner, mode, trace),
                    artifact=self.synth.newtype(inner),
                    annotation=self.synth.annotation(inner.shape),
                    default=self.synth.dataclass_default(inner),
                )
            except ConfigurationError as e:
                raise e.at(f"{record.name}.{inner.native_name}") from None
            return RecordAssembly(
                descriptor=descriptor,
                fields=[plan],
                fallible=False,
                error_class=None,
                generated_error=False,
                from_wire_function=self.synth.from_wire_function(record.name),
                to_wire_function=self.synth.to_wire_function(record.name),
            )

        plans: list[FieldPlan] = []
        for field_descriptor in descriptor.fields:
            try:
                plans.append(self.plan_field(field_descriptor, descriptor, trace))
            except ConfigurationError as e:
                raise e.at(f"{record.name}.{field_descriptor.native_name}") from None

        fallible = any(p.artifact.fallible for p in plans)
        generated_error = fallible and any(p.mode.uses_generated_error for p in plans)
        error_class = None
        if generated_error or (fallible and descriptor.error_type is not None):
            error_class = self.synth.error_class(descriptor)
        trace.decision(None, "fallible", fallible, error_class or "")

        return RecordAssembly(
            descriptor=descriptor,
            fields=plans,
            fallible=fallible,
            error_class=error_class,
            generated_error=generated_error,
            from_wire_function=self.synth.from_wire_function(record.name),
            to_wire_function=self.synth.to_wire_function(record.name),
        )

    def drop_dependents(self, assembly: Assembly) -> None:
        """Drop records whose fields use a type that failed, transitively."""
        failed = (set(self.symbols.records) | self.symbols.enums) - {
            t.name for t in [*assembly.records, *assembly.enums]
        }
        while failed:
            dropped: set[str] = set()
            for record in assembly.records:
                for plan in record.fields:
                    broken = sorted(plan.descriptor.shape.referenced_types() & failed)
                    if broken:
                        path = f"{record.name}.{plan.descriptor.native_name}"
                        logger.debug("record %s depends on failed %s", record.name, broken[0])
                        assembly.errors.append(
                            ConfigurationError(f"uses {broken[0]}, which could not be generated", path)
                        )
                        dropped.add(record.name)
                        break
            assembly.records = [r for r in assembly.records if r.name not in dropped]
            failed = dropped

    def assemble(self) -> Assembly:
        """Assemble every type, collecting configuration errors per type."""
        assembly = Assembly(config=self.config)

        for enum in self.enums:
            try:
                assembly.enums.append(self.assemble_enum(enum))
            except ConfigurationError as e:
                logger.debug("enum %s failed: %s", enum.name, e)
                assembly.errors.append(e.at(enum.name))

        for record in self.records:
            try:
                assembly.records.append(self.assemble_record(record))
            except ConfigurationError as e:
                logger.debug("record %s failed: %s", record.name, e)
                assembly.errors.append(e.at(record.name))

        self.drop_dependents(assembly)

        logger.debug(
            "assembled %d records and %d enums, %d failed",
            len(assembly.records),
            len(assembly.enums),
            len(assembly.errors),
        )
        return assembly


def assemble(
    enums: list[EnumDef], records: list[RecordDef], config: GeneratorConfig
) -> Assembly:
    """Assemble conversions for every declared type."""
    return StructAssembler(enums, records, config).assemble()
