"""Tests for whole-type assembly and rendering."""

import logging

import pytest

from wiremap.generator import ConfigurationError, GeneratorConfig, assemble, parse
from wiremap.generator.error_mode import ErrorModeKind
from wiremap.generator.python import GenerationError, make_config, render
from wiremap.generator.strategy import StrategyKind
from wiremap.generator.trace import DEBUG_ENV, debug_patterns, tracing_enabled

CONFIG = GeneratorConfig(wire_module="app.wire", helpers_module="app.helpers")


def assembly_of(text, config=CONFIG):
    enums, records, _ = parse(text)
    return assemble(enums, records, config)


def describe_assemble():
    def plans_every_field(expect):
        assembly = assembly_of(
            """
            struct Order {
                quantity: int32 @default
                sku: string @expect
            }
        """
        )
        expect(assembly.ok) == True
        (order,) = assembly.records
        expect([p.descriptor.native_name for p in order.fields]) == ["quantity", "sku"]
        expect(order.fields[0].mode.kind) == ErrorModeKind.DEFAULT
        expect(order.fields[1].strategy.kind) == StrategyKind.OPTION_OR_DEFAULT
        expect(order.from_wire_function) == "order_from_wire"
        expect(order.to_wire_function) == "order_to_wire"

    def marks_records_with_error_modes_fallible(expect):
        assembly = assembly_of(
            """
            struct Order { sku: string @expect }
            struct Ping { token: string @expect(panic) }
        """
        )
        order, ping = assembly.records
        expect(order.fallible) == True
        expect(order.generated_error) == True
        expect(order.error_class) == "OrderConversionError"
        expect(ping.fallible) == False
        expect(ping.error_class) == None

    def uses_declared_error_type(expect):
        assembly = assembly_of(
            """
            @error_type("ValidationError")
            @error_fn("ValidationError.missing_field")
            struct Payment { amount: int64 }
        """
        )
        (payment,) = assembly.records
        expect(payment.fallible) == True
        expect(payment.generated_error) == False
        expect(payment.error_class) == "app.helpers.ValidationError"

    def leaves_the_error_class_to_field_error_functions(expect):
        assembly = assembly_of(
            """
            struct Ping { token: string @expect @error_fn("app.errors:missing_token") }
        """
        )
        (ping,) = assembly.records
        expect(ping.fallible) == True
        expect(ping.generated_error) == False
        expect(ping.error_class) == None

    def leaves_self_references_without_default(expect):
        assembly = assembly_of(
            """
            struct Node { name: string child: Node }
            struct Tree { children: list[Tree] parent: optional[Tree] }
        """
        )
        expect(assembly.ok) == True
        node, tree = assembly.records
        expect([p.default for p in node.fields]) == ['""', None]
        expect([p.default for p in tree.fields]) == ["_field(default_factory=list)", "None"]

    def leaves_ignored_fields_off_the_wire(expect):
        assembly = assembly_of("struct Session { id: string cache: dict[string, string] @ignore }")
        (session,) = assembly.records
        expect([p.descriptor.native_name for p in session.wire_fields]) == ["id"]

    def keeps_going_after_a_failing_type(expect):
        assembly = assembly_of(
            """
            enum Empty { }
            struct Broken { created: Timestamp }
            struct Fine { name: string }
        """
        )
        expect(assembly.ok) == False
        expect([r.name for r in assembly.records]) == ["Fine"]
        expect([e.path for e in assembly.errors]) == ["Empty", "Broken.created"]
        expect("Timestamp is not declared" in assembly.errors[1].message) == True

    def drops_records_using_failed_types(expect):
        assembly = assembly_of(
            """
            enum Empty { }
            struct Address { street: string @bogus }
            struct User { name: string home: Address }
            struct Team { lead: User }
            struct Flag { level: optional[list[Empty]] }
            struct Fine { name: string }
        """
        )
        expect([r.name for r in assembly.records]) == ["Fine"]
        expect([e.path for e in assembly.errors]) == [
            "Empty",
            "Address.street",
            "User.home",
            "Flag.level",
            "Team.lead",
        ]
        expect(assembly.errors[2].message) == "uses Address, which could not be generated"

    def rejects_transparent_on_multi_field_records(expect):
        assembly = assembly_of(
            """
            struct Point { x: int32 y: int32 }
            struct Shape { origin: Point @transparent }
        """
        )
        expect([e.path for e in assembly.errors]) == ["Shape.origin"]
        expect("@transparent requires a declared single-field record" in str(assembly.errors[0])) == True

    def rejects_records_without_fields(expect):
        assembly = assembly_of("struct Nothing { }")
        expect(str(assembly.errors[0])) == "Nothing: record has no fields"

    def rejects_defaults_without_type_default(expect):
        assembly = assembly_of("struct Event { created: Timestamp @default @from_fn(\"parse\") }")
        expect(assembly.errors[0].path) == "Event.created"
        expect("has no type default" in assembly.errors[0].message) == True

    def assembles_newtypes(expect):
        assembly = assembly_of("struct UserId(uint64)")
        (user_id,) = assembly.records
        expect(user_id.fallible) == False
        expect(user_id.fields[0].artifact.from_wire) == ["wire"]
        expect(user_id.fields[0].artifact.to_wire) == "native.value"


def describe_decision_trace():
    def reads_patterns_from_environment(expect, monkeypatch):
        monkeypatch.setenv(DEBUG_ENV, "User, *Request")
        expect(debug_patterns()) == ["User", "*Request"]
        expect(tracing_enabled("User")) == True
        expect(tracing_enabled("PingRequest")) == True
        expect(tracing_enabled("Order")) == False

    def is_off_by_default(expect, monkeypatch):
        monkeypatch.delenv(DEBUG_ENV, raising=False)
        expect(tracing_enabled("User")) == False
        monkeypatch.setenv(DEBUG_ENV, "0")
        expect(tracing_enabled("User")) == False

    def logs_decisions_of_traced_types(expect, monkeypatch, caplog):
        monkeypatch.setenv(DEBUG_ENV, "Order")
        caplog.set_level(logging.DEBUG, logger="wiremap.decisions")
        assembly_of(
            """
            struct Order { sku: string @expect }
            struct Ping { token: string }
        """
        )
        messages = [r.getMessage() for r in caplog.records if r.name == "wiremap.decisions"]
        expect("Order.sku: error mode -> error(generated) (expect(error))" in messages) == True
        expect("Order.sku: strategy -> option_or_default (optional or error mode)" in messages) == True
        expect(any(m.startswith("Ping") for m in messages)) == False


def describe_render():
    def needs_a_wire_module(expect):
        with pytest.raises(ConfigurationError) as exc:
            make_config([])
        expect("No wire module configured" in str(exc.value)) == True

    def lets_arguments_override_options(expect):
        _, _, options = parse('options { wireModule = "app.wire" helpers = "app.helpers" }')
        config = make_config(options, wire_module="other.wire")
        expect(config.wire_module) == "other.wire"
        expect(config.helpers_module) == "app.helpers"

    def raises_on_failing_types_when_strict(expect):
        enums, records, options = parse(
            """
            options { wireModule = "app.wire" }
            struct Broken { created: Timestamp }
        """
        )
        with pytest.raises(GenerationError) as exc:
            render(enums, records, options)
        expect(len(exc.value.errors)) == 1
        expect("Broken.created" in str(exc.value)) == True

    def skips_failing_types_otherwise(expect, caplog):
        enums, records, options = parse(
            """
            options { wireModule = "app.wire" }
            struct Broken { created: Timestamp }
            struct Fine { name: string }
        """
        )
        code = render(enums, records, options, strict=False)
        expect("class Fine:" in code) == True
        expect("class Broken" in code) == False
        expect(any("Broken.created" in r.getMessage() for r in caplog.records)) == True

    def skips_records_using_failed_types(expect):
        enums, records, options = parse(
            """
            options { wireModule = "app.wire" }
            struct Address { street: string @bogus }
            struct User { name: string home: Address }
            struct Fine { name: string }
        """
        )
        code = render(enums, records, options, strict=False)
        expect("address_from_wire" in code) == False
        expect("user_from_wire" in code) == False
        expect("def fine_from_wire(wire: _wire.Fine) -> Fine:" in code) == True

    def makes_self_references_required(expect):
        enums, records, options = parse(
            """
            options { wireModule = "app.wire" }
            struct Node { name: string child: Node }
        """
        )
        code = render(enums, records, options)
        expect('    name: str = ""\n    child: Node\n' in code) == True

    def documents_only_known_error_classes(expect):
        enums, records, options = parse(
            """
            options { wireModule = "app.wire" }
            struct Ping { token: string @expect @error_fn("app.errors:missing_token") }
            struct Order { sku: string @expect }
        """
        )
        code = render(enums, records, options)
        expect(code.count("Raises:")) == 1
        expect("OrderConversionError: a required wire field is missing." in code) == True
        expect("PingConversionError" in code) == False
        expect('raise app.errors.missing_token("token")' in code) == True

    def renders_imports(expect):
        enums, records, options = parse(
            """
            options { wireModule = "app.wire" }
            struct Event {
                created: Timestamp @from_fn("app.time:ts_from_wire") @to_fn("app.time:ts_to_wire")
            }
        """
        )
        code = render(enums, records, options, runtime_import="vendored.runtime")
        expect("import app.wire as _wire" in code) == True
        expect("import app.time\n" in code) == True
        expect("from vendored.runtime import (" in code) == True
