"""Python code generator for wiremap definitions."""

import logging
from importlib import resources

from jinja2 import Environment, PackageLoader

from .assembler import Assembly, assemble
from .metadata import ConfigurationError, GeneratorConfig
from .types import ConfigOption, EnumDef, RecordDef
from .util import to_snake_case

logger = logging.getLogger(__name__)

RUNTIME_FILES = [
    "__init__.py",
    "errors.py",
    "enums.py",
]

env = Environment(
    loader=PackageLoader("wiremap.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("python.py.j2")


class GenerationError(RuntimeError):
    """Raised when one or more types could not be generated."""

    def __init__(self, errors: list[ConfigurationError]) -> None:
        self.errors = errors
        lines = "\n".join(f"  {e}" for e in errors)
        super().__init__(f"{len(errors)} type(s) could not be generated:\n{lines}")


def make_config(
    options: list[ConfigOption],
    runtime_import: str = "wiremap.runtime",
    wire_module: str | None = None,
    helpers: str | None = None,
) -> GeneratorConfig:
    """Resolve generator settings; explicit arguments override the options block."""
    values = {opt.name: opt.value for opt in options}
    wire_module = wire_module or values.get("wireModule")
    if not wire_module:
        raise ConfigurationError("No wire module configured; set wireModule in options")
    return GeneratorConfig(
        wire_module=wire_module,
        helpers_module=helpers or values.get("helpers"),
        runtime_import=runtime_import,
    )


def _function_modules(assembly: Assembly) -> list[str]:
    modules: set[str] = set()
    if assembly.config.helpers_module:
        modules.add(assembly.config.helpers_module)
    for record in assembly.records:
        descriptor = record.descriptor
        refs = [descriptor.error_type, descriptor.error_fn]
        for plan in record.fields:
            field = plan.descriptor
            refs.append(plan.mode.function)
            refs.append(field.default.function if field.default else None)
            refs.append(field.error.error_fn)
            if field.custom:
                refs.extend([field.custom.from_fn, field.custom.to_fn])
        modules.update(ref.module for ref in refs if ref is not None)
    return sorted(modules)


def _table_name(type_name: str, direction: str) -> str:
    return f"_{to_snake_case(type_name).upper()}_{direction}"


def render_assembly(assembly: Assembly) -> str:
    """Render assembled types to Python source code."""
    return template.render(
        enums=assembly.enums,
        records=assembly.records,
        config=assembly.config,
        modules=_function_modules(assembly),
        table_name=_table_name,
        py_repr=repr,
        BLANK_LINE="",
    )


def render(
    enums: list[EnumDef],
    records: list[RecordDef],
    options: list[ConfigOption],
    runtime_import: str = "wiremap.runtime",
    wire_module: str | None = None,
    helpers: str | None = None,
    strict: bool = True,
) -> str:
    """Render a definition file to Python source code.

    With ``strict`` any configuration error raises GenerationError;
    otherwise failing types are logged and left out.
    """
    config = make_config(options, runtime_import, wire_module, helpers)
    assembly = assemble(enums, records, config)

    if assembly.errors:
        if strict:
            raise GenerationError(assembly.errors)
        for error in assembly.errors:
            logger.warning("skipped %s", error)

    return render_assembly(assembly)


def runtime() -> dict[str, str]:
    """Return the Python runtime files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in RUNTIME_FILES:
        content = resources.files("wiremap.runtime").joinpath(filename).read_text()
        result[filename] = content
    return result
