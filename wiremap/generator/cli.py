"""Command-line interface for wiremap code generation."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
from lark.exceptions import LarkError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from wiremap.generator import parse, python
from wiremap.generator.assembler import assemble
from wiremap.generator.metadata import ConfigurationError
from wiremap.generator.parser import ValidationError

if TYPE_CHECKING:
    from wiremap.generator.assembler import Assembly

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load(input_file: str) -> tuple:
    with open(input_file, encoding="utf-8") as f:
        text = f.read()
    try:
        return parse(text)
    except (LarkError, ValidationError) as e:
        err_console.print(
            f"[red]Invalid definition file {escape(input_file)}:[/red] {escape(str(e))}"
        )
        sys.exit(1)


@click.group()
def cli() -> None:
    """Wiremap conversion code generator."""


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input definition file")
@click.option("--output", "-o", "output_file", required=True, help="Output file")
@click.option(
    "--runtime-import",
    "runtime_import",
    default="wiremap.runtime",
    help="Import path for the runtime (use the folder name of `wiremap runtime` to vendor it)",
)
@click.option("--wire-module", default=None, help="Module holding the wire types")
@click.option("--helpers", default=None, help="Module that bare function names resolve against")
@click.option("--partial", is_flag=True, default=False, help="Skip types that fail to generate")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log generation decisions")
def gen(
    input_file: str,
    output_file: str,
    runtime_import: str,
    wire_module: str | None,
    helpers: str | None,
    partial: bool,
    verbose: bool,
) -> None:
    """Generate conversion code from a definition file."""
    _setup_logging(verbose)
    definitions = _load(input_file)

    try:
        generated_file = python.render(
            *definitions,
            runtime_import=runtime_import,
            wire_module=wire_module,
            helpers=helpers,
            strict=not partial,
        )
    except python.GenerationError as e:
        for error in e.errors:
            err_console.print(f"[red]error:[/red] {escape(str(error))}")
        sys.exit(1)
    except ConfigurationError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}")
        sys.exit(1)

    with open(output_file, "w", encoding="utf-8") as f:
        f.write(generated_file)


@cli.command()
@click.option("--output", "-o", "output_path", default=".", help="Output directory")
@click.option("--name", default="wiremap_runtime", help="Runtime folder name")
def runtime(output_path: str, name: str) -> None:
    """Write the runtime support package."""
    runtime_dir = Path(output_path) / name
    runtime_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in python.runtime().items():
        (runtime_dir / filename).write_text(content)
    print(f"Generated Python runtime in {runtime_dir}")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input definition file")
@click.option("--wire-module", default=None, help="Module holding the wire types")
@click.option("--helpers", default=None, help="Module that bare function names resolve against")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, wire_module: str | None, helpers: str | None, output_json: bool) -> None:
    """Display the conversion decisions taken for every field."""
    enums, records, options = _load(input_file)
    try:
        config = python.make_config(options, wire_module=wire_module, helpers=helpers)
    except ConfigurationError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}")
        sys.exit(1)

    assembly = assemble(enums, records, config)

    if output_json:
        _output_json(assembly)
    else:
        _output_plain(assembly)

    if assembly.errors:
        sys.exit(1)


def _output_json(assembly: Assembly) -> None:
    """Output decisions as JSON."""
    data: dict = {"records": {}, "enums": {}, "errors": []}

    for record in assembly.records:
        fields = {}
        for plan in record.fields:
            fields[plan.descriptor.native_name] = {
                "wire_name": plan.descriptor.wire_name,
                "shape": str(plan.descriptor.shape),
                "wire_optional": plan.descriptor.wire_optional,
                "error_mode": plan.mode.to_dict(encode_json=True),
                "strategy": plan.strategy.to_dict(encode_json=True),
            }
        data["records"][record.name] = {
            "wire_name": record.descriptor.wire_name,
            "newtype": record.descriptor.newtype,
            "fallible": record.fallible,
            "error_class": record.error_class,
            "fields": fields,
        }

    for enum in assembly.enums:
        data["enums"][enum.name] = enum.mapping.to_dict(encode_json=True)

    data["errors"] = [{"path": e.path, "message": e.message} for e in assembly.errors]

    print(json.dumps(data, indent=2))


def _output_plain(assembly: Assembly) -> None:
    """Output decisions using rich text formatting."""
    for record in assembly.records:
        title = f"[bold cyan]{record.name}[/bold cyan]"
        if record.descriptor.wire_name != record.name:
            title += f" [dim]<- {record.descriptor.wire_name}[/dim]"
        if record.error_class:
            title += f" [yellow]raises {record.error_class}[/yellow]"
        console.print(title)

        table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        table.add_column("Field", style="white")
        table.add_column("Shape", style="dim")
        table.add_column("Wire", style="dim")
        table.add_column("Error mode", style="yellow")
        table.add_column("Strategy", style="green")

        for plan in record.fields:
            descriptor = plan.descriptor
            wire = descriptor.wire_name + ("?" if descriptor.wire_optional else "")
            table.add_row(
                descriptor.native_name, str(descriptor.shape), wire, str(plan.mode), str(plan.strategy)
            )

        console.print(table)
        console.print()

    if assembly.enums:
        console.print("[bold cyan]Enums[/bold cyan]")
        enum_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        enum_table.add_column("Variant", style="white")
        enum_table.add_column("Wire names", style="dim")
        for enum in assembly.enums:
            for variant, candidates in enum.mapping.variants:
                enum_table.add_row(f"{enum.name}.{variant}", ", ".join(candidates))
        console.print(enum_table)
        console.print()

    for error in assembly.errors:
        err_console.print(f"[red]error:[/red] {escape(str(error))}")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
