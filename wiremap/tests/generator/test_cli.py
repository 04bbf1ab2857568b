"""Tests for CLI interface."""

import json
import os
import tempfile

from click.testing import CliRunner

from wiremap.generator.cli import cli

FILE_DIR = os.path.dirname(os.path.realpath(__file__))
DEFINITIONS = f"{FILE_DIR}/../fixtures/conversions.wiremap"


def describe_gen_command():
    def generates_python_code(expect):
        runner = CliRunner()
        with tempfile.NamedTemporaryFile(suffix=".py", delete=False) as f:
            output_file = f.name

        try:
            result = runner.invoke(cli, ["gen", "-i", DEFINITIONS, "-o", output_file])
            expect(result.exit_code) == 0
            with open(output_file) as f:
                content = f.read()
            expect("class User:" in content) == True
            expect("def user_from_wire(wire: _wire.User) -> User:" in content) == True
            expect("import wiremap.tests.fixtures.wire_types as _wire" in content) == True
            expect("from wiremap.runtime import (" in content) == True
        finally:
            os.unlink(output_file)

    def uses_vendored_runtime_import(expect, tmp_path):
        runner = CliRunner()
        output_file = tmp_path / "conversions.py"
        result = runner.invoke(
            cli,
            ["gen", "-i", DEFINITIONS, "-o", str(output_file), "--runtime-import", "wiremap_runtime"],
        )
        expect(result.exit_code) == 0
        expect("from wiremap_runtime import (" in output_file.read_text()) == True

    def fails_on_invalid_definitions(expect, tmp_path):
        definitions = tmp_path / "broken.wiremap"
        definitions.write_text("struct Broken {")
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-i", str(definitions), "-o", str(tmp_path / "out.py")])
        expect(result.exit_code) == 1
        expect("Invalid definition file" in result.output) == True

    def fails_on_configuration_errors(expect, tmp_path):
        definitions = tmp_path / "broken.wiremap"
        definitions.write_text(
            """
            options { wireModule = "app.wire" }
            struct Broken { created: Timestamp }
        """
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-i", str(definitions), "-o", str(tmp_path / "out.py")])
        expect(result.exit_code) == 1
        expect("Broken.created" in result.output) == True
        expect(os.path.exists(tmp_path / "out.py")) == False

    def skips_failing_types_with_partial(expect, tmp_path):
        definitions = tmp_path / "partial.wiremap"
        definitions.write_text(
            """
            options { wireModule = "app.wire" }
            struct Broken { created: Timestamp }
            struct Fine { name: string }
        """
        )
        output_file = tmp_path / "out.py"
        runner = CliRunner()
        result = runner.invoke(
            cli, ["gen", "-i", str(definitions), "-o", str(output_file), "--partial"]
        )
        expect(result.exit_code) == 0
        content = output_file.read_text()
        expect("class Fine:" in content) == True
        expect("class Broken" in content) == False

    def fails_without_wire_module(expect, tmp_path):
        definitions = tmp_path / "nowire.wiremap"
        definitions.write_text("struct Fine { name: string }")
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-i", str(definitions), "-o", str(tmp_path / "out.py")])
        expect(result.exit_code) == 1
        expect("No wire module configured" in result.output) == True


def describe_runtime_command():
    def writes_runtime_package(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["runtime", "-o", str(tmp_path), "--name", "conv_runtime"])
        expect(result.exit_code) == 0
        expect(sorted(os.listdir(tmp_path / "conv_runtime"))) == [
            "__init__.py",
            "enums.py",
            "errors.py",
        ]
        init = (tmp_path / "conv_runtime" / "__init__.py").read_text()
        expect("from .errors import MissingFieldError" in init) == True


def describe_info_command():
    def shows_decisions(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", DEFINITIONS])
        expect(result.exit_code) == 0
        expect("User" in result.output) == True
        expect("Session" in result.output) == True
        expect("STATUS_NOT_FOUND" in result.output) == True

    def outputs_json(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", DEFINITIONS, "--json"])
        expect(result.exit_code) == 0
        data = json.loads(result.output)

        session = data["records"]["Session"]
        expect(session["wire_name"]) == "SessionPb"
        expect(session["fields"]["cache"]["strategy"]["kind"]) == "ignore"

        payment = data["records"]["Payment"]
        expect(payment["fallible"]) == True
        expect(payment["error_class"]) == "wiremap.tests.fixtures.helpers.ValidationError"
        expect(payment["fields"]["note"]["error_mode"]["kind"]) == "default"

        user = data["records"]["User"]
        expect(user["fields"]["created"]["error_mode"]["kind"]) == "panic"
        expect(user["fields"]["display"]["wire_name"]) == "display_name"
        expect(user["fields"]["nicknames"]["shape"]) == "Optional<list<string>>"

        expect(data["records"]["UserId"]["newtype"]) == True
        expect(data["enums"]["Status"]["variants"][2]) == [
            "NotFound",
            ["NotFound", "STATUS_NOT_FOUND"],
        ]
        expect(data["errors"]) == []

    def reports_errors(expect, tmp_path):
        definitions = tmp_path / "broken.wiremap"
        definitions.write_text(
            """
            options { wireModule = "app.wire" }
            struct Broken { created: Timestamp }
        """
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", str(definitions), "--json"])
        expect(result.exit_code) == 1
        data = json.loads(result.output)
        expect(data["errors"][0]["path"]) == "Broken.created"
