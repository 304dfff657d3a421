"""Tests for CLI commands."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from for_else.cli import app, format_value

EXAMPLES = Path(__file__).resolve().parents[2] / "examples"

SOURCE = """\
let mut flag = false;
for_! { i in 0..10 { if i == 5 { break; } } else { flag = true; } }
"""


@pytest.fixture
def cli_runner():
    """Return a CLI test runner."""
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Work inside an empty project directory so no outer config is picked up."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "main.rs").write_text(SOURCE)
    return tmp_path


class TestGlobalOptions:
    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "for-else" in result.output
        assert "Python" in result.output

    def test_no_args_shows_help(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(app, [])
        assert "expand" in result.output
        assert "inspect" in result.output


class TestExpandCommand:
    def test_expand_to_stdout(self, cli_runner: CliRunner, project: Path) -> None:
        result = cli_runner.invoke(app, ["expand", "main.rs"])
        assert result.exit_code == 0
        assert "let mut _for_else_break_occurred = false;" in result.output
        assert "for_!" not in result.output

    def test_expand_to_file(self, cli_runner: CliRunner, project: Path) -> None:
        result = cli_runner.invoke(app, ["expand", "main.rs", "-o", "out/main.rs"])
        assert result.exit_code == 0
        assert "Expanded file written to: out/main.rs" in result.output
        assert "#[allow(unused_mut)]" in (project / "out" / "main.rs").read_text()

    def test_missing_file(self, cli_runner: CliRunner, project: Path) -> None:
        result = cli_runner.invoke(app, ["expand", "nope.rs"])
        assert result.exit_code == 1
        assert "Input file not found" in result.output

    def test_malformed_invocation(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "bad.rs").write_text("for_! { x in v { } }\n")
        result = cli_runner.invoke(app, ["expand", "bad.rs"])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "malformed loop header" in result.output
        assert "in for_!" in result.output

    def test_config_option(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "custom.toml").write_text('flag_name = "done"\n')
        result = cli_runner.invoke(app, ["expand", "main.rs", "-c", "custom.toml"])
        assert result.exit_code == 0
        assert "let mut done = false;" in result.output

    def test_project_config_is_found(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "for-else.toml").write_text("indent = 2\n")
        result = cli_runner.invoke(app, ["expand", "main.rs"])
        assert result.exit_code == 0
        assert "\n  #[allow(unused_mut)]\n" in result.output

    def test_invalid_config(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "for-else.toml").write_text("colour = 1\n")
        result = cli_runner.invoke(app, ["expand", "main.rs"])
        assert result.exit_code == 1
        assert "Unknown config keys" in result.output


class TestInspectCommand:
    def test_table(self, cli_runner: CliRunner, project: Path) -> None:
        result = cli_runner.invoke(app, ["inspect", "main.rs"])
        assert result.exit_code == 0
        assert "for_!" in result.output
        assert "0..10" in result.output
        assert "1 / 1" in result.output

    def test_no_invocations(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "plain.rs").write_text("fn main() {}\n")
        result = cli_runner.invoke(app, ["inspect", "plain.rs"])
        assert result.exit_code == 0
        assert "No loop-else invocations found" in result.output


class TestRunCommand:
    def test_run_expanded(self, cli_runner: CliRunner, project: Path) -> None:
        result = cli_runner.invoke(app, ["run", "main.rs"])
        assert result.exit_code == 0
        assert result.output.strip() == "flag = false"

    def test_run_without_expansion(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "plain.rs").write_text("let v = vec![1, 2]; let t = (v.len(), 'x');\n")
        result = cli_runner.invoke(app, ["run", "plain.rs", "--no-expand"])
        assert result.exit_code == 0
        assert "v = [1, 2]" in result.output
        assert "t = (2, 'x')" in result.output

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("search.rs", ["index = 2", "found = true"]),
            ("nested.rs", ["hits = 2", "exhausted = false"]),
            ("retry.rs", ["attempts = 3", "gave_up = true"]),
        ],
    )
    def test_examples(
        self, cli_runner: CliRunner, project: Path, name: str, expected: list[str]
    ) -> None:
        result = cli_runner.invoke(app, ["run", str(EXAMPLES / name)])
        assert result.exit_code == 0, result.output
        for line in expected:
            assert line in result.output.splitlines()

    def test_runtime_error(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "boom.rs").write_text("let x = 1 / 0;\n")
        result = cli_runner.invoke(app, ["run", "boom.rs"])
        assert result.exit_code == 1
        assert "attempt to divide by zero" in result.output


class TestFormatValue:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "()"),
            (True, "true"),
            (3, "3"),
            ("c", "'c'"),
            ("abc", '"abc"'),
            ([1, [2]], "[1, [2]]"),
            ((1, False), "(1, false)"),
            (range(0, 3), "0..3"),
        ],
    )
    def test_format_value(self, value: object, expected: str) -> None:
        assert format_value(value) == expected
