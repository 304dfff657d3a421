"""
for-else command line interface.

Commands:
    expand   Expand loop-else invocations in a Rust file
    inspect  List the invocations in a file and what their breaks became
    run      Expand a statement snippet and execute it with the reference interpreter
"""

from __future__ import annotations

import logging
import platform
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from for_else._version import get_version
from for_else.core.config import ExpanderConfig, load_config
from for_else.core.errors import ForElseError, RewriteInvariantError
from for_else.core.expander import LoopElseExpander
from for_else.core.interpreter import run as run_program

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    help="""for-else – loop-else constructs for Rust

Rewrites `for_! { pat in iter { .. } else { .. } }` and
`while_! { cond { .. } else { .. } }` into plain Rust. The else block
runs only when the loop ends without a `break` that targets it.
""",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"for-else {get_version()}")
        typer.echo(f"Python {platform.python_version()} ({platform.python_implementation()})")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging"),
) -> None:
    """for-else CLI main callback for global options."""
    ctx.obj = {"verbose": verbose}
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_config(ctx: typer.Context, config: str | None) -> ExpanderConfig:
    try:
        expander_config = load_config(Path(config) if config else None)
    except ForElseError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if not (ctx.obj or {}).get("verbose"):
        logging.getLogger().setLevel(expander_config.log_level)
    return expander_config


def _require_file(file_path: str) -> Path:
    input_path = Path(file_path)
    if not input_path.is_file():
        typer.echo(f"Error: Input file not found: {input_path}", err=True)
        raise typer.Exit(code=1)
    return input_path


def _fail(error: ForElseError) -> typer.Exit:
    if isinstance(error, RewriteInvariantError):
        typer.echo(f"Internal error: {error}", err=True)
        return typer.Exit(code=2)
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(code=1)


@app.command("expand")
def expand_command(
    ctx: typer.Context,
    file_path: str = typer.Argument(..., help="Rust file to expand"),
    output: str | None = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to for-else.toml"),
) -> None:
    """Expand loop-else invocations in a Rust file."""
    input_path = _require_file(file_path)
    logger.debug("Expanding %s", input_path)
    expander = LoopElseExpander(_load_config(ctx, config))

    try:
        output_path = Path(output) if output else None
        expanded = expander.expand_file(input_path, output_path)
    except ForElseError as e:
        raise _fail(e)

    if output:
        typer.echo(f"✓ Expanded file written to: {output}")
    else:
        typer.echo(expanded, nl=False)


@app.command("inspect")
def inspect_command(
    ctx: typer.Context,
    file_path: str = typer.Argument(..., help="Rust file to inspect"),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to for-else.toml"),
) -> None:
    """Show each loop-else invocation and how many of its breaks were rewritten."""
    input_path = _require_file(file_path)
    source = input_path.read_text(encoding="utf-8")
    expander = LoopElseExpander(_load_config(ctx, config))

    try:
        reports = expander.inspect_text(source, file=input_path)
    except ForElseError as e:
        raise _fail(e)

    if not reports:
        console.print("[yellow]No loop-else invocations found[/yellow]")
        return

    table = Table(title=f"Loop-else invocations in {input_path}")
    table.add_column("Line", justify="right")
    table.add_column("Macro")
    table.add_column("Label")
    table.add_column("Driver")
    table.add_column("Depth", justify="right")
    table.add_column("Breaks rewritten", justify="right")

    for report in reports:
        table.add_row(
            str(report.line),
            f"{report.macro}!",
            report.label or "-",
            report.driver,
            str(report.depth),
            f"{report.breaks_rewritten} / {report.breaks_found}",
        )

    console.print(table)


@app.command("run")
def run_command(
    ctx: typer.Context,
    file_path: str = typer.Argument(..., help="File with Rust statements to execute"),
    expand: bool = typer.Option(
        True, "--expand/--no-expand", help="Expand loop-else invocations first"
    ),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to for-else.toml"),
) -> None:
    """Execute a statement snippet with the reference interpreter and print its bindings."""
    input_path = _require_file(file_path)
    source = input_path.read_text(encoding="utf-8")

    try:
        if expand:
            expander = LoopElseExpander(_load_config(ctx, config))
            source = expander.expand_text(source, file=input_path)
        bindings = run_program(source)
    except ForElseError as e:
        raise _fail(e)

    for name, value in bindings.items():
        typer.echo(f"{name} = {format_value(value)}")


def format_value(value: Any) -> str:
    """Render an interpreter value the way Rust's `{:?}` would."""
    if value is None:
        return "()"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        quote = "'" if len(value) == 1 else '"'
        return f"{quote}{value}{quote}"
    if isinstance(value, list):
        return "[" + ", ".join(format_value(item) for item in value) + "]"
    if isinstance(value, tuple):
        return "(" + ", ".join(format_value(item) for item in value) + ")"
    if isinstance(value, range):
        return f"{value.start}..{value.stop}"
    return str(value)


def main() -> None:
    app(standalone_mode=True)


if __name__ == "__main__":
    main()
