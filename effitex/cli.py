"""CLI entry point: all commands defined here."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from effitex import __version__
from effitex.exceptions import EffiTexError, InstructionValidationError

app = typer.Typer(
    name="effitex",
    help="PDF accessibility remediation driven by instruction files.",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"effitex {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(  # noqa: UP007
        None, "--version", callback=version_callback, is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """EffiTex: apply remediation instructions to PDFs and inspect them."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _print_field_errors(errors: list) -> None:
    console.print(f"[red]Instructions are invalid ({len(errors)} error(s)):[/red]")
    for error in errors:
        console.print(f"  - {error.field}: {error.message}", markup=False)


@app.command()
def validate(
    instructions: Path = typer.Argument(..., help="Instruction file (.yaml, .yml or .json)."),
) -> None:
    """Check an instruction file without touching any PDF."""
    from effitex.loader import load_instructions_file
    from effitex.validator import validate as validate_instructions

    if not instructions.is_file():
        console.print(f"[red]File not found:[/red] {instructions}")
        raise typer.Exit(code=1)

    try:
        parsed = load_instructions_file(instructions)
    except EffiTexError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    result = validate_instructions(parsed)
    if not result.is_valid:
        _print_field_errors(result.errors)
        raise typer.Exit(code=2)
    console.print("[green]OK[/green] Instructions are valid.")


@app.command()
def execute(
    pdf: Path = typer.Argument(..., help="Path to the PDF to remediate."),
    instructions: Path = typer.Argument(..., help="Instruction file (.yaml, .yml or .json)."),
    output: Optional[Path] = typer.Option(  # noqa: UP007
        None, "--output", "-o", help="Output path. Defaults to <name>_remediated.pdf.",
    ),
    config_path: Optional[Path] = typer.Option(  # noqa: UP007
        None, "--config", help="Configuration YAML. Defaults to ./effitex.yaml if present.",
    ),
) -> None:
    """Apply an instruction file to a PDF and write the remediated copy."""
    from effitex.config import EffiTexConfig
    from effitex.loader import load_instructions_file
    from effitex.pipeline import default_output_path, run_pipeline

    for path in (pdf, instructions):
        if not path.is_file():
            console.print(f"[red]File not found:[/red] {path}")
            raise typer.Exit(code=1)

    try:
        config = EffiTexConfig.load(config_path)
        parsed = load_instructions_file(instructions)
    except (EffiTexError, ValueError, OSError, yaml.YAMLError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    if output is None:
        output = default_output_path(pdf, config)

    console.print(f"[dim]Input:[/dim]  {pdf}")
    console.print(f"[dim]Output:[/dim] {output}")

    try:
        result = run_pipeline(pdf, output, parsed, config)
    except InstructionValidationError as exc:
        _print_field_errors(exc.errors)
        raise typer.Exit(code=2)
    except EffiTexError as exc:
        console.print(f"[red]Execution failed:[/red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title="Handlers")
    table.add_column("Handler", style="bold")
    table.add_column("Changes", justify="right")
    table.add_column("Warnings", justify="right")
    for r in result.handler_results:
        table.add_row(r.handler_name, str(r.changes_made), str(len(r.warnings)))
    console.print(table)

    for w in result.warnings:
        console.print(f"  [yellow]![/yellow] {escape(w)}", highlight=False)
    console.print(f"[green]OK[/green] Done -- {result.total_changes} change(s) applied.")


@app.command()
def inspect(
    pdf: Path = typer.Argument(..., help="Path to the PDF to inspect."),
    output: Optional[Path] = typer.Option(  # noqa: UP007
        None, "--output", "-o", help="Write the JSON report here instead of stdout.",
    ),
) -> None:
    """Report the PDF's structure, fonts and content as camelCase JSON."""
    from effitex.inspector import inspect_file

    if not pdf.is_file():
        console.print(f"[red]File not found:[/red] {pdf}")
        raise typer.Exit(code=1)

    try:
        report = inspect_file(pdf)
    except EffiTexError as exc:
        console.print(f"[red]Inspection failed:[/red] {exc}")
        raise typer.Exit(code=1)

    text = report.to_json(indent=2)
    if output is None:
        typer.echo(text)
    else:
        output.write_text(text, encoding="utf-8")
        console.print(f"[green]OK[/green] Report written to {output}")
