"""Typer-powered command line interface for ``imagectl``.

``imagectl validate`` resolves a build file and reports every warning and
error found in one pass; ``imagectl show`` prints the resolved configuration.
"""
from __future__ import annotations

import json
import textwrap
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ConfigError, PrepareResult, load_build_config, parse_override
from .exit_codes import ExitCode
from .logging import OperationScope, StructuredLogger

console = Console()

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Resolve and validate Yandex Cloud image build configurations.

        Build files are YAML (or JSON) builder settings, optionally wrapped in a
        Packer-style template with ``variables`` and ``builders``.
        """
    ).strip(),
)

BUILD_FILE_ARGUMENT = typer.Argument(
    ...,
    dir_okay=False,
    help="Path to the build file (YAML or JSON).",
)

SET_OPTION = typer.Option(
    None,
    "--set",
    help="Override a build setting, e.g. --set disk_size_gb=20. Repeatable.",
)

JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit machine-readable JSON instead of formatted text.",
)

LOG_DIR_OPTION = typer.Option(
    None,
    "--log-dir",
    envvar="IMAGECTL_LOG_DIR",
    file_okay=False,
    help="Directory for the structured operations log. Disabled when unset.",
)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the imagectl version and exit.",
    ),
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"imagectl {__version__}")
        raise typer.Exit(code=ExitCode.OK)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=ExitCode.OK)


@app.command("validate")
def validate_command(
    build_file: Path = BUILD_FILE_ARGUMENT,
    overrides: list[str] | None = SET_OPTION,
    json_output: bool = JSON_OPTION,
    log_dir: Path | None = LOG_DIR_OPTION,
) -> None:
    """Check a build file and report every problem found."""
    logger = StructuredLogger(log_dir)
    with logger.operation(
        "validate",
        args={"overrides": list(overrides or []), "json": json_output},
        target={"kind": "build-file", "path": build_file},
    ) as op:
        result = _resolve(op, build_file, overrides)

        if json_output:
            console.print_json(data=result.to_dict())
        else:
            _print_problems(result)

        if not result.ok:
            op.error(
                "Build configuration is invalid.",
                errors=list(result.errors),
                warnings=list(result.warnings),
                rc=ExitCode.VALIDATION,
            )
            raise typer.Exit(code=ExitCode.VALIDATION)

        if result.warnings:
            op.warning("Build configuration is valid with warnings.", warnings=result.warnings)
        else:
            op.success("Build configuration is valid.")
        if not json_output:
            console.print("[green]Build configuration is valid.[/green]")


@app.command("show")
def show_command(
    build_file: Path = BUILD_FILE_ARGUMENT,
    overrides: list[str] | None = SET_OPTION,
    json_output: bool = JSON_OPTION,
    log_dir: Path | None = LOG_DIR_OPTION,
) -> None:
    """Display the resolved configuration after defaults are applied."""
    logger = StructuredLogger(log_dir)
    with logger.operation(
        "show",
        args={"overrides": list(overrides or []), "json": json_output},
        target={"kind": "build-file", "path": build_file},
    ) as op:
        result = _resolve(op, build_file, overrides)
        data = result.config.to_dict()

        if json_output:
            console.print_json(data=data)
        else:
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Key", style="bold")
            table.add_column("Value")
            for key, value in data.items():
                if isinstance(value, (dict, list)):
                    rendered = json.dumps(value, indent=2, sort_keys=True)
                else:
                    rendered = str(value)
                table.add_row(key, escape(rendered))
            console.print(table)
            _print_problems(result)

        if not result.ok:
            op.error(
                "Rendered configuration with errors.",
                errors=list(result.errors),
                rc=ExitCode.VALIDATION,
            )
            raise typer.Exit(code=ExitCode.VALIDATION)
        op.success("Rendered configuration.")


def _resolve(
    op: OperationScope,
    build_file: Path,
    overrides: Sequence[str] | None,
) -> PrepareResult:
    try:
        parsed = dict(parse_override(item) for item in overrides or [])
        return load_build_config(build_file, overrides=parsed)
    except ConfigError as exc:
        rc = (
            ExitCode.ENVIRONMENT
            if isinstance(exc.__cause__, OSError)
            else ExitCode.VALIDATION
        )
        _command_error(op, str(exc), rc=rc)


def _print_problems(result: PrepareResult) -> None:
    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {escape(warning)}", soft_wrap=True)
    for error in result.errors:
        console.print(f"[red]error:[/red] {escape(error)}", soft_wrap=True)


def _command_error(op: OperationScope, message: str, *, rc: int) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]{escape(message)}[/red]", soft_wrap=True)
    op.error(message, rc=rc)
    raise typer.Exit(code=rc)


__all__ = ["app"]
