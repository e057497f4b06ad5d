"""logs-gateway scoping check: validate a logger-debug file."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from logs_gateway.errors import ScopingConfigError
from logs_gateway.loader.debug_config import (
    find_debug_config,
    parse_debug_config_file,
    validate_debug_config,
)

scoping_app = typer.Typer(help="Debug scoping configuration", no_args_is_help=True)


@scoping_app.command("check")
def check(
    path: Optional[Path] = typer.Argument(
        None, help="Config file (default: nearest logger-debug.json upward from cwd)"
    ),
) -> None:
    """Validate a scoping config file and summarize its rules.

    Exits with code 0 if valid, 1 if missing or invalid.
    """
    console = Console()
    target = path or find_debug_config()
    if target is None or not target.is_file():
        typer.echo("Error: No logger-debug config file found.", err=True)
        raise typer.Exit(code=1)

    try:
        raw = parse_debug_config_file(target)
    except ScopingConfigError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(code=1)

    config, errors = validate_debug_config(raw)
    if errors:
        typer.echo(f"Invalid scoping config: {target}", err=True)
        for err in errors:
            typer.echo(f"  {err.field}: {err.message}", err=True)
        raise typer.Exit(code=1)

    console.print(f"Valid scoping config: {target}", markup=False, highlight=False)
    console.print(
        f"status={config.status} identities={len(config.filter_identities)} "
        f"applications={len(config.filtered_applications)} rules={len(config.between)}",
        markup=False,
        highlight=False,
    )
    if config.between:
        table = Table(box=box.SIMPLE)
        table.add_column("#", justify="right")
        table.add_column("Action")
        table.add_column("Match")
        table.add_column("Start")
        table.add_column("End")
        for position, rule in enumerate(config.between):
            table.add_row(
                str(position),
                rule.action,
                ("exact" if rule.exact_match else "substring")
                + (", log" if rule.search_log else ""),
                ", ".join(rule.start_identities) or "(first call)",
                ", ".join(rule.end_identities) or "(never)",
            )
        console.print(table)
