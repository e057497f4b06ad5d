"""logs-gateway shadow commands: list, export, and clean up stored runs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from logs_gateway.errors import ShadowNotFoundError
from logs_gateway.models.config import ShadowConfig
from logs_gateway.shadow import ShadowRecorder

shadow_app = typer.Typer(help="Manage shadow capture runs on disk", no_args_is_help=True)

DirOption = typer.Option("./logs/shadow", "--dir", "-d", help="Shadow capture directory")


def _recorder(directory: str) -> ShadowRecorder:
    return ShadowRecorder(ShadowConfig(directory=directory), package_name="logs-gateway")


@shadow_app.command("list")
def list_runs(directory: str = DirOption) -> None:
    """Show stored shadow runs."""
    console = Console()
    indexes = _recorder(directory).list_stored()
    if not indexes:
        console.print(f"No shadow runs found in {directory}")
        return

    table = Table(box=box.SIMPLE)
    table.add_column("Run ID", style="bold")
    table.add_column("Format")
    table.add_column("Entries", justify="right")
    table.add_column("Created")
    table.add_column("Updated")
    table.add_column("TTL (s)", justify="right")
    for index in indexes:
        table.add_row(
            index.run_id,
            index.format,
            str(index.entry_count),
            index.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            index.updated_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{index.ttl_seconds:g}",
        )
    console.print(table)


@shadow_app.command("export")
def export_run(
    run_id: str = typer.Argument(..., help="Run ID to export"),
    out: Optional[Path] = typer.Option(
        None, "--out", "-o", help="Destination file or directory (default: ./<run_id>.jsonl)"
    ),
    directory: str = DirOption,
) -> None:
    """Copy a run's captured entries to a file."""
    try:
        target = _recorder(directory).export(run_id, out)
    except ShadowNotFoundError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Exported {run_id} to {target}")


@shadow_app.command("cleanup")
def cleanup(directory: str = DirOption) -> None:
    """Delete runs whose TTL has elapsed."""
    deleted = _recorder(directory).cleanup_expired()
    typer.echo(f"Deleted {deleted} expired run(s)")
