"""logs-gateway CLI entry point."""

import typer

from logs_gateway import __version__
from logs_gateway.cli.scoping_cmd import scoping_app
from logs_gateway.cli.shadow_cmd import shadow_app

app = typer.Typer(
    name="logs-gateway",
    help="Inspect shadow captures and debug scoping configuration",
    no_args_is_help=True,
)

app.add_typer(shadow_app, name="shadow")
app.add_typer(scoping_app, name="scoping")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"logs-gateway {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Inspect shadow captures and debug scoping configuration."""
