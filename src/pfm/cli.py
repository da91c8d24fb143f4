"""Typer CLI for pfm - Main entry point."""

import typer

from . import __version__
from .commands import cleanup, list_cmd, prune, start, stop

app = typer.Typer(
    name="pfm",
    help="Port forward manager",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"pfm version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Manage SSH local port forwards."""
    pass

# Register all commands
app.command()(start)
app.command(name="list")(list_cmd)
app.command()(stop)
app.command()(prune)
app.command()(cleanup)


def main() -> None:
    """Main entry point."""
    app()
