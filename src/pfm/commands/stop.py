"""Stop command - terminate forwards and forget them."""

import typer
from rich.markup import escape

from ..errors import NotFound
from ..models import ForwardRecord
from .common import console, error, get_manager, reported_errors, success


def stop(
    ids: list[int] | None = typer.Argument(None, help="Forward id(s) to stop"),
    all: bool = typer.Option(False, "--all", help="Stop every tracked forward"),
) -> None:
    """Stop port forward(s) and remove them from the registry.

    Unknown ids are reported and the remaining ones are still stopped.

    Examples:
        pfm stop 3
        pfm stop 1 2 4
        pfm stop --all
    """
    if not all and not ids:
        error("Specify forward id(s) or use --all")
        raise typer.Exit(1)

    with reported_errors():
        manager = get_manager()

        if all:
            removed = manager.stop_all()
            for record in removed:
                _print_stopped(record)
            success(f"\n✓ Stopped {len(removed)} forward(s)")
            return

        missing = 0
        for forward_id in ids or []:
            try:
                _print_stopped(manager.stop(forward_id))
            except NotFound as e:
                error(str(e))
                missing += 1

    if missing:
        raise typer.Exit(NotFound.exit_code)


def _print_stopped(record: ForwardRecord) -> None:
    console.print(
        f"[green]✓ Stopped:[/green] {record.id} "
        f"(localhost:{record.local_port} → {escape(record.host)}:{record.remote_port})"
    )
