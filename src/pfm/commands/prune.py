"""Prune command - remove forwards whose ssh process has died."""

import typer
from rich.markup import escape

from .common import console, get_manager, reported_errors, success


def prune(
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be removed"),
) -> None:
    """Remove dead port forwards from the registry.

    Examples:
        pfm prune --dry-run
        pfm prune
    """
    with reported_errors():
        result = get_manager().prune(dry_run=dry_run)

    if not result.removed:
        console.print("[dim]No dead forwards found[/dim]")
        return

    verb = "Would remove" if dry_run else "Removed"
    for record in result.removed:
        console.print(
            f"[yellow]{verb} dead forward:[/yellow] {record.id} "
            f"[dim]{escape(record.name)}[/dim] (PID: {record.process_id})"
        )

    if dry_run:
        console.print("\n[dim]Run without --dry-run to remove.[/dim]")
    else:
        success(f"\n✓ Cleaned up {result.count} dead forward(s)")
