"""List command - show tracked forwards."""

import json

import typer
from rich.markup import escape
from rich.table import Table

from ..probe import PortProbe
from .common import console, get_manager, info, reported_errors


def list_cmd(
    live: bool = typer.Option(False, "--live", help="Check if local ports are listening"),
    json_output: bool = typer.Option(False, "--json", help="Print records as JSON"),
) -> None:
    """List all tracked port forwards.

    Forwards whose ssh process has exited are marked dead.

    Examples:
        pfm list
        pfm list --live
    """
    with reported_errors():
        records = get_manager().list_forwards()

    if json_output:
        print(json.dumps([record.to_dict() for record in records], indent=2))
        return

    if not records:
        console.print("[yellow]No port forwards configured.[/yellow]")
        info("\n[dim]Add one with: pfm start <host> <port>[/dim]")
        return

    listening_ports: set[int] = set()
    if live:
        listening_ports = PortProbe().listening_ports()

    running = sum(1 for record in records if record.is_running)
    table = Table(title=f"Port forwards ({running} running, {len(records)} total)")
    table.add_column("ID", style="bold")
    table.add_column("Host", style="cyan")
    table.add_column("Local", style="yellow")
    table.add_column("Remote", style="yellow")
    table.add_column("PID")
    table.add_column("Status", style="magenta")
    if live:
        table.add_column("Listening")

    for record in records:
        local = str(record.local_port)
        if record.remapped:
            local += f" (asked {record.requested_port})"
        row = [
            str(record.id),
            escape(record.host),
            local,
            str(record.remote_port),
            str(record.process_id) if record.process_id is not None else "-",
            "[green]● Running[/green]" if record.is_running else "[yellow]○ Dead[/yellow]",
        ]
        if live:
            row.append("yes" if record.local_port in listening_ports else "no")
        table.add_row(*row)

    console.print(table)
