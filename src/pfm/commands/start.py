"""Start command - launch a new SSH local forward."""

import typer
from rich.markup import escape

from ..probe import is_valid_port
from ..supervisor import LaunchOptions
from .common import console, get_manager, reported_errors, warning


def parse_ports(ports: str) -> tuple[int | None, int]:
    """Parse ``REMOTE`` or ``LOCAL:REMOTE``.

    Returns:
        (local port or None, remote port)

    Raises:
        typer.BadParameter: If the value is malformed
    """
    parts = ports.split(":")
    if len(parts) > 2:
        raise typer.BadParameter(f"Invalid format '{ports}'. Use LOCAL:REMOTE or just PORT")

    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        raise typer.BadParameter(f"Invalid port number in '{ports}'") from None

    for number in numbers:
        if not is_valid_port(number):
            raise typer.BadParameter(f"Port {number} is out of range")

    if len(numbers) == 2:
        return numbers[0], numbers[1]
    return None, numbers[0]


def start(
    host: str = typer.Argument(..., help="SSH host (user@hostname)"),
    ports: str = typer.Argument(..., help="Remote port, or LOCAL:REMOTE"),
    local: int | None = typer.Option(
        None, "-l", "--local", min=1, max=65535, help="Preferred local port"
    ),
    identity: str | None = typer.Option(None, "-i", "--identity", help="SSH identity file"),
    ssh_port: int | None = typer.Option(
        None, "-p", "--ssh-port", min=1, max=65535, help="SSH server port"
    ),
    option: list[str] | None = typer.Option(
        None, "-o", "--option", help="Extra ssh -o option (repeatable)"
    ),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Only print the local port"),
) -> None:
    """Start a new SSH port forward.

    Examples:
        pfm start user@server.com 80
        pfm start user@server.com 8080:80
        pfm start server.com 5432 --local 15432 -i ~/.ssh/id_ed25519
    """
    local_from_ports, remote_port = parse_ports(ports)
    if local_from_ports is not None and local is not None:
        raise typer.BadParameter("Give the local port either as LOCAL:REMOTE or --local")
    requested_port = local if local is not None else local_from_ports

    options = LaunchOptions(identity=identity, ssh_port=ssh_port, options=option or [])

    with reported_errors():
        record = get_manager().start(host, remote_port, requested_port, options)

    if quiet:
        print(record.local_port)
        return

    console.print("\n[green bold]✓ Port forward created![/green bold]")
    console.print(f"  [cyan]ID:[/cyan] {record.id}")
    console.print(
        f"  [dim]localhost[/dim]:[cyan]{record.local_port}[/cyan] → "
        f"[cyan]{escape(record.host)}[/cyan]:[cyan]{record.remote_port}[/cyan]",
    )
    console.print(f"  [cyan]PID:[/cyan] {record.process_id}")

    if record.remapped:
        warning(f"\n⚠ Port remapped from {record.requested_port} to {record.local_port}")
