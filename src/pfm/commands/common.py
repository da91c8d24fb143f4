"""Common utilities for CLI commands."""

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.markup import escape

from ..allocator import PortAllocator
from ..config import load_settings
from ..console import console, debug, error, error_console, info, success, warning
from ..errors import PfmError
from ..manager import ForwardManager
from ..registry import ForwardRegistry
from ..supervisor import ProcessSupervisor, SshLauncher

# Re-export console utilities
__all__ = [
    "console",
    "error_console",
    "debug",
    "info",
    "success",
    "warning",
    "error",
    "get_manager",
    "reported_errors",
]


def get_manager() -> ForwardManager:
    """Get a forward manager configured from the environment."""
    settings = load_settings()
    return ForwardManager(
        registry=ForwardRegistry(lock_timeout=settings.lock_timeout),
        allocator=PortAllocator(window=settings.search_window),
        supervisor=ProcessSupervisor(
            launcher=SshLauncher(settings.ssh_command, settings.startup_grace)
        ),
    )


@contextmanager
def reported_errors() -> Iterator[None]:
    """Print pfm errors and exit with the matching status code."""
    try:
        yield
    except PfmError as e:
        error(escape(str(e)))
        raise typer.Exit(e.exit_code) from e
