"""Command modules for pfm CLI."""

from .cleanup import cleanup
from .list import list_cmd
from .prune import prune
from .start import start
from .stop import stop

__all__ = [
    "cleanup",
    "list_cmd",
    "prune",
    "start",
    "stop",
]
