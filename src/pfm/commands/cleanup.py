"""Cleanup command - alias for prune."""

from .prune import prune


def cleanup() -> None:
    """Alias for `pfm prune`. Remove forwards whose process has died."""
    prune(dry_run=False)
