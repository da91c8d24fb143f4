"""pfm - SSH port forward manager."""

__version__ = "0.1.0"

from .allocator import PortAllocator
from .errors import (
    ConfigError,
    LaunchFailed,
    LockTimeout,
    NoPortsAvailable,
    NotFound,
    PfmError,
    StorageError,
    TerminateFailed,
)
from .manager import ForwardManager, PruneResult
from .models import ForwardRecord, ForwardStatus
from .probe import PortProbe
from .registry import ForwardRegistry
from .supervisor import LaunchOptions, ProcessSupervisor, SshLauncher, TerminateOutcome

__all__ = [
    "__version__",
    "ConfigError",
    "ForwardManager",
    "ForwardRecord",
    "ForwardRegistry",
    "ForwardStatus",
    "LaunchFailed",
    "LaunchOptions",
    "LockTimeout",
    "NoPortsAvailable",
    "NotFound",
    "PfmError",
    "PortAllocator",
    "PortProbe",
    "ProcessSupervisor",
    "PruneResult",
    "SshLauncher",
    "StorageError",
    "TerminateFailed",
    "TerminateOutcome",
]
