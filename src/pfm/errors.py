"""Error taxonomy for pfm."""


class PfmError(Exception):
    """Base class for all errors reported to the user."""

    exit_code = 1


class ConfigError(PfmError):
    """Raised when an environment setting cannot be parsed."""


class NotFound(PfmError):
    """Raised when an operation references an unknown forward id."""

    exit_code = 3

    def __init__(self, forward_id: int) -> None:
        super().__init__(f"No forward with id {forward_id}")
        self.forward_id = forward_id


class NoPortsAvailable(PfmError):
    """Raised when the allocator exhausts its search window."""

    exit_code = 4


class LaunchFailed(PfmError):
    """Raised when the ssh child process cannot be started."""

    exit_code = 5

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class StorageError(PfmError):
    """Raised when the registry file is unreadable, unwritable or corrupt."""

    exit_code = 6


class LockTimeout(PfmError):
    """Raised when another invocation holds the registry lock too long."""

    exit_code = 7


class TerminateFailed(PfmError):
    """Raised when a termination signal could not be delivered."""

    exit_code = 8
