"""Local port allocation for pfm."""

from collections.abc import Iterable

from .config import DEFAULT_SEARCH_WINDOW
from .console import debug
from .errors import NoPortsAvailable
from .probe import MAX_PORT, PortProbe, is_valid_port


class PortAllocator:
    """Pick a free local port, starting from the one the user asked for."""

    def __init__(
        self, probe: PortProbe | None = None, window: int = DEFAULT_SEARCH_WINDOW
    ) -> None:
        """Initialize allocator.

        Args:
            probe: Port probe used for OS-level checks
            window: Number of ports to try above the requested one
        """
        self.probe = probe or PortProbe()
        self.window = window

    def allocate(self, requested_port: int, reserved: Iterable[int] = ()) -> int:
        """Allocate a local port.

        Strategy:
        1. Try ``requested_port``
        2. Scan upward one port at a time, up to ``window`` increments
        3. A candidate must be absent from ``reserved`` and bindable

        Args:
            requested_port: Port the user asked for
            reserved: Local ports held by running forwards

        Returns:
            The allocated port number

        Raises:
            ValueError: If requested_port is not a valid TCP port
            NoPortsAvailable: If the search window is exhausted
        """
        if not is_valid_port(requested_port):
            raise ValueError(f"Invalid port number: {requested_port}")

        reserved = set(reserved)
        last = min(requested_port + self.window, MAX_PORT)

        for port in range(requested_port, last + 1):
            if self._is_port_available(port, reserved):
                if port != requested_port:
                    debug(f"Port {requested_port} is taken, using {port}")
                return port

        raise NoPortsAvailable(
            f"No available local port (tried {requested_port}-{last})"
        )

    def _is_port_available(self, port: int, reserved: set[int]) -> bool:
        if port in reserved:
            return False
        return self.probe.is_port_free(port)
