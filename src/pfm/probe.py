"""Local TCP port probing for pfm."""

import socket

import psutil

MIN_PORT = 1
MAX_PORT = 65535


def is_valid_port(port: int) -> bool:
    """Return True if ``port`` is a usable TCP port number."""
    return MIN_PORT <= port <= MAX_PORT


class PortProbe:
    """Check local TCP ports for availability."""

    def __init__(self, host: str = "127.0.0.1") -> None:
        self.host = host

    def is_port_free(self, port: int) -> bool:
        """Test if a port can be bound to.

        A single bind attempt decides the answer; the socket is released
        immediately.

        Args:
            port: Port number to test

        Returns:
            True if port is available, False if it is taken or out of range
        """
        if not is_valid_port(port):
            return False
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                s.bind((self.host, port))
                return True
        except OSError:
            return False

    def listening_ports(self) -> set[int]:
        """Get all local TCP ports currently in LISTEN state.

        Returns:
            Set of port numbers, empty if the OS refuses the query
        """
        try:
            connections = psutil.net_connections(kind="tcp")
        except (psutil.AccessDenied, OSError):
            return set()
        return {
            conn.laddr.port
            for conn in connections
            if conn.status == psutil.CONN_LISTEN and conn.laddr
        }
