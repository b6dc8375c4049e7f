"""
Free loopback port selection for platforms without Unix sockets.
"""

import random
import socket
from typing import Optional, Tuple

from .errors import IoError

LOOPBACK = "127.0.0.1"


def port_is_free(port: int, host: str = LOOPBACK) -> bool:
    """Check whether a TCP port can be bound on host right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


class PortFinder:
    def __init__(self, port_range: Optional[Tuple[int, int]] = None, host: str = LOOPBACK):
        """
        Find a free port.

        Args:
            port_range: Inclusive (start, end) range to scan in random order.
                If None, the operating system picks an ephemeral port.
            host: Interface to test binding on
        """
        if port_range is not None:
            start, end = port_range
            if not 0 < start <= end <= 65535:
                raise ValueError(f"Invalid port range: {start}-{end}")
        self.port_range = port_range
        self.host = host
        self.selected_port = None

    def generate(self) -> int:
        """
        Select a port and remember it in `selected_port`.
        Raises IoError if no port in the range is free.
        """
        if self.port_range is None:
            self.selected_port = self._ephemeral_port()
            return self.selected_port

        start, end = self.port_range
        ports = list(range(start, end + 1))
        random.shuffle(ports)
        for port in ports:
            if port_is_free(port, self.host):
                self.selected_port = port
                return port

        raise IoError(f"Failed to select a free port in range {start}-{end}")

    def _ephemeral_port(self) -> int:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((self.host, 0))
            except OSError as e:
                raise IoError(f"Failed to select a free port: {e}") from e
            return sock.getsockname()[1]
