"""
Where a temporary server listens, and how to tell when it is listening.
"""

import logging
import socket
import time
from typing import Callable, Optional
from urllib.parse import quote_plus

from .errors import ReadinessTimeoutError
from .ports import LOOPBACK

logger = logging.getLogger(__name__)


class Endpoint:
    def __init__(self, socket_path: Optional[str] = None, host: str = LOOPBACK, port: Optional[int] = None):
        """
        Either a Unix socket path, or a TCP host and port.
        The port is always set since mongod wants one even when bound to a socket.
        """
        if socket_path is None and port is None:
            raise ValueError("Endpoint needs a socket path or a port")
        self.socket_path = socket_path
        self.host = host
        self.port = port

    @property
    def is_unix(self) -> bool:
        return self.socket_path is not None

    @property
    def bind_ip(self) -> str:
        """Value for mongod's --bind_ip."""
        return self.socket_path if self.is_unix else self.host

    @property
    def address(self) -> str:
        return self.socket_path if self.is_unix else f"{self.host}:{self.port}"

    @property
    def uri(self) -> str:
        if self.is_unix:
            return f"mongodb://{quote_plus(self.socket_path)}"
        return f"mongodb://{self.host}:{self.port}"

    def probe(self, timeout: float = 0.5) -> bool:
        """Try a raw connect. True if something accepted the connection."""
        if self.is_unix:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            target = self.socket_path
        else:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            target = (self.host, self.port)

        with sock:
            sock.settimeout(timeout)
            try:
                sock.connect(target)
            except OSError:
                return False
        return True

    def __repr__(self):
        return f"Endpoint({self.address})"


def wait_until_ready(
    endpoint: Endpoint,
    timeout: float = 10.0,
    interval: float = 0.05,
    check: Optional[Callable[[], None]] = None,
):
    """
    Poll the endpoint until it accepts connections.

    Args:
        endpoint: Endpoint to probe
        timeout: Total budget in seconds
        interval: Sleep between attempts
        check: Called before each attempt; raise from it to abort
            (e.g. when the server process died)

    Raises ReadinessTimeoutError when the budget runs out.
    """
    deadline = time.monotonic() + timeout
    attempts = 0
    while True:
        if check is not None:
            check()

        attempts += 1
        if endpoint.probe(timeout=max(interval, 0.1)):
            logger.debug("%s ready after %d attempt(s)", endpoint, attempts)
            return

        if time.monotonic() >= deadline:
            raise ReadinessTimeoutError(endpoint.address, timeout)
        time.sleep(interval)
