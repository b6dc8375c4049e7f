"""
Errors raised while starting or cleaning up a temporary MongoDB instance.
"""

from typing import Optional


class TempMongoError(Exception):
    """Base class for all temp_mongo errors."""


class IoError(TempMongoError):
    """Creating or removing the temporary state directory failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ProcessSpawnError(TempMongoError):
    """
    The server command could not be run, or exited before it was ready.
    `returncode` is None when the process never started.
    """

    def __init__(self, command: str, reason: str, returncode: Optional[int] = None, output: str = ""):
        message = f"Failed to run server command: {command}: {reason}"
        if output:
            message += f"\n--- server output ---\n{output}"
        super().__init__(message)
        self.command = command
        self.reason = reason
        self.returncode = returncode
        self.output = output


class ReadinessTimeoutError(TempMongoError):
    """The server never accepted connections within the startup budget."""

    def __init__(self, endpoint: str, timeout: float):
        super().__init__(f"Server at {endpoint} not reachable after {timeout}s")
        self.endpoint = endpoint
        self.timeout = timeout


class ClientInitError(TempMongoError):
    """The endpoint is reachable but the driver handshake failed."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"Failed to connect to server at {address}: {reason}")
        self.address = address
        self.reason = reason
