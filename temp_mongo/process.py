"""
The spawned server process: start it, notice if it dies early, stop it.
"""

import logging
import os
import subprocess
from typing import List, Optional, Sequence

from .errors import ProcessSpawnError

logger = logging.getLogger(__name__)

OUTPUT_TAIL_BYTES = 4096
KILL_WAIT = 5.0


def read_tail(path: str, limit: int = OUTPUT_TAIL_BYTES) -> str:
    """Last `limit` bytes of a file as text, or "" if it does not exist."""
    try:
        with open(path, 'rb') as f:
            f.seek(0, os.SEEK_END)
            size = f.tell()
            f.seek(max(0, size - limit))
            return f.read().decode('utf-8', errors='replace')
    except OSError:
        return ""


class ServerProcess:
    def __init__(self, argv: List[str], output_path: str, diagnostic_paths: Sequence[str] = ()):
        """
        Spawn a server.

        Args:
            argv: Full command line
            output_path: File receiving the process's stdout and stderr
            diagnostic_paths: Extra files (e.g. the server log) whose tail is
                reported if the process exits before it is ready
        """
        self.argv = list(argv)
        self.output_path = output_path
        self.diagnostic_paths = tuple(diagnostic_paths)
        self._stopped = False

        logger.debug("Spawning server: %s", subprocess.list2cmdline(self.argv))
        try:
            with open(output_path, 'wb') as output:
                self.proc = subprocess.Popen(
                    self.argv,
                    stdin=subprocess.DEVNULL,
                    stdout=output,
                    stderr=subprocess.STDOUT,
                )
        except OSError as e:
            raise ProcessSpawnError(self.command, str(e)) from e

    @property
    def command(self) -> str:
        return self.argv[0]

    @property
    def pid(self) -> int:
        return self.proc.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.proc.poll()

    def is_running(self) -> bool:
        return self.proc.poll() is None

    def output(self) -> str:
        """Tail of the captured output and diagnostic files."""
        parts = []
        for path in (self.output_path,) + self.diagnostic_paths:
            tail = read_tail(path).strip()
            if tail:
                parts.append(tail)
        return "\n".join(parts)

    def check_alive(self):
        """Raise ProcessSpawnError if the process has already exited."""
        code = self.proc.poll()
        if code is not None:
            raise ProcessSpawnError(
                self.command,
                f"exited with code {code} before accepting connections",
                returncode=code,
                output=self.output(),
            )

    def stop(self, grace_period: float = 5.0):
        """
        SIGTERM, then SIGKILL if still running after grace_period seconds.
        Only the first stop() or kill() does anything. Failures are logged, not raised.
        """
        if self._stopped:
            return
        self._stopped = True

        if self.proc.poll() is not None:
            return

        try:
            self.proc.terminate()
            self.proc.wait(timeout=grace_period)
            return
        except subprocess.TimeoutExpired:
            logger.warning("Server pid %d ignored SIGTERM for %.1fs, killing it", self.pid, grace_period)
        except OSError as e:
            logger.warning("Failed to terminate server pid %d: %s", self.pid, e)

        self._force_kill()

    def kill(self):
        """SIGKILL without a grace period, used when startup is abandoned."""
        if self._stopped:
            return
        self._stopped = True

        if self.proc.poll() is None:
            self._force_kill()

    def _force_kill(self):
        try:
            self.proc.kill()
            self.proc.wait(timeout=KILL_WAIT)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Failed to kill server pid %d: %s", self.pid, e)
