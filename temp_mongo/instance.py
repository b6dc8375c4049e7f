"""
Temporary MongoDB instance for unit tests.

TempMongo spawns a private mongod whose whole state lives in a temporary
directory, waits until it accepts connections and hands out a connected
pymongo client. Closing the instance (explicitly, through `with`, or when it
is garbage collected) stops the server and removes the directory unless
clean-up was disabled.
"""

import enum
import logging
import os
import socket
import sys
import threading
from typing import List, Optional, Sequence, Tuple, Union

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .endpoint import Endpoint, wait_until_ready
from .errors import ClientInitError, IoError
from .ports import PortFinder
from .process import ServerProcess
from .seed import DataSeeder
from .tempdir import TempDir

logger = logging.getLogger(__name__)

HAS_UNIX_SOCKETS = hasattr(socket, "AF_UNIX") and os.name != "nt"

DB_DIR = "db"
LOG_FILE = "mongod.log"
OUTPUT_FILE = "mongod.stdout.log"
SOCKET_FILE = "mongod.sock"

# sun_path holds 104 bytes on macOS and 108 on Linux, including the NUL
MAX_SOCKET_PATH = 103 if sys.platform == "darwin" else 107


def socket_paths_fit(directory: str, port: int) -> bool:
    """
    Whether both sockets mongod creates in `directory` fit in sun_path:
    the one we bind and its default mongodb-<port>.sock.
    """
    paths = [os.path.join(directory, SOCKET_FILE), os.path.join(directory, f"mongodb-{port}.sock")]
    return all(len(os.fsencode(path)) <= MAX_SOCKET_PATH for path in paths)


class State(enum.Enum):
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    READY = "ready"
    TEARING_DOWN = "tearing_down"
    CLOSED = "closed"


class TempMongoBuilder:
    def __init__(
        self,
        command: Union[str, Sequence[str]] = "mongod",
        parent_directory: Optional[str] = None,
        clean_on_drop: bool = True,
        use_tcp: Optional[bool] = None,
        port: Optional[int] = None,
        port_range: Optional[Tuple[int, int]] = None,
        startup_timeout: float = 10.0,
        poll_interval: float = 0.05,
        connect_timeout: float = 2.0,
        grace_period: float = 5.0,
        extra_args: Sequence[str] = (),
    ):
        """
        Options for spawning a TempMongo.

        Args:
            command: mongod binary, or an argv prefix to run instead of it
            parent_directory: Where to create the temporary directory
                (system temp dir if None)
            clean_on_drop: Remove the temporary directory on teardown
            use_tcp: Listen on a loopback port instead of a Unix socket.
                Defaults to True only where Unix sockets are unavailable.
            port: Fixed port; if None one is picked from port_range, or by
                the operating system when no range is given
            port_range: Inclusive (start, end) range to pick a free port from
            startup_timeout: Seconds to wait for the server to accept connections
            poll_interval: Seconds between readiness checks
            connect_timeout: Driver connect and server selection timeout
            grace_period: Seconds between SIGTERM and SIGKILL on teardown
            extra_args: Extra arguments for mongod
        """
        self.command = command
        self.parent_directory = parent_directory
        self._clean_on_drop = clean_on_drop
        self.use_tcp = use_tcp
        self.port = port
        self.port_range = port_range
        self.startup_timeout = startup_timeout
        self.poll_interval = poll_interval
        self.connect_timeout = connect_timeout
        self.grace_period = grace_period
        self.extra_args = list(extra_args)

    # Fluent setters

    def mongod_command(self, command: Union[str, Sequence[str]]) -> "TempMongoBuilder":
        self.command = command
        return self

    def parent(self, directory: str) -> "TempMongoBuilder":
        self.parent_directory = directory
        return self

    def clean_on_drop(self, clean_on_drop: bool) -> "TempMongoBuilder":
        self._clean_on_drop = clean_on_drop
        return self

    def tcp(self, use_tcp: bool = True, port: Optional[int] = None) -> "TempMongoBuilder":
        self.use_tcp = use_tcp
        if port is not None:
            self.port = port
        return self

    def ports(self, start: int, end: int) -> "TempMongoBuilder":
        self.port_range = (start, end)
        return self

    def timeouts(
        self,
        startup: Optional[float] = None,
        poll_interval: Optional[float] = None,
        connect: Optional[float] = None,
        grace_period: Optional[float] = None,
    ) -> "TempMongoBuilder":
        if startup is not None:
            self.startup_timeout = startup
        if poll_interval is not None:
            self.poll_interval = poll_interval
        if connect is not None:
            self.connect_timeout = connect
        if grace_period is not None:
            self.grace_period = grace_period
        return self

    def args(self, *extra_args: str) -> "TempMongoBuilder":
        self.extra_args.extend(extra_args)
        return self

    # Derived values

    @property
    def should_clean_on_drop(self) -> bool:
        return self._clean_on_drop

    @property
    def wants_tcp(self) -> bool:
        if self.use_tcp is None:
            return not HAS_UNIX_SOCKETS
        return self.use_tcp

    def get_command(self) -> List[str]:
        if isinstance(self.command, (str, os.PathLike)):
            return [os.fspath(self.command)]
        return [os.fspath(part) for part in self.command]

    def get_command_string(self) -> str:
        return " ".join(self.get_command())

    def select_port(self) -> int:
        if self.port is not None:
            return self.port
        return PortFinder(self.port_range).generate()

    def spawn(self) -> "TempMongo":
        """Spawn the server and connect to it."""
        mongo = TempMongo(self)
        mongo._start()
        return mongo

    def __repr__(self):
        return f"TempMongoBuilder(command={self.get_command_string()!r}, tcp={self.wants_tcp})"


class TempMongo:
    """
    A temporary MongoDB instance.

    Use TempMongo.start() or TempMongoBuilder(...).spawn() to create one.
    """

    def __init__(self, builder: Optional[TempMongoBuilder] = None):
        self.options = builder or TempMongoBuilder()
        self.state = State.UNINITIALIZED
        self._lock = threading.Lock()
        self._tempdir = None
        self._server = None
        self._client = None
        self._endpoint = None

    @classmethod
    def start(cls, **options) -> "TempMongo":
        """Spawn an instance. Keyword arguments are TempMongoBuilder options."""
        return TempMongoBuilder(**options).spawn()

    @classmethod
    def builder(cls, **options) -> TempMongoBuilder:
        """A builder to customize the instance before spawning it."""
        return TempMongoBuilder(**options)

    def _start(self):
        if self.state is not State.UNINITIALIZED:
            raise RuntimeError(f"TempMongo already {self.state.value}")
        self.state = State.STARTING

        try:
            self._tempdir = TempDir(self.options.parent_directory, self.options.should_clean_on_drop)
            db_dir = self._tempdir.make_subdir(DB_DIR)

            port = self.options.select_port()
            use_tcp = self.options.wants_tcp
            if not use_tcp and not socket_paths_fit(self._tempdir.path, port):
                if self.options.use_tcp is False:
                    raise IoError(
                        f"Socket path in {self._tempdir.path} is longer than the "
                        f"{MAX_SOCKET_PATH} bytes a Unix socket allows; use a shorter parent_directory",
                        self._tempdir.path,
                    )
                logger.warning("Directory %s too long for a Unix socket, listening on TCP", self._tempdir.path)
                use_tcp = True

            if use_tcp:
                self._endpoint = Endpoint(port=port)
            else:
                self._endpoint = Endpoint(socket_path=os.path.join(self._tempdir.path, SOCKET_FILE), port=port)

            argv = self.options.get_command() + [
                "--bind_ip", self._endpoint.bind_ip,
                "--port", str(port),
                "--dbpath", db_dir,
                "--logpath", self.log_path,
                "--noauth",
            ]
            # Keep mongod's default mongodb-<port>.sock out of /tmp
            if use_tcp:
                argv.append("--nounixsocket")
            else:
                argv += ["--unixSocketPrefix", self._tempdir.path]
            argv += self.options.extra_args

            self._server = ServerProcess(
                argv,
                output_path=os.path.join(self._tempdir.path, OUTPUT_FILE),
                diagnostic_paths=[self.log_path],
            )

            wait_until_ready(
                self._endpoint,
                timeout=self.options.startup_timeout,
                interval=self.options.poll_interval,
                check=self._server.check_alive,
            )

            self._client = self._connect()
        except BaseException:
            self._abort_start()
            raise

        self.state = State.READY
        logger.info(
            "MongoDB ready at %s (pid %d, directory %s)",
            self._endpoint.address, self._server.pid, self._tempdir.path,
        )

    def _connect(self) -> MongoClient:
        timeout_ms = int(self.options.connect_timeout * 1000)
        try:
            client = MongoClient(
                self._endpoint.uri,
                directConnection=True,
                connectTimeoutMS=timeout_ms,
                serverSelectionTimeoutMS=timeout_ms,
            )
        except PyMongoError as e:
            raise ClientInitError(self._endpoint.address, str(e)) from e

        try:
            client.admin.command("ping")
        except PyMongoError as e:
            client.close()
            raise ClientInitError(self._endpoint.address, str(e)) from e
        return client

    def _abort_start(self):
        """Undo whatever part of the startup already happened."""
        logger.debug("Startup failed, cleaning up")
        if self._client is not None:
            self._client.close()
        if self._server is not None:
            self._server.kill()
        if self._tempdir is not None:
            # Startup failures never leave a directory behind, disowned or not
            try:
                self._tempdir.remove()
            except IoError as e:
                logger.warning("%s", e)
        self.state = State.CLOSED

    # Accessors

    @property
    def client(self) -> MongoClient:
        """The client connected to this instance; the same object every time."""
        if self._client is None:
            raise RuntimeError(f"TempMongo is {self.state.value}, no client available")
        return self._client

    def _require(self, value, what: str):
        if value is None:
            raise RuntimeError(f"TempMongo is {self.state.value}, no {what} available")
        return value

    @property
    def directory(self) -> str:
        return self._require(self._tempdir, "directory").path

    @property
    def log_path(self) -> str:
        return os.path.join(self.directory, LOG_FILE)

    @property
    def socket_path(self) -> Optional[str]:
        """Path of the Unix socket, or None when listening on TCP."""
        return self.endpoint.socket_path

    @property
    def endpoint(self) -> Endpoint:
        return self._require(self._endpoint, "endpoint")

    @property
    def uri(self) -> str:
        return self.endpoint.uri

    @property
    def process_id(self) -> int:
        return self._require(self._server, "server process").pid

    @property
    def clean_on_drop(self) -> bool:
        return self._require(self._tempdir, "directory").clean_on_drop

    # Seeding

    def prepare_seed_document(self, database_name: str, collection_name: str, documents: List[dict]) -> DataSeeder:
        return DataSeeder(database_name, collection_name, documents)

    def load_document(self, seed_data: DataSeeder) -> int:
        """Insert the seeder's documents. Returns how many were inserted."""
        return seed_data.seed(self.client)

    def print_documents(self, database_name: str, collection_name: str):
        """Print every document in a collection."""
        for document in self.client[database_name][collection_name].find():
            print(document)

    # Teardown

    def set_clean_on_drop(self, clean_on_drop: bool):
        """Enable or disable removal of the temporary directory on teardown."""
        self._require(self._tempdir, "directory").set_clean_on_drop(clean_on_drop)

    def disown(self):
        """Keep the temporary directory after teardown, e.g. to inspect a failed test."""
        self.set_clean_on_drop(False)

    def close(self):
        """
        Stop the server and remove the temporary directory (unless disowned).
        Safe to call more than once. Never raises.
        """
        self._teardown(clean=None)

    def kill_and_clean(self):
        """
        Stop the server and always remove the temporary directory.
        Unlike close(), raises IoError if the directory cannot be removed.
        """
        self._teardown(clean=True)

    def kill_no_clean(self) -> Optional[str]:
        """Stop the server and keep the temporary directory. Returns its path."""
        self._teardown(clean=False)
        return self._tempdir.path if self._tempdir else None

    def _teardown(self, clean: Optional[bool]):
        with self._lock:
            if self.state is not State.READY:
                return
            self.state = State.TEARING_DOWN

        try:
            try:
                self._client.close()
            except PyMongoError as e:
                logger.warning("Failed to close client: %s", e)

            self._server.stop(self.options.grace_period)

            if clean is None:
                self._tempdir.close()
            elif clean:
                self._tempdir.remove()
            else:
                self._tempdir.persist()
        finally:
            self.state = State.CLOSED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __del__(self):
        # Attributes may be missing if __init__ failed
        if getattr(self, "state", None) is State.READY:
            self.close()

    def __repr__(self):
        if self._server is None:
            return f"TempMongo(state={self.state.value})"
        return (
            f"TempMongo(state={self.state.value}, directory={self._tempdir.path!r}, "
            f"endpoint={self._endpoint.address!r}, pid={self._server.pid})"
        )
