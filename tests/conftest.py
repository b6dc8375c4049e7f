"""
Pytest fixtures for temp_mongo tests.
"""

import os
import shutil
import sys

import pytest

from temp_mongo import TempMongo

FAKE_MONGOD = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fake_mongod.py")

requires_mongod = pytest.mark.skipif(
    shutil.which("mongod") is None,
    reason="mongod not found on PATH",
)


@pytest.fixture(scope="function")
def mongo(tmp_path):
    """A fresh MongoDB instance for each test."""
    instance = TempMongo.start(parent_directory=str(tmp_path))
    yield instance
    instance.close()


@pytest.fixture(scope="function")
def parent_dir(tmp_path):
    """Empty directory to create temporary instance directories in."""
    path = tmp_path / "instances"
    path.mkdir()
    return str(path)


def fake_command(mode, pidfile=None):
    """Command line that runs the fake mongod in the given mode."""
    command = [sys.executable, FAKE_MONGOD, "--fake-mode", mode]
    if pidfile:
        command += ["--fake-pidfile", str(pidfile)]
    return command


def read_pid(pidfile):
    with open(pidfile) as f:
        return int(f.read().strip())


def pid_running(pid):
    """True if a process with this pid exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True
