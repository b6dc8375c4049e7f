"""
Temporary state directory that can outlive its owner on request.
"""

import logging
import os
import shutil
import tempfile
from typing import Optional

from .errors import IoError

logger = logging.getLogger(__name__)


class TempDir:
    def __init__(self, parent: Optional[str] = None, clean_on_drop: bool = True, prefix: str = "temp-mongo-"):
        """
        Create a fresh, uniquely named directory.

        Args:
            parent: Directory to create it in (system temp dir if None)
            clean_on_drop: Remove the directory on close()
            prefix: Name prefix of the directory
        """
        try:
            self.path = tempfile.mkdtemp(prefix=prefix, dir=parent)
        except OSError as e:
            raise IoError(f"Failed to create temporary directory: {e}", parent) from e
        self.clean_on_drop = clean_on_drop
        self._closed = False

    def set_clean_on_drop(self, clean_on_drop: bool):
        self.clean_on_drop = clean_on_drop

    def make_subdir(self, name: str) -> str:
        """Create a directory inside the temporary directory."""
        path = os.path.join(self.path, name)
        try:
            os.mkdir(path)
        except OSError as e:
            raise IoError(f"Failed to create data directory {path}: {e}", path) from e
        return path

    def remove(self):
        """
        Delete the directory tree unconditionally.
        Raises IoError if it cannot be removed; a missing directory is fine.
        """
        self._closed = True
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise IoError(f"Failed to clean up temporary state directory {self.path}: {e}", self.path) from e

    def persist(self) -> str:
        """Keep the directory on disk and return its path."""
        self._closed = True
        return self.path

    def close(self):
        """Remove the directory if clean_on_drop is set. Never raises."""
        if self._closed:
            return
        if not self.clean_on_drop:
            logger.info("Keeping temporary directory %s", self.path)
            self.persist()
            return
        try:
            self.remove()
        except IoError as e:
            logger.warning("%s", e)

    @property
    def closed(self) -> bool:
        return self._closed

    def __repr__(self):
        return f"TempDir({self.path!r}, clean_on_drop={self.clean_on_drop})"
