"""File-backed artifact storage with TTL-based cleanup."""

import logging
import os
import shutil
import time
from typing import BinaryIO

from tubeaudio.errors import StorageFault

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Stores converted files under a flat directory, one file per key.

    Keys are generated per job, so writers never contend for a path.
    """

    def __init__(self, base_dir: str, ttl_hours: int = 24):
        self._base_dir = os.path.abspath(base_dir)
        try:
            os.makedirs(self._base_dir, exist_ok=True)
        except OSError as exc:
            raise StorageFault(f"Cannot create artifact directory {self._base_dir}: {exc}") from exc
        self._ttl_seconds = ttl_hours * 3600

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def path_for(self, key: str) -> str:
        """Full path for a key. Rejects anything that is not a bare file name."""
        if not key or os.path.basename(key) != key or key in (".", ".."):
            raise ValueError(f"Invalid artifact key: {key!r}")
        return os.path.join(self._base_dir, key)

    def open_write(self, key: str) -> BinaryIO:
        return open(self.path_for(key), "wb")

    def size(self, key: str) -> int:
        return os.path.getsize(self.path_for(key))

    def exists(self, key: str) -> bool:
        return os.path.isfile(self.path_for(key))

    def remove(self, key: str) -> bool:
        """Best-effort delete. Returns False if nothing was removed."""
        try:
            os.remove(self.path_for(key))
            return True
        except FileNotFoundError:
            return False
        except (OSError, ValueError) as exc:
            logger.warning("Could not remove artifact %s: %s", key, exc)
            return False

    def cleanup_expired(self) -> int:
        """Remove artifacts older than TTL. Returns count of removed entries."""
        now = time.time()
        removed = 0
        if not os.path.exists(self._base_dir):
            return 0
        for entry in os.listdir(self._base_dir):
            path = os.path.join(self._base_dir, entry)
            try:
                if now - os.path.getmtime(path) <= self._ttl_seconds:
                    continue
                if os.path.isdir(path):
                    shutil.rmtree(path, ignore_errors=True)
                else:
                    os.remove(path)
                removed += 1
            except OSError as exc:
                logger.warning("Cleanup skipped %s: %s", entry, exc)
        if removed:
            logger.info("Removed %d expired artifact(s)", removed)
        return removed
