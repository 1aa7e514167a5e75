"""
Snapshot backends for scan sessions.

A backend stores one opaque JSON string per key. Keys let several session
stores share one backend without seeing each other's scans.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_VALID_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


def _validate_key(key: str) -> str:
    if not _VALID_KEY.match(key) or key in (".", ".."):
        raise ValueError(f"Invalid session key: {key!r}")
    return key


class SessionPersistence(ABC):
    """Abstract base for session snapshot storage."""

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the stored snapshot for a key, or None if there is none."""

    @abstractmethod
    def save(self, key: str, snapshot: str) -> None:
        """Store a snapshot, replacing any previous one."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a snapshot. Deleting a missing key is not an error."""


class InMemorySessionPersistence(SessionPersistence):
    """Process-local storage; snapshots are lost when the process exits."""

    def __init__(self) -> None:
        self._snapshots: Dict[str, str] = {}

    def load(self, key: str) -> Optional[str]:
        return self._snapshots.get(_validate_key(key))

    def save(self, key: str, snapshot: str) -> None:
        self._snapshots[_validate_key(key)] = snapshot

    def delete(self, key: str) -> None:
        self._snapshots.pop(_validate_key(key), None)


class FileSessionPersistence(SessionPersistence):
    """
    One JSON file per key in a directory.

    The directory is created on first save.
    """

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def path_for(self, key: str) -> str:
        return os.path.join(self.directory, f"{_validate_key(key)}.json")

    def load(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            with open(path, 'r') as f:
                return f.read()
        except FileNotFoundError:
            return None

    def save(self, key: str, snapshot: str) -> None:
        path = self.path_for(key)
        os.makedirs(self.directory, exist_ok=True)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, 'w') as f:
            f.write(snapshot)
        os.replace(tmp_path, path)
        logger.debug(f"Saved scan session snapshot to {path}")

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        logger.debug(f"Deleted scan session snapshot {path}")
