"""
=============================================================================
LOCAL STORAGE - Key-value persistence in a JSON file
=============================================================================
The calculator persists two independent keys:
    theme               -> "light" or "dark"
    recentCalculations  -> JSON array of history entries, newest first

LocalStorage keeps them in one JSON object on disk, e.g.
    backend/data/storage.json
    {"theme": "dark", "recentCalculations": "[...]"}

S3Storage (backend/lib/s3_service.py) offers the same interface backed by
an S3 bucket. Both raise StorageError for any read/write failure.
=============================================================================
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from backend.lib.app_logger import get_logger

log = get_logger(__name__)


class StorageError(Exception):
    """A persisted value could not be read or written."""


class LocalStorage:
    """
    Usage:
        storage = LocalStorage(Path("backend/data/storage.json"))
        storage.set("theme", "dark")
        storage.get("theme")  # "dark"
    """

    backend_name = "local"

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"{self.path} does not hold a JSON object")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first so a crash never leaves half a file
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            Path(tmp).unlink(missing_ok=True)
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)
        log.debug("Stored %s (%d chars) in %s", key, len(value), self.path)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)
