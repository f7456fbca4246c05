"""Session-scoped key/value storage used to persist wizard state across reloads."""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class SessionStorage(ABC):
    """String key/value storage that lives for one client session."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key if present."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every key, ending the session."""


class MemorySessionStorage(SessionStorage):
    """In-process storage; survives store re-creation but not the process."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


class FileSessionStorage(SessionStorage):
    """
    Storage backed by a single JSON file.

    Deleting the file (``clear``) ends the session. Writes go through a
    temporary file and ``os.replace`` so a crash never leaves half a document.
    """

    def __init__(self, file_path: str) -> None:
        self.file_path = Path(file_path)

    def _read_all(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read session file {self.file_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Session file {self.file_path} does not hold a mapping, ignoring it")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write_all(self, items: Dict[str, str]) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(items, f, indent=2)
        os.replace(tmp_path, self.file_path)

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if key in items:
            del items[key]
            self._write_all(items)

    def clear(self) -> None:
        try:
            self.file_path.unlink()
        except FileNotFoundError:
            pass


def storage_for(session_file: Optional[str]) -> SessionStorage:
    """Pick the storage backend for a configured session file."""
    if session_file:
        return FileSessionStorage(session_file)
    return MemorySessionStorage()
