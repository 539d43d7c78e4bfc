"""Shared plumbing for the JSON file stores: locking, atomic writes, errors."""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


class StorageUnavailableError(Exception):
    """The backing file could not be written."""

    def __init__(self, path: Path, cause: Exception):
        super().__init__(f"Cannot write store at {path}: {cause}")
        self.path = path
        self.cause = cause


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


class JsonFileStore(ABC):
    """A single JSON document on disk, re-read and rewritten on every call.

    Subclasses supply ``empty()`` (the document for a fresh or unreadable
    store) and may override ``validate()`` to reject documents of the wrong
    shape. Read-modify-write sequences go through ``update()`` so that
    writers on the same path within one process are serialized.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    @abstractmethod
    def empty(self) -> Any:
        """The document for a fresh or unreadable store."""

    def validate(self, data: Any) -> bool:
        return True

    def ensure_exists(self) -> None:
        """Create the store file with an empty document if it is missing."""
        with _lock_for(self.path):
            if not self.path.exists():
                self.write(self.empty())

    def read(self) -> Any:
        """Load the document. Unreadable or corrupt files read as empty."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return self.empty()
        except OSError as e:
            logger.warning(f"Could not read {self.path}, treating as empty: {e}")
            return self.empty()

        if not raw.strip():
            return self.empty()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt store file {self.path}, treating as empty: {e}")
            return self.empty()

        if not self.validate(data):
            logger.warning(f"Unexpected layout in {self.path}, treating as empty")
            return self.empty()
        return data

    def write(self, data: Any) -> None:
        """Atomically replace the file: write a temp sibling, then rename."""
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageUnavailableError(self.path, e) from e

    def update(self, fn: Callable[[Any], Any]) -> Any:
        """Apply ``fn`` to the document under the path lock and persist it.

        ``fn`` mutates the document in place and returns ``(result, changed)``.
        The file is rewritten only when ``changed`` is true.
        """
        with _lock_for(self.path):
            data = self.read()
            result, changed = fn(data)
            if changed:
                self.write(data)
            return result
