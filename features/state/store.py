"""
Local persistence for client state.

Each state container (credentials, ledger, progress) is serialized as one
JSON document under a logical name. Writes are atomic per document: the
payload goes to a temp file first and is swapped in with os.replace, so a
crash mid-write leaves the previous version intact.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

log = logging.getLogger(__name__)


@runtime_checkable
class StateStore(Protocol):
    """Key/value storage for independently serialized state records."""

    def load(self, name: str) -> dict | None:
        """Return the stored document, or None if absent."""

    def save(self, name: str, data: dict) -> None:
        """Persist the document, replacing any previous version."""

    def delete(self, name: str) -> None:
        """Remove the document if present."""


class FileStateStore:
    """One JSON file per logical name under a state directory."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def load(self, name: str) -> dict | None:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            log.warning("Ignoring unreadable state file %s: %s", path, e)
            return None
        return data if isinstance(data, dict) else None

    def save(self, name: str, data: dict) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(tmp_path, self._path(name))
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def delete(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)


class MemoryStateStore:
    """Process-local store; state is lost on exit."""

    def __init__(self) -> None:
        self.documents: dict[str, Any] = {}

    def load(self, name: str) -> dict | None:
        data = self.documents.get(name)
        return json.loads(data) if data is not None else None

    def save(self, name: str, data: dict) -> None:
        self.documents[name] = json.dumps(data, default=str)

    def delete(self, name: str) -> None:
        self.documents.pop(name, None)
