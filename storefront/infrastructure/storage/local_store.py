"""
Name: Local Key/Value Storage

Responsibilities:
  - Persist string key/value pairs across process restarts (JSON file)
  - Provide an in-memory variant for tests and ephemeral sessions

Collaborators:
  - domain.repositories.KeyValueStore: implemented contract
  - container.py: picks the implementation from settings.storage_path

Constraints:
  - Writes are synchronous and atomic per call (write temp file + replace)
  - No cross-process locking: concurrent writers race, last writer wins
"""

import json
import os
import tempfile
import threading
from pathlib import Path

from ...logger import logger


class InMemoryKeyValueStore:
    """R: Dict-backed store; contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileKeyValueStore:
    """R: Store persisted as one JSON object in a file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._data: dict[str, str] = self._read()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            # R: A corrupt file behaves like an empty store.
            logger.warning(
                "Local storage unreadable, starting empty",
                extra={"path": str(self._path), "error": str(exc)},
            )
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=self._path.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._flush()
