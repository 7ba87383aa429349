"""Persistent key-value slots for terminal-local state."""

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

from caixapilot.core.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """String slots addressed by key (a localStorage-like surface)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store, used in tests and as a last-resort fallback."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore:
    """All slots in one JSON object on disk.

    Writes go to a temporary file in the same directory and are moved over
    the target with os.replace, so a crash mid-write never leaves a
    truncated document behind. An unreadable document reads as empty.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("kv_store.read_failed", path=str(self.path), error=str(exc))
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("kv_store.corrupt", path=str(self.path))
            return {}

        if not isinstance(data, dict):
            logger.warning("kv_store.corrupt", path=str(self.path))
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)
