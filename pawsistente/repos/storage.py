"""Key-value storage backends used to persist schedule state."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Protocol


class StorageError(Exception):
    """Raised when a storage backend cannot read or write a value."""


class StorageQuotaExceeded(StorageError):
    """Raised when a write would push the backend over its size quota."""


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed store of string values, keyed by storage key.

    ``quota_bytes`` caps the total UTF-8 size of all stored values.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._store: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        return self._store.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            others = sum(
                len(v.encode("utf-8")) for k, v in self._store.items() if k != key
            )
            if others + len(value.encode("utf-8")) > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"writing {key!r} exceeds quota of {self.quota_bytes} bytes"
                )
        self._store[key] = value

    def remove_item(self, key: str) -> None:
        self._store.pop(key, None)


class JsonFileStorage:
    """Stores every key as a member of a single JSON object on disk.

    Writes go to a temporary sibling file which then replaces the original.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"{self.path} does not hold a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, self.path)
        except OSError as exc:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"cannot write {self.path}: {exc}") from exc

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except StorageError:
            # A corrupt file is overwritten rather than blocking every save.
            data = {}
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)
