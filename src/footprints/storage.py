"""Durable key-value byte storage backends."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from footprints.exceptions import StorageError


@runtime_checkable
class KeyValueStorage(Protocol):
    """Minimal durable byte store used by :class:`~footprints.store.LocationStore`."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class MemoryStorage:
    """Process-local storage, mostly useful for tests and previews."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)


class FileStorage:
    """One file per key inside a directory.

    Writes go to a temporary file in the same directory which then
    replaces the target, so a crash mid-write leaves the previous
    record intact.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in {".", ".."}:
            raise StorageError(f"Invalid storage key: {key!r}", key=key)
        return self._directory / key

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Could not read {path}: {exc}", key=key) from exc

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", dir=self._directory)
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(value)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Could not write {path}: {exc}", key=key) from exc
