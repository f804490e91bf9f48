"""Key-value storage contract and an in-process implementation.

Paths are ``/``-separated strings such as ``role/web``. ``list(prefix)``
returns the immediate children below ``prefix``; a child that has further
segments is reported once with a trailing ``/``.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable


class StorageError(RuntimeError):
    """Base class for storage faults (I/O, locking, corruption)."""


class StorageBusyError(StorageError):
    """Raised when bounded busy retries are exhausted."""


class StorageMigrationError(StorageError):
    """Raised when the storage schema cannot be applied safely."""


class StorageCorruptionError(StorageError):
    """Raised when the underlying store reports possible corruption."""


@runtime_checkable
class Storage(Protocol):
    def get(self, path: str) -> bytes | None: ...

    def put(self, path: str, value: bytes) -> None: ...

    def delete(self, path: str) -> None: ...

    def list(self, prefix: str) -> list[str]: ...


def validate_path(path: str) -> str:
    if not isinstance(path, str):
        raise ValueError(f"storage path must be a string, got {type(path).__name__}")
    if not path or path.startswith("/"):
        raise ValueError(f"storage path must be a non-empty relative path: {path!r}")
    if "\x00" in path:
        raise ValueError("storage path must not contain NUL bytes")
    return path


def immediate_children(paths: Iterable[str], prefix: str) -> list[str]:
    """Collapse full paths under ``prefix`` into sorted immediate child names."""

    children: set[str] = set()
    for path in paths:
        if not path.startswith(prefix):
            continue
        remainder = path[len(prefix) :]
        if not remainder:
            continue
        head, sep, _ = remainder.partition("/")
        children.add(head + sep)
    return sorted(children)


class InMemoryStorage:
    """Thread-safe dict-backed store for tests and ephemeral backends."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, bytes] = {}

    def get(self, path: str) -> bytes | None:
        validate_path(path)
        with self._lock:
            return self._data.get(path)

    def put(self, path: str, value: bytes) -> None:
        validate_path(path)
        if not isinstance(value, bytes):
            raise TypeError(f"storage value must be bytes, got {type(value).__name__}")
        with self._lock:
            self._data[path] = value

    def delete(self, path: str) -> None:
        validate_path(path)
        with self._lock:
            self._data.pop(path, None)

    def list(self, prefix: str) -> list[str]:
        with self._lock:
            keys = tuple(self._data)
        return immediate_children(keys, prefix)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


__all__ = [
    "InMemoryStorage",
    "Storage",
    "StorageBusyError",
    "StorageCorruptionError",
    "StorageError",
    "StorageMigrationError",
    "immediate_children",
    "validate_path",
]
