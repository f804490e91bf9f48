"""
venafi-pki — persistence layer

Purpose
- Key-value storage contract, its in-memory and SQLite backends, and the
  role repository built on top of them.

Functional requirements
- Must support concurrent readers and a blind last-writer-wins ``put``.
"""

from __future__ import annotations

from pathlib import Path

from venafi_pki.persistence.role_repo import RoleRepo, role_path
from venafi_pki.persistence.state_db import (
    DEFAULT_BUSY_RETRY_LIMIT,
    DEFAULT_BUSY_TIMEOUT_MS,
    StateDB,
)
from venafi_pki.persistence.storage import (
    InMemoryStorage,
    Storage,
    StorageBusyError,
    StorageCorruptionError,
    StorageError,
    StorageMigrationError,
)

STORAGE_BACKENDS = ("memory", "sqlite")


def open_storage(
    backend: str,
    *,
    path: str | Path | None = None,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    busy_retry_limit: int = DEFAULT_BUSY_RETRY_LIMIT,
) -> Storage:
    """Build the configured storage backend."""

    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        if path is None:
            raise ValueError("sqlite storage requires a path")
        return StateDB(
            path,
            busy_timeout_ms=busy_timeout_ms,
            busy_retry_limit=busy_retry_limit,
        )
    raise ValueError(f"unknown storage backend: {backend!r}")


__all__ = [
    "InMemoryStorage",
    "RoleRepo",
    "STORAGE_BACKENDS",
    "StateDB",
    "Storage",
    "StorageBusyError",
    "StorageCorruptionError",
    "StorageError",
    "StorageMigrationError",
    "open_storage",
    "role_path",
]
