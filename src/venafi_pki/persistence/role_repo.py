"""
venafi-pki — role repository

Purpose
- Maps role names to ``role/<name>`` records in a ``Storage`` backend.

Functional requirements
- ``get`` returns ``None`` for an absent role; storage faults propagate.
- ``list`` returns role names only, sorted lexicographically.
"""

from __future__ import annotations

from venafi_pki.constants import ROLE_STORAGE_PREFIX
from venafi_pki.domain.roles import RoleEntry
from venafi_pki.persistence.storage import Storage


def role_path(name: str) -> str:
    if not name:
        raise ValueError("role name must not be empty")
    return f"{ROLE_STORAGE_PREFIX}{name}"


class RoleRepo:
    """Repository for persisted role entries."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    @property
    def storage(self) -> Storage:
        return self._storage

    def get(self, name: str) -> RoleEntry | None:
        raw = self._storage.get(role_path(name))
        if raw is None:
            return None
        return RoleEntry.from_bytes(raw)

    def put(self, name: str, entry: RoleEntry) -> None:
        self._storage.put(role_path(name), entry.to_bytes())

    def delete(self, name: str) -> None:
        self._storage.delete(role_path(name))

    def list(self) -> list[str]:
        # Sub-folder markers ("x/") are not roles.
        return [
            child for child in self._storage.list(ROLE_STORAGE_PREFIX) if not child.endswith("/")
        ]


__all__ = ["RoleRepo", "role_path"]
