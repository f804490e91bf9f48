"""
Role management operations: create/update, read, list, delete.

Every operation returns either nothing (success with no payload or "not
found"), or a ``RoleResponse``. User mistakes become error responses and
never touch storage; storage faults and undecodable records propagate to the
caller unchanged.

It integrates with:
- `RoleFieldData` for caller field coercion and defaults
- `validate_entry()` for the ordered consistency rules and the store_by migration
- `RoleRepo` for ``role/<name>`` persistence
- `structlog` for machine-parseable lifecycle events
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from venafi_pki.control_plane.role_fields import (
    RoleFieldData,
    RoleFieldError,
    validate_role_name,
)
from venafi_pki.domain.roles import RoleEntry
from venafi_pki.domain.validation import RoleValidationError, validate_entry
from venafi_pki.persistence.role_repo import RoleRepo

if TYPE_CHECKING:
    from venafi_pki.domain.roles import JSONValue
    from venafi_pki.persistence.storage import Storage

MISSING_ROLE_NAME = "missing role name"


@dataclass(frozen=True, slots=True)
class RoleResponse:
    """User-facing result of a role operation."""

    data: dict[str, JSONValue] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def error_response(cls, message: str) -> RoleResponse:
        return cls(data={"error": message}, error=message)

    @classmethod
    def list_response(cls, keys: list[str]) -> RoleResponse:
        return cls(data={"keys": list(keys)})

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def keys(self) -> list[str]:
        raw = self.data.get("keys", [])
        return [str(item) for item in raw] if isinstance(raw, list) else []

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {"data": dict(self.data)}
        if self.error is not None:
            out["error"] = self.error
        return out


class RoleRegistry:
    """Manage role entries stored under ``role/<name>``."""

    def __init__(self, storage: Storage, *, logger: Any | None = None) -> None:
        self._repo = RoleRepo(storage)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def repo(self) -> RoleRepo:
        return self._repo

    def create(self, name: str, fields: Mapping[str, object]) -> RoleResponse | None:
        """Create or wholly replace the role ``name``.

        Returns ``None`` on success, otherwise an error response naming the
        first problem found. Nothing is written unless every check passes.
        """

        try:
            validate_role_name(name)
            data = RoleFieldData(fields)
            data.require()
            entry = RoleEntry.from_fields(data.resolved())
            validate_entry(entry)
        except RoleValidationError as exc:
            self._log_rejected(name, exc.code, exc.message)
            return RoleResponse.error_response(exc.message)
        except RoleFieldError as exc:
            self._log_rejected(name, "invalid_field", str(exc))
            return RoleResponse.error_response(str(exc))
        except ValueError as exc:
            self._log_rejected(name, "invalid_value", str(exc))
            return RoleResponse.error_response(str(exc))

        self._repo.put(name, entry)
        self._logger.info(
            "role_created",
            role_name=name,
            store_by=entry.store_by,
            fakemode=entry.fakemode,
            deprecated_fields=list(data.deprecated_supplied()),
        )
        return None

    def read(self, name: str) -> RoleResponse | None:
        """Return the redacted view of ``name``, or ``None`` when it does not exist."""

        if not name:
            return RoleResponse.error_response(MISSING_ROLE_NAME)
        entry = self._repo.get(name)
        self._logger.info("role_read", role_name=name, found=entry is not None)
        if entry is None:
            return None
        return RoleResponse(data=entry.to_response_data())

    def list(self) -> RoleResponse:
        names = self._repo.list()
        self._logger.info("roles_listed", count=len(names))
        return RoleResponse.list_response(names)

    def delete(self, name: str) -> RoleResponse | None:
        if not name:
            return RoleResponse.error_response(MISSING_ROLE_NAME)
        self._repo.delete(name)
        self._logger.info("role_deleted", role_name=name)
        return None

    def _log_rejected(self, name: str, code: str, message: str) -> None:
        self._logger.info("role_rejected", role_name=name, code=code, error=message)


__all__ = ["MISSING_ROLE_NAME", "RoleRegistry", "RoleResponse"]
