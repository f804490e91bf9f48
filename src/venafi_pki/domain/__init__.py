"""
venafi-pki — domain layer

Purpose
- Role entry model, its serialization contract, and the role consistency rules.

Functional requirements
- Domain objects must be serializable and free of I/O side effects.
"""

from venafi_pki.domain.roles import (
    CONFIGURABLE_FIELDS,
    SECRET_FIELDS,
    RoleDecodeError,
    RoleEntry,
    StoreBy,
)
from venafi_pki.domain.validation import (
    RoleValidationError,
    check_entry,
    migrate_store_by,
    validate_entry,
)

__all__ = [
    "CONFIGURABLE_FIELDS",
    "RoleDecodeError",
    "RoleEntry",
    "RoleValidationError",
    "SECRET_FIELDS",
    "StoreBy",
    "check_entry",
    "migrate_store_by",
    "validate_entry",
]
