"""
venafi-pki — control plane

Purpose
- Role management operations and the declared role field schema.
"""

from venafi_pki.control_plane.role_fields import (
    ROLE_FIELDS,
    FieldKind,
    FieldSpec,
    RoleFieldData,
    RoleFieldError,
    validate_role_name,
)
from venafi_pki.control_plane.role_registry import MISSING_ROLE_NAME, RoleRegistry, RoleResponse

__all__ = [
    "FieldKind",
    "FieldSpec",
    "MISSING_ROLE_NAME",
    "ROLE_FIELDS",
    "RoleFieldData",
    "RoleFieldError",
    "RoleRegistry",
    "RoleResponse",
    "validate_role_name",
]
