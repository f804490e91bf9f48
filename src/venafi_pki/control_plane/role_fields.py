"""
venafi-pki — role field schema

Purpose
- Declares every field accepted on role create/update (kind, default,
  required/deprecated markers, help text) and coerces caller-supplied values
  to the declared kinds.

Functional requirements
- Unknown fields, values of the wrong kind, and a missing ``zone`` are user
  errors (``RoleFieldError``).
- String input is accepted for every kind so that CLI ``key=value`` pairs work.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from venafi_pki.constants import (
    DEFAULT_CHAIN_OPTION,
    DEFAULT_KEY_BITS,
    DEFAULT_KEY_CURVE,
    DEFAULT_KEY_TYPE,
    DEFAULT_SERVER_TIMEOUT_SECONDS,
)

FieldValue = str | bool | int

ROLE_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"\w(([\w.-]+)?\w)?")

PATH_LIST_ROLES_HELP_SYN: Final[str] = "List the existing roles in this backend"
PATH_LIST_ROLES_HELP_DESC: Final[str] = "Roles will be listed by the role name."
PATH_ROLE_HELP_SYN: Final[str] = "Manage the roles that can be created with this backend."
PATH_ROLE_HELP_DESC: Final[str] = (
    "This path lets you manage the roles that can be created with this backend."
)

_TRUE_STRINGS: Final[frozenset[str]] = frozenset({"1", "t", "true", "y", "yes", "on"})
_FALSE_STRINGS: Final[frozenset[str]] = frozenset({"0", "f", "false", "n", "no", "off"})

_DURATION_UNITS: Final[dict[str, float]] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART: Final[re.Pattern[str]] = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class FieldKind(StrEnum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    DURATION_SECONDS = "duration_seconds"


class RoleFieldError(ValueError):
    """Caller-supplied role fields could not be accepted."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


@dataclass(frozen=True, slots=True)
class FieldSpec:
    name: str
    kind: FieldKind
    description: str
    default: FieldValue
    required: bool = False
    deprecated: bool = False


def _string(name: str, description: str, *, required: bool = False, default: str = "") -> FieldSpec:
    return FieldSpec(name, FieldKind.STRING, description, default, required=required)


def _flag(name: str, description: str, *, deprecated: bool = False) -> FieldSpec:
    return FieldSpec(name, FieldKind.BOOL, description, False, deprecated=deprecated)


ROLE_FIELDS: Final[tuple[FieldSpec, ...]] = (
    _string("tpp_url", "URL of Venafi Platform. Example: https://tpp.venafi.example/vedsdk"),
    _string(
        "cloud_url",
        "URL for Venafi Cloud. Set it only if you want to use non production Cloud",
    ),
    _string(
        "zone",
        "Name of Venafi Platform or Cloud policy.\n"
        "Example for Platform: testpolicy\\\\vault\n"
        "Example for Venafi Cloud: e33f3e40-4e7e-11ea-8da3-b3c196ebeb0b",
        required=True,
    ),
    _string("tpp_user", "web API user for Venafi Platform Example: admin"),
    _string("tpp_password", "Password for web API user Example: password"),
    _string(
        "trust_bundle_file",
        "Use to specify a PEM formatted file with certificates to be used as trust anchors "
        "when communicating with the remote server.\n"
        'Example:\n  trust_bundle_file = "/full/path/to/bundle.pem"',
    ),
    _string("apikey", "API key for Venafi Cloud. Example: 142231b7-cvb0-412e-886b-6aeght0bc93d"),
    _flag(
        "fakemode",
        "Set it to true to use fake CA instead of Cloud or Platform to issue certificates. "
        "Useful for testing.",
    ),
    _flag(
        "store_by_cn",
        "Set it to true to store certificates by CN in certs/ path",
        deprecated=True,
    ),
    _flag(
        "store_by_serial",
        "Set it to true to store certificates by unique serial number in certs/ path",
        deprecated=True,
    ),
    _string(
        "store_by",
        'The attribute by which certificates are stored in the backend.  "serial" (default) '
        'and "cn" are the only valid values.',
    ),
    _flag(
        "no_store",
        "If set, certificates issued/signed against this role will not be stored in the "
        "storage backend.",
    ),
    _flag(
        "service_generated_cert",
        "Use service generated CSR for Venafi Platform (ignored if Saas endpoint used)",
    ),
    _flag("store_pkey", "Set it to true to store certificates privates key in certificate fields"),
    _string(
        "chain_option",
        'Specify ordering certificates in chain. Root can be "first" or "last"',
        default=DEFAULT_CHAIN_OPTION,
    ),
    _string(
        "key_type",
        'The type of key to use; defaults to RSA. "rsa" and "ec" (ECDSA) are the only valid '
        "values.",
        default=DEFAULT_KEY_TYPE,
    ),
    FieldSpec(
        "key_bits",
        FieldKind.INT,
        "The number of bits to use. You will almost certainly want to change this if you "
        f"adjust the key_type. Default: {DEFAULT_KEY_BITS}",
        DEFAULT_KEY_BITS,
    ),
    _string(
        "key_curve",
        'Key curve for EC key type. Valid values are: "P256","P384","P521"',
        default=DEFAULT_KEY_CURVE,
    ),
    FieldSpec(
        "ttl",
        FieldKind.DURATION_SECONDS,
        "The lease duration if no specific lease duration is requested. The lease duration "
        "controls the expiration of certificates issued by this backend. Defaults to the "
        "value of max_ttl.",
        0,
    ),
    FieldSpec("max_ttl", FieldKind.DURATION_SECONDS, "The maximum allowed lease duration", 0),
    _flag(
        "generate_lease",
        "If set, certificates issued/signed against this role will have leases attached to "
        'them. Defaults to "false".',
    ),
    FieldSpec(
        "server_timeout",
        FieldKind.INT,
        "Timeout of waiting certificate",
        DEFAULT_SERVER_TIMEOUT_SECONDS,
    ),
)

ROLE_FIELDS_BY_NAME: Final[dict[str, FieldSpec]] = {spec.name: spec for spec in ROLE_FIELDS}


def validate_role_name(name: object) -> str:
    if not isinstance(name, str) or not name:
        raise RoleFieldError("name", "missing role name")
    if ROLE_NAME_PATTERN.fullmatch(name) is None:
        raise RoleFieldError("name", f"invalid role name {name!r}")
    return name


def parse_duration_seconds(value: object) -> int:
    """Parse integer seconds or a Go-style duration string (``"1h30m"``).

    Sub-second remainders are truncated.
    """

    if isinstance(value, bool):
        raise ValueError(f"expected duration, got {type(value).__name__}")
    if isinstance(value, int):
        seconds = value
    elif isinstance(value, str):
        seconds = _parse_duration_text(value.strip())
    else:
        raise ValueError(f"expected duration, got {type(value).__name__}")
    if seconds < 0:
        raise ValueError("duration must not be negative")
    return seconds


def _parse_duration_text(text: str) -> int:
    if not text:
        return 0
    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text.isdigit():
        return sign * int(text)

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text) or position == 0:
        raise ValueError(f"invalid duration {text!r}")
    try:
        return sign * int(total)
    except OverflowError as exc:
        raise ValueError(f"duration out of range {text!r}") from exc


def _coerce_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
    elif isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"expected boolean, got {value!r}")


def _coerce_int(value: object) -> int:
    if isinstance(value, bool):
        raise ValueError(f"expected integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            pass
    raise ValueError(f"expected integer, got {value!r}")


def _coerce_string(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    raise ValueError(f"expected string, got {type(value).__name__}")


def coerce_field(spec: FieldSpec, value: object) -> FieldValue:
    try:
        if spec.kind is FieldKind.BOOL:
            return _coerce_bool(value)
        if spec.kind is FieldKind.INT:
            return _coerce_int(value)
        if spec.kind is FieldKind.DURATION_SECONDS:
            return parse_duration_seconds(value)
        return _coerce_string(value)
    except ValueError as exc:
        raise RoleFieldError(spec.name, str(exc)) from exc


class RoleFieldData:
    """Caller-supplied role fields resolved against ``ROLE_FIELDS``."""

    __slots__ = ("_values",)

    def __init__(self, raw: Mapping[str, object]) -> None:
        unknown = sorted(key for key in raw if key not in ROLE_FIELDS_BY_NAME)
        if unknown:
            raise RoleFieldError(unknown[0], "unknown field")
        self._values: dict[str, FieldValue] = {
            key: coerce_field(ROLE_FIELDS_BY_NAME[key], value) for key, value in raw.items()
        }

    def get(self, name: str) -> FieldValue:
        spec = ROLE_FIELDS_BY_NAME.get(name)
        if spec is None:
            raise KeyError(name)
        return self._values.get(name, spec.default)

    def supplied(self, name: str) -> bool:
        return name in self._values

    def require(self) -> None:
        for spec in ROLE_FIELDS:
            if spec.required and not self.get(spec.name):
                raise RoleFieldError(spec.name, "missing required field")

    def deprecated_supplied(self) -> tuple[str, ...]:
        return tuple(
            spec.name for spec in ROLE_FIELDS if spec.deprecated and self.supplied(spec.name)
        )

    def resolved(self) -> dict[str, FieldValue]:
        """Every declared field with its supplied or default value."""

        return {spec.name: self.get(spec.name) for spec in ROLE_FIELDS}


__all__ = [
    "FieldKind",
    "FieldSpec",
    "FieldValue",
    "PATH_LIST_ROLES_HELP_DESC",
    "PATH_LIST_ROLES_HELP_SYN",
    "PATH_ROLE_HELP_DESC",
    "PATH_ROLE_HELP_SYN",
    "ROLE_FIELDS",
    "ROLE_FIELDS_BY_NAME",
    "ROLE_NAME_PATTERN",
    "RoleFieldData",
    "RoleFieldError",
    "coerce_field",
    "parse_duration_seconds",
    "validate_role_name",
]
