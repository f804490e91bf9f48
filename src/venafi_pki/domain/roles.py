"""Role entry dataclass with canonical serialization and a redacted caller view."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Final, NoReturn

from venafi_pki.constants import (
    DEFAULT_CHAIN_OPTION,
    DEFAULT_KEY_BITS,
    DEFAULT_KEY_CURVE,
    DEFAULT_KEY_TYPE,
    DEFAULT_SERVER_TIMEOUT_SECONDS,
)

if TYPE_CHECKING:
    from typing import Self

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_MAX_TEXT = 8192


class StoreBy(StrEnum):
    SERIAL = "serial"
    CN = "cn"


class RoleDecodeError(RuntimeError):
    """Raised when a persisted role record cannot be decoded."""


# Attribute name -> persisted JSON key. The live TTLs moved to ``*_duration``
# keys; ``ttl``/``max_ttl`` still hold the legacy strings of older records.
_JSON_KEYS: Final[dict[str, str]] = {
    "tpp_url": "tpp_url",
    "cloud_url": "cloud_url",
    "zone": "zone",
    "tpp_password": "tpp_password",
    "apikey": "apikey",
    "tpp_user": "tpp_user",
    "trust_bundle_file": "trust_bundle_file",
    "fakemode": "fakemode",
    "chain_option": "chain_option",
    "store_by_cn": "store_by_cn",
    "store_by_serial": "store_by_serial",
    "store_by": "store_by",
    "no_store": "no_store",
    "service_generated_cert": "service_generated_cert",
    "store_pkey": "store_pkey",
    "key_type": "key_type",
    "key_bits": "key_bits",
    "key_curve": "key_curve",
    "lease_max": "lease_max",
    "lease": "lease",
    "ttl": "ttl_duration",
    "max_ttl": "max_ttl_duration",
    "generate_lease": "generate_lease",
    "deprecated_max_ttl": "max_ttl",
    "deprecated_ttl": "ttl",
    "server_timeout": "server_timeout",
}

# Fields a caller may set on create/update, in display order.
CONFIGURABLE_FIELDS: Final[tuple[str, ...]] = (
    "tpp_url",
    "cloud_url",
    "zone",
    "tpp_user",
    "tpp_password",
    "apikey",
    "trust_bundle_file",
    "fakemode",
    "store_by_cn",
    "store_by_serial",
    "store_by",
    "no_store",
    "service_generated_cert",
    "store_pkey",
    "chain_option",
    "key_type",
    "key_bits",
    "key_curve",
    "ttl",
    "max_ttl",
    "generate_lease",
    "server_timeout",
)

SECRET_FIELDS: Final[frozenset[str]] = frozenset({"tpp_password", "apikey"})

_DURATION_FIELDS: Final[frozenset[str]] = frozenset({"ttl", "max_ttl", "server_timeout"})
_OMIT_WHEN_FALSE: Final[frozenset[str]] = frozenset({"generate_lease"})


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if len(value) > _MAX_TEXT:
        _fail(path, f"must be <= {_MAX_TEXT} characters")
    return value


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_duration(value: object, path: str) -> timedelta:
    if isinstance(value, timedelta):
        parsed = value
    elif isinstance(value, int) and not isinstance(value, bool):
        try:
            parsed = timedelta(seconds=value)
        except OverflowError:
            _fail(path, "duration out of range")
    else:
        _fail(path, f"expected duration or integer seconds, got {type(value).__name__}")
    if parsed < timedelta(0):
        _fail(path, "must not be negative")
    if parsed.microseconds:
        _fail(path, "must be a whole number of seconds")
    return parsed


def _duration_seconds(value: timedelta) -> int:
    return int(value.total_seconds())


def _canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass(slots=True)
class RoleEntry:
    """Configuration of one role: authority, credentials, issuance and storage policy."""

    tpp_url: str = ""
    cloud_url: str = ""
    zone: str = ""
    tpp_password: str = ""
    apikey: str = ""
    tpp_user: str = ""
    trust_bundle_file: str = ""
    fakemode: bool = False
    chain_option: str = DEFAULT_CHAIN_OPTION
    store_by_cn: bool = False
    store_by_serial: bool = False
    store_by: str = ""
    no_store: bool = False
    service_generated_cert: bool = False
    store_pkey: bool = False
    key_type: str = DEFAULT_KEY_TYPE
    key_bits: int = DEFAULT_KEY_BITS
    key_curve: str = DEFAULT_KEY_CURVE
    lease_max: str = ""
    lease: str = ""
    ttl: timedelta = timedelta(0)
    max_ttl: timedelta = timedelta(0)
    generate_lease: bool = False
    deprecated_max_ttl: str = ""
    deprecated_ttl: str = ""
    server_timeout: timedelta = timedelta(seconds=DEFAULT_SERVER_TIMEOUT_SECONDS)

    def __post_init__(self) -> None:
        for item in fields(self):
            path = f"RoleEntry.{item.name}"
            value = getattr(self, item.name)
            if item.name in _DURATION_FIELDS:
                setattr(self, item.name, _as_duration(value, path))
            elif item.name == "key_bits":
                self.key_bits = _as_int(value, path, minimum=0)
            elif isinstance(item.default, bool):
                setattr(self, item.name, _as_bool(value, path))
            else:
                setattr(self, item.name, _as_str(value, path))

    @classmethod
    def from_fields(cls, values: Mapping[str, object]) -> Self:
        """Assemble an entry from caller-supplied values keyed by field name.

        Duration fields accept integer seconds. No validation of the role
        invariants happens here; see ``validate_entry``.
        """

        unknown = sorted(key for key in values if key not in CONFIGURABLE_FIELDS)
        if unknown:
            raise ValueError(f"RoleEntry: unexpected fields: {unknown}")
        return cls(**{key: values[key] for key in CONFIGURABLE_FIELDS if key in values})

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {}
        for attr, key in _JSON_KEYS.items():
            value = getattr(self, attr)
            if attr in _OMIT_WHEN_FALSE and not value:
                continue
            if isinstance(value, timedelta):
                out[key] = _duration_seconds(value)
            else:
                out[key] = value
        return out

    def to_json(self) -> str:
        return _canonical_json(self.to_dict())

    def to_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Self:
        if not isinstance(data, Mapping):
            raise RoleDecodeError(f"role record must be an object, got {type(data).__name__}")
        kwargs = {attr: data[key] for attr, key in _JSON_KEYS.items() if key in data}
        try:
            return cls(**kwargs)
        except ValueError as exc:
            raise RoleDecodeError(f"invalid role record: {exc}") from exc

    @classmethod
    def from_json(cls, raw: str) -> Self:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RoleDecodeError(f"invalid role record JSON: {exc}") from exc
        return cls.from_dict(parsed)

    @classmethod
    def from_bytes(cls, raw: bytes) -> Self:
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RoleDecodeError(f"role record is not UTF-8: {exc}") from exc
        return cls.from_json(text)

    def to_response_data(self) -> dict[str, JSONValue]:
        """Caller-facing view: credentials are never returned."""

        out: dict[str, JSONValue] = {}
        for name in CONFIGURABLE_FIELDS:
            if name in SECRET_FIELDS:
                continue
            value = getattr(self, name)
            out[name] = _duration_seconds(value) if isinstance(value, timedelta) else value
        return out


__all__ = [
    "CONFIGURABLE_FIELDS",
    "JSONValue",
    "RoleDecodeError",
    "RoleEntry",
    "SECRET_FIELDS",
    "StoreBy",
]
