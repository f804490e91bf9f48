"""Ordered role-entry consistency checks and the deprecated storage-flag migration.

The checks run in a fixed order and stop at the first violation, so a caller
only ever sees one error per request. Messages are part of the public
contract and are kept byte-for-byte stable.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from venafi_pki.domain.roles import RoleEntry, StoreBy

ERROR_TEXT_INVALID_MODE: Final[str] = (
    "Invalid mode. fakemode or apikey or tpp credentials required"
)
ERROR_TEXT_VALUE_MUST_BE_LESS: Final[str] = '"ttl" value must be less than "max_ttl" value'
ERROR_TEXT_TPP_AND_CLOUD_MIXED_CREDENTIALS: Final[str] = (
    "TPP credentials and Cloud API key can't be specified in one role"
)
ERROR_TEXT_STORE_BY_AND_STORE_BY_CN_OR_SERIAL_CONFLICT: Final[str] = (
    "Can't specify both story_by and store_by_cn or store_by_serial options '"
)
ERROR_TEXT_NO_STORE_AND_STORE_BY_CN_OR_SERIAL_CONFLICT: Final[str] = (
    "Can't specify both no_store and store_by_cn or store_by_serial options '"
)
ERROR_TEXT_NO_STORE_AND_STORE_BY_CONFLICT: Final[str] = (
    "Can't specify both no_store and store_by options '"
)
ERROR_TEXT_STORE_BY_WRONG_OPTION: Final[str] = "Option store_by can be {0} or {1}, not {2}"


class RoleValidationError(ValueError):
    """A proposed role violates one of the consistency rules."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True, slots=True)
class _Check:
    code: str
    violated: Callable[[RoleEntry], bool]
    message: Callable[[RoleEntry], str]


def _missing_authority(entry: RoleEntry) -> bool:
    has_tpp_triple = bool(entry.tpp_url and entry.tpp_user and entry.tpp_password)
    return not entry.fakemode and not entry.apikey and not has_tpp_triple


def _ttl_exceeds_max(entry: RoleEntry) -> bool:
    return entry.max_ttl.total_seconds() > 0 and entry.ttl > entry.max_ttl


def _uses_deprecated_store_flags(entry: RoleEntry) -> bool:
    return entry.store_by_cn or entry.store_by_serial


def _store_by_is_unknown(entry: RoleEntry) -> bool:
    return entry.store_by != "" and entry.store_by not in (StoreBy.SERIAL, StoreBy.CN)


def _static(message: str) -> Callable[[RoleEntry], str]:
    return lambda _entry: message


_CHECKS: Final[tuple[_Check, ...]] = (
    _Check("invalid_mode", _missing_authority, _static(ERROR_TEXT_INVALID_MODE)),
    _Check("ttl_exceeds_max_ttl", _ttl_exceeds_max, _static(ERROR_TEXT_VALUE_MUST_BE_LESS)),
    _Check(
        "tpp_and_cloud_mixed_credentials",
        lambda entry: bool(entry.tpp_url and entry.apikey),
        _static(ERROR_TEXT_TPP_AND_CLOUD_MIXED_CREDENTIALS),
    ),
    _Check(
        "tpp_and_cloud_mixed_credentials",
        lambda entry: bool(entry.tpp_user and entry.apikey),
        _static(ERROR_TEXT_TPP_AND_CLOUD_MIXED_CREDENTIALS),
    ),
    _Check(
        "store_by_and_deprecated_flags_conflict",
        lambda entry: _uses_deprecated_store_flags(entry) and entry.store_by != "",
        _static(ERROR_TEXT_STORE_BY_AND_STORE_BY_CN_OR_SERIAL_CONFLICT),
    ),
    _Check(
        "no_store_and_deprecated_flags_conflict",
        lambda entry: _uses_deprecated_store_flags(entry) and entry.no_store,
        _static(ERROR_TEXT_NO_STORE_AND_STORE_BY_CN_OR_SERIAL_CONFLICT),
    ),
    _Check(
        "no_store_and_store_by_conflict",
        lambda entry: entry.store_by != "" and entry.no_store,
        _static(ERROR_TEXT_NO_STORE_AND_STORE_BY_CONFLICT),
    ),
    _Check(
        "invalid_store_by",
        _store_by_is_unknown,
        lambda entry: ERROR_TEXT_STORE_BY_WRONG_OPTION.format(
            StoreBy.SERIAL.value, StoreBy.CN.value, entry.store_by
        ),
    ),
)


def check_entry(entry: RoleEntry) -> None:
    """Raise ``RoleValidationError`` for the first violated rule, if any."""

    for check in _CHECKS:
        if check.violated(entry):
            raise RoleValidationError(check.code, check.message(entry))


def migrate_store_by(entry: RoleEntry) -> RoleEntry:
    """Fold the deprecated store_by_serial/store_by_cn flags into ``store_by``.

    Serial wins when both flags are set. The flags themselves are left in
    place so reads still show what the caller originally asked for.
    """

    if entry.store_by_serial:
        entry.store_by = StoreBy.SERIAL.value
    elif entry.store_by_cn:
        entry.store_by = StoreBy.CN.value
    return entry


def validate_entry(entry: RoleEntry) -> RoleEntry:
    """Check ``entry`` and, when it passes, apply the storage-flag migration."""

    check_entry(entry)
    return migrate_store_by(entry)


__all__ = [
    "ERROR_TEXT_INVALID_MODE",
    "ERROR_TEXT_NO_STORE_AND_STORE_BY_CN_OR_SERIAL_CONFLICT",
    "ERROR_TEXT_NO_STORE_AND_STORE_BY_CONFLICT",
    "ERROR_TEXT_STORE_BY_AND_STORE_BY_CN_OR_SERIAL_CONFLICT",
    "ERROR_TEXT_STORE_BY_WRONG_OPTION",
    "ERROR_TEXT_TPP_AND_CLOUD_MIXED_CREDENTIALS",
    "ERROR_TEXT_VALUE_MUST_BE_LESS",
    "RoleValidationError",
    "check_entry",
    "migrate_store_by",
    "validate_entry",
]
