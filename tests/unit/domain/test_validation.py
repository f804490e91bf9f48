"""Role consistency rules: ordering, exact messages, and the store_by migration."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from venafi_pki.domain.roles import RoleEntry
from venafi_pki.domain.validation import (
    ERROR_TEXT_INVALID_MODE,
    ERROR_TEXT_NO_STORE_AND_STORE_BY_CN_OR_SERIAL_CONFLICT,
    ERROR_TEXT_NO_STORE_AND_STORE_BY_CONFLICT,
    ERROR_TEXT_STORE_BY_AND_STORE_BY_CN_OR_SERIAL_CONFLICT,
    ERROR_TEXT_TPP_AND_CLOUD_MIXED_CREDENTIALS,
    ERROR_TEXT_VALUE_MUST_BE_LESS,
    RoleValidationError,
    check_entry,
    migrate_store_by,
    validate_entry,
)


def _fake(**overrides: object) -> RoleEntry:
    return replace(RoleEntry(zone="vault", fakemode=True), **overrides)


def _rejection(entry: RoleEntry) -> RoleValidationError:
    with pytest.raises(RoleValidationError) as excinfo:
        validate_entry(entry)
    return excinfo.value


def test_messages_are_stable() -> None:
    assert ERROR_TEXT_INVALID_MODE == "Invalid mode. fakemode or apikey or tpp credentials required"
    assert ERROR_TEXT_VALUE_MUST_BE_LESS == '"ttl" value must be less than "max_ttl" value'
    assert ERROR_TEXT_TPP_AND_CLOUD_MIXED_CREDENTIALS == (
        "TPP credentials and Cloud API key can't be specified in one role"
    )
    assert ERROR_TEXT_STORE_BY_AND_STORE_BY_CN_OR_SERIAL_CONFLICT == (
        "Can't specify both story_by and store_by_cn or store_by_serial options '"
    )
    assert ERROR_TEXT_NO_STORE_AND_STORE_BY_CN_OR_SERIAL_CONFLICT == (
        "Can't specify both no_store and store_by_cn or store_by_serial options '"
    )
    assert ERROR_TEXT_NO_STORE_AND_STORE_BY_CONFLICT == (
        "Can't specify both no_store and store_by options '"
    )


@pytest.mark.parametrize(
    "entry",
    [
        RoleEntry(zone="vault", fakemode=True),
        RoleEntry(zone="vault", apikey="abc"),
        RoleEntry(zone="vault", tpp_url="https://tpp/vedsdk", tpp_user="admin", tpp_password="pw"),
    ],
    ids=["fakemode", "cloud", "tpp"],
)
def test_each_authority_mode_is_accepted(entry: RoleEntry) -> None:
    check_entry(entry)


@pytest.mark.parametrize(
    "entry",
    [
        RoleEntry(zone="vault"),
        RoleEntry(zone="vault", tpp_url="https://tpp/vedsdk", tpp_user="admin"),
        RoleEntry(zone="vault", tpp_user="admin", tpp_password="pw"),
    ],
    ids=["nothing", "tpp-without-password", "tpp-without-url"],
)
def test_missing_authority_is_invalid_mode(entry: RoleEntry) -> None:
    error = _rejection(entry)

    assert error.code == "invalid_mode"
    assert str(error) == ERROR_TEXT_INVALID_MODE


def test_ttl_may_equal_but_not_exceed_max_ttl() -> None:
    check_entry(_fake(ttl=timedelta(seconds=50), max_ttl=timedelta(seconds=50)))

    error = _rejection(_fake(ttl=timedelta(seconds=100), max_ttl=timedelta(seconds=50)))

    assert error.code == "ttl_exceeds_max_ttl"
    assert error.message == ERROR_TEXT_VALUE_MUST_BE_LESS


def test_zero_max_ttl_means_unbounded() -> None:
    check_entry(_fake(ttl=timedelta(days=365)))


@pytest.mark.parametrize(
    "overrides",
    [
        {"tpp_url": "https://tpp/vedsdk", "apikey": "abc"},
        {"tpp_user": "admin", "apikey": "abc"},
    ],
    ids=["url-and-apikey", "user-and-apikey"],
)
def test_tpp_and_cloud_credentials_are_exclusive(overrides: dict[str, object]) -> None:
    error = _rejection(replace(RoleEntry(zone="vault"), **overrides))

    assert error.code == "tpp_and_cloud_mixed_credentials"
    assert error.message == ERROR_TEXT_TPP_AND_CLOUD_MIXED_CREDENTIALS


@pytest.mark.parametrize(
    ("overrides", "code", "message"),
    [
        (
            {"store_by": "cn", "store_by_serial": True},
            "store_by_and_deprecated_flags_conflict",
            ERROR_TEXT_STORE_BY_AND_STORE_BY_CN_OR_SERIAL_CONFLICT,
        ),
        (
            {"store_by_cn": True, "no_store": True},
            "no_store_and_deprecated_flags_conflict",
            ERROR_TEXT_NO_STORE_AND_STORE_BY_CN_OR_SERIAL_CONFLICT,
        ),
        (
            {"store_by": "serial", "no_store": True},
            "no_store_and_store_by_conflict",
            ERROR_TEXT_NO_STORE_AND_STORE_BY_CONFLICT,
        ),
        (
            {"store_by": "bogus"},
            "invalid_store_by",
            "Option store_by can be serial or cn, not bogus",
        ),
    ],
)
def test_storage_selector_rules(overrides: dict[str, object], code: str, message: str) -> None:
    error = _rejection(_fake(**overrides))

    assert error.code == code
    assert error.message == message


def test_first_violation_wins() -> None:
    entry = RoleEntry(
        zone="vault",
        ttl=timedelta(seconds=100),
        max_ttl=timedelta(seconds=1),
        store_by="bogus",
        no_store=True,
    )

    assert _rejection(entry).code == "invalid_mode"
    assert _rejection(replace(entry, fakemode=True)).code == "ttl_exceeds_max_ttl"
    assert _rejection(replace(entry, fakemode=True, max_ttl=timedelta(0))).code == (
        "no_store_and_store_by_conflict"
    )


def test_check_entry_does_not_migrate() -> None:
    entry = _fake(store_by_serial=True)

    check_entry(entry)

    assert entry.store_by == ""


@pytest.mark.parametrize(
    ("store_by_serial", "store_by_cn", "expected"),
    [
        (True, False, "serial"),
        (False, True, "cn"),
        (True, True, "serial"),
        (False, False, ""),
    ],
)
def test_migration_maps_deprecated_flags(
    store_by_serial: bool, store_by_cn: bool, expected: str
) -> None:
    entry = validate_entry(_fake(store_by_serial=store_by_serial, store_by_cn=store_by_cn))

    assert entry.store_by == expected
    assert entry.store_by_serial is store_by_serial
    assert entry.store_by_cn is store_by_cn


def test_migration_leaves_explicit_store_by_alone() -> None:
    assert migrate_store_by(_fake(store_by="cn")).store_by == "cn"


_MODE = st.sampled_from(["fake", "cloud", "tpp", "none"])


@given(
    mode=_MODE,
    store_by=st.sampled_from(["", "serial", "cn", "bogus"]),
    store_by_cn=st.booleans(),
    store_by_serial=st.booleans(),
    no_store=st.booleans(),
    ttl=st.integers(min_value=0, max_value=1000),
    max_ttl=st.integers(min_value=0, max_value=1000),
)
@settings(max_examples=200, derandomize=True, deadline=None)
def test_property_accepted_entries_satisfy_every_rule(
    mode: str,
    store_by: str,
    store_by_cn: bool,
    store_by_serial: bool,
    no_store: bool,
    ttl: int,
    max_ttl: int,
) -> None:
    entry = RoleEntry(
        zone="vault",
        fakemode=mode == "fake",
        apikey="abc" if mode == "cloud" else "",
        tpp_url="https://tpp/vedsdk" if mode == "tpp" else "",
        tpp_user="admin" if mode == "tpp" else "",
        tpp_password="pw" if mode == "tpp" else "",
        store_by=store_by,
        store_by_cn=store_by_cn,
        store_by_serial=store_by_serial,
        no_store=no_store,
        ttl=timedelta(seconds=ttl),
        max_ttl=timedelta(seconds=max_ttl),
    )
    deprecated = store_by_cn or store_by_serial

    try:
        accepted = validate_entry(entry)
    except RoleValidationError:
        assert (
            mode == "none"
            or (max_ttl > 0 and ttl > max_ttl)
            or (deprecated and (store_by != "" or no_store))
            or (store_by != "" and no_store)
            or store_by == "bogus"
        )
        return

    assert mode != "none"
    assert max_ttl == 0 or ttl <= max_ttl
    assert not (no_store and (deprecated or store_by))
    if store_by_serial:
        assert accepted.store_by == "serial"
    elif store_by_cn:
        assert accepted.store_by == "cn"
    else:
        assert accepted.store_by == store_by
