"""Shared deterministic builders for persistence tests."""

from __future__ import annotations

from datetime import timedelta

from venafi_pki.domain.roles import RoleEntry


def make_role_entry(seed: int, **overrides: object) -> RoleEntry:
    values: dict[str, object] = {
        "zone": f"DevOps\\zone-{seed}",
        "fakemode": seed % 2 == 0,
        "apikey": "" if seed % 2 == 0 else f"apikey-{seed:04d}",
        "ttl": timedelta(seconds=60 * (seed % 10)),
        "max_ttl": timedelta(seconds=3_600),
        "store_by": ("", "serial", "cn")[seed % 3],
    }
    values.update(overrides)
    return RoleEntry(**values)  # type: ignore[arg-type]


__all__ = ["make_role_entry"]
