"""Role registry over the SQLite store: persistence, races, and legacy records."""

from __future__ import annotations

import json
import threading
from typing import TYPE_CHECKING

import pytest

from venafi_pki.control_plane import RoleRegistry
from venafi_pki.persistence import StateDB, open_storage

if TYPE_CHECKING:
    from pathlib import Path


class _QuietLogger:
    def info(self, event: str, **kwargs: object) -> None:
        del event, kwargs


def _registry(path: Path) -> RoleRegistry:
    return RoleRegistry(open_storage("sqlite", path=path), logger=_QuietLogger())


@pytest.mark.integration
def test_roles_survive_a_new_registry_instance(tmp_path: Path) -> None:
    db_path = tmp_path / "state" / "roles.sqlite"
    first = _registry(db_path)
    for name in ("web", "api", "batch"):
        assert first.create(name, {"zone": "vault", "fakemode": True}) is None
    first.delete("api")

    second = _registry(db_path)

    assert second.list().keys == ["batch", "web"]
    response = second.read("web")
    assert response is not None and response.data["fakemode"] is True


@pytest.mark.integration
def test_concurrent_creates_for_one_name_leave_a_single_valid_record(tmp_path: Path) -> None:
    db_path = tmp_path / "state" / "roles.sqlite"
    _registry(db_path).list()
    errors: list[str] = []

    def writer(worker: int) -> None:
        registry = _registry(db_path)
        for index in range(10):
            response = registry.create(
                "shared", {"zone": f"zone-{worker}-{index}", "fakemode": True}
            )
            if response is not None:
                errors.append(str(response.error))

    threads = [threading.Thread(target=writer, args=(worker,)) for worker in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30.0)

    assert not errors
    registry = _registry(db_path)
    assert registry.list().keys == ["shared"]
    response = registry.read("shared")
    assert response is not None
    assert str(response.data["zone"]).startswith("zone-")


@pytest.mark.integration
def test_records_from_older_versions_are_readable(tmp_path: Path) -> None:
    db_path = tmp_path / "state" / "roles.sqlite"
    legacy = {
        "zone": "legacy\\zone",
        "fakemode": True,
        "store_by_cn": True,
        "lease": "1h",
        "lease_max": "24h",
    }
    StateDB(db_path).put("role/legacy", json.dumps(legacy).encode("utf-8"))

    response = _registry(db_path).read("legacy")

    assert response is not None
    assert response.data["zone"] == "legacy\\zone"
    assert response.data["store_by_cn"] is True
    assert response.data["store_by"] == ""
    assert response.data["server_timeout"] == 180
    assert "lease" not in response.data


@pytest.mark.integration
def test_update_migrates_deprecated_flags_on_rewrite(tmp_path: Path) -> None:
    db_path = tmp_path / "state" / "roles.sqlite"
    registry = _registry(db_path)

    registry.create("web", {"zone": "vault", "fakemode": True, "store_by_cn": True})
    registry.create("web", {"zone": "vault", "fakemode": True, "store_by_serial": True})

    stored = json.loads((StateDB(db_path).get("role/web") or b"{}").decode("utf-8"))
    assert stored["store_by"] == "serial"
    assert stored["store_by_serial"] is True
    assert stored["store_by_cn"] is False
