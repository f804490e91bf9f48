"""Command-line interface router for venafi-pki role management."""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from venafi_pki.config import (
    ConfigLoadError,
    ConfigValidationError,
    effective_config,
    load_config,
)
from venafi_pki.control_plane import ROLE_FIELDS, RoleRegistry
from venafi_pki.control_plane.role_fields import (
    PATH_LIST_ROLES_HELP_DESC,
    PATH_LIST_ROLES_HELP_SYN,
    PATH_ROLE_HELP_DESC,
    PATH_ROLE_HELP_SYN,
)
from venafi_pki.observability import correlation_scope, setup_logging, shutdown_logging
from venafi_pki.persistence import open_storage
from venafi_pki.ui.render import create_renderer

if TYPE_CHECKING:
    from venafi_pki.control_plane import RoleResponse


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="venafi-pki",
        description=(
            "venafi-pki: manage certificate-issuance roles.\n\n"
            "Common workflows:\n"
            "  venafi-pki roles write web zone=vault fakemode=true\n"
            "  venafi-pki roles read web\n"
            "  venafi-pki roles list\n"
            "  venafi-pki roles delete web\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./venafi_pki.toml if present).",
    )
    common.add_argument(
        "--storage-backend",
        choices=("memory", "sqlite"),
        default=None,
        help="Override [storage] backend.",
    )
    common.add_argument(
        "--storage-path",
        default=None,
        help="Override [storage] path for the sqlite backend.",
    )
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # roles ---------------------------------------------------------------
    roles_parser = subparsers.add_parser(
        "roles",
        help=PATH_ROLE_HELP_SYN,
        description=PATH_ROLE_HELP_DESC,
    )
    roles_sub = roles_parser.add_subparsers(dest="roles_command", required=True)

    list_parser = roles_sub.add_parser(
        "list",
        parents=[common],
        help=PATH_LIST_ROLES_HELP_SYN,
        description=PATH_LIST_ROLES_HELP_DESC,
    )
    list_parser.set_defaults(handler=_cmd_roles_list)

    read_parser = roles_sub.add_parser("read", parents=[common], help="Show one role")
    read_parser.add_argument("name", help="Role name")
    read_parser.set_defaults(handler=_cmd_roles_read)

    write_parser = roles_sub.add_parser(
        "write",
        parents=[common],
        help="Create or replace a role",
        description=(
            "Create or wholly replace a role from key=value fields.\n\n"
            "Examples:\n"
            "  venafi-pki roles write web zone=vault fakemode=true\n"
            "  venafi-pki roles write tpp zone='DevOps\\\\vault' tpp_url=https://tpp/vedsdk \\\n"
            "      tpp_user=admin tpp_password=secret ttl=1h max_ttl=72h\n\n"
            "Run `venafi-pki roles fields` for the accepted field names."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    write_parser.add_argument("name", help="Role name")
    write_parser.add_argument("fields", nargs="*", metavar="KEY=VALUE", help="Role fields")
    write_parser.set_defaults(handler=_cmd_roles_write)

    delete_parser = roles_sub.add_parser("delete", parents=[common], help="Delete a role")
    delete_parser.add_argument("name", help="Role name")
    delete_parser.set_defaults(handler=_cmd_roles_delete)

    fields_parser = roles_sub.add_parser(
        "fields", parents=[common], help="Describe the accepted role fields"
    )
    fields_parser.set_defaults(handler=_cmd_roles_fields)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
        description=(
            "Display the effective config after merging defaults, file, env, and flags.\n"
            "Sensitive values are redacted."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_roles_list(args: argparse.Namespace) -> int:
    with _registry_scope(args, operation="list") as registry:
        response = registry.list()

    if _flag(args, "json"):
        _emit_json({"command": "roles list", "keys": response.keys})
        return 0

    renderer = create_renderer()
    if not response.keys:
        renderer.text("No roles.")
        return 0
    for name in response.keys:
        renderer.text(name)
    return 0


def _cmd_roles_read(args: argparse.Namespace) -> int:
    name = _require_str(getattr(args, "name", None), "name")
    with _registry_scope(args, operation="read", role_name=name) as registry:
        response = registry.read(name)

    if response is None:
        raise CLIError(f"role not found: {name}", exit_code=1)
    _raise_on_error(response)

    if _flag(args, "json"):
        _emit_json({"command": "roles read", "name": name, "data": response.data})
        return 0

    renderer = create_renderer()
    renderer.table(
        ("Key", "Value"),
        [(key, _render_value(value)) for key, value in sorted(response.data.items())],
    )
    return 0


def _cmd_roles_write(args: argparse.Namespace) -> int:
    name = _require_str(getattr(args, "name", None), "name")
    fields = _parse_field_pairs(getattr(args, "fields", None) or [])
    with _registry_scope(args, operation="write", role_name=name) as registry:
        response = registry.create(name, fields)

    if response is not None:
        _raise_on_error(response)

    if _flag(args, "json"):
        _emit_json({"command": "roles write", "name": name, "ok": True})
        return 0

    create_renderer().text(f"Success! Data written to: role/{name}")
    return 0


def _cmd_roles_delete(args: argparse.Namespace) -> int:
    name = _require_str(getattr(args, "name", None), "name")
    with _registry_scope(args, operation="delete", role_name=name) as registry:
        response = registry.delete(name)

    if response is not None:
        _raise_on_error(response)

    if _flag(args, "json"):
        _emit_json({"command": "roles delete", "name": name, "ok": True})
        return 0

    create_renderer().text(f"Success! Data deleted (if it existed) at: role/{name}")
    return 0


def _cmd_roles_fields(args: argparse.Namespace) -> int:
    payload = [
        {
            "name": spec.name,
            "kind": spec.kind.value,
            "default": spec.default,
            "required": spec.required,
            "deprecated": spec.deprecated,
            "description": spec.description,
        }
        for spec in ROLE_FIELDS
    ]
    if _flag(args, "json"):
        _emit_json({"command": "roles fields", "fields": payload})
        return 0

    renderer = create_renderer()
    renderer.table(
        ("Field", "Kind", "Default", "Notes"),
        [
            (
                str(item["name"]),
                str(item["kind"]),
                _render_value(item["default"]),
                _field_notes(bool(item["required"]), bool(item["deprecated"])),
            )
            for item in payload
        ],
    )
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    redacted = effective_config(_load_effective_config(args))

    if _flag(args, "json"):
        _emit_json({"command": "config", "config": redacted})
        return 0

    create_renderer().text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _registry_scope(
    args: argparse.Namespace,
    *,
    operation: str,
    role_name: str | None = None,
) -> Iterator[RoleRegistry]:
    config = _load_effective_config(args)
    observability = config.get("observability")
    setup_logging(observability if isinstance(observability, Mapping) else None)

    storage_cfg = config["storage"]
    storage = open_storage(
        storage_cfg["backend"],
        path=storage_cfg["path"],
        busy_timeout_ms=storage_cfg["busy_timeout_ms"],
        busy_retry_limit=storage_cfg["busy_retry_limit"],
    )
    with correlation_scope(
        request_id=uuid.uuid4().hex, operation=operation, role_name=role_name or None
    ):
        yield RoleRegistry(storage)


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, object] = {}
    backend = _optional_str(getattr(args, "storage_backend", None))
    if backend is not None:
        overrides["storage.backend"] = backend
    storage_path = _optional_str(getattr(args, "storage_path", None))
    if storage_path is not None:
        overrides["storage.path"] = storage_path

    try:
        config_path = _optional_str(getattr(args, "config_path", None))
        return load_config(config_path, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _parse_field_pairs(pairs: Sequence[str]) -> dict[str, object]:
    fields: dict[str, object] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise CLIError(f"expected KEY=VALUE, got {pair!r}", exit_code=1)
        if key in fields:
            raise CLIError(f"field given more than once: {key}", exit_code=1)
        fields[key] = value
    return fields


def _raise_on_error(response: RoleResponse) -> None:
    if response.error is not None:
        raise CLIError(response.error, exit_code=1)


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _render_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value == "":
        return "n/a"
    return str(value)


def _field_notes(required: bool, deprecated: bool) -> str:
    notes = [label for label, on in (("required", required), ("deprecated", deprecated)) if on]
    return ", ".join(notes)


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _require_str(value: object, label: str) -> str:
    if not isinstance(value, str):
        raise CLIError(f"{label} is required", exit_code=1)
    return value


__all__ = ["CLIError", "build_parser", "run_cli"]
