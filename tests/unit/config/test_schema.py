"""
venafi-pki — unit tests for config schema validation

Purpose
- Validate strict config schema behavior, structured errors, and redaction.

What this test file should cover
- Built-in defaults validate successfully.
- Unknown keys and invalid types are rejected with actionable paths.
- Credentials embedded in runtime config are rejected.
- Redaction is recursive and non-destructive.
"""

from __future__ import annotations

from venafi_pki.config.schema import (
    ConfigSchemaVersion,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    dump_redacted,
    merge_config,
    migration_guidance,
    validate_config,
)


def _paths(result_issues: tuple[object, ...]) -> list[str]:
    return [str(getattr(item, "path", "")) for item in result_issues]


def test_default_config_validates_successfully() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.config is not None
    assert result.config["storage"]["backend"] == "sqlite"
    assert result.config["observability"]["redact_secrets"] is True
    assert "log_file" not in result.config["observability"]


def test_default_config_is_a_fresh_copy() -> None:
    first = default_config()
    first["storage"]["backend"] = "memory"

    assert default_config()["storage"]["backend"] == "sqlite"


def test_unknown_key_rejection_is_explicit() -> None:
    config = merge_config(default_config(), {"storage": {"replicas": 3}, "extra": {}})

    result = validate_config(config)

    assert not result.is_valid
    messages = {item.path: item.message for item in result.issues}
    assert messages["storage.replicas"] == "unknown field"
    assert messages["extra"] == "unknown field"


def test_type_validation_reports_structured_paths() -> None:
    config = merge_config(
        default_config(),
        {
            "storage": {"busy_timeout_ms": "fast", "backend": "etcd"},
            "observability": {"log_to_stderr": "yes", "log_level": "TRACE"},
        },
    )

    result = validate_config(config)

    assert _paths(result.issues) == [
        "observability.log_level",
        "observability.log_to_stderr",
        "storage.backend",
        "storage.busy_timeout_ms",
    ]
    by_path = {item.path: item.message for item in result.issues}
    assert by_path["storage.backend"] == "invalid value 'etcd'; expected one of: memory, sqlite"
    assert by_path["storage.busy_timeout_ms"] == "expected integer, got str"


def test_range_violation_reports_exact_path() -> None:
    config = merge_config(default_config(), {"storage": {"busy_retry_limit": -1}})

    result = validate_config(config)

    assert [(item.path, item.message) for item in result.issues] == [
        ("storage.busy_retry_limit", "must be >= 0"),
    ]


def test_missing_sections_and_keys_are_reported() -> None:
    result = validate_config({"meta": {"schema_version": ConfigSchemaVersion}, "storage": {}})

    paths = _paths(result.issues)
    assert "observability" in paths
    assert "storage.backend" in paths
    assert "storage.path" in paths


def test_schema_version_mismatch_includes_guidance() -> None:
    config = merge_config(default_config(), {"meta": {"schema_version": ConfigSchemaVersion + 1}})

    result = validate_config(config)

    assert [item.message for item in result.issues] == [
        migration_guidance(ConfigSchemaVersion + 1)
    ]
    assert "newer than supported" in result.issues[0].message
    assert migration_guidance(ConfigSchemaVersion) == "schema version is current"


def test_embedded_credentials_are_rejected() -> None:
    config = merge_config(
        default_config(),
        {"storage": {"tpp_password": "pw"}, "observability": {"apiKey": "abc"}},
    )

    result = validate_config(config)

    messages = {item.path: item.message for item in result.issues}
    expected = "embedded secret values are forbidden; role credentials belong in role entries"
    assert messages["storage.tpp_password"] == expected
    assert messages["observability.apiKey"] == expected


def test_assert_valid_config_raises_with_rendered_issues() -> None:
    config = merge_config(default_config(), {"storage": {"backend": "etcd"}})

    try:
        assert_valid_config(config)
    except ConfigValidationError as exc:
        assert "storage.backend" in str(exc)
        assert exc.issues[0].path == "storage.backend"
    else:
        raise AssertionError("expected ConfigValidationError")


def test_non_mapping_root_is_rejected() -> None:
    result = validate_config(["not", "a", "mapping"])

    assert result.config is None
    assert _paths(result.issues) == ["<root>"]


def test_merge_config_is_deep_and_non_destructive() -> None:
    base = default_config()
    merged = merge_config(base, {"storage": {"backend": "memory"}})

    assert merged["storage"]["backend"] == "memory"
    assert merged["storage"]["path"] == base["storage"]["path"]
    assert base["storage"]["backend"] == "sqlite"


def test_dump_redacted_is_recursive_and_preserves_shape() -> None:
    payload = {
        "observability": {"redact_secrets": True, "log_level": "INFO"},
        "nested": {"client_secret": "s3cr3t", "items": [{"access_token": "tok"}, {"name": "ok"}]},
    }

    redacted = dump_redacted(payload)

    assert redacted["observability"] == {"log_level": "INFO", "redact_secrets": True}
    assert redacted["nested"]["client_secret"] == "<redacted>"
    assert redacted["nested"]["items"] == [{"access_token": "<redacted>"}, {"name": "ok"}]
    assert payload["nested"]["client_secret"] == "s3cr3t"
    assert dump_redacted("not a mapping") == {}
