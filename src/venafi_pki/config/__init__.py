"""
venafi-pki config package public API.

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``venafi_pki.toml`` + ``VENAFI_PKI_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from venafi_pki.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    effective_config,
    env_name_for_path,
    load_config,
    normalize_paths,
)
from venafi_pki.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    VenafiPkiConfig,
    assert_valid_config,
    default_config,
    dump_redacted,
    merge_config,
    migration_guidance,
    redact_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "VenafiPkiConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "dump_redacted",
    "effective_config",
    "env_name_for_path",
    "load_config",
    "merge_config",
    "migration_guidance",
    "normalize_paths",
    "redact_config",
    "validate_config",
]
