"""Stable constants shared across the backend layers."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Storage layout.
ROLE_STORAGE_PREFIX: Final[str] = "role/"

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
STATE_DB_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the config file unless overridden).
STATE_DIR: Final[PurePosixPath] = PurePosixPath("state")
DEFAULT_STATE_DB_PATH: Final[PurePosixPath] = STATE_DIR / "venafi_pki.sqlite"

# Role issuance defaults.
DEFAULT_CHAIN_OPTION: Final[str] = "last"
DEFAULT_KEY_TYPE: Final[str] = "rsa"
DEFAULT_KEY_BITS: Final[int] = 2048
DEFAULT_KEY_CURVE: Final[str] = "P256"
DEFAULT_SERVER_TIMEOUT_SECONDS: Final[int] = 180

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CHAIN_OPTION",
    "DEFAULT_KEY_BITS",
    "DEFAULT_KEY_CURVE",
    "DEFAULT_KEY_TYPE",
    "DEFAULT_SERVER_TIMEOUT_SECONDS",
    "DEFAULT_STATE_DB_PATH",
    "ROLE_STORAGE_PREFIX",
    "STATE_DB_SCHEMA_VERSION",
    "STATE_DIR",
]
