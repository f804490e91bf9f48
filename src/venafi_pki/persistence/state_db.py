"""
venafi-pki — SQLite-backed key-value store

Purpose
- Durable implementation of the ``Storage`` contract: schema migrations,
  short-lived connections, and bounded busy retries.

Functional requirements
- Must support idempotent migration application.
- ``put`` is a blind overwrite; the last writer for a path wins.

Non-functional requirements
- Must avoid long-lived locks that block concurrent readers.
"""

from __future__ import annotations

import hashlib
import sqlite3
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from venafi_pki.constants import STATE_DB_SCHEMA_VERSION
from venafi_pki.persistence.storage import (
    StorageBusyError,
    StorageCorruptionError,
    StorageError,
    StorageMigrationError,
    immediate_children,
    validate_path,
)

SQLValue = str | int | float | bytes | None
SQLParams = Sequence[SQLValue]

DEFAULT_BUSY_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_BUSY_RETRY_LIMIT: Final[int] = 4
DEFAULT_BUSY_RETRY_BACKOFF_MS: Final[int] = 25

_SCHEMA_VERSIONS_TABLE_SQL: Final[str] = """
CREATE TABLE IF NOT EXISTS schema_versions (
    version INTEGER PRIMARY KEY CHECK (version > 0),
    name TEXT NOT NULL,
    checksum TEXT NOT NULL CHECK (length(checksum) = 64),
    applied_at TEXT NOT NULL
)
"""

_MIGRATION_0001_STATEMENTS: Final[tuple[str, ...]] = (
    _SCHEMA_VERSIONS_TABLE_SQL,
    """
    CREATE TABLE IF NOT EXISTS kv_entries (
        path TEXT PRIMARY KEY CHECK (length(path) > 0),
        value BLOB NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
)


@dataclass(frozen=True, slots=True)
class MigrationRecord:
    version: int
    name: str
    checksum: str
    applied_at: str


@dataclass(frozen=True, slots=True)
class _Migration:
    version: int
    name: str
    statements: tuple[str, ...]
    checksum: str


def _migration_checksum(version: int, name: str, statements: Sequence[str]) -> str:
    digest = hashlib.sha256()
    digest.update(f"{version}:{name}\n".encode())
    for statement in statements:
        normalized = "\n".join(line.rstrip() for line in statement.strip().splitlines())
        digest.update(normalized.encode("utf-8"))
        digest.update(b"\n--\n")
    return digest.hexdigest()


_MIGRATIONS: Final[tuple[_Migration, ...]] = (
    _Migration(
        version=1,
        name="kv_entries",
        statements=_MIGRATION_0001_STATEMENTS,
        checksum=_migration_checksum(1, "kv_entries", _MIGRATION_0001_STATEMENTS),
    ),
)

_SQLITE_BUSY_CODES: Final[frozenset[int]] = frozenset(
    code
    for code in (
        getattr(sqlite3, "SQLITE_BUSY", None),
        getattr(sqlite3, "SQLITE_BUSY_RECOVERY", None),
        getattr(sqlite3, "SQLITE_BUSY_SNAPSHOT", None),
        getattr(sqlite3, "SQLITE_LOCKED", None),
        getattr(sqlite3, "SQLITE_LOCKED_SHAREDCACHE", None),
    )
    if isinstance(code, int)
)

_SQLITE_CORRUPTION_CODES: Final[frozenset[int]] = frozenset(
    code
    for code in (
        getattr(sqlite3, "SQLITE_CORRUPT", None),
        getattr(sqlite3, "SQLITE_NOTADB", None),
    )
    if isinstance(code, int)
)

_BUSY_SUBSTRINGS: Final[tuple[str, ...]] = (
    "database is locked",
    "database table is locked",
    "database schema is locked",
)

_CORRUPTION_SUBSTRINGS: Final[tuple[str, ...]] = (
    "database disk image is malformed",
    "malformed database",
    "file is not a database",
)


class StateDB:
    """SQLite key-value store with deterministic migrations and retry helpers."""

    def __init__(
        self,
        path: str | Path,
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        busy_retry_limit: int = DEFAULT_BUSY_RETRY_LIMIT,
        busy_retry_backoff_ms: int = DEFAULT_BUSY_RETRY_BACKOFF_MS,
    ) -> None:
        if busy_timeout_ms < 0:
            raise ValueError("busy_timeout_ms must be >= 0")
        if busy_retry_limit < 0:
            raise ValueError("busy_retry_limit must be >= 0")
        if busy_retry_backoff_ms < 0:
            raise ValueError("busy_retry_backoff_ms must be >= 0")

        self._path = Path(path).expanduser()
        self._busy_timeout_ms = busy_timeout_ms
        self._busy_retry_limit = busy_retry_limit
        self._busy_retry_backoff_ms = busy_retry_backoff_ms
        self._migrated = False

    @property
    def path(self) -> Path:
        return self._path

    def connect(self) -> sqlite3.Connection:
        """Open a configured SQLite connection for the store."""

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"unable to create directory for {self._path}: {exc}") from exc
        try:
            conn = sqlite3.connect(
                self._path,
                timeout=self._busy_timeout_ms / 1000.0,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            self._raise_actionable_error(exc, operation="open database")
        conn.row_factory = sqlite3.Row
        try:
            self._configure_connection(conn)
        except sqlite3.Error as exc:
            conn.close()
            self._raise_actionable_error(exc, operation="configure connection")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self, conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        """Run statements inside an immediate transaction on ``conn``."""

        self._execute_with_retry(conn, "BEGIN IMMEDIATE", (), operation="begin transaction")
        try:
            yield conn
        except Exception:
            self._execute_with_retry(conn, "ROLLBACK", (), operation="rollback transaction")
            raise
        else:
            self._execute_with_retry(conn, "COMMIT", (), operation="commit transaction")

    def migrate(self) -> int:
        """Apply migrations idempotently and return current schema version."""

        with self.connection() as conn:
            self._execute_with_retry(
                conn,
                _SCHEMA_VERSIONS_TABLE_SQL,
                (),
                operation="create schema_versions table",
            )
            applied = self._load_applied_migrations(conn)
            current_version = max(applied, default=0)
            if current_version > STATE_DB_SCHEMA_VERSION:
                raise StorageMigrationError(
                    "database schema is newer than supported by this binary "
                    f"(db={current_version}, code={STATE_DB_SCHEMA_VERSION})"
                )

            for migration in _MIGRATIONS:
                if migration.version > STATE_DB_SCHEMA_VERSION:
                    continue

                record = applied.get(migration.version)
                if record is not None:
                    if record.checksum != migration.checksum:
                        raise StorageMigrationError(
                            "migration checksum mismatch for version "
                            f"{migration.version}: db={record.checksum} code={migration.checksum}"
                        )
                    continue

                with self.transaction(conn) as tx:
                    for statement in migration.statements:
                        self._execute_with_retry(
                            tx,
                            statement,
                            (),
                            operation=f"apply migration {migration.version}",
                        )
                    self._execute_with_retry(
                        tx,
                        """
                        INSERT INTO schema_versions (version, name, checksum, applied_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (migration.version, migration.name, migration.checksum, _utc_now_iso()),
                        operation=f"record migration {migration.version}",
                    )

            row = self._execute_with_retry(
                conn,
                "SELECT COALESCE(MAX(version), 0) AS version FROM schema_versions",
                (),
                operation="read schema version",
            ).fetchone()

        self._migrated = True
        return 0 if row is None else int(row["version"])

    def get(self, path: str) -> bytes | None:
        validate_path(path)
        self._ensure_migrated()
        with self.connection() as conn:
            row = self._execute_with_retry(
                conn,
                "SELECT value FROM kv_entries WHERE path = ?",
                (path,),
                operation=f"get {path}",
            ).fetchone()
        if row is None:
            return None
        value = row["value"]
        if not isinstance(value, bytes):
            raise StorageCorruptionError(f"kv_entries.value for {path!r} is not a blob")
        return value

    def put(self, path: str, value: bytes) -> None:
        validate_path(path)
        if not isinstance(value, bytes):
            raise TypeError(f"storage value must be bytes, got {type(value).__name__}")
        self._ensure_migrated()
        with self.connection() as conn, self.transaction(conn) as tx:
            self._execute_with_retry(
                tx,
                """
                INSERT INTO kv_entries (path, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (path, value, _utc_now_iso()),
                operation=f"put {path}",
            )

    def delete(self, path: str) -> None:
        validate_path(path)
        self._ensure_migrated()
        with self.connection() as conn, self.transaction(conn) as tx:
            self._execute_with_retry(
                tx,
                "DELETE FROM kv_entries WHERE path = ?",
                (path,),
                operation=f"delete {path}",
            )

    def list(self, prefix: str) -> list[str]:
        self._ensure_migrated()
        with self.connection() as conn:
            rows = self._execute_with_retry(
                conn,
                "SELECT path FROM kv_entries WHERE substr(path, 1, ?) = ? ORDER BY path ASC",
                (len(prefix), prefix),
                operation=f"list {prefix}",
            ).fetchall()
        return immediate_children((str(row["path"]) for row in rows), prefix)

    def integrity_check(self, *, max_errors: int = 100) -> tuple[str, ...]:
        """Return integrity-check errors; empty tuple means OK."""

        if max_errors <= 0:
            raise ValueError("max_errors must be > 0")
        with self.connection() as conn:
            rows = self._execute_with_retry(
                conn,
                f"PRAGMA integrity_check({max_errors})",
                (),
                operation="integrity check",
            ).fetchall()
        messages = tuple(str(row[0]) for row in rows)
        if messages == ("ok",):
            return ()
        return messages

    def _ensure_migrated(self) -> None:
        if not self._migrated:
            self.migrate()

    def _configure_connection(self, conn: sqlite3.Connection) -> None:
        conn.execute(f"PRAGMA busy_timeout={self._busy_timeout_ms}")
        journal_row = conn.execute("PRAGMA journal_mode=WAL").fetchone()
        if journal_row is None:
            raise StorageError("failed to configure journal_mode")
        journal_mode = str(journal_row[0]).lower()
        if journal_mode != "wal":
            raise StorageError(f"journal_mode must be WAL, got {journal_mode!r}")

    def _load_applied_migrations(self, conn: sqlite3.Connection) -> dict[int, MigrationRecord]:
        cursor = self._execute_with_retry(
            conn,
            """
            SELECT version, name, checksum, applied_at
            FROM schema_versions
            ORDER BY version ASC
            """,
            (),
            operation="load schema_versions",
        )
        out: dict[int, MigrationRecord] = {}
        for row in cursor.fetchall():
            if not isinstance(row["version"], int):
                raise StorageMigrationError("schema_versions.version must be integer")
            if not isinstance(row["checksum"], str):
                raise StorageMigrationError("schema_versions.checksum must be text")
            out[row["version"]] = MigrationRecord(
                version=row["version"],
                name=str(row["name"]),
                checksum=row["checksum"],
                applied_at=str(row["applied_at"]),
            )
        return out

    def _execute_with_retry(
        self,
        conn: sqlite3.Connection,
        sql: str,
        params: SQLParams,
        *,
        operation: str,
    ) -> sqlite3.Cursor:
        for attempt in range(self._busy_retry_limit + 1):
            try:
                return conn.execute(sql, tuple(params))
            except sqlite3.Error as exc:
                if self._is_busy_error(exc) and attempt < self._busy_retry_limit:
                    time.sleep((self._busy_retry_backoff_ms / 1000.0) * float(2**attempt))
                    continue
                self._raise_actionable_error(exc, operation=operation)
        raise StorageBusyError(f"{operation} exhausted retries unexpectedly")

    def _is_busy_error(self, exc: sqlite3.Error) -> bool:
        code = getattr(exc, "sqlite_errorcode", None)
        if isinstance(code, int) and code in _SQLITE_BUSY_CODES:
            return True
        message = str(exc).lower()
        return any(fragment in message for fragment in _BUSY_SUBSTRINGS)

    def _is_corruption_error(self, exc: sqlite3.Error) -> bool:
        code = getattr(exc, "sqlite_errorcode", None)
        if isinstance(code, int) and code in _SQLITE_CORRUPTION_CODES:
            return True
        message = str(exc).lower()
        return any(fragment in message for fragment in _CORRUPTION_SUBSTRINGS)

    def _raise_actionable_error(self, exc: sqlite3.Error, *, operation: str) -> None:
        if self._is_corruption_error(exc):
            raise StorageCorruptionError(
                f"{operation} failed for {self._path}: {exc}. "
                "Run `StateDB.integrity_check()` and restore from a backup if needed."
            ) from exc
        if self._is_busy_error(exc):
            raise StorageBusyError(
                f"{operation} hit SQLITE_BUSY for {self._path} after "
                f"{self._busy_retry_limit + 1} attempt(s): {exc}"
            ) from exc
        raise StorageError(f"{operation} failed for {self._path}: {exc}") from exc


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


__all__ = [
    "DEFAULT_BUSY_RETRY_BACKOFF_MS",
    "DEFAULT_BUSY_RETRY_LIMIT",
    "DEFAULT_BUSY_TIMEOUT_MS",
    "MigrationRecord",
    "SQLParams",
    "SQLValue",
    "StateDB",
]
