"""
venafi-pki — unit tests for observability logging

Purpose
- Validate structured JSON logging with redaction, correlation metadata, and queueing.

What this test file should cover
- JSON line validity and redaction guarantees.
- Correlation field propagation.
- structlog events from the role registry reaching the same sinks.
- Queue drain/shutdown behavior.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import threading
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from venafi_pki.control_plane import RoleRegistry
from venafi_pki.observability.logging import (
    LoggingConfig,
    correlation_scope,
    default_log_redactor,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)
from venafi_pki.persistence import InMemoryStorage

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"venafi_pki.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_json_logging_redacts_secrets_and_preserves_correlation_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            logger_name=logger_name,
            log_file=tmp_path / "logs" / "venafi.jsonl",
            log_to_stderr=False,
        )
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(request_id="req-123", operation="write"):
        logger.info(
            "payload token=tok-FAKE and apikey=142231b7-FAKE",
            extra={"nested": {"tpp_password": "hunter2", "safe": "ok"}},
        )

    shutdown_logging(handle)

    assert handle.log_path is not None and handle.log_path.exists()
    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == 1
    first = parsed[0]
    assert first["request_id"] == "req-123"
    assert first["operation"] == "write"
    assert first["fields"] == {"nested": {"tpp_password": "***REDACTED***", "safe": "ok"}}

    line = handle.log_path.read_text(encoding="utf-8")
    assert "tok-FAKE" not in line
    assert "142231b7-FAKE" not in line
    assert "hunter2" not in line


def test_registry_events_flow_through_structlog(tmp_path: Path) -> None:
    log_file = tmp_path / "venafi.jsonl"
    handle = setup_logging({"log_level": "INFO", "log_file": str(log_file)})
    registry = RoleRegistry(InMemoryStorage())

    with correlation_scope(request_id="req-9", operation="write", role_name="web"):
        registry.create("web", {"zone": "vault", "fakemode": True, "tpp_password": "pw"})
        registry.create("bad", {"zone": "vault", "store_by": "bogus", "fakemode": True})

    shutdown_logging(handle)

    events = _read_json_lines(log_file)
    assert [event["message"] for event in events] == ["role_created", "role_rejected"]
    created, rejected = events
    assert created["logger"] == "venafi_pki.control_plane.role_registry"
    assert created["request_id"] == "req-9"
    assert created["role_name"] == "web"
    assert created["fields"] == {"deprecated_fields": [], "fakemode": True, "store_by": ""}
    assert rejected["role_name"] == "bad"
    assert rejected["fields"]["code"] == "invalid_store_by"
    assert "tpp_password" not in log_file.read_text(encoding="utf-8")


def test_setup_logging_respects_level(tmp_path: Path) -> None:
    log_file = tmp_path / "venafi.jsonl"
    handle = setup_logging(
        {"log_level": "WARNING", "log_file": str(log_file)}, logger_name=_logger_name()
    )

    handle.logger.info("quiet")
    handle.logger.warning("loud")
    shutdown_logging(handle)

    assert [event["message"] for event in _read_json_lines(log_file)] == ["loud"]


def test_text_format_renders_key_value_pairs(tmp_path: Path) -> None:
    log_file = tmp_path / "venafi.log"
    handle = setup_logging(
        {"log_format": "text", "log_file": str(log_file)}, logger_name=_logger_name()
    )

    with correlation_scope(role_name="web"):
        handle.logger.info("role_read", extra={"found": True})
    shutdown_logging(handle)

    line = log_file.read_text(encoding="utf-8").strip()
    assert " INFO " in line
    assert line.endswith("role_read role_name=web found=true")


def test_disabling_redaction_keeps_values(tmp_path: Path) -> None:
    log_file = tmp_path / "venafi.jsonl"
    handle = setup_logging(
        {"log_file": str(log_file), "redact_secrets": False}, logger_name=_logger_name()
    )

    handle.logger.info("token=visible")
    shutdown_logging(handle)

    assert _read_json_lines(log_file)[0]["message"] == "token=visible"


def test_without_sinks_logging_is_silent(capsys: pytest.CaptureFixture[str]) -> None:
    handle = setup_logging({}, logger_name=_logger_name())

    handle.logger.info("dropped on the floor")
    shutdown_logging(handle)

    assert handle.log_path is None
    assert capsys.readouterr().err == ""
    assert get_active_logging_handle() is None


def test_correlation_scope_nests_and_resets() -> None:
    with correlation_scope(request_id="outer", role_name="web"):
        with correlation_scope(role_name=None, operation="list"):
            assert get_correlation_context() == {"request_id": "outer", "operation": "list"}
        assert get_correlation_context() == {"request_id": "outer", "role_name": "web"}
    assert get_correlation_context() == {}

    with pytest.raises(ValueError, match="must not be empty"):
        with correlation_scope(role_name=" "):
            pass


def test_default_log_redactor_handles_keys_and_inline_values() -> None:
    redacted = default_log_redactor(
        {
            "apikey": "abc",
            "store_pkey": True,
            "message": "header Bearer abc.def and password=hunter2",
            "items": ["tpp_password=pw", "plain"],
        }
    )

    assert redacted == {
        "apikey": "***REDACTED***",
        "store_pkey": True,
        "message": "header Bearer ***REDACTED*** and password=***REDACTED***",
        "items": ["tpp_password=***REDACTED***", "plain"],
    }


def test_multithreaded_logging_produces_valid_json_lines(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            logger_name=logger_name,
            log_file=tmp_path / "threaded.jsonl",
            log_to_stderr=False,
            queue_size=4096,
        )
    )
    logger = logging.getLogger(logger_name)

    total_threads = 8
    per_thread = 40

    def worker(thread_idx: int) -> None:
        for i in range(per_thread):
            with correlation_scope(request_id=f"req-{thread_idx}"):
                logger.info(
                    f"thread={thread_idx} index={i} token=tok-secret-{thread_idx}-{i}",
                    extra={"apikey": f"FAKE-{thread_idx}-{i}"},
                )

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(total_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    shutdown_logging(handle)

    assert handle.log_path is not None
    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == total_threads * per_thread
    for line in lines:
        parsed = json.loads(line)
        assert isinstance(parsed, dict)
        assert str(parsed["message"]).startswith(f"thread={str(parsed['request_id'])[4:]} ")
        assert "tok-secret" not in line
        assert "FAKE-" not in line


def test_queue_handler_non_blocking_and_shutdown_flushes(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            logger_name=logger_name,
            log_file=tmp_path / "flush.jsonl",
            log_to_stderr=False,
            queue_size=10_000,
        )
    )
    logger = logging.getLogger(logger_name)

    queue_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.QueueHandler)]
    assert queue_handlers, "expected queue-backed non-blocking logging"

    expected = 300
    for i in range(expected):
        logger.info("message %s", i)

    shutdown_logging(handle)

    assert handle.log_path is not None
    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert handle.dropped_records == 0
    assert len(lines) == expected
    assert handle.is_shutdown


def test_invalid_logging_config_is_rejected() -> None:
    with pytest.raises(ValueError, match="queue_size"):
        setup_structured_logging(LoggingConfig(logger_name=_logger_name(), queue_size=0))
    with pytest.raises(ValueError, match="unsupported logging level"):
        setup_structured_logging(LoggingConfig(logger_name=_logger_name(), level="LOUD"))
