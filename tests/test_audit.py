import logging

import pytest

from safe_code_runner import LoggingAuditSink
from safe_code_runner.audit import AUDIT_LOGGER_NAME, truncate_error


def test_success_logged_at_info(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=AUDIT_LOGGER_NAME)
    LoggingAuditSink().record(language="python", success=True, execution_time_ms=42, status="SUCCESS", error=None)
    record = caplog.records[-1]
    assert record.levelno == logging.INFO
    assert record.getMessage() == "CODE_EXECUTION_SUCCESS: python | Status: SUCCESS | Time: 42ms"
    assert record.execution_time_ms == 42  # type: ignore[attr-defined]


def test_failure_logged_at_warning_with_truncated_error(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=AUDIT_LOGGER_NAME)
    LoggingAuditSink().record(
        language="cpp",
        success=False,
        execution_time_ms=900,
        status="COMPILATION_ERROR",
        error="e" * 500,
    )
    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.getMessage().startswith("CODE_EXECUTION_FAILURE: cpp | Status: COMPILATION_ERROR | Time: 900ms")
    assert record.getMessage().endswith("e" * 197 + "...")
    assert record.status == "COMPILATION_ERROR"  # type: ignore[attr-defined]


def test_custom_logger() -> None:
    logger = logging.getLogger("tests.audit")
    seen: list[logging.LogRecord] = []

    class _Collect(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            seen.append(record)

    handler = _Collect()
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    try:
        LoggingAuditSink(logger).record(
            language="java", success=True, execution_time_ms=1, status="SUCCESS", error=None
        )
    finally:
        logger.removeHandler(handler)
    assert len(seen) == 1
    assert seen[0].language == "java"  # type: ignore[attr-defined]


def test_truncate_error() -> None:
    assert truncate_error(None) is None
    assert truncate_error("short") == "short"
    assert truncate_error("x" * 200) == "x" * 200
    assert truncate_error("x" * 201) == "x" * 197 + "..."
