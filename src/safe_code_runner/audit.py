from __future__ import annotations

import logging
from typing import Protocol

AUDIT_LOGGER_NAME = "safe_code_runner.audit"
MAX_AUDIT_ERROR_CHARS = 200


class AuditSink(Protocol):
    def record(
        self,
        *,
        language: str,
        success: bool,
        execution_time_ms: int,
        status: str,
        error: str | None,
    ) -> None:
        """Receive one completed execution.

        Example:
            ```python
            sink.record(language="python", success=True, execution_time_ms=42, status="SUCCESS", error=None)
            ```
        """
        ...


def truncate_error(error: str | None, limit: int = MAX_AUDIT_ERROR_CHARS) -> str | None:
    """Shorten an error message for audit records.

    Example:
        ```python
        short = truncate_error("Traceback ..." * 100)
        ```
    """
    if error is None or len(error) <= limit:
        return error
    return error[: limit - 3] + "..."


class LoggingAuditSink:
    """Audit sink writing one structured log line per execution.

    Example:
        ```python
        sink = LoggingAuditSink()
        ```
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        """Use the dedicated audit logger unless another one is supplied.

        Example:
            ```python
            sink = LoggingAuditSink(logging.getLogger("my.audit"))
            ```
        """
        self._logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def record(
        self,
        *,
        language: str,
        success: bool,
        execution_time_ms: int,
        status: str,
        error: str | None,
    ) -> None:
        """Log success at INFO and failures at WARNING with a truncated error.

        Example:
            ```python
            sink.record(language="cpp", success=False, execution_time_ms=900, status="COMPILATION_ERROR", error="...")
            ```
        """
        extra = {
            "operation": "CODE_EXECUTION",
            "language": language,
            "success": success,
            "execution_time_ms": execution_time_ms,
            "status": status,
        }
        if success:
            self._logger.info(
                "CODE_EXECUTION_SUCCESS: %s | Status: %s | Time: %dms",
                language,
                status,
                execution_time_ms,
                extra=extra,
            )
            return
        self._logger.warning(
            "CODE_EXECUTION_FAILURE: %s | Status: %s | Time: %dms | Error: %s",
            language,
            status,
            execution_time_ms,
            truncate_error(error),
            extra=extra,
        )
