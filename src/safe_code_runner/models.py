from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

TIMEOUT_EXIT_CODE = 124


class Language(str, Enum):
    """Languages shipped in the bundled profile table."""

    JAVA = "java"
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    CPP = "cpp"


class ExecutionStatus(str, Enum):
    """Closed set of outcomes surfaced to callers."""

    SUCCESS = "SUCCESS"
    COMPILATION_ERROR = "COMPILATION_ERROR"
    RUNTIME_ERROR = "RUNTIME_ERROR"
    TIMEOUT = "TIMEOUT"
    SECURITY_VIOLATION = "SECURITY_VIOLATION"
    SYSTEM_ERROR = "SYSTEM_ERROR"


def _utcnow() -> datetime:
    """Return the current UTC time.

    Example:
        ```python
        stamp = _utcnow()
        ```
    """
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ExecutionRequest:
    """One untrusted submission to run inside the sandbox.

    Example:
        ```python
        req = ExecutionRequest(language="python", source_code="print(1)", timeout_seconds=5)
        ```
    """

    language: str
    source_code: str
    stdin: str | None = None
    timeout_seconds: int | None = None

    def __post_init__(self) -> None:
        """Normalize the language identifier and validate the timeout.

        Example:
            ```python
            ExecutionRequest(language=Language.CPP, source_code="int main() {}")
            ```
        """
        language = self.language.value if isinstance(self.language, Language) else str(self.language)
        self.language = language.strip().lower()
        if not self.language:
            raise ValueError("language must be a non-empty identifier")
        if not isinstance(self.source_code, str):
            raise ValueError("source_code must be a string")
        if self.timeout_seconds is not None:
            if isinstance(self.timeout_seconds, bool) or not isinstance(self.timeout_seconds, int):
                raise ValueError("timeout_seconds must be a positive integer")
            if self.timeout_seconds <= 0:
                raise ValueError("timeout_seconds must be a positive integer")


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Classified outcome of one execution request.

    Example:
        ```python
        result = ExecutionResult.success_result("Hello\\n", exit_code=0)
        ```
    """

    status: ExecutionStatus
    output: str = ""
    error: str | None = None
    compilation_error: str | None = None
    exit_code: int | None = None
    execution_time_ms: int = 0
    executed_at: datetime = field(default_factory=_utcnow)

    @property
    def success(self) -> bool:
        """Return True when the program ran and exited with status 0.

        Example:
            ```python
            if result.success:
                print(result.output)
            ```
        """
        return self.status is ExecutionStatus.SUCCESS

    @classmethod
    def success_result(cls, output: str, exit_code: int = 0) -> "ExecutionResult":
        """Build a SUCCESS result.

        Example:
            ```python
            result = ExecutionResult.success_result("42\\n")
            ```
        """
        return cls(status=ExecutionStatus.SUCCESS, output=output, exit_code=exit_code)

    @classmethod
    def compilation_failure(cls, compiler_output: str, exit_code: int | None) -> "ExecutionResult":
        """Build a COMPILATION_ERROR result carrying the compiler diagnostics.

        Example:
            ```python
            result = ExecutionResult.compilation_failure("main.cpp:1: error", exit_code=1)
            ```
        """
        return cls(
            status=ExecutionStatus.COMPILATION_ERROR,
            compilation_error=compiler_output,
            exit_code=exit_code,
        )

    @classmethod
    def runtime_failure(cls, error: str, output: str, exit_code: int | None) -> "ExecutionResult":
        """Build a RUNTIME_ERROR result.

        Example:
            ```python
            result = ExecutionResult.runtime_failure("ZeroDivisionError", "", exit_code=1)
            ```
        """
        return cls(status=ExecutionStatus.RUNTIME_ERROR, output=output, error=error, exit_code=exit_code)

    @classmethod
    def timeout(cls, timeout_seconds: int, output: str = "") -> "ExecutionResult":
        """Build a TIMEOUT result for a process killed at the deadline.

        Example:
            ```python
            result = ExecutionResult.timeout(10)
            ```
        """
        return cls(
            status=ExecutionStatus.TIMEOUT,
            output=output,
            error=f"Code execution timed out after {timeout_seconds}s",
            exit_code=TIMEOUT_EXIT_CODE,
        )

    @classmethod
    def security_violation(cls, details: str) -> "ExecutionResult":
        """Build a SECURITY_VIOLATION result for a rejected submission.

        Example:
            ```python
            result = ExecutionResult.security_violation("Code exceeds maximum length limit")
            ```
        """
        return cls(status=ExecutionStatus.SECURITY_VIOLATION, error=f"Security violation: {details}")

    @classmethod
    def system_error(cls, message: str) -> "ExecutionResult":
        """Build a SYSTEM_ERROR result for an infrastructure failure.

        Example:
            ```python
            result = ExecutionResult.system_error("Container runtime is not available")
            ```
        """
        return cls(status=ExecutionStatus.SYSTEM_ERROR, error=message or "Unknown system error")

    def to_dict(self) -> dict[str, Any]:
        """Render the external response shape.

        Example:
            ```python
            payload = result.to_dict()
            ```
        """
        return {
            "status": self.status.value,
            "output": self.output,
            "error": self.error,
            "compilationError": self.compilation_error,
            "exitCode": self.exit_code,
            "executionTimeMs": self.execution_time_ms,
            "executedAt": self.executed_at.isoformat(),
        }
