from __future__ import annotations

import re

from ..models import ExecutionResult
from .types import Phase, ProcessOutcome

RUNTIME_LAUNCH_FAILURE_EXIT_CODE = 125
# The CLI may print pull progress before its own error line.
_RUNTIME_ERROR_LINE = re.compile(r"^docker: ", re.MULTILINE)


def _runtime_failed_to_launch(outcome: ProcessOutcome) -> bool:
    """Return True when the container CLI itself failed before the program ran.

    Example:
        ```python
        failed = _runtime_failed_to_launch(ProcessOutcome("", "docker: Error response", 125, False))
        ```
    """
    return (
        outcome.returncode == RUNTIME_LAUNCH_FAILURE_EXIT_CODE
        and _RUNTIME_ERROR_LINE.search(outcome.stderr) is not None
    )


def classify(outcome: ProcessOutcome, *, phase: Phase, timeout_seconds: int) -> ExecutionResult:
    """Map a raw process outcome onto one status of the closed taxonomy.

    Example:
        ```python
        result = classify(ProcessOutcome("hi\\n", "", 0, False), phase=Phase.RUN, timeout_seconds=10)
        ```
    """
    if outcome.timed_out:
        return ExecutionResult.timeout(timeout_seconds, output=outcome.stdout)
    if _runtime_failed_to_launch(outcome):
        return ExecutionResult.system_error(outcome.stderr.strip())
    if outcome.returncode == 0:
        return ExecutionResult.success_result(outcome.stdout, exit_code=0)
    if phase is Phase.COMPILE:
        return ExecutionResult.compilation_failure(outcome.stderr or outcome.stdout, exit_code=outcome.returncode)
    return ExecutionResult.runtime_failure(
        outcome.stderr or outcome.stdout,
        outcome.stdout,
        exit_code=outcome.returncode,
    )
