from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Phase(str, Enum):
    """Which sandbox step produced a process outcome."""

    COMPILE = "compile"
    RUN = "run"


@dataclass(slots=True)
class ProcessOutcome:
    """Raw result of one sandboxed process, before classification.

    Example:
        ```python
        out = ProcessOutcome(stdout="hi\\n", stderr="", returncode=0, timed_out=False)
        ```
    """

    stdout: str
    stderr: str
    returncode: int | None
    timed_out: bool
    truncated: bool = False
