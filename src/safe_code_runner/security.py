"""Fast, conservative pre-execution screening of submitted source text.

This is a heuristic reject layer that over-blocks on purpose. It is not a
security proof: the container limits applied by the runner are the actual
sandbox boundary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .policy import DEFAULT_MAX_SOURCE_CHARS, DEFAULT_MAX_STDIN_CHARS

EMPTY_SOURCE_MESSAGE = "Code cannot be empty"


@dataclass(frozen=True, slots=True)
class DenyPattern:
    """One case-insensitive pattern whose presence rejects a submission.

    Example:
        ```python
        rule = DenyPattern(re.compile(r"\\beval\\b", re.IGNORECASE), "dynamic evaluation")
        ```
    """

    regex: re.Pattern[str]
    description: str

    @property
    def pattern(self) -> str:
        """Return the source text of the compiled regex.

        Example:
            ```python
            text = rule.pattern
            ```
        """
        return self.regex.pattern


def _deny(pattern: str, description: str) -> DenyPattern:
    """Compile a deny rule once at import time.

    Example:
        ```python
        rule = _deny(r"\\bsocket\\b", "raw network access")
        ```
    """
    return DenyPattern(re.compile(pattern, re.IGNORECASE), description)


DENY_PATTERNS: tuple[DenyPattern, ...] = (
    _deny(r"\bRuntime\b", "process spawning"),
    _deny(r"\bProcess\b", "process spawning"),
    _deny(r"\bSystem\.exit\b", "process exit"),
    _deny(r"\bfile\s*\(", "raw file access"),
    _deny(r"\bopen\s*\(", "raw file access"),
    _deny(r"\b__import__\b", "dynamic import"),
    _deny(r"\beval\b", "dynamic evaluation"),
    _deny(r"\bexec\b", "dynamic execution"),
    _deny(r"\bos\.", "OS shell escape"),
    _deny(r"\bsubprocess\b", "process spawning"),
    _deny(r"\bsocket\b", "raw network access"),
    _deny(r"\bhttp\b", "HTTP access"),
    _deny(r"\burllib\b", "HTTP access"),
    _deny(r"\brequests\b", "HTTP access"),
)


class SecurityValidator:
    """Screen raw source text before any workspace or process exists.

    Stateless: the deny list is module-level and immutable, and the only
    instance state is the two length limits.

    Example:
        ```python
        reason = SecurityValidator().validate("print('hi')")
        ```
    """

    def __init__(
        self,
        *,
        max_source_chars: int = DEFAULT_MAX_SOURCE_CHARS,
        max_stdin_chars: int = DEFAULT_MAX_STDIN_CHARS,
        patterns: tuple[DenyPattern, ...] = DENY_PATTERNS,
    ) -> None:
        """Store the length limits and deny list.

        Example:
            ```python
            validator = SecurityValidator(max_source_chars=5000)
            ```
        """
        self._max_source_chars = max_source_chars
        self._max_stdin_chars = max_stdin_chars
        self._patterns = patterns

    @property
    def patterns(self) -> tuple[DenyPattern, ...]:
        """Return the active deny list.

        Example:
            ```python
            count = len(validator.patterns)
            ```
        """
        return self._patterns

    def validate(self, source_code: str) -> str | None:
        """Return the first violated rule's description, or None when clean.

        Example:
            ```python
            reason = validator.validate("import subprocess")
            ```
        """
        for rule in self._patterns:
            if rule.regex.search(source_code):
                return f"Potentially unsafe code detected: {rule.pattern}"
        if len(source_code) > self._max_source_chars:
            return "Code exceeds maximum length limit"
        if not source_code.strip():
            return EMPTY_SOURCE_MESSAGE
        return None

    def validate_stdin(self, stdin: str | None) -> str | None:
        """Return a violation when the supplied program input is too long.

        Example:
            ```python
            reason = validator.validate_stdin("3\\n1 2 3")
            ```
        """
        if stdin is not None and len(stdin) > self._max_stdin_chars:
            return "Input exceeds maximum length limit"
        return None
