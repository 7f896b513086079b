from __future__ import annotations


class SandboxError(RuntimeError):
    """Infrastructure failure inside the execution engine.

    Every subclass is reported to callers as a `SYSTEM_ERROR` result.
    """


class WorkspaceError(SandboxError):
    """The per-request workspace could not be created or written."""


class CapacityError(SandboxError):
    """No execution slot became free before the acquire timeout."""


class RuntimeUnavailableError(SandboxError):
    """The container runtime CLI or daemon is not reachable."""


class UnsupportedLanguageError(ValueError):
    """No language profile is registered for the requested identifier."""

    def __init__(self, language: str) -> None:
        """Store the offending identifier.

        Example:
            ```python
            raise UnsupportedLanguageError("cobol")
            ```
        """
        super().__init__(f"Unsupported language: {language}")
        self.language = language
