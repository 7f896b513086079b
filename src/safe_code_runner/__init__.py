from .audit import AuditSink, LoggingAuditSink
from .errors import (
    CapacityError,
    RuntimeUnavailableError,
    SandboxError,
    UnsupportedLanguageError,
    WorkspaceError,
)
from .hints import hint_for
from .languages import LanguageProfile, LanguageProfileRegistry
from .models import ExecutionRequest, ExecutionResult, ExecutionStatus, Language
from .policy import SandboxPolicy
from .runner import SandboxEngine, run_code
from .security import SecurityValidator
from .workspace import Workspace, WorkspaceManager

__all__ = [
    "AuditSink",
    "CapacityError",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionStatus",
    "Language",
    "LanguageProfile",
    "LanguageProfileRegistry",
    "LoggingAuditSink",
    "RuntimeUnavailableError",
    "SandboxEngine",
    "SandboxError",
    "SandboxPolicy",
    "SecurityValidator",
    "UnsupportedLanguageError",
    "Workspace",
    "WorkspaceError",
    "WorkspaceManager",
    "hint_for",
    "run_code",
]
