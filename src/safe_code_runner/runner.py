from __future__ import annotations

import dataclasses
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType

from .audit import AuditSink, LoggingAuditSink
from .errors import SandboxError, UnsupportedLanguageError
from .execution.collector import OutputCollector
from .execution.container_runner import ContainerRunner, DockerRuntimeProbe
from .execution.engine import RuntimeProbe
from .execution.slots import ExecutionSlots
from .languages import LanguageProfileRegistry
from .models import ExecutionRequest, ExecutionResult, ExecutionStatus, Language
from .policy import SandboxPolicy
from .security import EMPTY_SOURCE_MESSAGE, SecurityValidator
from .workspace import WorkspaceManager

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = "Code execution is disabled"
RUNTIME_UNAVAILABLE_MESSAGE = "Container runtime is not available"
READY_MESSAGE = "Code execution service is ready"


def _resolve_policy(policy: SandboxPolicy | None, policy_file: str | None) -> SandboxPolicy:
    """Resolve the effective policy object for an engine.

    Example:
        ```python
        policy = _resolve_policy(None, "/tmp/sandbox.toml")
        ```
    """
    if policy is not None and policy_file is not None:
        raise ValueError("Provide either 'policy' or 'policy_file', not both")
    if policy is None and policy_file is not None:
        return SandboxPolicy.from_file(policy_file)
    if policy is None:
        return SandboxPolicy()
    if policy.config_path is not None:
        return SandboxPolicy.from_file(policy.config_path)
    return policy


class SandboxEngine:
    """Screen, build, run, and classify untrusted submissions one request at a time.

    Each `execute` call is self-contained: its own workspace, its own
    containers, and a result from the closed status taxonomy. The only shared
    state between concurrent calls is the read-only language registry and the
    bounded drain executor.

    Example:
        ```python
        with SandboxEngine() as engine:
            result = engine.execute(ExecutionRequest(language="python", source_code="print(1)"))
        ```
    """

    def __init__(
        self,
        policy: SandboxPolicy | None = None,
        *,
        registry: LanguageProfileRegistry | None = None,
        validator: SecurityValidator | None = None,
        workspaces: WorkspaceManager | None = None,
        runner: ContainerRunner | None = None,
        probe: RuntimeProbe | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        """Wire the engine components; every collaborator can be replaced.

        Example:
            ```python
            engine = SandboxEngine(SandboxPolicy(memory_limit_mb=256), audit=LoggingAuditSink())
            ```
        """
        self._policy = policy or SandboxPolicy()
        if registry is None:
            registry = (
                LanguageProfileRegistry.from_file(self._policy.config_path)
                if self._policy.config_path is not None
                else LanguageProfileRegistry.default()
            )
        self._registry = registry
        self._validator = validator or SecurityValidator(
            max_source_chars=self._policy.max_source_chars,
            max_stdin_chars=self._policy.max_stdin_chars,
        )
        self._workspaces = workspaces or WorkspaceManager(self._policy.temp_dir)
        self._slots = ExecutionSlots(
            self._policy.max_concurrent_executions,
            self._policy.acquire_timeout_seconds,
        )
        self._executor: ThreadPoolExecutor | None = None
        if runner is None:
            # Two drain tasks per admitted execution, so admitted runs never wait for a worker.
            self._executor = ThreadPoolExecutor(
                max_workers=2 * self._policy.max_concurrent_executions,
                thread_name_prefix="sandbox-drain",
            )
            runner = ContainerRunner(
                self._policy,
                OutputCollector(
                    self._executor,
                    join_timeout=self._policy.drain_join_seconds,
                    max_output_chars=self._policy.max_output_kb * 1024,
                ),
            )
        self._runner = runner
        self._probe = probe or DockerRuntimeProbe(self._policy.docker_binary)
        self._audit = audit or LoggingAuditSink()

    @property
    def policy(self) -> SandboxPolicy:
        """Return the active policy.

        Example:
            ```python
            limit = engine.policy.memory_limit_mb
            ```
        """
        return self._policy

    @property
    def registry(self) -> LanguageProfileRegistry:
        """Return the language profile registry.

        Example:
            ```python
            names = engine.registry.languages()
            ```
        """
        return self._registry

    @property
    def runner(self) -> ContainerRunner:
        """Return the container runner used for compile and run steps.

        Example:
            ```python
            containers = engine.runner.list_containers()
            ```
        """
        return self._runner

    def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Execute one request and always return a fully populated result.

        Example:
            ```python
            result = engine.execute(ExecutionRequest(language="python", source_code="print('hi')"))
            ```
        """
        started = time.monotonic()
        try:
            result = self._execute(request)
        except (SandboxError, UnsupportedLanguageError) as exc:
            logger.error("Sandbox failure executing %s code: %s", request.language, exc)
            result = ExecutionResult.system_error(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error executing %s code", request.language)
            result = ExecutionResult.system_error(str(exc) or type(exc).__name__)
        elapsed_ms = max(0, int((time.monotonic() - started) * 1000))
        result = dataclasses.replace(result, execution_time_ms=elapsed_ms)
        self._record(request, result)
        return result

    def validate(self, request: ExecutionRequest) -> str | None:
        """Screen a request without launching anything; return the violation or None.

        Blank source is reported before the deny patterns are applied.

        Example:
            ```python
            reason = engine.validate(ExecutionRequest(language="python", source_code="import os"))
            ```
        """
        if not request.source_code.strip():
            return EMPTY_SOURCE_MESSAGE
        return self._validator.validate(request.source_code) or self._validator.validate_stdin(request.stdin)

    def service_status(self) -> str:
        """Describe whether the engine can currently accept executions.

        Example:
            ```python
            print(engine.service_status())
            ```
        """
        if not self._policy.enabled:
            return DISABLED_MESSAGE
        if not self._probe.is_runtime_available():
            return RUNTIME_UNAVAILABLE_MESSAGE
        return READY_MESSAGE

    def is_ready(self) -> bool:
        """Return True when `service_status` reports the ready state.

        Example:
            ```python
            ready = engine.is_ready()
            ```
        """
        return self.service_status() == READY_MESSAGE

    def close(self) -> None:
        """Shut down the drain executor.

        Example:
            ```python
            engine.close()
            ```
        """
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "SandboxEngine":
        """Return the engine for use in a `with` block.

        Example:
            ```python
            with SandboxEngine() as engine:
                ...
            ```
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close the engine on block exit.

        Example:
            ```python
            engine.__exit__(None, None, None)
            ```
        """
        self.close()

    def _execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run the screening, build, and run pipeline for one request.

        Example:
            ```python
            result = engine._execute(request)
            ```
        """
        if not self._policy.enabled:
            return ExecutionResult.system_error(DISABLED_MESSAGE)

        violation = self._validator.validate(request.source_code) or self._validator.validate_stdin(request.stdin)
        if violation is not None:
            logger.info("Rejected %s submission: %s", request.language, violation)
            return ExecutionResult.security_violation(violation)

        if not self._probe.is_runtime_available():
            return ExecutionResult.system_error(RUNTIME_UNAVAILABLE_MESSAGE)

        profile = self._registry.resolve(request.language)
        timeout_seconds = self._policy.effective_timeout(request.timeout_seconds)

        with self._slots.acquire(), self._workspaces.session() as workspace:
            self._workspaces.write_source(workspace, request.source_code, profile)
            if profile.needs_compile:
                compiled = self._runner.compile(workspace, profile, timeout_seconds)
                if compiled.status is not ExecutionStatus.SUCCESS:
                    return compiled
            return self._runner.run(workspace, profile, request.stdin, timeout_seconds)

    def _record(self, request: ExecutionRequest, result: ExecutionResult) -> None:
        """Forward one completed execution to the audit sink.

        Example:
            ```python
            engine._record(request, result)
            ```
        """
        try:
            self._audit.record(
                language=request.language,
                success=result.success,
                execution_time_ms=result.execution_time_ms,
                status=result.status.value,
                error=None if result.success else (result.error or result.compilation_error),
            )
        except Exception:  # noqa: BLE001
            logger.exception("Audit sink failed for %s execution", request.language)


def run_code(
    source_code: str,
    language: str | Language,
    *,
    stdin: str | None = None,
    timeout_seconds: int | None = None,
    engine: SandboxEngine | None = None,
    policy: SandboxPolicy | None = None,
    policy_file: str | None = None,
) -> ExecutionResult:
    """Execute source code in a sandbox and return the classified result.

    A temporary engine is created and closed when none is supplied.

    Example:
        ```python
        from safe_code_runner import run_code
        result = run_code('print("Hello, World!")', "python", timeout_seconds=10)
        ```
    """
    request = ExecutionRequest(
        language=language,
        source_code=source_code,
        stdin=stdin,
        timeout_seconds=timeout_seconds,
    )
    if engine is not None:
        if policy is not None or policy_file is not None:
            raise ValueError("Pass 'policy' or 'policy_file' when constructing the engine, not with it")
        return engine.execute(request)
    with SandboxEngine(_resolve_policy(policy, policy_file)) as owned:
        return owned.execute(request)
