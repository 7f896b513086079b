from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Sequence

from ..errors import RuntimeUnavailableError
from ..languages import LanguageProfile
from ..models import ExecutionResult
from ..policy import DEFAULT_DOCKER_BINARY, SandboxPolicy
from ..workspace import Workspace
from .classifier import classify
from .collector import OutputCollector
from .config import (
    CONTAINER_SCRATCH,
    CONTAINER_WORKDIR,
    FORCE_REMOVE_TIMEOUT_SECONDS,
    MANAGED_LABEL_VALUE,
    MANAGED_LABELS_BASE,
    RUNTIME_PROBE_TIMEOUT_SECONDS,
    CleanupSummary,
    ContainerInfo,
)
from .types import Phase

logger = logging.getLogger(__name__)


def docker_is_available(docker_binary: str = DEFAULT_DOCKER_BINARY) -> tuple[bool, str | None]:
    """Check container CLI and daemon accessibility.

    Example:
        ```python
        ok, reason = docker_is_available("docker")
        ```
    """
    if shutil.which(docker_binary) is None:
        return False, f"{docker_binary} CLI was not found. Install it and ensure it is on PATH."
    try:
        probe = subprocess.run(
            [docker_binary, "info"],
            capture_output=True,
            text=True,
            check=False,
            timeout=RUNTIME_PROBE_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired:
        return False, f"{docker_binary} daemon did not answer within {RUNTIME_PROBE_TIMEOUT_SECONDS}s."
    if probe.returncode != 0:
        return False, f"{docker_binary} is installed but the daemon is not running or not accessible."
    return True, None


class DockerRuntimeProbe:
    """Health probe answering whether sandbox containers can be launched.

    Example:
        ```python
        probe = DockerRuntimeProbe("docker")
        ready = probe.is_runtime_available()
        ```
    """

    def __init__(self, docker_binary: str = DEFAULT_DOCKER_BINARY) -> None:
        """Remember which container CLI to probe.

        Example:
            ```python
            probe = DockerRuntimeProbe("podman")
            ```
        """
        self._docker_binary = docker_binary
        self.last_reason: str | None = None

    def is_runtime_available(self) -> bool:
        """Return True when the CLI exists and its daemon answers.

        Example:
            ```python
            if not probe.is_runtime_available():
                print(probe.last_reason)
            ```
        """
        available, reason = docker_is_available(self._docker_binary)
        self.last_reason = reason
        if not available:
            logger.warning("Container runtime unavailable: %s", reason)
        return available


class ContainerRunner:
    """Launch one ephemeral, locked-down container per compile or run step.

    Example:
        ```python
        runner = ContainerRunner(SandboxPolicy(), collector)
        result = runner.run(ws, registry.resolve("python"), stdin=None, timeout_seconds=10)
        ```
    """

    def __init__(self, policy: SandboxPolicy, collector: OutputCollector) -> None:
        """Bind the runner to resource limits and an output collector.

        Example:
            ```python
            runner = ContainerRunner(policy, OutputCollector(executor))
            ```
        """
        self._policy = policy
        self._collector = collector

    def build_command(
        self,
        workspace: Workspace,
        profile: LanguageProfile,
        argv: Sequence[str],
        *,
        container_name: str,
    ) -> list[str]:
        """Build the sandboxed container invocation for one step.

        Example:
            ```python
            cmd = runner.build_command(ws, profile, profile.run_command, container_name="exec_1_run")
            ```
        """
        policy = self._policy
        cmd = [
            policy.docker_binary,
            "run",
            "--rm",
            "--network=none",
            f"--memory={policy.memory_limit_mb}m",
            f"--cpus={policy.cpus:g}",
            f"--user={policy.container_user}",
            "--read-only",
            f"--tmpfs={CONTAINER_SCRATCH}",
            "-v",
            f"{workspace.path}:{CONTAINER_WORKDIR}",
            "-w",
            CONTAINER_WORKDIR,
            "-i",
            "--name",
            container_name,
        ]
        for key, value in {**MANAGED_LABELS_BASE, "safe_code_runner.language": profile.language}.items():
            cmd.extend(["--label", f"{key}={value}"])
        cmd.append(profile.image)
        cmd.extend(argv)
        return cmd

    def compile(self, workspace: Workspace, profile: LanguageProfile, timeout_seconds: int) -> ExecutionResult:
        """Run the profile's compile step; non-zero exit is a compilation error.

        Example:
            ```python
            compiled = runner.compile(ws, registry.resolve("cpp"), timeout_seconds=10)
            ```
        """
        if profile.compile_command is None:
            raise ValueError(f"Language '{profile.language}' has no compile step")
        return self._execute_step(workspace, profile, profile.compile_command, None, timeout_seconds, Phase.COMPILE)

    def run(
        self,
        workspace: Workspace,
        profile: LanguageProfile,
        stdin: str | None,
        timeout_seconds: int,
    ) -> ExecutionResult:
        """Run the program, feeding stdin and enforcing the deadline.

        Example:
            ```python
            result = runner.run(ws, profile, stdin="5\\n", timeout_seconds=10)
            ```
        """
        return self._execute_step(workspace, profile, profile.run_command, stdin, timeout_seconds, Phase.RUN)

    def list_containers(self) -> list[ContainerInfo]:
        """List sandbox containers carrying the managed label.

        Example:
            ```python
            containers = runner.list_containers()
            ```
        """
        fmt = "{{.ID}}|{{.Names}}|{{.Image}}|{{.State}}|{{.Status}}"
        out = self._run_docker(
            ["ps", "-a", "--filter", f"label=safe_code_runner.managed={MANAGED_LABEL_VALUE}", "--format", fmt]
        )
        if out.returncode != 0:
            raise RuntimeUnavailableError(f"Failed to list containers: {out.stderr.strip()}")
        items: list[ContainerInfo] = []
        for line in out.stdout.splitlines():
            if not line.strip():
                continue
            c_id, name, image, state, status = line.split("|", 4)
            items.append(ContainerInfo(c_id, name, image, state, status))
        return items

    def remove_stale(self) -> CleanupSummary:
        """Force-remove every managed container left behind by a crashed host.

        Example:
            ```python
            summary = runner.remove_stale()
            ```
        """
        removed = 0
        for container in self.list_containers():
            if self._run_docker(["rm", "-f", container.id]).returncode == 0:
                removed += 1
        return CleanupSummary(removed_containers=removed)

    def _execute_step(
        self,
        workspace: Workspace,
        profile: LanguageProfile,
        argv: Sequence[str],
        stdin: str | None,
        timeout_seconds: int,
        phase: Phase,
    ) -> ExecutionResult:
        """Launch one container step and classify its outcome.

        Example:
            ```python
            result = runner._execute_step(ws, profile, profile.run_command, None, 10, Phase.RUN)
            ```
        """
        container_name = f"{workspace.id}_{phase.value}"
        cmd = self.build_command(workspace, profile, argv, container_name=container_name)
        logger.debug("Launching %s step for %s: %s", phase.value, profile.language, cmd)
        process = self._spawn(cmd, workspace)
        outcome = self._collector.collect(
            process,
            timeout_seconds,
            stdin=stdin,
            on_timeout=lambda: self._force_remove(container_name),
        )
        return classify(outcome, phase=phase, timeout_seconds=timeout_seconds)

    def _spawn(self, cmd: list[str], workspace: Workspace) -> subprocess.Popen[str]:
        """Start the container CLI with all three standard streams piped.

        Example:
            ```python
            process = runner._spawn(cmd, ws)
            ```
        """
        try:
            return subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=workspace.path,
            )
        except FileNotFoundError as exc:
            raise RuntimeUnavailableError(f"Container CLI not found: {cmd[0]}") from exc

    def _force_remove(self, container_name: str) -> None:
        """Kill and remove a timed-out container by name.

        Example:
            ```python
            runner._force_remove("exec_1_2_ab12cd34_run")
            ```
        """
        try:
            removed = self._run_docker(["rm", "-f", container_name], timeout=FORCE_REMOVE_TIMEOUT_SECONDS)
        except (OSError, subprocess.TimeoutExpired):
            logger.warning("Failed to force-remove container %s", container_name, exc_info=True)
            return
        if removed.returncode != 0:
            logger.warning("Failed to force-remove container %s: %s", container_name, removed.stderr.strip())

    def _run_docker(self, args: list[str], timeout: float | None = None) -> subprocess.CompletedProcess[str]:
        """Run a container CLI management command.

        Example:
            ```python
            completed = runner._run_docker(["ps"])
            ```
        """
        return subprocess.run(
            [self._policy.docker_binary, *args],
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
