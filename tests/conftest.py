from __future__ import annotations

import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, Sequence

import pytest

from safe_code_runner import LanguageProfile, LanguageProfileRegistry, SandboxEngine, SandboxPolicy, Workspace
from safe_code_runner.execution import ContainerRunner, OutputCollector


class LocalProcessRunner(ContainerRunner):
    """Runs profile commands directly in the workspace instead of a container."""

    def __init__(self, policy: SandboxPolicy, collector: OutputCollector) -> None:
        super().__init__(policy, collector)
        self.launched: list[list[str]] = []
        self.removed: list[str] = []
        self.processes: list[subprocess.Popen[str]] = []

    def build_command(
        self,
        workspace: Workspace,
        profile: LanguageProfile,
        argv: Sequence[str],
        *,
        container_name: str,
    ) -> list[str]:
        return list(argv)

    def _spawn(self, cmd: list[str], workspace: Workspace) -> subprocess.Popen[str]:
        self.launched.append(cmd)
        process = super()._spawn(cmd, workspace)
        self.processes.append(process)
        return process

    def _force_remove(self, container_name: str) -> None:
        self.removed.append(container_name)


class AvailableProbe:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.calls = 0

    def is_runtime_available(self) -> bool:
        self.calls += 1
        return self.available


class RecordingAudit:
    def __init__(self) -> None:
        self.records: list[dict[str, object]] = []

    def record(self, **kwargs: object) -> None:
        self.records.append(kwargs)


def local_profiles() -> LanguageProfileRegistry:
    python = sys.executable
    return LanguageProfileRegistry(
        {
            "python": LanguageProfile(
                language="python",
                image="local",
                source_file="main.py",
                compile_command=None,
                run_command=(python, "main.py"),
            ),
            "pycompiled": LanguageProfile(
                language="pycompiled",
                image="local",
                source_file="main.py",
                compile_command=(python, "-m", "py_compile", "main.py"),
                run_command=(python, "main.py"),
            ),
        }
    )


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    return tmp_path / "code-execution"


@pytest.fixture
def policy(workspace_root: Path) -> SandboxPolicy:
    return SandboxPolicy(
        temp_dir=str(workspace_root),
        max_concurrent_executions=2,
        acquire_timeout_seconds=1,
        drain_join_seconds=1.0,
    )


@pytest.fixture
def executor() -> Iterator[ThreadPoolExecutor]:
    pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="test-drain")
    yield pool
    pool.shutdown(wait=False, cancel_futures=True)


@pytest.fixture
def collector(executor: ThreadPoolExecutor) -> OutputCollector:
    return OutputCollector(executor, join_timeout=1.0, max_output_chars=64 * 1024)


@pytest.fixture
def local_runner(policy: SandboxPolicy, collector: OutputCollector) -> LocalProcessRunner:
    return LocalProcessRunner(policy, collector)


@pytest.fixture
def probe() -> AvailableProbe:
    return AvailableProbe()


@pytest.fixture
def audit() -> RecordingAudit:
    return RecordingAudit()


@pytest.fixture
def engine(
    policy: SandboxPolicy,
    local_runner: LocalProcessRunner,
    probe: AvailableProbe,
    audit: RecordingAudit,
) -> Iterator[SandboxEngine]:
    sandbox = SandboxEngine(
        policy,
        registry=local_profiles(),
        runner=local_runner,
        probe=probe,
        audit=audit,
    )
    yield sandbox
    sandbox.close()
