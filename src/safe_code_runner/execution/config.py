from __future__ import annotations

from dataclasses import dataclass

CONTAINER_WORKDIR = "/workspace"
CONTAINER_SCRATCH = "/tmp"
MANAGED_LABEL_VALUE = "true"
MANAGED_LABELS_BASE = {
    "safe_code_runner.managed": MANAGED_LABEL_VALUE,
    "safe_code_runner.project": "safe-code-runner",
}
RUNTIME_PROBE_TIMEOUT_SECONDS = 5
FORCE_REMOVE_TIMEOUT_SECONDS = 10


@dataclass(frozen=True, slots=True)
class ContainerInfo:
    """Snapshot of a managed sandbox container.

    Example:
        ```python
        info = ContainerInfo("abc", "exec_1_2_ab12cd34", "python:3.11-slim", "running", "Up 2s")
        ```
    """

    id: str
    name: str
    image: str
    state: str
    status: str


@dataclass(frozen=True, slots=True)
class CleanupSummary:
    """Result summary from removing leftover sandbox containers.

    Example:
        ```python
        summary = CleanupSummary(removed_containers=2)
        ```
    """

    removed_containers: int
