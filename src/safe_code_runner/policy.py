from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_FALLBACK_CONFIG: dict[str, Any] = {
    "policy": {
        "enabled": True,
        "default_timeout_seconds": 10,
        "max_timeout_seconds": 60,
        "memory_limit_mb": 128,
        "cpus": 0.5,
        "container_user": "nobody",
        "temp_dir": "/tmp/code-execution",
        "max_source_chars": 10000,
        "max_stdin_chars": 1000,
        "max_output_kb": 64,
        "acquire_timeout_seconds": 30,
        "drain_join_seconds": 1.0,
        "docker_binary": "docker",
    },
    "languages": {
        "java": {
            "image": "openjdk:21-slim",
            "source_file": "Main.java",
            "compile": ["javac", "Main.java"],
            "run": ["java", "Main"],
            "entry_class": "Main",
        },
        "python": {"image": "python:3.11-slim", "source_file": "main.py", "run": ["python", "main.py"]},
        "javascript": {"image": "node:18-slim", "source_file": "main.js", "run": ["node", "main.js"]},
        "cpp": {
            "image": "gcc:latest",
            "source_file": "main.cpp",
            "compile": ["g++", "-o", "main", "main.cpp"],
            "run": ["./main"],
        },
    },
}


def default_policy_path() -> Path:
    """Return bundled default policy TOML path.

    Example:
        ```python
        path = default_policy_path()
        ```
    """
    return Path(__file__).with_name("default_policy.toml")


def read_config_toml(path: Path) -> dict[str, Any]:
    """Read a sandbox config TOML document, falling back to built-in defaults.

    Example:
        ```python
        raw = read_config_toml(Path("/etc/safe-code-runner.toml"))
        ```
    """
    if not path.exists():
        return _FALLBACK_CONFIG
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Sandbox config must be a TOML document")
    return raw


def _policy_table(raw: dict[str, Any]) -> dict[str, Any]:
    """Return the `[policy]` table, or the document itself when it is flat.

    Example:
        ```python
        table = _policy_table({"policy": {"memory_limit_mb": 64}})
        ```
    """
    policy_obj = raw.get("policy", raw)
    if not isinstance(policy_obj, dict):
        raise ValueError("Policy config must be a TOML table")
    return policy_obj


def _positive_int(value: Any, field_name: str) -> int:
    """Validate and normalize a positive integer policy field.

    Example:
        ```python
        limit = _positive_int(128, "memory_limit_mb")
        ```
    """
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"'{field_name}' must be a positive integer")
    try:
        number = int(value)
    except ValueError as exc:
        raise ValueError(f"'{field_name}' must be a positive integer") from exc
    if number <= 0:
        raise ValueError(f"'{field_name}' must be a positive integer")
    return number


def _positive_float(value: Any, field_name: str) -> float:
    """Validate and normalize a positive float policy field.

    Example:
        ```python
        cpus = _positive_float(0.5, "cpus")
        ```
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"'{field_name}' must be a positive number")
    try:
        number = float(value)
    except ValueError as exc:
        raise ValueError(f"'{field_name}' must be a positive number") from exc
    if number <= 0:
        raise ValueError(f"'{field_name}' must be a positive number")
    return number


def default_max_concurrent() -> int:
    """Return the default ceiling on simultaneously running sandboxes.

    Example:
        ```python
        ceiling = default_max_concurrent()
        ```
    """
    return min(os.cpu_count() or 1, 4)


_DEFAULT_POLICY_RAW = _policy_table(read_config_toml(default_policy_path()))
DEFAULT_ENABLED = bool(_DEFAULT_POLICY_RAW.get("enabled", True))
DEFAULT_TIMEOUT_SECONDS = int(_DEFAULT_POLICY_RAW.get("default_timeout_seconds", 10))
DEFAULT_MAX_TIMEOUT_SECONDS = int(_DEFAULT_POLICY_RAW.get("max_timeout_seconds", 60))
DEFAULT_MEMORY_LIMIT_MB = int(_DEFAULT_POLICY_RAW.get("memory_limit_mb", 128))
DEFAULT_CPUS = float(_DEFAULT_POLICY_RAW.get("cpus", 0.5))
DEFAULT_CONTAINER_USER = str(_DEFAULT_POLICY_RAW.get("container_user", "nobody"))
DEFAULT_TEMP_DIR = str(_DEFAULT_POLICY_RAW.get("temp_dir", "/tmp/code-execution"))
DEFAULT_MAX_SOURCE_CHARS = int(_DEFAULT_POLICY_RAW.get("max_source_chars", 10000))
DEFAULT_MAX_STDIN_CHARS = int(_DEFAULT_POLICY_RAW.get("max_stdin_chars", 1000))
DEFAULT_MAX_OUTPUT_KB = int(_DEFAULT_POLICY_RAW.get("max_output_kb", 64))
DEFAULT_ACQUIRE_TIMEOUT_SECONDS = int(_DEFAULT_POLICY_RAW.get("acquire_timeout_seconds", 30))
DEFAULT_DRAIN_JOIN_SECONDS = float(_DEFAULT_POLICY_RAW.get("drain_join_seconds", 1.0))
DEFAULT_DOCKER_BINARY = str(_DEFAULT_POLICY_RAW.get("docker_binary", "docker"))


@dataclass(slots=True)
class SandboxPolicy:
    """Resource limits and screening bounds applied to every execution.

    Example:
        ```python
        policy = SandboxPolicy(memory_limit_mb=256, default_timeout_seconds=5)
        ```
    """

    enabled: bool = DEFAULT_ENABLED
    default_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    cpus: float = DEFAULT_CPUS
    container_user: str = DEFAULT_CONTAINER_USER
    temp_dir: str = DEFAULT_TEMP_DIR
    max_source_chars: int = DEFAULT_MAX_SOURCE_CHARS
    max_stdin_chars: int = DEFAULT_MAX_STDIN_CHARS
    max_output_kb: int = DEFAULT_MAX_OUTPUT_KB
    max_concurrent_executions: int = field(default_factory=default_max_concurrent)
    acquire_timeout_seconds: int = DEFAULT_ACQUIRE_TIMEOUT_SECONDS
    drain_join_seconds: float = DEFAULT_DRAIN_JOIN_SECONDS
    docker_binary: str = DEFAULT_DOCKER_BINARY
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate limits after dataclass initialization.

        Example:
            ```python
            SandboxPolicy(cpus=1.0)
            ```
        """
        for name in (
            "default_timeout_seconds",
            "max_timeout_seconds",
            "memory_limit_mb",
            "max_source_chars",
            "max_stdin_chars",
            "max_output_kb",
            "max_concurrent_executions",
            "acquire_timeout_seconds",
        ):
            _positive_int(getattr(self, name), name)
        _positive_float(self.cpus, "cpus")
        _positive_float(self.drain_join_seconds, "drain_join_seconds")
        if self.default_timeout_seconds > self.max_timeout_seconds:
            raise ValueError("default_timeout_seconds must not exceed max_timeout_seconds")
        if not self.container_user.strip():
            raise ValueError("container_user must be a non-empty string")
        if not self.docker_binary.strip():
            raise ValueError("docker_binary must be a non-empty string")

    @classmethod
    def from_file(cls, config_path: str) -> "SandboxPolicy":
        """Create a policy instance from a TOML file.

        Example:
            ```python
            policy = SandboxPolicy.from_file("/tmp/sandbox.toml")
            ```
        """
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Policy file not found: {config_path}")
        raw = _policy_table(read_config_toml(path))
        return cls(
            enabled=bool(raw.get("enabled", DEFAULT_ENABLED)),
            default_timeout_seconds=_positive_int(
                raw.get("default_timeout_seconds", DEFAULT_TIMEOUT_SECONDS), "default_timeout_seconds"
            ),
            max_timeout_seconds=_positive_int(
                raw.get("max_timeout_seconds", DEFAULT_MAX_TIMEOUT_SECONDS), "max_timeout_seconds"
            ),
            memory_limit_mb=_positive_int(raw.get("memory_limit_mb", DEFAULT_MEMORY_LIMIT_MB), "memory_limit_mb"),
            cpus=_positive_float(raw.get("cpus", DEFAULT_CPUS), "cpus"),
            container_user=str(raw.get("container_user", DEFAULT_CONTAINER_USER)),
            temp_dir=str(raw.get("temp_dir", DEFAULT_TEMP_DIR)),
            max_source_chars=_positive_int(
                raw.get("max_source_chars", DEFAULT_MAX_SOURCE_CHARS), "max_source_chars"
            ),
            max_stdin_chars=_positive_int(raw.get("max_stdin_chars", DEFAULT_MAX_STDIN_CHARS), "max_stdin_chars"),
            max_output_kb=_positive_int(raw.get("max_output_kb", DEFAULT_MAX_OUTPUT_KB), "max_output_kb"),
            max_concurrent_executions=_positive_int(
                raw.get("max_concurrent_executions", default_max_concurrent()), "max_concurrent_executions"
            ),
            acquire_timeout_seconds=_positive_int(
                raw.get("acquire_timeout_seconds", DEFAULT_ACQUIRE_TIMEOUT_SECONDS), "acquire_timeout_seconds"
            ),
            drain_join_seconds=_positive_float(
                raw.get("drain_join_seconds", DEFAULT_DRAIN_JOIN_SECONDS), "drain_join_seconds"
            ),
            docker_binary=str(raw.get("docker_binary", DEFAULT_DOCKER_BINARY)),
            config_path=config_path,
        )

    def effective_timeout(self, requested: int | None) -> int:
        """Return the request timeout, defaulted and clamped to the policy bounds.

        Example:
            ```python
            seconds = SandboxPolicy().effective_timeout(None)
            ```
        """
        if requested is None:
            return self.default_timeout_seconds
        return max(1, min(int(requested), self.max_timeout_seconds))
