import os
import shutil
from pathlib import Path

import pytest

from safe_code_runner import ExecutionStatus, SandboxEngine, SandboxPolicy, run_code


def _docker_ready() -> bool:
    if shutil.which("docker") is None:
        return False
    return os.getenv("RUN_DOCKER_TESTS") == "1"


pytestmark = pytest.mark.skipif(not _docker_ready(), reason="Docker integration tests disabled")


@pytest.fixture
def engine(tmp_path: Path):
    policy = SandboxPolicy(temp_dir=str(tmp_path / "code-execution"), default_timeout_seconds=30)
    with SandboxEngine(policy) as sandbox:
        if not sandbox.is_ready():
            pytest.skip("Docker daemon is not reachable")
        yield sandbox


def test_docker_python_hello(engine: SandboxEngine, tmp_path: Path) -> None:
    result = run_code('print("Hello, World!")', "python", engine=engine)
    assert result.status is ExecutionStatus.SUCCESS
    assert result.output == "Hello, World!\n"
    assert result.exit_code == 0
    assert list((tmp_path / "code-execution").iterdir()) == []


def test_docker_cpp_compilation_error(engine: SandboxEngine) -> None:
    result = run_code("int main() { return 0 }", "cpp", engine=engine)
    assert result.status is ExecutionStatus.COMPILATION_ERROR
    assert "error" in (result.compilation_error or "")
    assert result.output == ""


def test_docker_cpp_runs_after_compile(engine: SandboxEngine) -> None:
    code = "#include <iostream>\nint main() { int a, b; std::cin >> a >> b; std::cout << a * b << std::endl; }\n"
    result = run_code(code, "cpp", stdin="6 7", engine=engine)
    assert result.status is ExecutionStatus.SUCCESS
    assert result.output == "42\n"


def test_docker_javascript_timeout(engine: SandboxEngine) -> None:
    result = run_code("while (true) {}", "javascript", timeout_seconds=2, engine=engine)
    assert result.status is ExecutionStatus.TIMEOUT
    assert result.exit_code == 124
    assert not [c for c in engine.runner.list_containers() if c.state == "running"]


def test_docker_security_violation_never_launches(engine: SandboxEngine) -> None:
    before = len(engine.runner.list_containers())
    result = run_code('Runtime.getRuntime().exec("ls");', "java", engine=engine)
    assert result.status is ExecutionStatus.SECURITY_VIOLATION
    assert len(engine.runner.list_containers()) == before


def test_docker_java_class_is_renamed(engine: SandboxEngine) -> None:
    code = (
        "public class Solution {\n"
        "    public static void main(String[] args) {\n"
        "        java.util.Scanner in = new java.util.Scanner(System.in);\n"
        "        System.out.println(in.nextInt() + in.nextInt());\n"
        "    }\n"
        "}\n"
    )
    result = run_code(code, "java", stdin="3 4", engine=engine)
    assert result.status is ExecutionStatus.SUCCESS
    assert result.output == "7\n"


def test_docker_runtime_error_exit_code(engine: SandboxEngine) -> None:
    result = run_code("import sys\nsys.exit(3)", "python", engine=engine)
    assert result.status is ExecutionStatus.RUNTIME_ERROR
    assert result.exit_code == 3


def test_docker_memory_limit_behavior(engine: SandboxEngine) -> None:
    result = run_code("x = bytearray(1024 * 1024 * 1024)", "python", engine=engine)
    assert result.status is ExecutionStatus.RUNTIME_ERROR


def test_docker_workspace_is_read_only_outside_mount(engine: SandboxEngine) -> None:
    code = "from pathlib import Path\nPath('/etc/marker').write_text('x')\n"
    result = run_code(code, "python", engine=engine)
    assert result.status is ExecutionStatus.RUNTIME_ERROR
    assert "Read-only file system" in (result.error or "") or "Permission denied" in (result.error or "")


def test_docker_unavailable_is_system_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PATH", "")
    with SandboxEngine(SandboxPolicy(temp_dir=str(tmp_path))) as sandbox:
        result = run_code("print(1)", "python", engine=sandbox)
    assert result.status is ExecutionStatus.SYSTEM_ERROR
    assert result.error == "Container runtime is not available"
