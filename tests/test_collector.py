import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor

from safe_code_runner.execution import OutputCollector
from safe_code_runner.execution.collector import TRUNCATION_MARKER, _StreamBuffer


def _spawn(code: str) -> subprocess.Popen[str]:
    return subprocess.Popen(
        [sys.executable, "-c", code],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
    )


def test_collects_stdout_and_stderr_separately(collector: OutputCollector) -> None:
    process = _spawn("import sys; print('out'); print('err', file=sys.stderr)")
    outcome = collector.collect(process, 10)
    assert outcome.stdout == "out\n"
    assert outcome.stderr == "err\n"
    assert outcome.returncode == 0
    assert outcome.timed_out is False
    assert outcome.truncated is False


def test_stdin_is_written_newline_terminated_and_closed(collector: OutputCollector) -> None:
    process = _spawn("import sys; data = sys.stdin.read(); print(repr(data))")
    outcome = collector.collect(process, 10, stdin="3 4")
    assert outcome.stdout == "'3 4\\n'\n"


def test_no_stdin_gives_immediate_eof(collector: OutputCollector) -> None:
    process = _spawn("import sys; print(len(sys.stdin.read()))")
    outcome = collector.collect(process, 10)
    assert outcome.stdout == "0\n"
    assert outcome.timed_out is False


def test_large_output_on_both_streams_does_not_deadlock(executor: ThreadPoolExecutor) -> None:
    """Verify that a child filling both pipes is drained concurrently."""
    collector = OutputCollector(executor, max_output_chars=1_000_000)
    code = (
        "import sys\n"
        "for _ in range(2000):\n"
        "    sys.stdout.write('o' * 100 + '\\n')\n"
        "    sys.stderr.write('e' * 100 + '\\n')\n"
    )
    outcome = collector.collect(_spawn(code), 20)
    assert outcome.timed_out is False
    assert outcome.returncode == 0
    assert outcome.stdout.count("\n") == 2000
    assert outcome.stderr.count("\n") == 2000


def test_timeout_kills_and_calls_hook(collector: OutputCollector) -> None:
    calls: list[str] = []
    process = _spawn("import sys, time\nprint('started', flush=True)\ntime.sleep(30)")
    outcome = collector.collect(process, 2, on_timeout=lambda: calls.append("removed"))
    assert outcome.timed_out is True
    assert calls == ["removed"]
    assert process.poll() is not None
    assert "started" in outcome.stdout


def test_output_is_capped_with_marker(executor: ThreadPoolExecutor) -> None:
    collector = OutputCollector(executor, max_output_chars=100)
    outcome = collector.collect(_spawn("print('x' * 5000)"), 10)
    assert outcome.truncated is True
    assert outcome.stdout == "x" * 100 + TRUNCATION_MARKER


def test_child_ignoring_stdin_does_not_fail(collector: OutputCollector) -> None:
    outcome = collector.collect(_spawn("print('done')"), 10, stdin="unused")
    assert outcome.stdout == "done\n"
    assert outcome.returncode == 0


def test_stream_buffer_keeps_prefix() -> None:
    buf = _StreamBuffer(limit_chars=5)
    buf.append("abc")
    buf.append("defg")
    buf.append("h")
    assert buf.truncated is True
    assert buf.text() == "abcde" + TRUNCATION_MARKER
