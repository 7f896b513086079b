from __future__ import annotations

import concurrent.futures
import contextlib
import logging
import subprocess
import threading
import time
from concurrent.futures import Executor, Future
from typing import IO, Callable

from .types import ProcessOutcome

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n[output truncated]\n"
_READ_CHUNK_CHARS = 8192


class _StreamBuffer:
    """Thread-safe line accumulator with a character cap.

    Example:
        ```python
        buf = _StreamBuffer(limit_chars=1024)
        ```
    """

    def __init__(self, limit_chars: int) -> None:
        """Initialize an empty buffer.

        Example:
            ```python
            buf = _StreamBuffer(65536)
            ```
        """
        self._limit = limit_chars
        self._parts: list[str] = []
        self._size = 0
        self._lock = threading.Lock()
        self.truncated = False

    def append(self, line: str) -> None:
        """Keep as much of `line` as fits under the cap.

        Example:
            ```python
            buf.append("hello\\n")
            ```
        """
        with self._lock:
            remaining = self._limit - self._size
            if remaining <= 0:
                self.truncated = True
                return
            if len(line) > remaining:
                line = line[:remaining]
                self.truncated = True
            self._parts.append(line)
            self._size += len(line)

    def text(self) -> str:
        """Return everything captured so far.

        Example:
            ```python
            captured = buf.text()
            ```
        """
        with self._lock:
            captured = "".join(self._parts)
            return captured + TRUNCATION_MARKER if self.truncated else captured


def _drain(stream: IO[str], buffer: _StreamBuffer) -> None:
    """Read a pipe to EOF, feeding bounded lines into the buffer.

    Example:
        ```python
        executor.submit(_drain, process.stdout, buffer)
        ```
    """
    try:
        for line in iter(lambda: stream.readline(_READ_CHUNK_CHARS), ""):
            buffer.append(line)
    finally:
        stream.close()


class OutputCollector:
    """Drain a sandboxed process's streams while a deadline governs its life.

    stdout and stderr are read on two executor tasks from the moment the
    process starts, so a child filling either pipe can never block on its
    parent. The caller's thread owns the deadline and kills on expiry.

    Example:
        ```python
        collector = OutputCollector(ThreadPoolExecutor(max_workers=8))
        outcome = collector.collect(process, timeout_seconds=10)
        ```
    """

    def __init__(
        self,
        executor: Executor,
        *,
        join_timeout: float = 1.0,
        max_output_chars: int = 64 * 1024,
    ) -> None:
        """Bind the collector to a bounded executor.

        Example:
            ```python
            collector = OutputCollector(executor, join_timeout=1.0, max_output_chars=65536)
            ```
        """
        self._executor = executor
        self._join_timeout = join_timeout
        self._max_output_chars = max_output_chars

    def collect(
        self,
        process: subprocess.Popen[str],
        timeout_seconds: float,
        *,
        stdin: str | None = None,
        on_timeout: Callable[[], None] | None = None,
    ) -> ProcessOutcome:
        """Feed stdin, wait up to the deadline, and return captured streams.

        Example:
            ```python
            outcome = collector.collect(process, 5, stdin="3\\n", on_timeout=lambda: None)
            ```
        """
        deadline = time.monotonic() + timeout_seconds
        stdout_buf = _StreamBuffer(self._max_output_chars)
        stderr_buf = _StreamBuffer(self._max_output_chars)
        futures: list[Future[None]] = []
        if process.stdout is not None:
            futures.append(self._executor.submit(_drain, process.stdout, stdout_buf))
        if process.stderr is not None:
            futures.append(self._executor.submit(_drain, process.stderr, stderr_buf))

        self._feed_stdin(process, stdin)

        timed_out = False
        try:
            returncode: int | None = process.wait(timeout=max(0.0, deadline - time.monotonic()))
        except subprocess.TimeoutExpired:
            timed_out = True
            process.kill()
            logger.info("Killed sandbox process %s after %ss", process.pid, timeout_seconds)
            if on_timeout is not None:
                on_timeout()
            returncode = process.wait()

        self._join(futures)
        return ProcessOutcome(
            stdout=stdout_buf.text(),
            stderr=stderr_buf.text(),
            returncode=returncode,
            timed_out=timed_out,
            truncated=stdout_buf.truncated or stderr_buf.truncated,
        )

    def _feed_stdin(self, process: subprocess.Popen[str], stdin: str | None) -> None:
        """Write stdin once and close the pipe so the child never waits for more.

        Example:
            ```python
            collector._feed_stdin(process, "42")
            ```
        """
        if process.stdin is None:
            return
        try:
            if stdin:
                process.stdin.write(stdin if stdin.endswith("\n") else stdin + "\n")
                process.stdin.flush()
        except (BrokenPipeError, ValueError):
            logger.debug("Sandbox process %s closed stdin before reading all input", process.pid)
        finally:
            with contextlib.suppress(BrokenPipeError):
                process.stdin.close()

    def _join(self, futures: list[Future[None]]) -> None:
        """Wait briefly for drain tasks; overruns keep their partial output.

        Example:
            ```python
            collector._join(futures)
            ```
        """
        join_deadline = time.monotonic() + self._join_timeout
        for future in futures:
            try:
                future.result(timeout=max(0.0, join_deadline - time.monotonic()))
            except concurrent.futures.TimeoutError:
                logger.warning("Output drain did not finish within %ss; using partial output", self._join_timeout)
            except (OSError, ValueError):
                logger.warning("Output drain failed", exc_info=True)
