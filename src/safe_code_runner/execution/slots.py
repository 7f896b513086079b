from __future__ import annotations

import contextlib
import logging
import threading
from typing import Iterator

from ..errors import CapacityError

logger = logging.getLogger(__name__)


class ExecutionSlots:
    """Bounded admission control for concurrently running sandboxes.

    Callers beyond the ceiling queue for up to `acquire_timeout` seconds and
    are then rejected with `CapacityError`.

    Example:
        ```python
        slots = ExecutionSlots(max_concurrent=4, acquire_timeout=30)
        with slots.acquire():
            ...
        ```
    """

    def __init__(self, max_concurrent: int, acquire_timeout: float) -> None:
        """Initialize the semaphore and in-use counter.

        Example:
            ```python
            slots = ExecutionSlots(2, 5)
            ```
        """
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")
        self._max_concurrent = max_concurrent
        self._acquire_timeout = acquire_timeout
        self._semaphore = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._in_use = 0

    @property
    def max_concurrent(self) -> int:
        """Return the configured ceiling.

        Example:
            ```python
            ceiling = slots.max_concurrent
            ```
        """
        return self._max_concurrent

    @property
    def in_use(self) -> int:
        """Return how many slots are currently held.

        Example:
            ```python
            busy = slots.in_use
            ```
        """
        with self._lock:
            return self._in_use

    @contextlib.contextmanager
    def acquire(self) -> Iterator[None]:
        """Hold one slot for the duration of the block.

        Example:
            ```python
            with slots.acquire():
                run_sandbox()
            ```
        """
        if not self._semaphore.acquire(timeout=self._acquire_timeout):
            logger.warning(
                "Execution capacity exhausted: %d sandboxes busy for %ss", self._max_concurrent, self._acquire_timeout
            )
            raise CapacityError(
                f"Timed out waiting for a free execution slot after {self._acquire_timeout}s"
            )
        with self._lock:
            self._in_use += 1
        try:
            yield
        finally:
            with self._lock:
                self._in_use -= 1
            self._semaphore.release()
