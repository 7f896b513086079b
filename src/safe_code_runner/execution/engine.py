from __future__ import annotations

from typing import Protocol


class RuntimeProbe(Protocol):
    def is_runtime_available(self) -> bool:
        """Return True when sandbox containers can be launched right now.

        Example:
            ```python
            if not probe.is_runtime_available():
                ...
            ```
        """
        ...
