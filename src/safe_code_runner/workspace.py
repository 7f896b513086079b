from __future__ import annotations

import contextlib
import logging
import re
import shutil
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .errors import WorkspaceError
from .languages import LanguageProfile
from .policy import DEFAULT_TEMP_DIR

logger = logging.getLogger(__name__)

_CLASS_DECLARATION = re.compile(r"class\s+\w+")


@dataclass(frozen=True, slots=True)
class Workspace:
    """Ephemeral directory exclusively owned by one execution.

    Example:
        ```python
        ws = Workspace("exec_1_2_ab12cd34", Path("/tmp/code-execution/exec_1_2_ab12cd34"))
        ```
    """

    id: str
    path: Path


def new_workspace_id() -> str:
    """Return an id unique across concurrently executing requests.

    Example:
        ```python
        ws_id = new_workspace_id()
        ```
    """
    return f"exec_{time.monotonic_ns()}_{threading.get_ident()}_{uuid.uuid4().hex[:8]}"


def rename_entry_class(code: str, entry_class: str) -> str:
    """Rename the first declared class to the fixed entry-class name.

    Plain textual substitution; the source is not parsed.

    Example:
        ```python
        code = rename_entry_class("public class Hello {}", "Main")
        ```
    """
    if re.search(rf"class\s+{re.escape(entry_class)}\b", code):
        return code
    return _CLASS_DECLARATION.sub(f"class {entry_class}", code, count=1)


class WorkspaceManager:
    """Create, populate, and destroy per-request workspaces.

    Example:
        ```python
        manager = WorkspaceManager("/tmp/code-execution")
        with manager.session() as ws:
            manager.write_source(ws, "print(1)", profile)
        ```
    """

    def __init__(self, base_dir: str | Path = DEFAULT_TEMP_DIR) -> None:
        """Remember the base directory; nothing is created until `create`.

        Example:
            ```python
            manager = WorkspaceManager(Path("/srv/sandbox"))
            ```
        """
        self._base_dir = Path(base_dir).expanduser()

    @property
    def base_dir(self) -> Path:
        """Return the directory that holds all workspaces.

        Example:
            ```python
            root = manager.base_dir
            ```
        """
        return self._base_dir

    def create(self) -> Workspace:
        """Create a fresh, uniquely named workspace directory.

        Example:
            ```python
            ws = manager.create()
            ```
        """
        workspace_id = new_workspace_id()
        path = self._base_dir / workspace_id
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            path.mkdir(exist_ok=False)
            # The sandbox user is not the host user and must write build artifacts here.
            path.chmod(0o777)
        except OSError as exc:
            raise WorkspaceError(f"Failed to create execution workspace: {exc}") from exc
        logger.debug("Created workspace %s", path)
        return Workspace(id=workspace_id, path=path)

    def write_source(self, workspace: Workspace, code: str, profile: LanguageProfile) -> Path:
        """Write the submission into the workspace under the profile's file name.

        Example:
            ```python
            source = manager.write_source(ws, "class Hello {}", registry.resolve("java"))
            ```
        """
        content = code
        if profile.entry_class:
            content = rename_entry_class(code, profile.entry_class)
        source_path = workspace.path / profile.source_file
        try:
            source_path.write_text(content, encoding="utf-8")
            source_path.chmod(0o644)
        except OSError as exc:
            raise WorkspaceError(f"Failed to write source file: {exc}") from exc
        return source_path

    def destroy(self, workspace: Workspace) -> None:
        """Delete a workspace recursively, logging instead of raising on failure.

        Example:
            ```python
            manager.destroy(ws)
            ```
        """
        try:
            shutil.rmtree(workspace.path)
        except FileNotFoundError:
            return
        except OSError:
            logger.warning("Failed to clean up execution workspace %s", workspace.path, exc_info=True)
            return
        logger.debug("Removed workspace %s", workspace.path)

    @contextlib.contextmanager
    def session(self) -> Iterator[Workspace]:
        """Yield a new workspace and destroy it on every exit path.

        Example:
            ```python
            with manager.session() as ws:
                ...
            ```
        """
        workspace = self.create()
        try:
            yield workspace
        finally:
            self.destroy(workspace)
