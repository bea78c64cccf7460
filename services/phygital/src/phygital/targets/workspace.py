"""Scoped temporary directories for target compilation."""

from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from common.logging import get_logger

LOGGER = get_logger(__name__)

WORKSPACE_PREFIX = "phygital_mind_"


class TemporaryWorkspace:
    """Directory owned by a single compilation call."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._files: List[Path] = []

    def file(self, name: str) -> Path:
        """Reserve a file path inside the workspace; it is removed on cleanup."""

        path = self.path / name
        self._files.append(path)
        return path

    def cleanup(self) -> None:
        """Remove tracked files, then the directory. Never raises."""

        for path in self._files:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                LOGGER.warning("Failed to remove temp file", path=str(path), error=str(exc))
        if not self.path.exists():
            return
        try:
            leftovers = [entry.name for entry in self.path.iterdir()]
            if leftovers:
                LOGGER.debug("Removing untracked temp files", path=str(self.path), files=leftovers)
            shutil.rmtree(self.path)
        except OSError as exc:
            LOGGER.warning("Failed to remove temp workspace", path=str(self.path), error=str(exc))


@contextmanager
def temp_workspace(
    root: Optional[Union[str, Path]] = None,
    prefix: str = WORKSPACE_PREFIX,
) -> Iterator[TemporaryWorkspace]:
    """Create a uniquely named directory and remove it on every exit path."""

    if root is not None:
        Path(root).mkdir(parents=True, exist_ok=True)
    workspace = TemporaryWorkspace(Path(tempfile.mkdtemp(prefix=prefix, dir=root)))
    LOGGER.debug("Created temp workspace", path=str(workspace.path))
    try:
        yield workspace
    finally:
        workspace.cleanup()


__all__ = ["TemporaryWorkspace", "temp_workspace"]
