"""Scratch workspaces for repository transfers."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from loguru import logger

from ..exceptions import WorkspaceError


class ScopedWorkspace:
    """A uniquely named scratch directory removed when its scope exits.

    Usable as a sync or async context manager. Removal is best-effort and
    never raises, so it cannot mask the outcome of the enclosing operation.
    """

    def __init__(self, path: str):
        self.path = path
        self.released = False
        self.logger = logger.bind(component='ScopedWorkspace')

    def release(self) -> None:
        """Remove the workspace directory tree."""
        if self.released:
            return
        self.released = True

        try:
            if os.path.exists(self.path):
                shutil.rmtree(self.path)
                self.logger.debug(f'Cleaned up workspace: {self.path}')
        except Exception as e:
            self.logger.warning(f'Failed to cleanup workspace {self.path}: {e}')

    def __enter__(self) -> 'ScopedWorkspace':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    async def __aenter__(self) -> 'ScopedWorkspace':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f'ScopedWorkspace({self.path!r})'


class WorkspaceManager:
    """Allocates isolated workspaces under a scratch root."""

    prefix = 'repo-migration-'

    def __init__(self, scratch_root: Optional[str] = None):
        """Initialize workspace manager.

        Args:
            scratch_root: Parent directory for workspaces; system temp when None
        """
        self.scratch_root = scratch_root
        self.logger = logger.bind(component='WorkspaceManager')

    def acquire(self) -> ScopedWorkspace:
        """Create a new empty workspace.

        Raises:
            WorkspaceError: If the directory cannot be created
        """
        try:
            if self.scratch_root:
                Path(self.scratch_root).mkdir(parents=True, exist_ok=True)
            # mkdtemp picks a random suffix and creates atomically, so
            # concurrent callers never share a path
            path = tempfile.mkdtemp(prefix=self.prefix, dir=self.scratch_root)
        except OSError as e:
            raise WorkspaceError(f'Failed to create workspace: {e}') from e

        self.logger.info(f'Created workspace: {path}')
        return ScopedWorkspace(path)
