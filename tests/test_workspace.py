"""Tests for scratch workspaces."""

import os
from unittest.mock import patch

import pytest

from repo_migrate.exceptions import WorkspaceError
from repo_migrate.git.workspace import ScopedWorkspace, WorkspaceManager


class TestWorkspaceManager:
    """Test workspace allocation."""

    def test_acquire_creates_empty_directory(self, tmp_path):
        manager = WorkspaceManager(str(tmp_path))

        workspace = manager.acquire()

        assert os.path.isdir(workspace.path)
        assert os.listdir(workspace.path) == []
        assert os.path.dirname(workspace.path) == str(tmp_path)
        assert os.path.basename(workspace.path).startswith('repo-migration-')
        workspace.release()

    def test_acquire_creates_missing_scratch_root(self, tmp_path):
        root = tmp_path / 'scratch' / 'root'
        workspace = WorkspaceManager(str(root)).acquire()

        assert root.is_dir()
        workspace.release()

    def test_paths_are_unique(self, tmp_path):
        manager = WorkspaceManager(str(tmp_path))
        workspaces = [manager.acquire() for _ in range(20)]

        assert len({w.path for w in workspaces}) == 20
        for workspace in workspaces:
            workspace.release()

    def test_creation_failure(self, tmp_path):
        manager = WorkspaceManager(str(tmp_path))

        with patch('tempfile.mkdtemp', side_effect=OSError('disk full')):
            with pytest.raises(WorkspaceError) as exc_info:
                manager.acquire()

        assert 'disk full' in str(exc_info.value)


class TestScopedWorkspace:
    """Test guaranteed workspace removal."""

    def test_removed_on_normal_exit(self, tmp_path):
        with WorkspaceManager(str(tmp_path)).acquire() as workspace:
            with open(os.path.join(workspace.path, 'file.txt'), 'w') as f:
                f.write('data')
            os.makedirs(os.path.join(workspace.path, 'nested', 'dir'))

        assert not os.path.exists(workspace.path)

    def test_removed_on_exception(self, tmp_path):
        with pytest.raises(RuntimeError):
            with WorkspaceManager(str(tmp_path)).acquire() as workspace:
                raise RuntimeError('stage failed')

        assert not os.path.exists(workspace.path)

    @pytest.mark.asyncio
    async def test_async_context_manager(self, tmp_path):
        async with WorkspaceManager(str(tmp_path)).acquire() as workspace:
            assert os.path.isdir(workspace.path)

        assert not os.path.exists(workspace.path)

    def test_release_twice(self, tmp_path):
        workspace = WorkspaceManager(str(tmp_path)).acquire()

        workspace.release()
        workspace.release()

        assert workspace.released is True

    def test_cleanup_failure_does_not_raise(self, tmp_path):
        workspace = WorkspaceManager(str(tmp_path)).acquire()

        with patch('shutil.rmtree', side_effect=PermissionError('busy')):
            workspace.release()

        assert workspace.released is True
        os.rmdir(workspace.path)

    def test_cleanup_failure_does_not_shadow_error(self, tmp_path):
        workspace = WorkspaceManager(str(tmp_path)).acquire()

        with patch('shutil.rmtree', side_effect=PermissionError('busy')):
            with pytest.raises(RuntimeError, match='clone failed'):
                with workspace:
                    raise RuntimeError('clone failed')

        os.rmdir(workspace.path)

    def test_missing_directory(self, tmp_path):
        workspace = ScopedWorkspace(str(tmp_path / 'gone'))
        workspace.release()
        assert workspace.released is True
