"""Git repository cloning operations."""

import os
from dataclasses import dataclass

from loguru import logger

from .operations import GitCommandRunner, embed_credentials


@dataclass
class CloneResult:
    """Result of a mirror clone."""

    repository_path: str
    refs_count: int = 0


class GitCloner:
    """Mirror-clones source repositories."""

    mirror_dir_name = 'mirror.git'

    def __init__(self, runner: GitCommandRunner):
        """Initialize git cloner.

        Args:
            runner: Git command runner
        """
        self.runner = runner
        self.logger = logger.bind(component='GitCloner')

    async def mirror_clone(
        self, source_url: str, token: str, workspace_path: str
    ) -> CloneResult:
        """Clone all refs of ``source_url`` into ``workspace_path``.

        Args:
            source_url: Source clone URL without credentials
            token: Plaintext source token, embedded in the clone URL
            workspace_path: Workspace directory

        Returns:
            Clone result with the bare mirror path

        Raises:
            ProcessError: If git fails
        """
        clone_url = embed_credentials(source_url, token)
        repo_path = os.path.join(workspace_path, self.mirror_dir_name)

        self.logger.info(f'Cloning repository into {repo_path}')
        await self.runner.run(
            ['clone', '--mirror', clone_url, repo_path],
            cwd=workspace_path,
            secrets=[token],
        )

        refs = await self.runner.run(
            ['for-each-ref', '--format=%(refname)'], cwd=repo_path
        )
        refs_count = len([line for line in refs.splitlines() if line.strip()])

        self.logger.info(f'Git clone completed successfully: {refs_count} refs')
        return CloneResult(repository_path=repo_path, refs_count=refs_count)
