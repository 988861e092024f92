"""Git repository pushing operations."""

from dataclasses import dataclass

from loguru import logger

from .operations import GitCommandRunner, embed_credentials

# GitHub accepts any user name alongside a token; this one is conventional
TOKEN_USERNAME = 'x-access-token'


@dataclass
class PushResult:
    """Result of a mirror push."""

    target_url: str


class GitPusher:
    """Mirror-pushes a local mirror to the target host."""

    def __init__(self, runner: GitCommandRunner):
        """Initialize git pusher.

        Args:
            runner: Git command runner
        """
        self.runner = runner
        self.logger = logger.bind(component='GitPusher')

    async def mirror_push(
        self, repository_path: str, target_url: str, token: str
    ) -> PushResult:
        """Re-point ``origin`` at the target and push every ref.

        Args:
            repository_path: Local bare mirror
            target_url: Target clone URL without credentials
            token: Plaintext target token, embedded in the push URL

        Returns:
            Push result

        Raises:
            ProcessError: If git fails
        """
        push_url = embed_credentials(target_url, token, username=TOKEN_USERNAME)

        self.logger.info(f'Setting up remote {target_url}')
        await self.runner.run(
            ['remote', 'set-url', 'origin', push_url],
            cwd=repository_path,
            secrets=[token],
        )

        self.logger.info(f'Pushing all refs to {target_url}')
        await self.runner.run(
            ['push', '--mirror', 'origin'], cwd=repository_path, secrets=[token]
        )

        self.logger.info(f'Git push completed successfully to {target_url}')
        return PushResult(target_url=target_url)
