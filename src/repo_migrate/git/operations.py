"""Git command execution and authenticated URL helpers."""

import asyncio
import os
import re
from typing import Iterable, List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from loguru import logger

from ..exceptions import ProcessError

MASK = '***'

_URL_USERINFO = re.compile(r'(https?://)[^/@\s]+@')


def embed_credentials(url: str, token: str, username: str = '') -> str:
    """Return ``url`` with ``username:token`` as its userinfo.

    Any userinfo already present (Azure DevOps clone URLs carry the
    organization name there) is replaced.
    """
    parts = urlsplit(url)
    if parts.scheme not in ('http', 'https'):
        raise ValueError(f'Only HTTP(S) URLs can carry credentials: {url!r}')

    host = parts.hostname or ''
    if parts.port:
        host = f'{host}:{parts.port}'
    userinfo = f'{quote(username, safe="")}:{quote(token, safe="")}'
    return urlunsplit(
        (parts.scheme, f'{userinfo}@{host}', parts.path, parts.query, parts.fragment)
    )


def mask_secrets(text: str, secrets: Iterable[str] = ()) -> str:
    """Hide tokens and URL userinfo in text destined for logs or errors."""
    if not text:
        return text
    for secret in secrets:
        if secret:
            text = text.replace(secret, MASK)
            quoted = quote(secret, safe='')
            if quoted != secret:
                text = text.replace(quoted, MASK)
    return _URL_USERINFO.sub(rf'\1{MASK}@', text)


class GitCommandRunner:
    """Runs git as an external process, without blocking the event loop."""

    def __init__(self, executable: str = 'git', timeout: int = 3600):
        """Initialize git command runner.

        Args:
            executable: Git executable
            timeout: Per-command timeout in seconds
        """
        self.executable = executable
        self.timeout = timeout
        self.logger = logger.bind(component='GitCommandRunner')

    async def run(
        self,
        args: List[str],
        cwd: Optional[str] = None,
        secrets: Iterable[str] = (),
    ) -> str:
        """Run a git command.

        Args:
            args: Arguments after the executable
            cwd: Working directory
            secrets: Values to mask in logs and error text

        Returns:
            Captured standard output

        Raises:
            ProcessError: If git exits non-zero, times out, or cannot start
        """
        secrets = list(secrets)
        masked_cmd = mask_secrets(' '.join([self.executable, *args]), secrets)
        verb = args[0] if args else ''
        self.logger.info(f'Executing git command: {masked_cmd}')

        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=cwd,
                env=self._environment(),
            )
        except OSError as e:
            raise ProcessError(
                f'git {verb} could not be started: {e}', command=masked_cmd
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            self.logger.error(f'git {verb} timed out after {self.timeout} seconds')
            raise ProcessError(
                f'git {verb} timed out after {self.timeout} seconds',
                command=masked_cmd,
            )
        except asyncio.CancelledError:
            await self._kill(process)
            self.logger.warning(f'git {verb} cancelled, process {process.pid} killed')
            raise

        stdout_text = stdout.decode(errors='replace') if stdout else ''
        stderr_text = mask_secrets(
            stderr.decode(errors='replace').strip() if stderr else '', secrets
        )

        self.logger.debug(f'Git command return code: {process.returncode}')
        if process.returncode != 0:
            self.logger.error(
                f'git {verb} failed with return code {process.returncode}: {stderr_text}'
            )
            detail = stderr_text or 'Unknown error'
            raise ProcessError(
                f'git {verb} failed (exit {process.returncode}): {detail}',
                command=masked_cmd,
                returncode=process.returncode,
                stderr=stderr_text,
            )

        if stderr_text:
            self.logger.debug(f'Git stderr: {stderr_text}')
        return stdout_text

    @staticmethod
    def _environment() -> dict:
        env = dict(os.environ)
        # Fail instead of waiting for a credential prompt
        env['GIT_TERMINAL_PROMPT'] = '0'
        return env

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                # Exited between the check and the signal
                pass
        await process.wait()
