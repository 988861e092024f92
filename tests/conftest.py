"""Shared fixtures for migration tests."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from repo_migrate.config.config import AzureDevOpsConfig, Config, GitConfig, GitHubConfig
from repo_migrate.models.repository import TargetRepository, TargetUser
from repo_migrate.security.credentials import CredentialUnwrapper


class FakeGitRunner:
    """Stands in for GitCommandRunner, recording every invocation."""

    def __init__(self):
        self.calls = []
        self.fail_on = None
        self.error = None
        self.block_on = None
        self._blocked = None
        self._release = None

    @property
    def blocked(self):
        if self._blocked is None:
            self._blocked = asyncio.Event()
        return self._blocked

    @property
    def release(self):
        if self._release is None:
            self._release = asyncio.Event()
        return self._release

    async def run(self, args, cwd=None, secrets=()):
        self.calls.append((list(args), cwd))
        verb = args[0]

        if verb == self.block_on:
            self.blocked.set()
            await self.release.wait()
        if verb == self.fail_on:
            raise self.error
        if verb == 'for-each-ref':
            return 'refs/heads/main\nrefs/tags/v1.0\n'
        return ''

    def verbs(self):
        return [args[0] for args, _ in self.calls]

    def cwd_of(self, verb):
        return [cwd for args, cwd in self.calls if args[0] == verb]


@pytest.fixture
def scratch_root(tmp_path):
    root = tmp_path / 'scratch'
    root.mkdir()
    return root


@pytest.fixture
def config(scratch_root):
    return Config(
        source=AzureDevOpsConfig(organization='contoso', token='source-pat'),
        target=GitHubConfig(token='target-ghp'),
        git=GitConfig(temp_dir=str(scratch_root)),
    )


@pytest.fixture
def unwrapper():
    return CredentialUnwrapper(CredentialUnwrapper.generate_key())


@pytest.fixture
def git_runner():
    return FakeGitRunner()


@pytest.fixture
def target_client():
    client = Mock()
    client.get_user_async = AsyncMock(return_value=TargetUser(id=1, login='octocat'))
    client.create_repository = AsyncMock(
        side_effect=lambda name, organization=None, private=False: TargetRepository(
            name=name, full_name=f'{organization or "octocat"}/{name}', private=private
        )
    )
    return client


@pytest.fixture
def client_factory(target_client):
    factory = Mock()
    factory.create_target_client.return_value = target_client
    return factory
