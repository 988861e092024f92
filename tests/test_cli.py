"""Tests for CLI interface."""

import asyncio
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from click.testing import CliRunner

from repo_migrate.api.exceptions import RemoteAuthenticationError
from repo_migrate.cli.main import _run_migration, cli, init
from repo_migrate.config.config import AzureDevOpsConfig, Config, GitHubConfig
from repo_migrate.models.migration import MigrationRecord, MigrationRequest, MigrationStatus
from repo_migrate.models.repository import SourceRepository, TargetUser
from repo_migrate.storage import JsonFileMigrationStore


def make_config(**kwargs):
    return Config(
        source=AzureDevOpsConfig(organization='contoso', token='pat'),
        target=GitHubConfig(token='ghp'),
        **kwargs,
    )


def make_record(status=MigrationStatus.PENDING, **kwargs):
    return MigrationRecord(
        id=1,
        source_location='https://dev.azure.com/contoso/Shop/_git/web',
        target_location='acme/web',
        status=status,
        **kwargs,
    )


def context_client(**attrs):
    client = MagicMock(**attrs)
    client.__enter__.return_value = client
    return client


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_cli_help(self):
        result = self.runner.invoke(cli, ['--help'])

        assert result.exit_code == 0
        assert 'Repository Migration Tool' in result.output
        for command in ('init', 'validate', 'repositories', 'organizations', 'migrate', 'status'):
            assert command in result.output

    def test_cli_version(self):
        result = self.runner.invoke(cli, ['--version'])

        assert result.exit_code == 0
        assert '0.1.0' in result.output

    def test_init_command(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = os.path.join(temp_dir, 'test_config.yaml')

            result = self.runner.invoke(init, ['--output', config_path])

            assert result.exit_code == 0
            assert 'Configuration template created' in result.output
            with open(config_path, 'r') as f:
                content = f.read()
            assert 'source:' in content
            assert 'target:' in content
            assert 'storage:' in content

    def test_migrate_requires_one_source(self):
        result = self.runner.invoke(cli, ['migrate', '--target', 'acme'])
        assert result.exit_code == 2

        result = self.runner.invoke(
            cli,
            ['migrate', '--repository-id', 'r1', '--source-url', 'https://x/y', '-t', 'acme'],
        )
        assert result.exit_code == 2

    @patch('repo_migrate.cli.main._load_config')
    @patch('repo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_command_success(self, mock_run_migration, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_run_migration.return_value = make_record(
            MigrationStatus.COMPLETED, progress=100
        )

        result = self.runner.invoke(
            cli,
            ['migrate', '--source-url', 'https://dev.azure.com/contoso/Shop/_git/web',
             '--target', 'acme', '--private'],
        )

        assert result.exit_code == 0
        assert 'Migration completed successfully' in result.output
        args = mock_run_migration.await_args.args
        assert args[1] is None
        assert args[3] == 'acme'
        assert args[4] is True

    @patch('repo_migrate.cli.main._load_config')
    @patch('repo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_command_failed_record(self, mock_run_migration, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_run_migration.return_value = make_record(
            MigrationStatus.FAILED, progress=40, error='git clone failed (exit 128)'
        )

        result = self.runner.invoke(cli, ['migrate', '--repository-id', 'r1', '-t', 'acme'])

        assert result.exit_code == 1
        assert 'git clone failed (exit 128)' in result.output

    @patch('repo_migrate.cli.main._load_config')
    @patch('repo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_command_intake_error(self, mock_run_migration, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_run_migration.side_effect = RemoteAuthenticationError(
            'Azure DevOps authentication failed: HTTP 401'
        )

        result = self.runner.invoke(cli, ['migrate', '--repository-id', 'r1', '-t', 'acme'])

        assert result.exit_code == 1
        assert 'Azure DevOps authentication failed' in result.output

    @patch('repo_migrate.cli.main._load_config')
    @patch('repo_migrate.cli.main.MigrationOrchestrator')
    def test_migrate_command_end_to_end(self, mock_orchestrator_cls, mock_load_config):
        mock_load_config.return_value = make_config()
        orchestrator = mock_orchestrator_cls.return_value
        orchestrator.build_request = Mock(return_value='request')
        orchestrator.submit = AsyncMock(return_value=make_record())
        orchestrator.wait = AsyncMock(
            return_value=make_record(MigrationStatus.COMPLETED, progress=100)
        )
        orchestrator.is_running = Mock(return_value=True)
        orchestrator.shutdown = AsyncMock()

        result = self.runner.invoke(
            cli,
            ['migrate', '--source-url', 'https://dev.azure.com/contoso/Shop/_git/web',
             '--target', 'acme/web', '--poll-interval', '0.01'],
        )

        assert result.exit_code == 0
        assert 'Migration 1:' in result.output
        assert 'Migration completed successfully' in result.output
        orchestrator.submit.assert_awaited_once_with('request')
        orchestrator.shutdown.assert_awaited_once()

    @patch('repo_migrate.cli.main._load_config')
    @patch('repo_migrate.cli.main.HostClientFactory')
    def test_validate_command(self, mock_factory, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_factory.create_source_client.return_value = context_client(
            validate_token=Mock(return_value=True)
        )
        mock_factory.create_target_client.return_value = context_client(
            get_user=Mock(return_value=TargetUser(id=1, login='octocat'))
        )

        result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 0
        assert 'GitHub user octocat' in result.output

    @patch('repo_migrate.cli.main._load_config')
    @patch('repo_migrate.cli.main.HostClientFactory')
    def test_validate_command_rejected_token(self, mock_factory, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_factory.create_source_client.return_value = context_client(
            validate_token=Mock(return_value=False)
        )
        mock_factory.create_target_client.return_value = context_client(
            get_user=Mock(return_value=TargetUser(id=1, login='octocat'))
        )

        result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 1

    @patch('repo_migrate.cli.main._load_config')
    @patch('repo_migrate.cli.main.HostClientFactory')
    def test_repositories_command(self, mock_factory, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_factory.create_source_client.return_value = context_client(
            list_repositories=Mock(
                return_value=[
                    SourceRepository(
                        id='r1',
                        name='web',
                        remote_url='https://dev.azure.com/contoso/Shop/_git/web',
                    )
                ]
            )
        )

        result = self.runner.invoke(cli, ['repositories'])

        assert result.exit_code == 0
        assert 'web' in result.output

    @patch('repo_migrate.cli.main._load_config')
    def test_status_command(self, mock_load_config, tmp_path):
        path = str(tmp_path / 'migrations.json')
        mock_load_config.return_value = make_config(
            storage={'backend': 'json', 'path': path}
        )
        store = JsonFileMigrationStore(path)
        asyncio.run(
            store.create(
                MigrationRequest(
                    source_location='https://dev.azure.com/contoso/Shop/_git/web',
                    target_location='acme/web',
                    source_credential='enc-s',
                    target_credential='enc-t',
                )
            )
        )

        result = self.runner.invoke(cli, ['status'])
        detail = self.runner.invoke(cli, ['status', '1'])
        missing = self.runner.invoke(cli, ['status', '9'])

        assert result.exit_code == 0
        assert 'Migrations' in result.output
        assert detail.exit_code == 0
        assert 'acme/web' in detail.output
        assert 'pending' in detail.output
        assert 'enc-s' not in detail.output
        assert missing.exit_code == 1

    @patch('repo_migrate.cli.main._load_config')
    def test_status_memory_store_empty(self, mock_load_config):
        mock_load_config.return_value = make_config()

        result = self.runner.invoke(cli, ['status'])

        assert result.exit_code == 0
        assert 'No migrations recorded' in result.output


class TestRunMigration:
    """Test submission and polling behind the migrate command."""

    def orchestrator_mock(self):
        orchestrator = Mock()
        orchestrator.build_request = Mock(return_value='request')
        orchestrator.submit = AsyncMock(return_value=make_record())
        orchestrator.submit_source_repository = AsyncMock(return_value=make_record())
        orchestrator.wait = AsyncMock(
            side_effect=[
                make_record(MigrationStatus.IN_PROGRESS, progress=40),
                make_record(MigrationStatus.COMPLETED, progress=100),
            ]
        )
        orchestrator.is_running = Mock(return_value=True)
        orchestrator.shutdown = AsyncMock()
        return orchestrator

    @pytest.mark.asyncio
    @patch('repo_migrate.cli.main.MigrationOrchestrator')
    async def test_polls_until_terminal(self, mock_orchestrator_cls):
        orchestrator = self.orchestrator_mock()
        mock_orchestrator_cls.return_value = orchestrator

        record = await _run_migration(
            make_config(), None, 'https://dev.azure.com/contoso/Shop/_git/web',
            'acme/web', None, 0.01,
        )

        assert record.status == MigrationStatus.COMPLETED
        assert orchestrator.wait.await_count == 2
        orchestrator.build_request.assert_called_once_with(
            'https://dev.azure.com/contoso/Shop/_git/web', 'acme/web', 'pat', 'ghp',
            private=None,
        )
        orchestrator.submit.assert_awaited_once_with('request')
        orchestrator.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    @patch('repo_migrate.cli.main.HostClientFactory')
    @patch('repo_migrate.cli.main.MigrationOrchestrator')
    async def test_repository_id_with_owner_target(self, mock_orchestrator_cls, mock_factory):
        orchestrator = self.orchestrator_mock()
        mock_orchestrator_cls.return_value = orchestrator
        repository = SourceRepository(
            id='r1', name='web', remote_url='https://dev.azure.com/contoso/Shop/_git/web'
        )
        mock_factory.create_source_client.return_value = context_client(
            get_repository=Mock(return_value=repository)
        )

        await _run_migration(make_config(), 'r1', None, 'acme', True, 0.01)

        orchestrator.submit_source_repository.assert_awaited_once_with(
            repository, 'acme', private=True
        )
        orchestrator.submit.assert_not_called()

    @pytest.mark.asyncio
    @patch('repo_migrate.cli.main.MigrationOrchestrator')
    async def test_stops_when_task_ends_without_terminal_record(self, mock_orchestrator_cls):
        orchestrator = self.orchestrator_mock()
        orchestrator.wait = AsyncMock(return_value=make_record())
        orchestrator.is_running = Mock(return_value=False)
        mock_orchestrator_cls.return_value = orchestrator

        record = await _run_migration(
            make_config(), None, 'https://dev.azure.com/contoso/Shop/_git/web',
            'acme', None, 0.01,
        )

        assert record.status == MigrationStatus.PENDING
        orchestrator.shutdown.assert_awaited_once()
