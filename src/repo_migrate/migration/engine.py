"""Transfer engine - drives one repository migration to a terminal state."""

import asyncio
from typing import List, Optional

from loguru import logger

from ..api.client import GitHubClient, HostClientFactory
from ..api.exceptions import RepositoryExistsError
from ..config.config import Config
from ..exceptions import MigrationError
from ..git.clone import GitCloner
from ..git.operations import GitCommandRunner, mask_secrets
from ..git.push import GitPusher
from ..git.workspace import WorkspaceManager
from ..models.migration import Checkpoint, MigrationRecord
from ..models.repository import (
    TargetRepository,
    normalize_repository_name,
    parse_source_repository_name,
    parse_target_location,
)
from ..security.credentials import CredentialUnwrapper
from ..storage.interface import MigrationStore
from .tracker import StatusTracker


def describe_error(error: BaseException) -> str:
    """Turn an exception into the text stored on a failed record."""
    if isinstance(error, (MigrationError, ValueError)):
        message = str(error)
    else:
        message = f'{type(error).__name__}: {error}' if str(error) else type(error).__name__
    return message or 'Migration failed'


class TransferEngine:
    """Runs the mirror-clone / ensure-target / mirror-push sequence.

    ``run`` is the only entry point. It never raises for transfer
    failures: every error is committed to the record as ``failed``.
    """

    def __init__(
        self,
        config: Config,
        store: MigrationStore,
        tracker: StatusTracker,
        unwrapper: CredentialUnwrapper,
        client_factory: Optional[HostClientFactory] = None,
        workspace_manager: Optional[WorkspaceManager] = None,
        runner: Optional[GitCommandRunner] = None,
    ):
        """Initialize transfer engine.

        Args:
            config: Tool configuration
            store: Migration registry
            tracker: Status tracker bound to the same registry
            unwrapper: Credential unwrapper
            client_factory: Host client factory
            workspace_manager: Workspace allocator
            runner: Git command runner
        """
        self.config = config
        self.store = store
        self.tracker = tracker
        self.unwrapper = unwrapper
        self.client_factory = client_factory or HostClientFactory()
        self.workspace_manager = workspace_manager or WorkspaceManager(
            config.git.temp_dir
        )

        runner = runner or GitCommandRunner(
            executable=config.git.executable, timeout=config.git.timeout
        )
        self.cloner = GitCloner(runner)
        self.pusher = GitPusher(runner)

        self.logger = logger.bind(component='TransferEngine')

    async def run(self, migration_id: int) -> Optional[MigrationRecord]:
        """Execute the migration bound to ``migration_id``.

        Args:
            migration_id: Identifier of a ``pending`` record

        Returns:
            The terminal record, or None if the migration could not start
        """
        log = self.logger.bind(migration_id=migration_id)

        try:
            record = await self.tracker.start(migration_id)
        except MigrationError as e:
            log.error(f'Migration {migration_id} could not start: {e}')
            return None

        secrets: List[str] = []

        try:
            await self._transfer(record, secrets)
        except asyncio.CancelledError:
            log.warning(f'Migration {migration_id} cancelled')
            await self._record_cancelled(migration_id)
            raise
        except Exception as e:
            message = mask_secrets(describe_error(e), secrets)
            log.error(f'Migration {migration_id} failed: {message}')
            await self._record_failure(migration_id, message)

        return await self.store.get(migration_id)

    async def _transfer(self, record: MigrationRecord, secrets: List[str]) -> None:
        migration_id = record.id
        log = self.logger.bind(migration_id=migration_id)

        log.info(
            f'Starting migration {migration_id}: '
            f'{record.source_location} -> {record.target_location}'
        )
        await self.tracker.set_progress(migration_id, Checkpoint.BEGUN)

        credentials = await self.store.get_credentials(migration_id)
        source_token = self.unwrapper.unwrap(credentials.source)
        secrets.append(source_token)
        target_token = self.unwrapper.unwrap(credentials.target)
        secrets.append(target_token)

        owner, target_name = parse_target_location(record.target_location)
        repository_name = normalize_repository_name(
            target_name or parse_source_repository_name(record.source_location)
        )
        await self.tracker.set_progress(migration_id, Checkpoint.SOURCE_PARSED)

        with self.workspace_manager.acquire() as workspace:
            await self.tracker.set_progress(migration_id, Checkpoint.WORKSPACE_READY)

            clone = await self.cloner.mirror_clone(
                record.source_location, source_token, workspace.path
            )
            await self.tracker.set_progress(migration_id, Checkpoint.CLONED)

            target_client = self.client_factory.create_target_client(
                self.config.target, target_token
            )
            try:
                await self._ensure_target_repository(
                    target_client, owner, repository_name, record.private
                )
            finally:
                target_client.close()
            await self.tracker.set_progress(migration_id, Checkpoint.TARGET_READY)

            target_url = f'{self.config.target.git_url}/{owner}/{repository_name}.git'
            await self.pusher.mirror_push(
                clone.repository_path, target_url, target_token
            )
            await self.tracker.set_progress(migration_id, Checkpoint.PUSHED)

        await self.tracker.complete(migration_id)
        log.info(f'Migration {migration_id} completed: {clone.refs_count} refs pushed')

    async def _ensure_target_repository(
        self, client: GitHubClient, owner: str, name: str, private: bool
    ) -> TargetRepository:
        """Create the target repository, accepting one that already exists."""
        user = await client.get_user_async()
        organization = None if owner.lower() == user.login.lower() else owner

        try:
            return await client.create_repository(
                name, organization=organization, private=private
            )
        except RepositoryExistsError:
            self.logger.info(f'Target repository {owner}/{name} already exists')
            return TargetRepository(
                name=name, full_name=f'{owner}/{name}', private=private, created=False
            )

    async def _record_failure(self, migration_id: int, message: str) -> None:
        try:
            await self.tracker.fail(migration_id, message)
        except MigrationError as e:
            self.logger.error(
                f'Could not record failure of migration {migration_id}: {e}'
            )

    async def _record_cancelled(self, migration_id: int) -> None:
        try:
            await self.tracker.cancel(migration_id)
        except MigrationError as e:
            self.logger.debug(f'Migration {migration_id} not marked cancelled: {e}')
