"""Migration orchestrator: request intake and per-migration task dispatch."""

import asyncio
from typing import Dict, List, Optional

from loguru import logger

from ..api.client import HostClientFactory
from ..config.config import Config
from ..exceptions import CredentialError, InvalidTransitionError, MigrationNotFoundError
from ..models.migration import MigrationRecord, MigrationRequest
from ..models.repository import SourceRepository
from ..security.credentials import CredentialUnwrapper
from ..storage.in_memory import InMemoryMigrationStore
from ..storage.interface import MigrationStore
from .engine import TransferEngine
from .tracker import StatusTracker


class MigrationOrchestrator:
    """Accepts migration requests and runs each one as its own task.

    ``submit`` returns the ``pending`` record before the transfer starts.
    Callers poll ``get`` until the record reaches a terminal status.
    """

    def __init__(
        self,
        config: Config,
        store: Optional[MigrationStore] = None,
        unwrapper: Optional[CredentialUnwrapper] = None,
        engine: Optional[TransferEngine] = None,
        client_factory: Optional[HostClientFactory] = None,
    ):
        """Initialize migration orchestrator.

        Args:
            config: Tool configuration
            store: Migration registry, in-memory by default
            unwrapper: Credential unwrapper, keyed from the security config by default
            engine: Transfer engine, built from the other arguments by default
            client_factory: Host client factory handed to the default engine
        """
        self.config = config
        self.store = store or InMemoryMigrationStore()
        self.unwrapper = unwrapper or CredentialUnwrapper(
            config.security.encryption_key
        )
        self.tracker = StatusTracker(self.store)
        self.engine = engine or TransferEngine(
            config,
            self.store,
            self.tracker,
            self.unwrapper,
            client_factory=client_factory,
        )

        self._tasks: Dict[int, asyncio.Task] = {}
        self.logger = logger.bind(component='MigrationOrchestrator')

    def build_request(
        self,
        source_location: str,
        target_location: str,
        source_token: Optional[str],
        target_token: Optional[str],
        private: Optional[bool] = None,
    ) -> MigrationRequest:
        """Build a request, encrypting both plaintext tokens.

        Raises:
            CredentialError: If a token is missing
            DecryptionError: If no encryption key is available
        """
        if not source_token:
            raise CredentialError('Source host token is required')
        if not target_token:
            raise CredentialError('Target host token is required')

        return MigrationRequest(
            source_location=source_location,
            target_location=target_location,
            source_credential=self.unwrapper.encrypt(source_token),
            target_credential=self.unwrapper.encrypt(target_token),
            private=self.config.target.private if private is None else private,
        )

    async def submit(self, request: MigrationRequest) -> MigrationRecord:
        """Create a ``pending`` record and start its transfer in the background."""
        record = await self.store.create(request)
        self._spawn(record.id)
        return record

    async def submit_source_repository(
        self,
        repository: SourceRepository,
        target_owner: str,
        source_token: Optional[str] = None,
        target_token: Optional[str] = None,
        private: Optional[bool] = None,
    ) -> MigrationRecord:
        """Migrate a repository looked up on the source host.

        The target is ``<target_owner>/<repository name>``. Tokens default to
        the ones in the configuration.
        """
        request = self.build_request(
            source_location=repository.remote_url,
            target_location=f'{target_owner}/{repository.name}',
            source_token=source_token or self.config.source.token,
            target_token=target_token or self.config.target.token,
            private=private,
        )
        return await self.submit(request)

    def _spawn(self, migration_id: int) -> asyncio.Task:
        task = asyncio.create_task(
            self.engine.run(migration_id), name=f'migration-{migration_id}'
        )
        self._tasks[migration_id] = task
        task.add_done_callback(lambda t: self._on_task_done(migration_id, t))
        self.logger.debug(f'Dispatched migration {migration_id}')
        return task

    def _on_task_done(self, migration_id: int, task: asyncio.Task) -> None:
        self._tasks.pop(migration_id, None)
        if task.cancelled():
            self.logger.info(f'Migration task {migration_id} cancelled')
            return
        error = task.exception()
        if error is not None:
            self.logger.error(f'Migration task {migration_id} crashed: {error!r}')

    async def get(self, migration_id: int) -> MigrationRecord:
        """Get a record by identifier.

        Raises:
            MigrationNotFoundError: If the identifier is unknown
        """
        record = await self.store.get(migration_id)
        if record is None:
            raise MigrationNotFoundError(migration_id)
        return record

    async def list(self) -> List[MigrationRecord]:
        return await self.store.list()

    def is_running(self, migration_id: int) -> bool:
        task = self._tasks.get(migration_id)
        return task is not None and not task.done()

    async def wait(
        self, migration_id: int, timeout: Optional[float] = None
    ) -> MigrationRecord:
        """Wait for the migration's task to finish and return the record.

        Returns the current record if the task is still running when
        ``timeout`` expires.
        """
        task = self._tasks.get(migration_id)
        if task is not None:
            await asyncio.wait({task}, timeout=timeout)
        return await self.get(migration_id)

    async def cancel(self, migration_id: int) -> MigrationRecord:
        """Cancel a pending or running migration.

        Raises:
            MigrationNotFoundError: If the identifier is unknown
            InvalidTransitionError: If the migration already finished
        """
        record = await self.get(migration_id)
        if record.is_terminal:
            raise InvalidTransitionError(
                f'Migration {migration_id} is already {record.status.value}'
            )

        task = self._tasks.get(migration_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        record = await self.get(migration_id)
        if not record.is_terminal:
            record = await self.tracker.cancel(migration_id)

        self.logger.info(f'Migration {migration_id} is {record.status.value}')
        return record

    async def set_progress(self, migration_id: int, progress: int) -> MigrationRecord:
        """Administrative progress override."""
        return await self.tracker.set_progress(migration_id, progress)

    async def set_error(self, migration_id: int, error: str) -> MigrationRecord:
        """Administrative failure: records ``error`` and marks the migration failed."""
        return await self.tracker.set_error(migration_id, error)

    async def shutdown(self) -> None:
        """Cancel every running migration and wait for the tasks to settle."""
        running = {
            migration_id: task
            for migration_id, task in self._tasks.items()
            if not task.done()
        }
        if not running:
            return

        for task in running.values():
            task.cancel()
        await asyncio.wait(running.values())

        for migration_id in running:
            record = await self.get(migration_id)
            if not record.is_terminal:
                await self.tracker.cancel(migration_id)

        self.logger.info(f'Cancelled {len(running)} running migrations')
