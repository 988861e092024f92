"""Status tracking for migration records."""

import asyncio
from datetime import datetime
from typing import Any, Dict

from loguru import logger

from ..exceptions import InvalidTransitionError, MigrationNotFoundError
from ..models.migration import Checkpoint, MigrationRecord, MigrationStatus
from ..storage.interface import MigrationStore

ALLOWED_TRANSITIONS = {
    MigrationStatus.PENDING: {
        MigrationStatus.IN_PROGRESS,
        MigrationStatus.FAILED,
        MigrationStatus.CANCELLED,
    },
    MigrationStatus.IN_PROGRESS: {
        MigrationStatus.COMPLETED,
        MigrationStatus.FAILED,
        MigrationStatus.CANCELLED,
    },
    MigrationStatus.COMPLETED: set(),
    MigrationStatus.FAILED: set(),
    MigrationStatus.CANCELLED: set(),
}


class StatusTracker:
    """Single-writer mutators for migration records.

    Every mutator reads the current record, applies one change plus any
    status-triggered timestamps, and writes back a whole replacement
    record. Writes to the same identifier are serialized by a per-record
    lock; readers going straight to the store see only committed records.
    """

    def __init__(self, store: MigrationStore):
        """Initialize status tracker.

        Args:
            store: Migration registry holding the records
        """
        self.store = store
        self._locks: Dict[int, asyncio.Lock] = {}
        self.logger = logger.bind(component='StatusTracker')

    def _lock_for(self, migration_id: int) -> asyncio.Lock:
        lock = self._locks.get(migration_id)
        if lock is None:
            lock = self._locks[migration_id] = asyncio.Lock()
        return lock

    def _forget_lock(self, migration_id: int) -> None:
        # Unknown and terminal records refuse every mutation
        self._locks.pop(migration_id, None)

    async def _load(self, migration_id: int) -> MigrationRecord:
        record = await self.store.get(migration_id)
        if record is None:
            self._forget_lock(migration_id)
            raise MigrationNotFoundError(migration_id)
        if record.is_terminal:
            self._forget_lock(migration_id)
        return record

    async def _commit(self, record: MigrationRecord, changes: Dict[str, Any]) -> MigrationRecord:
        updated = record.copy(update=changes)
        saved = await self.store.save(updated)
        if saved.is_terminal:
            self._forget_lock(saved.id)
        return saved

    @staticmethod
    def _check_transition(record: MigrationRecord, status: MigrationStatus) -> None:
        if status not in ALLOWED_TRANSITIONS[record.status]:
            raise InvalidTransitionError(
                f'Migration {record.id} cannot move from '
                f'{record.status.value} to {status.value}'
            )

    def _status_changes(
        self, record: MigrationRecord, status: MigrationStatus
    ) -> Dict[str, Any]:
        changes: Dict[str, Any] = {'status': status}
        now = datetime.now()

        if status == MigrationStatus.IN_PROGRESS and record.started_at is None:
            changes['started_at'] = now
        elif status == MigrationStatus.COMPLETED:
            changes['completed_at'] = now
            changes['progress'] = Checkpoint.DONE

        return changes

    async def set_status(
        self, migration_id: int, status: MigrationStatus
    ) -> MigrationRecord:
        """Move a record to ``status``, stamping timestamps as it goes.

        ``in_progress`` stamps ``started_at`` once; ``completed`` stamps
        ``completed_at`` and forces progress to 100. ``failed`` carries error
        text and must go through :meth:`set_error`.

        Raises:
            MigrationNotFoundError: If the identifier is unknown
            InvalidTransitionError: If the status edge is not allowed
        """
        status = MigrationStatus(status)
        if status == MigrationStatus.FAILED:
            raise InvalidTransitionError(
                'A failed status requires error text; use set_error'
            )

        async with self._lock_for(migration_id):
            record = await self._load(migration_id)
            self._check_transition(record, status)
            updated = await self._commit(record, self._status_changes(record, status))

        self.logger.info(f'Migration {migration_id} status: {status.value}')
        return updated

    async def set_progress(self, migration_id: int, progress: int) -> MigrationRecord:
        """Record progress of a running migration.

        Raises:
            MigrationNotFoundError: If the identifier is unknown
            ValueError: If progress is outside [0, 100]
            InvalidTransitionError: If the record is not running, or the
                value would move progress backwards
        """
        if not 0 <= progress <= 100:
            raise ValueError(f'Progress must be between 0 and 100, got {progress}')

        async with self._lock_for(migration_id):
            record = await self._load(migration_id)

            if record.status != MigrationStatus.IN_PROGRESS:
                raise InvalidTransitionError(
                    f'Migration {migration_id} is {record.status.value}; '
                    'progress only changes while in progress'
                )
            if progress < record.progress:
                raise InvalidTransitionError(
                    f'Migration {migration_id} progress cannot decrease '
                    f'from {record.progress} to {progress}'
                )

            updated = await self._commit(record, {'progress': progress})

        self.logger.debug(f'Migration {migration_id} progress: {progress}')
        return updated

    async def set_error(self, migration_id: int, error: str) -> MigrationRecord:
        """Record a failure: sets ``error`` and the ``failed`` status together.

        Progress is left at the last committed checkpoint.

        Raises:
            MigrationNotFoundError: If the identifier is unknown
            ValueError: If the error text is empty
            InvalidTransitionError: If the record is already terminal
        """
        if not error or not error.strip():
            raise ValueError('Error text must not be empty')

        async with self._lock_for(migration_id):
            record = await self._load(migration_id)
            self._check_transition(record, MigrationStatus.FAILED)
            updated = await self._commit(
                record, {'status': MigrationStatus.FAILED, 'error': error}
            )

        self.logger.info(f'Migration {migration_id} failed: {error}')
        return updated

    async def start(self, migration_id: int) -> MigrationRecord:
        return await self.set_status(migration_id, MigrationStatus.IN_PROGRESS)

    async def complete(self, migration_id: int) -> MigrationRecord:
        return await self.set_status(migration_id, MigrationStatus.COMPLETED)

    async def fail(self, migration_id: int, error: str) -> MigrationRecord:
        return await self.set_error(migration_id, error)

    async def cancel(self, migration_id: int) -> MigrationRecord:
        return await self.set_status(migration_id, MigrationStatus.CANCELLED)
