"""In-memory migration registry."""

import asyncio
from typing import Dict, List, Optional

from loguru import logger

from ..exceptions import MigrationNotFoundError
from ..models.migration import MigrationCredentials, MigrationRecord, MigrationRequest
from .interface import MigrationStore


class InMemoryMigrationStore(MigrationStore):
    """Registry held in process memory.

    Records are lost when the process exits. Suitable for a
    single-process deployment and for tests.
    """

    def __init__(self):
        self._records: Dict[int, MigrationRecord] = {}
        self._credentials: Dict[int, MigrationCredentials] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component=self.__class__.__name__)

    async def create(self, request: MigrationRequest) -> MigrationRecord:
        async with self._lock:
            migration_id = self._next_id
            self._next_id += 1

            record = MigrationRecord(
                id=migration_id,
                source_location=request.source_location,
                target_location=request.target_location,
                private=request.private,
            )
            self._records[migration_id] = record
            self._credentials[migration_id] = MigrationCredentials(
                source=request.source_credential, target=request.target_credential
            )
            await self._persist()

        self.logger.info(
            f'Created migration {migration_id}: '
            f'{record.source_location} -> {record.target_location}'
        )
        return record

    async def get(self, migration_id: int) -> Optional[MigrationRecord]:
        return self._records.get(migration_id)

    async def list(self) -> List[MigrationRecord]:
        return [self._records[key] for key in sorted(self._records)]

    async def save(self, record: MigrationRecord) -> MigrationRecord:
        async with self._lock:
            if record.id not in self._records:
                raise MigrationNotFoundError(record.id)
            self._records[record.id] = record
            await self._persist()
        return record

    async def get_credentials(self, migration_id: int) -> MigrationCredentials:
        credentials = self._credentials.get(migration_id)
        if credentials is None:
            raise MigrationNotFoundError(migration_id)
        return credentials

    async def _persist(self) -> None:
        """Hook for durable subclasses, called with the lock held."""
        pass
