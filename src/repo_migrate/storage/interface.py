"""Migration registry interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.migration import MigrationCredentials, MigrationRecord, MigrationRequest


class MigrationStore(ABC):
    """Abstract registry of migration records keyed by identifier.

    The store is the single point of truth shared by the status tracker
    and the request-facing API. Implementations must:

    - assign identifiers that are unique and never reused
    - swap records in whole, so readers never see a partial update
    - keep credentials apart from records; no record view carries them
    """

    @abstractmethod
    async def create(self, request: MigrationRequest) -> MigrationRecord:
        """Create a ``pending`` record for a new migration.

        Args:
            request: Migration descriptor with encrypted credentials

        Returns:
            The new record
        """
        pass

    @abstractmethod
    async def get(self, migration_id: int) -> Optional[MigrationRecord]:
        """Get a record by identifier, or None if unknown."""
        pass

    @abstractmethod
    async def list(self) -> List[MigrationRecord]:
        """List all records in creation order."""
        pass

    @abstractmethod
    async def save(self, record: MigrationRecord) -> MigrationRecord:
        """Replace the stored record with the same identifier.

        Raises:
            MigrationNotFoundError: If the identifier is unknown
        """
        pass

    @abstractmethod
    async def get_credentials(self, migration_id: int) -> MigrationCredentials:
        """Get the encrypted credentials bound to a migration.

        Raises:
            MigrationNotFoundError: If the identifier is unknown
        """
        pass
