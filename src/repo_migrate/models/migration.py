"""Migration record models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, validator


class MigrationStatus(str, Enum):
    """Migration status enumeration."""

    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {MigrationStatus.COMPLETED, MigrationStatus.FAILED, MigrationStatus.CANCELLED}
)


class Checkpoint:
    """Fixed progress checkpoints committed by the transfer engine."""

    BEGUN = 10
    SOURCE_PARSED = 20
    WORKSPACE_READY = 40
    CLONED = 70
    TARGET_READY = 80
    PUSHED = 90
    DONE = 100


class MigrationRequest(BaseModel):
    """Descriptor for a new migration.

    Credentials are the opaque (encrypted) values produced by
    ``CredentialUnwrapper.encrypt``; plaintext never enters a request.
    """

    source_location: str = Field(..., description='Source repository clone URL')
    target_location: str = Field(..., description='Target repository as owner/name')
    source_credential: str = Field(..., repr=False, description='Encrypted source token')
    target_credential: str = Field(..., repr=False, description='Encrypted target token')
    private: bool = Field(default=False, description='Create target as private')

    @validator('source_location', 'target_location')
    def validate_location(cls, v):
        """Validate locations are not blank."""
        if not v or not v.strip():
            raise ValueError('Repository location is required')
        return v.strip()

    @validator('source_credential', 'target_credential')
    def validate_credential(cls, v):
        """Validate credentials are present."""
        if not v:
            raise ValueError('Credential is required')
        return v


class MigrationCredentials(BaseModel):
    """Opaque credentials bound to one migration, write-once at creation."""

    source: str = Field(..., repr=False, description='Encrypted source token')
    target: str = Field(..., repr=False, description='Encrypted target token')


class MigrationRecord(BaseModel):
    """State of one repository transfer attempt.

    Records are treated as immutable values: every mutation produces a
    replacement record that the store swaps in whole.
    """

    id: int = Field(..., description='Migration identifier')
    source_location: str = Field(..., description='Source repository location')
    target_location: str = Field(..., description='Target repository location')
    private: bool = Field(default=False, description='Target repository visibility')
    status: MigrationStatus = Field(
        default=MigrationStatus.PENDING, description='Lifecycle status'
    )
    progress: int = Field(default=0, ge=0, le=100, description='Progress percentage')
    error: Optional[str] = Field(default=None, description='Failure description')

    created_at: datetime = Field(
        default_factory=datetime.now, description='Creation timestamp'
    )
    started_at: Optional[datetime] = Field(
        default=None, description='First transition into in_progress'
    )
    completed_at: Optional[datetime] = Field(
        default=None, description='Transition into completed'
    )

    class Config:
        """Pydantic configuration."""

        json_encoders = {datetime: lambda v: v.isoformat() if v else None}

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialized view returned across the system boundary."""
        data = self.dict()
        data['status'] = self.status.value
        for key in ('created_at', 'started_at', 'completed_at'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data
