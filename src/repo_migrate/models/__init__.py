"""Data models for migrations and host entities."""

from .migration import (
    Checkpoint,
    MigrationCredentials,
    MigrationRecord,
    MigrationRequest,
    MigrationStatus,
)
from .repository import (
    SourceProject,
    SourceRepository,
    TargetOrganization,
    TargetRepository,
    TargetUser,
    normalize_repository_name,
    parse_source_repository_name,
    parse_target_location,
)

__all__ = [
    'Checkpoint',
    'MigrationCredentials',
    'MigrationRecord',
    'MigrationRequest',
    'MigrationStatus',
    'SourceProject',
    'SourceRepository',
    'TargetOrganization',
    'TargetRepository',
    'TargetUser',
    'normalize_repository_name',
    'parse_source_repository_name',
    'parse_target_location',
]
