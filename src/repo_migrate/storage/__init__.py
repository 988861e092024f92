"""Migration registry implementations."""

from .interface import MigrationStore
from .in_memory import InMemoryMigrationStore
from .json_file import JsonFileMigrationStore

__all__ = ['MigrationStore', 'InMemoryMigrationStore', 'JsonFileMigrationStore']
