"""Migration tracking, transfer engine and orchestration."""

from .tracker import StatusTracker
from .engine import TransferEngine, describe_error
from .orchestrator import MigrationOrchestrator

__all__ = [
    'StatusTracker',
    'TransferEngine',
    'describe_error',
    'MigrationOrchestrator',
]
