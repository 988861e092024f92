"""Migration error taxonomy."""

from typing import Optional


class MigrationError(Exception):
    """Base exception for repository migration errors."""

    pass


class CredentialError(MigrationError):
    """A source or target credential is missing or unusable."""

    pass


class DecryptionError(CredentialError):
    """Stored credential could not be decrypted."""

    pass


class WorkspaceError(MigrationError):
    """Scratch workspace could not be created."""

    pass


class ProcessError(MigrationError):
    """Local git invocation exited non-zero or timed out."""

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        """Initialize process error.

        Args:
            message: Error message (already masked)
            command: Masked command line
            returncode: Process exit status, None on timeout
            stderr: Masked standard error output
        """
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class MigrationNotFoundError(MigrationError):
    """Unknown migration identifier."""

    def __init__(self, migration_id: int):
        super().__init__(f'Migration not found: {migration_id}')
        self.migration_id = migration_id


class InvalidTransitionError(MigrationError):
    """Requested record mutation would break the status model."""

    pass
