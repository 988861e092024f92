"""Remote host API exceptions."""

from typing import Any, Optional

from ..exceptions import MigrationError


class RemoteAPIError(MigrationError):
    """Base exception for source/target host API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Any] = None,
    ):
        """Initialize remote API error.

        Args:
            message: Error message, preferably taken from the host payload
            status_code: HTTP status code
            response_data: Parsed response payload from the host
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data


class RemoteAuthenticationError(RemoteAPIError):
    """Host rejected the credential."""

    pass


class RemoteRateLimitError(RemoteAPIError):
    """Rate limit exceeded error."""

    def __init__(self, message: str, retry_after: int = 60, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            retry_after: Seconds to wait before retry
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class RemoteNotFoundError(RemoteAPIError):
    """Resource not found error."""

    pass


class RepositoryExistsError(RemoteAPIError):
    """Target host already has a repository with the requested name."""

    pass


class RemoteTimeoutError(RemoteAPIError):
    """Request to the host did not complete within the configured timeout."""

    pass
