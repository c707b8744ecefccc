"""Exception classes for modsync."""

from typing import Optional


class ModSyncError(Exception):
    """Base exception for all modsync errors."""

    pass


class ModSyncConfigError(ModSyncError):
    """Raised when configuration is invalid or missing."""

    pass


class ModSyncGitNotFoundError(ModSyncError):
    """Raised when the git executable cannot be found."""

    def __init__(self, message: str = "Git is not installed or not found in PATH."):
        super().__init__(message)


class ModSyncNotFoundError(ModSyncError):
    """Raised when a mod or repository cannot be found by name."""

    pass


class ModSyncAPIError(ModSyncError):
    """Base exception for hosting API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ModSyncAuthenticationError(ModSyncAPIError):
    """Raised when the API token is rejected."""

    pass


class ModSyncPermissionError(ModSyncAPIError):
    """Raised when access to a resource is forbidden."""

    pass


class ModSyncRateLimitError(ModSyncAPIError):
    """Raised when the API quota is exhausted."""

    pass


class ModSyncNetworkError(ModSyncAPIError):
    """Raised when the API cannot be reached."""

    pass


class ModSyncInvalidResponseError(ModSyncAPIError):
    """Raised when the API returns something that is not the expected JSON."""

    pass
