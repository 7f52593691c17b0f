from codeauth.core.constants import ErrorReason
from codeauth.core.exceptions.base import InfrastructureError


class StorageError(InfrastructureError):
    """Raised when the backing store fails (unreachable, corrupt, constraint bug)."""

    reason = ErrorReason.STORAGE_ERROR

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message)


class ConfigurationError(InfrastructureError):
    """Raised when keys or settings are malformed."""

    reason = ErrorReason.CONFIGURATION_ERROR

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message)
