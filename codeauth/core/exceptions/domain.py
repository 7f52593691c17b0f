from codeauth.core.constants import ErrorReason
from codeauth.core.exceptions.base import DomainError


class EmptyTokenError(DomainError):
    """Raised when a user token is empty."""

    reason = ErrorReason.EMPTY_TOKEN

    def __init__(self, message: str = "Token cannot be empty"):
        super().__init__(message)


class DuplicateUserError(DomainError):
    """Raised when creating a user whose token already exists."""

    reason = ErrorReason.DUPLICATE_USER

    def __init__(self, message: str = "User with this token already exists"):
        super().__init__(message)


class UserNotFoundError(DomainError):
    reason = ErrorReason.USER_NOT_FOUND

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class SessionNotFoundError(DomainError):
    """Raised when a session does not exist or has expired."""

    reason = ErrorReason.SESSION_NOT_FOUND

    def __init__(self, message: str = "Session not found"):
        super().__init__(message)


class ParentSessionNotFoundError(DomainError):
    reason = ErrorReason.INVALID_PARENT_SESSION

    def __init__(self, message: str = "Parent session not found or expired"):
        super().__init__(message)


class ParentSessionNotValidatedError(DomainError):
    reason = ErrorReason.PARENT_NOT_VALIDATED

    def __init__(self, message: str = "Parent session must be validated"):
        super().__init__(message)


class NestedDelegationError(DomainError):
    """Raised when delegating from a session that is itself delegated."""

    reason = ErrorReason.NESTED_DELEGATION

    def __init__(self, message: str = "Cannot delegate from a child session"):
        super().__init__(message)


class InvalidDurationError(DomainError):
    """Raised when a session or code lifetime is negative."""

    reason = ErrorReason.INVALID_DURATION

    def __init__(self, message: str = "Duration must be a positive number of seconds"):
        super().__init__(message)
