class AppException(Exception):
    """Base exception for all application errors."""

    reason: str = "APP_ERROR"

    def __init__(self, message: str = "An application error occurred"):
        self.message = message
        super().__init__(self.message)


class DomainError(AppException):
    """Expected, named outcome of a session or user operation."""


class InfrastructureError(AppException):
    """Storage or configuration failure. Never retried by the engine."""
