"""Domain exceptions shared by the session, task, storage and suggestion services."""

from typing import Literal


class TaskFlowError(Exception):
    """Base exception for all TaskFlow service errors."""
    pass


class DuplicateEmailError(TaskFlowError):
    """Raised when registering an email that already belongs to a user."""

    def __init__(self, message: str = "Email already registered"):
        super().__init__(message)


class InvalidCredentialsError(TaskFlowError):
    """Raised when the email is unknown or the password does not match."""

    def __init__(self, message: str = "Incorrect email or password"):
        super().__init__(message)


class UserNotFoundError(TaskFlowError):
    """Raised when no stored user matches the given id."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class TaskNotFoundError(TaskFlowError):
    """Raised when the owner has no task with the given id."""

    def __init__(self, message: str = "Task not found"):
        super().__init__(message)


class UnauthenticatedError(TaskFlowError):
    """Raised when a bearer token is missing, expired or invalid."""

    def __init__(
        self,
        message: str = "Could not validate credentials",
        reason: Literal["missing", "expired", "invalid"] = "invalid"
    ):
        super().__init__(message)
        self.reason = reason


class SuggestionServiceUnavailable(TaskFlowError):
    """Raised when the AI suggestion service fails on a non-degrading call."""
    pass


class StorageFailure(TaskFlowError):
    """Raised when persistent storage cannot be read, written or validated."""
    pass


class InvalidInputError(TaskFlowError):
    """Raised when registration input is rejected (malformed email, password too long)."""
    pass


def describe_validation_errors(errors: list[dict]) -> str:
    """One readable line per pydantic error, e.g. "email: value is not a valid email address"."""
    parts = []
    for err in errors:
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg', 'invalid value')}" if location else err.get("msg", "invalid value"))
    return "; ".join(parts)
