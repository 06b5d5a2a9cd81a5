from typing import Optional, Dict, Any
import logging

from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class CustomException(Exception):
    """Custom exception class for application-specific errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "custom_error",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(CustomException):
    """Exception for validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: str = "validation_error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details={"field": field, **(details or {})}
        )


class NotFoundError(CustomException):
    """Exception for resource not found errors."""

    def __init__(self, resource: str, identifier: Optional[str] = None, error_code: str = "not_found"):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code=error_code,
            details={"resource": resource, "identifier": identifier}
        )


class AuthenticationError(CustomException):
    """Exception for authentication errors."""

    def __init__(self, message: str = "Authentication required", error_code: str = "authentication_required"):
        super().__init__(
            message=message,
            status_code=401,
            error_code=error_code
        )


class AuthorizationError(CustomException):
    """Exception for authorization errors."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="forbidden"
        )


class ConflictError(CustomException):
    """Exception for conflict errors (e.g., duplicate resources)."""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="conflict_error",
            details={"resource": resource}
        )


class RateLimitError(CustomException):
    """Exception for rate limiting errors."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[int] = None):
        super().__init__(
            message=message,
            status_code=429,
            error_code="rate_limit_error",
            details={"retry_after": retry_after}
        )


class PollNotFoundError(NotFoundError):
    """Exception for poll not found."""

    def __init__(self, poll_id: str):
        super().__init__(resource="Poll", identifier=poll_id, error_code="poll_not_found")


class UserNotFoundError(NotFoundError):
    """Exception for user not found."""

    def __init__(self, user_id: str):
        super().__init__(resource="User", identifier=user_id, error_code="user_not_found")


class VoteNotFoundError(NotFoundError):
    """Exception for vote not found."""

    def __init__(self, poll_id: str):
        super().__init__(resource="Vote", identifier=poll_id, error_code="vote_not_found")


class PollInactiveError(CustomException):
    """Exception for votes on a deactivated poll."""

    def __init__(self, poll_id: str):
        super().__init__(
            message="Poll is not active",
            status_code=400,
            error_code="poll_inactive",
            details={"poll_id": poll_id}
        )


class PollExpiredError(CustomException):
    """Exception for expired poll voting attempts."""

    def __init__(self, poll_id: str):
        super().__init__(
            message="Poll has expired",
            status_code=400,
            error_code="poll_expired",
            details={"poll_id": poll_id}
        )


class InvalidOptionError(ValidationError):
    """Exception for options that do not belong to the poll."""

    def __init__(self, poll_id: str, message: str = "One or more invalid options selected"):
        super().__init__(
            message=message,
            field="option_ids",
            error_code="invalid_options",
            details={"poll_id": poll_id}
        )


class DuplicateVoteError(CustomException):
    """Exception for duplicate vote attempts. Reported as a 400."""

    def __init__(self, poll_id: str, message: str = "You have already voted for some of these options"):
        super().__init__(
            message=message,
            status_code=400,
            error_code="already_voted",
            details={"poll_id": poll_id}
        )


def handle_database_error(error: Exception) -> CustomException:
    """
    Convert database errors to custom exceptions.

    Args:
        error: The database error

    Returns:
        CustomException: Appropriate custom exception
    """
    error_message = str(error).lower()

    if isinstance(error, IntegrityError) and (
        "unique" in error_message or "duplicate key" in error_message
    ):
        return ConflictError("Resource already exists")
    elif "foreign key" in error_message:
        return ValidationError("Invalid reference to related resource")
    elif "not null" in error_message:
        return ValidationError("Required field is missing")

    logger.error(f"Unhandled database error: {error}")
    return CustomException(
        message="Database operation failed",
        status_code=500,
        error_code="database_error"
    )


class PageRedirect(Exception):
    """Raised by HTML page dependencies to send the browser elsewhere."""

    def __init__(self, location: str):
        self.location = location
        super().__init__(location)
