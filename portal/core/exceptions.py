"""
Platform-wide exception hierarchy.

Services raise these; the app factory registers one handler per type and
renders them through ``portal.utils.errors.api_error``, so every endpoint
answers with the same status codes and body shape.

Usage:
    from portal.core.exceptions import ForbiddenError, NotFoundError

    raise ForbiddenError("Access denied")
    raise NotFoundError(resource="Project", resource_id=project_id)

Status mapping:
    NotAuthenticatedError   401  (missing / garbled / expired token)
    InvalidCredentialsError 401  (login with a bad email or password)
    AccountInactiveError    401  (same message as an unknown user)
    ForbiddenError          403  (authenticated, role or tenant check failed)
    NotFoundError           404
    ValidationError         400  (malformed input)
    ConflictError           409
"""


class NotAuthenticatedError(Exception):
    """Raised when the caller has not proven who they are."""

    def __init__(self, message: str = "Authentication required") -> None:
        self.message = message
        super().__init__(message)


class InvalidCredentialsError(NotAuthenticatedError):
    """Raised by the credential check on an unknown email or a wrong secret."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class AccountInactiveError(NotAuthenticatedError):
    """Raised for a deactivated account.

    Security note: the message is the same one used for a token that points
    at a nonexistent user, so a caller cannot tell the two apart.
    """

    def __init__(self, message: str = "User not found or inactive") -> None:
        super().__init__(message)


class ForbiddenError(Exception):
    """Raised when an authenticated actor fails a role or tenant check.

    Args:
        message: Human-readable reason returned to the caller.
        actor_id: Acting user id.  Logged, never returned.
        resource: Optional resource label for logging.
        resource_id: Optional resource id for logging.
    """

    def __init__(
        self,
        message: str = "Insufficient permissions",
        *,
        actor_id: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        self.message = message
        self.actor_id = actor_id
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message)


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Company", "Project").
        resource_id: The PK that was looked up.  Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input is malformed or breaks a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value or repeat a one-shot transition.

    Args:
        resource: Model name.
        field: The field in conflict.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None, message: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        self.message = message or f"{resource} with {field}={value!r} already exists"
        super().__init__(self.message)
