"""
Domain error classes.

Every error carries the HTTP status it is reported with; the API layer turns
them into the standard ``{success: false, message}`` envelope.
"""


class RideshareError(Exception):
    """Base exception for rideshare domain errors."""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(RideshareError):
    """Raised when a request, vote or user referenced by id does not exist."""

    status_code = 404
    default_message = "Not found"


class Forbidden(RideshareError):
    """Raised when the actor is neither the owner nor an admin."""

    status_code = 403
    default_message = "Access denied"


class InvalidState(RideshareError):
    """Raised when an operation is not valid for the entity's current status."""

    status_code = 400
    default_message = "Operation not allowed in the current state"


class InvalidOperation(RideshareError):
    """Raised for semantically disallowed operations (voting on own request, ...)."""

    status_code = 400
    default_message = "Operation not allowed"


class ValidationFailed(RideshareError):
    """Raised when input passes schema validation but breaks a business rule."""

    status_code = 400
    default_message = "Invalid input"


class Conflict(RideshareError):
    """Raised on capacity or uniqueness violations."""

    status_code = 409
    default_message = "Conflict"


class StorageUnavailable(RideshareError):
    """Raised when the store cannot be reached after retries."""

    status_code = 500
    default_message = "Database temporarily unavailable, please try again later"
