# ==== DOMAIN ERRORS ==== #

"""
Domain error types for Procurement Hub.

Services raise these instead of HTTP exceptions; the application factory
registers a handler that renders them with the standard error envelope.
"""


class ProcurementError(Exception):
    """Base class for workflow errors that map to an HTTP response."""

    status_code: int = 400
    code: str = "BAD_REQUEST"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationError(ProcurementError):
    """Caller could not be authenticated."""

    status_code = 401
    code = "UNAUTHORIZED"


class AccessDeniedError(ProcurementError):
    """Caller is authenticated but not allowed to touch the resource."""

    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ProcurementError):
    """Referenced row does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class InvalidStateError(ProcurementError):
    """Requested transition is not allowed from the current status."""

    status_code = 400
    code = "INVALID_STATE"


class ValidationFailedError(ProcurementError):
    """Input is well-formed but violates a business rule."""

    status_code = 400
    code = "VALIDATION_FAILED"


class DuplicateError(ProcurementError):
    """Unique business key already in use."""

    status_code = 400
    code = "DUPLICATE"
