"""
Widget API Backend: Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for every failure kind the
       API can report.
How:   Each exception class carries a message, an optional context dict, and
       the HTTP status it maps to. Global exception handlers
       (widget_api.error_handlers) translate them exactly once, at the
       boundary, into the uniform {error, message, status} body.
Who:   Raised by services, the authentication dependency and route helpers.

Exception Hierarchy:
    WidgetApiError (base)
    ├── ValidationError              → 400 Bad Request (InvalidInput)
    ├── AuthenticationRequiredError  → 401 Unauthorized (+ WWW-Authenticate)
    ├── ForbiddenError               → 403 Forbidden
    ├── NotFoundError                → 404 Not Found (missing OR not owned)
    ├── ConflictError                → 409 Conflict (optimistic lock)
    └── DatabaseError                → 500 Internal Server Error (generic body)

    InvalidTokenError is NOT part of this hierarchy: it never reaches the
    client. The authentication mechanism converts it to "unauthenticated".
"""

from typing import Any, Dict, List, Optional


class WidgetApiError(Exception):
    """
    Base exception for all Widget API application errors.

    Attributes:
        message:     User-facing error description (safe to return in API response)
        context:     Additional debug info (logged but NOT returned to client)
        status_code: HTTP status the error translator responds with
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(WidgetApiError):
    """
    Raised when client input fails a business rule.

    When:    Unknown category filter, sort field outside the allow-list,
             negative page index.
    HTTP:    400 Bad Request

    `violations` holds field-level details in the same shape the request
    validation handler produces: {"field", "message", "invalidValue"}.
    When violations are present the response uses the field-level body.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        invalid_value: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
        self.invalid_value = invalid_value

    @property
    def violations(self) -> List[Dict[str, Any]]:
        if not self.field:
            return []
        return [
            {
                "field": self.field,
                "message": self.message,
                "invalidValue": None if self.invalid_value is None else str(self.invalid_value),
            }
        ]


class AuthenticationRequiredError(WidgetApiError):
    """
    Raised when a protected route is called without a valid bearer token.

    The cause (no header, wrong scheme, bad signature, expired, wrong issuer)
    is deliberately not carried: every case produces the same challenge.
    HTTP:    401 Unauthorized
    """

    status_code = 401

    def __init__(
        self,
        message: str = "Authentication is required to access this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(WidgetApiError):
    """
    Raised when an authenticated caller may not perform an action.

    Ownership mismatches never use this: they surface as NotFoundError so that
    non-owners cannot learn whether a widget exists.
    HTTP:    403 Forbidden
    """

    status_code = 403

    def __init__(
        self,
        message: str = "Access denied",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(WidgetApiError):
    """
    Raised when a requested resource does not exist or is not owned by the caller.

    HTTP:    404 Not Found
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(WidgetApiError):
    """
    Raised when an update's expected version does not match the stored version.

    When:    The caller read a stale version, or a concurrent writer won the
             compare-and-set on (id, version).
    HTTP:    409 Conflict

    The stored row is left untouched; the client should re-read and retry.
    """

    status_code = 409

    def __init__(
        self,
        message: str = "Resource has been modified by another user",
        expected_version: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if expected_version is not None:
            ctx["expected_version"] = expected_version
        super().__init__(message=message, context=ctx)
        self.expected_version = expected_version


class DatabaseError(WidgetApiError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic. Details (SQL,
    constraint names, driver errors) go to the server log only.
    """

    status_code = 500

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
