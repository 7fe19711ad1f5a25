"""
UserMgmt Backend — Pipeline Error Taxonomy
============================================

What:  The closed set of error kinds a request can fail with, and one
       exception class per kind.
Why:   Clients branch on a stable `kind` string ("csrf/invalid",
       "auth/expired", ...) instead of parsing messages. A closed enum lets the
       error translator match kinds exhaustively.
How:   Every class carries a kind, a human-readable message and an optional
       context dict. The HTTP status is looked up from ERROR_STATUS, so a kind
       can never drift away from its status code.
Who:   Raised by pipeline steps, services and route handlers; caught only by
       the ErrorBoundary at the outside of each middleware chain.

Exception Hierarchy:
    PipelineError (base)
    ├── InvalidBodyError        → 400 validation/invalid_body
    ├── CsrfInvalidError        → 403 csrf/invalid
    ├── UnauthenticatedError    → 401 auth/unauthenticated
    ├── CredentialExpiredError  → 401 auth/expired
    ├── ForbiddenError          → 403 auth/forbidden
    ├── NotFoundError           → 404 resource/not_found
    └── InternalServerError     → 500 server/internal_error

    ChainConfigurationError is not a PipelineError: it is raised while
    routes are being declared, never while a request is in flight.
"""

from enum import Enum
from typing import Any, Dict, Optional, Union


class ErrorKind(str, Enum):
    """Stable, machine-readable error identifiers returned to clients."""

    INVALID_BODY = "validation/invalid_body"
    CSRF_INVALID = "csrf/invalid"
    UNAUTHENTICATED = "auth/unauthenticated"
    EXPIRED = "auth/expired"
    FORBIDDEN = "auth/forbidden"
    NOT_FOUND = "resource/not_found"
    INTERNAL = "server/internal_error"


ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_BODY: 400,
    ErrorKind.CSRF_INVALID: 403,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.EXPIRED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}


class PipelineError(Exception):
    """
    Base exception for every failure that leaves the pipeline as an envelope.

    Attributes:
        kind:           ErrorKind, or a raw string when a route handler raises
                        a kind of its own (unknown strings translate to
                        server/internal_error)
        message:        User-facing description (returned in the envelope)
        context:        Debug info (logged, NOT returned to the client)
        correlation_id: Filled in by the ErrorBoundary once the error is caught
    """

    kind: Union[ErrorKind, str] = ErrorKind.INTERNAL
    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        kind: Optional[Union[ErrorKind, str]] = None,
    ):
        if kind is not None:
            self.kind = kind
        self.message = message or self.default_message
        self.context = context or {}
        self.correlation_id: Optional[str] = None
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        """HTTP status for this error's kind; 500 for unrecognized kinds."""
        try:
            return ERROR_STATUS[ErrorKind(self.kind)]
        except ValueError:
            return 500


class InvalidBodyError(PipelineError):
    """
    Raised when a request body is not JSON or fails its route's schema.

    The context carries Pydantic's error list under "errors" so the server
    log shows which field failed.
    """

    kind = ErrorKind.INVALID_BODY
    default_message = "Request body failed validation"


class CsrfInvalidError(PipelineError):
    """
    Raised for a mutating request whose anti-forgery token is missing or
    does not match the token issued to the session.
    """

    kind = ErrorKind.CSRF_INVALID
    default_message = "Missing or invalid CSRF token"


class UnauthenticatedError(PipelineError):
    """Raised when no valid credential accompanies the request."""

    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Authentication required"


class CredentialExpiredError(PipelineError):
    """Raised when a credential is well formed but past its expiry."""

    kind = ErrorKind.EXPIRED
    default_message = "Credential has expired"


class ForbiddenError(PipelineError):
    """
    Raised by route handlers and services when an authenticated caller is
    not allowed to act on a resource. The auth resolver never raises this:
    it authenticates, it does not authorize.
    """

    kind = ErrorKind.FORBIDDEN
    default_message = "You do not have permission to perform this action"


class NotFoundError(PipelineError):
    """Raised when a requested resource does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class InternalServerError(PipelineError):
    """Explicit server/internal_error for failures a service has classified."""

    kind = ErrorKind.INTERNAL


class ChainConfigurationError(ValueError):
    """Raised when a middleware chain is assembled in an invalid order."""
