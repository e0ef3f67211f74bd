"""
Cinedex Backend: Custom Exception Hierarchy
============================================

What:  Application-specific exceptions for every error the API can report.
How:   Each exception class carries an HTTP status, a client-safe message
       (a string, or a field → message mapping for validation failures),
       optional response headers and a context dict that is logged but
       never returned. `to_response()` renders the `{"error": ...}`
       envelope, so global exception handlers and middleware (which sits
       outside FastAPI's exception handling) produce identical bodies.
Who:   Raised by repositories, services, dependencies and route handlers.

Exception Hierarchy:
    CinedexError (base)                   → 500
    ├── BadRequestError                   → 400 malformed input
    │   └── PayloadTooLargeError          → 413
    ├── FailedValidationError             → 422 field → message map
    ├── RecordNotFoundError               → 404
    ├── EditConflictError                 → 409 version mismatch
    ├── DuplicateEmailError               → 422 keyed to "email"
    ├── InvalidCredentialsError           → 401
    ├── InvalidAuthenticationTokenError   → 401 + WWW-Authenticate
    ├── AuthenticationRequiredError       → 401
    ├── InactiveAccountError              → 403
    ├── NotPermittedError                 → 403
    ├── MethodNotAllowedError             → 405
    ├── RateLimitExceededError            → 429
    ├── DatabaseError                     → 500
    ├── InvariantViolationError           → 500
    ├── PasswordHashError                 → 500
    └── MailerError                       → 500 (background only)

Security Note:
    Every 5xx renders the same generic message. Details travel in
    `context` and the exception chain, which only reach the server log.
"""

from typing import Any, Dict, Mapping, Optional, Union

from starlette.responses import JSONResponse

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"

ErrorMessage = Union[str, Dict[str, str]]


class CinedexError(Exception):
    """
    Base exception for all Cinedex application errors.

    Attributes:
        status_code: HTTP status returned to the client
        message:     Client-safe error payload (string or field map)
        headers:     Extra response headers
        context:     Debug info, logged but NOT returned to the client
    """

    status_code: int = 500
    default_message: ErrorMessage = SERVER_ERROR_MESSAGE

    def __init__(
        self,
        message: Optional[ErrorMessage] = None,
        headers: Optional[Mapping[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message if message is not None else self.default_message
        self.headers = dict(headers or {})
        self.context = context or {}
        super().__init__(self.message if isinstance(self.message, str) else repr(self.message))

    @property
    def public_message(self) -> ErrorMessage:
        """What the client sees. Server errors never echo their message."""
        if self.status_code >= 500:
            return SERVER_ERROR_MESSAGE
        return self.message

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content={"error": self.public_message},
            headers=self.headers or None,
        )


# ── 4xx: client-correctable ──────────────────────────────────────────────


class BadRequestError(CinedexError):
    """Malformed JSON, wrong JSON types, unknown keys, multiple JSON values."""

    status_code = 400
    default_message = "bad request"


class PayloadTooLargeError(BadRequestError):
    status_code = 413


class FailedValidationError(CinedexError):
    """
    Input decoded fine but broke a business rule.

    Example response:
        {"error": {"email": "must be a valid email address"}}
    """

    status_code = 422

    def __init__(self, errors: Dict[str, str], context: Optional[Dict[str, Any]] = None):
        super().__init__(message=dict(errors), context=context)
        self.errors = dict(errors)


class RecordNotFoundError(CinedexError):
    status_code = 404
    default_message = "the requested resource could not be found"


class EditConflictError(CinedexError):
    """The version held by the caller no longer matches the stored row."""

    status_code = 409
    default_message = "unable to update the record due to an edit conflict, please try again"


class DuplicateEmailError(CinedexError):
    """Raised by the user store on a unique violation of users.email."""

    status_code = 422
    default_message = {"email": "a user with this email address already exists"}


class InvalidCredentialsError(CinedexError):
    status_code = 401
    default_message = "invalid authentication credentials"


class InvalidAuthenticationTokenError(CinedexError):
    status_code = 401
    default_message = "invalid or missing authentication token"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(headers={"WWW-Authenticate": "Bearer"}, context=context)


class AuthenticationRequiredError(CinedexError):
    status_code = 401
    default_message = "you must be authenticated to access this resource"


class InactiveAccountError(CinedexError):
    status_code = 403
    default_message = "your user account must be activated to access this resource"


class NotPermittedError(CinedexError):
    status_code = 403
    default_message = (
        "your user account doesn't have the necessary permissions to access this resource"
    )


class MethodNotAllowedError(CinedexError):
    status_code = 405

    def __init__(self, method: str, headers: Optional[Mapping[str, str]] = None):
        super().__init__(
            message=f"the {method} method is not supported for this resource",
            headers=headers,
        )


class RateLimitExceededError(CinedexError):
    status_code = 429
    default_message = "rate limit exceeded"


# ── 5xx: opaque to the client ────────────────────────────────────────────


class DatabaseError(CinedexError):
    """A store operation failed or ran past its deadline."""

    default_message = "a database error occurred"


class InvariantViolationError(CinedexError):
    """
    A "cannot happen" condition, e.g. a request with no identity attached
    or a user about to be persisted without a password hash. Fatal for the
    current request only.
    """

    default_message = "internal invariant violated"


class PasswordHashError(CinedexError):
    """The stored hash is corrupt or unsupported (distinct from a mismatch)."""

    default_message = "stored password hash could not be checked"


class MailerError(CinedexError):
    default_message = "email delivery failed"
