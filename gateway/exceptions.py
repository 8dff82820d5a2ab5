"""
Storefront Gateway — Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for different error scenarios.
How:   Each exception class carries a message, an optional context dict, the
       HTTP status it maps to and a machine-readable error code. The
       pipeline's ErrorResponder (and the FastAPI handlers registered in
       main.py) turn them into structured JSON error responses.
Who:   Raised by stages, handlers and services.

Exception Hierarchy:
    GatewayError (base)
    ├── ValidationError            → 400 Bad Request (field-level details)
    ├── AuthenticationError        → 401 Unauthorized
    ├── AuthorizationError         → 403 Forbidden (insufficient role)
    ├── NotFoundError              → 404 Not Found
    ├── ConflictError              → 409 Conflict
    ├── SecurityRejection          → 403 Forbidden
    │   ├── MaliciousClientError
    │   ├── PathTraversalError
    │   └── InjectionPatternError
    ├── RateLimitExceededError     → 429 Too Many Requests
    ├── OperationalError           → declared status (default 500)
    └── RequestAborted             → never rendered; the caller went away

Taxonomy:
    ValidationFailure   = ValidationError
    SecurityRejection   = SecurityRejection, RateLimitExceededError
    OperationalFailure  = any other GatewayError raised by a handler
    ProgrammingFault    = anything that is not a GatewayError
"""

from typing import Any, Dict, List, Optional


class GatewayError(Exception):
    """
    Base exception for all gateway application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
        headers:  Extra response headers to attach to the error response
    """

    status_code: int = 500
    error_code: str = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        self.headers: Dict[str, str] = {}
        super().__init__(self.message)

    @property
    def details(self) -> Any:
        """Client-visible details. None means the body carries no details key."""
        return None


class ValidationError(GatewayError):
    """
    Raised when client input fails validation.

    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Request body is invalid",
            "details": [{"field": "price", "message": "Input should be greater than 0"}]
        }
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[List[Dict[str, str]]] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.errors: List[Dict[str, str]] = list(errors or [])
        if field and not self.errors:
            self.errors.append({"field": field, "message": message})
        self.field = field

    @property
    def details(self) -> List[Dict[str, str]]:
        return self.errors


class AuthenticationError(GatewayError):
    """
    Raised when a request carries no credential or an invalid one.

    HTTP:    401 Unauthorized
    """

    status_code = 401
    error_code = "authentication_required"

    def __init__(
        self,
        message: str = "A valid bearer token is required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.headers["WWW-Authenticate"] = "Bearer"


class AuthorizationError(GatewayError):
    """
    Raised when an authenticated identity lacks the required role.

    HTTP:    403 Forbidden
    """

    status_code = 403
    error_code = "insufficient_permissions"

    def __init__(
        self,
        message: str = "Access denied: insufficient permissions",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(GatewayError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found
    """

    status_code = 404
    error_code = "not_found"

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


class ConflictError(GatewayError):
    """
    Raised when a write would clash with existing state (duplicate id).

    HTTP:    409 Conflict
    """

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SecurityRejection(GatewayError):
    """
    Raised by security stages to short-circuit a request.

    HTTP:    403 Forbidden

    A SecurityRejection never reaches the handler or the cache. Stages must
    not swallow it.
    """

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "Forbidden",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MaliciousClientError(SecurityRejection):
    """User-agent matched a known attack tool."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Forbidden: malicious client detected", context=context)


class PathTraversalError(SecurityRejection):
    """Request target contained a `../` or `..\\` sequence."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Forbidden: path traversal detected", context=context)


class InjectionPatternError(SecurityRejection):
    """Request body matched a script, NoSQL or SQL injection pattern."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Forbidden: injection pattern detected", context=context)


class RateLimitExceededError(GatewayError):
    """
    Raised when a client exceeds its rate-limit window.

    HTTP:    429 Too Many Requests

    Response includes:
        - retry_after: Seconds until the window resets
        - Retry-After and x-ratelimit-* headers
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        headers: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
        self.headers.update(headers or {})
        self.headers["Retry-After"] = str(retry_after)

    @property
    def details(self) -> Dict[str, int]:
        return {"retry_after": self.retry_after}


class OperationalError(GatewayError):
    """
    A recognized, expected failure raised by a handler or data source.

    HTTP:    the declared status (default 500)

    Unlike an unclassified exception, its message is safe to return.
    """

    error_code = "operational_error"

    def __init__(
        self,
        message: str = "The operation could not be completed",
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.status_code = status_code


class RequestAborted(GatewayError):
    """
    Raised when the caller aborted the request before a response was delivered.

    Never rendered: there is nobody left to receive it.
    """

    status_code = 499
    error_code = "client_closed_request"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="The client closed the request", context=context)
