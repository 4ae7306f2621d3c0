"""
MemoHub Backend — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions, one per error kind the API exposes.
How:   Each exception carries a user-safe message and an optional context
       dict. Global handlers (registered in main.py) map each kind to a
       stable HTTP status and a JSON body:
           {"error": ..., "message": ..., "details": ..., "request_id": ...}
Who:   Raised by services and the session dependency; caught by handlers.

Exception Hierarchy:
    MemoHubError (base)
    ├── AuthenticationRequiredError  → 401 Unauthorized
    ├── PermissionDeniedError        → 403 Forbidden
    ├── NotFoundError                → 404 Not Found
    ├── ConflictError                → 409 Conflict
    │   ├── DuplicateNameError
    │   ├── DuplicateInvitationError
    │   ├── AlreadyMemberError
    │   ├── AlreadyProcessedError
    │   └── LastOwnerError
    ├── InvitationExpiredError       → 410 Gone
    ├── ValidationError              → 400 Bad Request
    ├── DependencyFailureError       → 503 Service Unavailable
    │   ├── LLMServiceError
    │   └── CircuitBreakerOpenError
    ├── DatabaseError                → 500 Internal Server Error
    └── RateLimitExceededError       → 429 Too Many Requests

The permission evaluator never raises; services turn its `False` answers
into PermissionDeniedError (or a ConflictError for invariant violations).
"""

from typing import Any, Dict, Optional


class MemoHubError(Exception):
    """
    Base exception for all MemoHub application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional structured info; returned as `details` for client
                  errors, logged only for server errors
    """

    # Machine-readable code used in the JSON body's "error" field
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class AuthenticationRequiredError(MemoHubError):
    """No valid session: missing, malformed or expired bearer token. HTTP 401."""

    error_code = "authentication_required"

    def __init__(
        self,
        message: str = "Authentication is required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(MemoHubError):
    """
    The caller is authenticated but the permission evaluator denied the action.

    HTTP: 403 Forbidden
    Example: an admin trying to remove an owner, or a non-member opening a team.
    """

    error_code = "permission_denied"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        action: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if action:
            ctx["action"] = action
        super().__init__(message=message, context=ctx)
        self.action = action


class NotFoundError(MemoHubError):
    """
    Raised when a requested resource does not exist or is not visible.

    HTTP: 404 Not Found
    Services convert SQLAlchemy's `None` results into this exception. A memo
    owned by somebody else is reported as not found rather than forbidden so
    the API does not confirm that the id exists.
    """

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


class ConflictError(MemoHubError):
    """
    An invariant would be violated; the client can fix it by changing input.

    HTTP: 409 Conflict
    """

    error_code = "conflict"

    def __init__(
        self,
        message: str = "The request conflicts with the current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DuplicateNameError(ConflictError):
    """A tag (per user) or team (global) with this name already exists."""

    error_code = "duplicate_name"

    def __init__(self, resource: str, name: str, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx.update(resource=resource, name=name)
        super().__init__(message=f"A {resource} named '{name}' already exists", context=ctx)


class DuplicateInvitationError(ConflictError):
    """A pending invitation for this (team, email) already exists."""

    error_code = "duplicate_invitation"

    def __init__(self, email: str, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["email"] = email
        super().__init__(
            message=f"A pending invitation for '{email}' already exists for this team",
            context=ctx,
        )


class AlreadyMemberError(ConflictError):
    """The user already belongs to the team."""

    error_code = "already_member"

    def __init__(
        self,
        message: str = "The user is already a member of this team",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AlreadyProcessedError(ConflictError):
    """The invitation has left the pending state (accepted, declined, expired, cancelled)."""

    error_code = "already_processed"

    def __init__(self, status: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if status:
            ctx["status"] = status
        super().__init__(message="This invitation has already been processed", context=ctx)


class LastOwnerError(ConflictError):
    """The change would leave the team without any owner."""

    error_code = "last_owner"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="A team must keep at least one owner. Promote another member to owner first.",
            context=context,
        )


class InvitationExpiredError(MemoHubError):
    """
    The invitation is past its expiry time.

    HTTP: 410 Gone
    Kept apart from ConflictError: expiry depends on the clock, not on what
    other requests did, so retrying with different input cannot fix it.
    """

    error_code = "invitation_expired"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="This invitation has expired", context=context)


class ValidationError(MemoHubError):
    """
    Raised when client input fails a business-rule validation.

    HTTP: 400 Bad Request
    Schema-level problems (wrong types, missing JSON fields) are left to
    FastAPI's own 422 handling; this class covers rules such as "title must
    not be blank" or "unknown analysis type".
    """

    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class DependencyFailureError(MemoHubError):
    """
    An external dependency (the text-generation API) is unavailable or
    returned something unusable.

    HTTP: 503 Service Unavailable
    """

    error_code = "dependency_failure"

    def __init__(
        self,
        message: str = "An external service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class LLMServiceError(DependencyFailureError):
    """
    Raised when the LLM (Gemini) call fails after all retries, or when the
    service is not configured, or when its output cannot be parsed.
    """

    error_code = "llm_service_error"

    def __init__(
        self,
        message: str = "AI service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, retry_after=retry_after, context=context)


class CircuitBreakerOpenError(DependencyFailureError):
    """
    Raised when the circuit breaker is in OPEN state.

    State machine:
        CLOSED → (N consecutive failures) → OPEN → (recovery timeout)
        → HALF_OPEN → success: CLOSED / failure: OPEN
    """

    error_code = "service_unavailable"

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, retry_after=recovery_time, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(MemoHubError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500 Internal Server Error
    The message returned to the client is always generic; constraint names
    and SQL stay in the server log.
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(MemoHubError):
    """Client exceeded the per-IP request budget. HTTP 429 with Retry-After."""

    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
