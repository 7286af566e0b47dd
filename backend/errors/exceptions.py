"""
Custom exception hierarchy for the live agent backend.

All exceptions inherit from AgentError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the user can retry/fix the issue
- status_code: HTTP status used when the error reaches a route
- context: Additional key-value pairs for debugging
"""

from typing import Any, Optional
from .codes import ErrorCode


class AgentError(Exception):
    """Base exception for all agent errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be resolved by user action
        status_code: HTTP status for route responses
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ValidationError(AgentError):
    """Error during input validation."""

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True
    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if parameter:
            ctx["parameter"] = parameter
        if expected:
            ctx["expected"] = expected
        if received:
            ctx["received"] = received
        super().__init__(message, details, **ctx)


class NotFoundError(AgentError):
    """Error when a required resource is not found."""

    code = ErrorCode.NOT_FOUND_RESOURCE
    recoverable = True
    status_code = 404

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **context: Any,
    ):
        # Set appropriate code based on resource type
        if resource_type == "room":
            code = ErrorCode.NOT_FOUND_ROOM
        elif resource_type == "inbox_item":
            code = ErrorCode.NOT_FOUND_INBOX_ITEM
        else:
            code = ErrorCode.NOT_FOUND_RESOURCE

        ctx = {**context}
        if resource_type:
            ctx["resource_type"] = resource_type
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message, details, code=code, **ctx)


class ConflictError(AgentError):
    """Request is valid but conflicts with the current state."""

    code = ErrorCode.CONFLICT_ADMIN_ONLINE
    recoverable = True
    status_code = 409


class AuthorizationError(AgentError):
    """Missing credentials (401) or insufficient role (403)."""

    code = ErrorCode.AUTH_REQUIRED
    recoverable = True
    status_code = 401

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        reason: Optional[str] = None,
        **context: Any,
    ):
        if reason == "forbidden":
            code = ErrorCode.AUTH_FORBIDDEN
            self.status_code = 403
        elif reason == "invalid":
            code = ErrorCode.AUTH_INVALID_TOKEN
        else:
            code = ErrorCode.AUTH_REQUIRED
        super().__init__(message, details, code=code, **context)


class ExternalServiceError(AgentError):
    """Error with external services (SMTP, seed page hosts, etc.)."""

    code = ErrorCode.EXTERNAL_NETWORK_ERROR
    recoverable = True
    status_code = 502

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        # Set appropriate code based on service
        if service == "smtp":
            code = ErrorCode.EXTERNAL_SMTP_FAILED
        elif service == "fetch":
            code = ErrorCode.EXTERNAL_FETCH_FAILED
        else:
            code = ErrorCode.EXTERNAL_NETWORK_ERROR

        ctx = {**context}
        if service:
            ctx["service"] = service
        if status_code:
            ctx["upstream_status"] = status_code
        super().__init__(message, details, code=code, **ctx)
