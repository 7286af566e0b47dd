"""
Agent Error Handling Module

Provides standardized error codes, exceptions, and response builders
for consistent error handling across HTTP routes and realtime handlers.

Usage:
    from errors import (
        # Error codes
        ErrorCode,

        # Exceptions
        AgentError,
        ValidationError,
        NotFoundError,
        ConflictError,
        AuthorizationError,
        ExternalServiceError,

        # Response builders
        error_response,

        # Decorators / wiring
        handle_event_errors,
        install_exception_handlers,
        log_error,
    )

Example:
    from errors import NotFoundError, ValidationError

    async def update_inbox_status(item_id, status):
        if status not in INBOX_STATUSES:
            raise ValidationError(
                "Invalid status",
                details="Must be queued, in_progress or done",
                parameter="status",
                received=status,
            )
        item = await store.update_inbox_status(item_id, status)
        if item is None:
            raise NotFoundError("Not found", resource_type="inbox_item", resource_id=item_id)
        return item
"""

from .codes import ErrorCode
from .exceptions import (
    AgentError,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthorizationError,
    ExternalServiceError,
)
from .response import (
    error_response,
)
from .handlers import (
    handle_event_errors,
    install_exception_handlers,
    log_error,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "AgentError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "AuthorizationError",
    "ExternalServiceError",
    # Response builders
    "error_response",
    # Decorators / wiring
    "handle_event_errors",
    "install_exception_handlers",
    "log_error",
]
