"""
Standard error response builders.

Provides consistent response formats for HTTP routes.
"""

from .codes import ErrorCode
from .exceptions import AgentError


def error_response(error: AgentError | Exception, include_context: bool = True) -> dict:
    """Build a standard error response dictionary.

    Args:
        error: The exception to convert to a response
        include_context: Whether to include the context dict (disable for privacy)

    Returns:
        Standard error response dict with success=False

    Example:
        >>> from errors import ValidationError, error_response
        >>> err = ValidationError("Missing parameter", parameter="room")
        >>> error_response(err)
        {
            "success": False,
            "error": {
                "code": "VALIDATION_MISSING_PARAM",
                "message": "Missing parameter",
                "details": None,
                "recoverable": True,
                "context": {"parameter": "room"}
            }
        }
    """
    if isinstance(error, AgentError):
        return {
            "success": False,
            "error": {
                "code": error.code.value,
                "message": error.message,
                "details": error.details,
                "recoverable": error.recoverable,
                "context": error.context if include_context else None,
            },
        }

    # Fallback for foreign exceptions
    return {
        "success": False,
        "error": {
            "code": ErrorCode.INTERNAL_UNEXPECTED.value,
            "message": str(error),
            "details": None,
            "recoverable": False,
            "context": None,
        },
    }
