"""
Error codes for the live agent backend.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes.

    Categories:
    - VALIDATION_*: Input validation errors
    - NOT_FOUND_*: Resource not found errors
    - CONFLICT_*: Request conflicts with current state
    - AUTH_*: Authentication and authorization errors
    - RATE_LIMITED: Too many requests in the current window
    - EXTERNAL_*: External service errors
    - INTERNAL_*: Internal/unexpected errors
    """

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_TYPE = "VALIDATION_INVALID_TYPE"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # Not found errors (missing resources)
    NOT_FOUND_ROOM = "NOT_FOUND_ROOM"
    NOT_FOUND_INBOX_ITEM = "NOT_FOUND_INBOX_ITEM"
    NOT_FOUND_RESOURCE = "NOT_FOUND_RESOURCE"

    # Conflict errors (state does not allow the request)
    CONFLICT_ADMIN_ONLINE = "CONFLICT_ADMIN_ONLINE"

    # Auth errors
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"

    # Throttling
    RATE_LIMITED = "RATE_LIMITED"

    # External service errors
    EXTERNAL_SMTP_FAILED = "EXTERNAL_SMTP_FAILED"
    EXTERNAL_FETCH_FAILED = "EXTERNAL_FETCH_FAILED"
    EXTERNAL_NETWORK_ERROR = "EXTERNAL_NETWORK_ERROR"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_CONFIG_ERROR = "INTERNAL_CONFIG_ERROR"
    INTERNAL_STATE_ERROR = "INTERNAL_STATE_ERROR"
