"""
Error handling decorators and FastAPI wiring.

- handle_event_errors: realtime event handlers never raise to the socket
- install_exception_handlers: AgentError -> structured JSON response
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .codes import ErrorCode
from .exceptions import AgentError, ValidationError
from .response import error_response

# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def handle_event_errors(event_name: str, logger: Optional[logging.Logger] = None):
    """Decorator that logs and swallows exceptions from a realtime event handler.

    The chat widget is best-effort: a failed handler must not tear down the
    socket loop or echo an error back to the sender. The wrapped coroutine
    returns None on failure.

    Args:
        event_name: Event name for log context
        logger: Optional logger instance (defaults to an event-specific logger)
    """

    def decorator(func: F) -> F:
        log = logger or logging.getLogger(f"agent.events.{event_name}")

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except AgentError as e:
                log.warning(f"[{event_name}] {e.code.value}: {e.message}")
                return None
            except Exception as e:
                log.error(f"[{event_name}] Unexpected error: {e}", exc_info=True)
                return None

        return wrapper  # type: ignore

    return decorator


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Example:
        >>> log_error(logger, err, context="Inbox")
        # Logs: "[Inbox] CONFLICT_ADMIN_ONLINE: Admin is online; continue in chat."
    """
    if isinstance(error, AgentError):
        message = f"{error.code.value}: {error.message}"
    else:
        message = str(error)

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)


def _first_validation_message(exc: RequestValidationError) -> ValidationError:
    errors = exc.errors()
    if not errors:
        return ValidationError("Invalid request")
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    parameter = ".".join(location) or None
    message = first.get("msg", "Invalid request")
    if parameter:
        message = f"{parameter}: {message}"
    return ValidationError(
        message,
        code=ErrorCode.VALIDATION_INVALID_FORMAT,
        parameter=parameter,
    )


def install_exception_handlers(app: FastAPI) -> None:
    """Register JSON handlers for AgentError and request validation failures."""
    log = logging.getLogger("agent.http")

    @app.exception_handler(AgentError)
    async def _agent_error_handler(request: Request, exc: AgentError) -> JSONResponse:
        if exc.status_code >= 500:
            log_error(log, exc, context=request.url.path, include_traceback=False)
        return JSONResponse(status_code=exc.status_code, content=error_response(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        err = _first_validation_message(exc)
        return JSONResponse(status_code=err.status_code, content=error_response(err))
