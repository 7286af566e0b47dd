"""
Tests for the agent error handling module.
"""

import asyncio
import logging

from fastapi import FastAPI, Query
from fastapi.testclient import TestClient

from errors import (
    ErrorCode,
    AgentError,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthorizationError,
    ExternalServiceError,
    error_response,
    handle_event_errors,
    install_exception_handlers,
)


class TestErrorCodes:
    """Test error code enum."""

    def test_error_codes_are_strings(self):
        """Error codes should be string values."""
        assert ErrorCode.NOT_FOUND_ROOM.value == "NOT_FOUND_ROOM"
        assert ErrorCode.CONFLICT_ADMIN_ONLINE.value == "CONFLICT_ADMIN_ONLINE"

    def test_error_codes_have_categories(self):
        """Error codes should follow category naming convention."""
        validation_codes = [c for c in ErrorCode if c.value.startswith("VALIDATION_")]
        assert len(validation_codes) >= 3

        auth_codes = [c for c in ErrorCode if c.value.startswith("AUTH_")]
        assert len(auth_codes) == 3


class TestAgentError:
    """Test base AgentError exception."""

    def test_basic_creation(self):
        """Create basic error with message."""
        err = AgentError("Test error")
        assert err.message == "Test error"
        assert err.details is None
        assert err.code == ErrorCode.INTERNAL_UNEXPECTED
        assert err.recoverable is False
        assert err.status_code == 500

    def test_with_context(self):
        """Create error with additional context."""
        err = AgentError("Test error", room="abc", count=42)
        assert err.context == {"room": "abc", "count": 42}

    def test_str_representation(self):
        """String representation includes message and details."""
        err = AgentError("Test error", details="More info")
        assert str(err) == "Test error - More info"
        assert str(AgentError("Test error")) == "Test error"

    def test_to_dict(self):
        """Convert error to dictionary."""
        err = AgentError("Test error", details="More info", key="value")
        d = err.to_dict()
        assert d["code"] == ErrorCode.INTERNAL_UNEXPECTED.value
        assert d["message"] == "Test error"
        assert d["details"] == "More info"
        assert d["recoverable"] is False
        assert d["context"] == {"key": "value"}


class TestValidationError:
    """Test ValidationError exception."""

    def test_default_code(self):
        """Default code is VALIDATION_MISSING_PARAM with HTTP 400."""
        err = ValidationError("Missing param")
        assert err.code == ErrorCode.VALIDATION_MISSING_PARAM
        assert err.recoverable is True
        assert err.status_code == 400

    def test_with_parameter_info(self):
        """Include parameter context."""
        err = ValidationError("Invalid status", parameter="status", expected="queued|in_progress|done", received="x")
        assert err.context["parameter"] == "status"
        assert err.context["expected"] == "queued|in_progress|done"
        assert err.context["received"] == "x"


class TestNotFoundError:
    """Test NotFoundError exception."""

    def test_default_code(self):
        """Default code is NOT_FOUND_RESOURCE with HTTP 404."""
        err = NotFoundError("Not found")
        assert err.code == ErrorCode.NOT_FOUND_RESOURCE
        assert err.status_code == 404

    def test_room_resource_type(self):
        """Room resource type sets appropriate code."""
        assert NotFoundError("Not found", resource_type="room").code == ErrorCode.NOT_FOUND_ROOM

    def test_inbox_resource_type(self):
        """Inbox resource type sets appropriate code and context."""
        err = NotFoundError("Not found", resource_type="inbox_item", resource_id="abc123")
        assert err.code == ErrorCode.NOT_FOUND_INBOX_ITEM
        assert err.context == {"resource_type": "inbox_item", "resource_id": "abc123"}


class TestConflictAndAuthErrors:
    """Test ConflictError and AuthorizationError."""

    def test_conflict(self):
        """Conflict maps to 409."""
        err = ConflictError("Admin is online; continue in chat.")
        assert err.status_code == 409
        assert err.code == ErrorCode.CONFLICT_ADMIN_ONLINE

    def test_auth_missing(self):
        """Missing credentials are 401 AUTH_REQUIRED."""
        err = AuthorizationError("Authentication required")
        assert err.status_code == 401
        assert err.code == ErrorCode.AUTH_REQUIRED

    def test_auth_invalid(self):
        """Invalid token is 401 AUTH_INVALID_TOKEN."""
        err = AuthorizationError("Bad token", reason="invalid")
        assert err.status_code == 401
        assert err.code == ErrorCode.AUTH_INVALID_TOKEN

    def test_auth_forbidden(self):
        """Wrong role is 403 without changing the class default."""
        err = AuthorizationError("Admin role required", reason="forbidden")
        assert err.status_code == 403
        assert err.code == ErrorCode.AUTH_FORBIDDEN
        assert AuthorizationError.status_code == 401


class TestExternalServiceError:
    """Test ExternalServiceError exception."""

    def test_default_code(self):
        """Default code is EXTERNAL_NETWORK_ERROR with HTTP 502."""
        err = ExternalServiceError("Network error")
        assert err.code == ErrorCode.EXTERNAL_NETWORK_ERROR
        assert err.status_code == 502

    def test_smtp_service(self):
        """SMTP service sets appropriate code."""
        assert ExternalServiceError("Failed", service="smtp").code == ErrorCode.EXTERNAL_SMTP_FAILED

    def test_with_status_code(self):
        """Upstream status is kept in context, not as the HTTP status."""
        err = ExternalServiceError("Failed", service="fetch", status_code=503)
        assert err.code == ErrorCode.EXTERNAL_FETCH_FAILED
        assert err.context["service"] == "fetch"
        assert err.context["upstream_status"] == 503
        assert err.status_code == 502


class TestErrorResponse:
    """Test error_response function."""

    def test_agent_error_response(self):
        """Convert AgentError to response dict."""
        err = NotFoundError("No such item", details="Check the id", resource_type="inbox_item")
        resp = error_response(err)

        assert resp["success"] is False
        assert resp["error"]["code"] == "NOT_FOUND_INBOX_ITEM"
        assert resp["error"]["message"] == "No such item"
        assert resp["error"]["details"] == "Check the id"
        assert resp["error"]["recoverable"] is True

    def test_generic_exception_response(self):
        """Convert generic Exception to response dict."""
        resp = error_response(ValueError("Bad value"))

        assert resp["success"] is False
        assert resp["error"]["code"] == "INTERNAL_UNEXPECTED"
        assert resp["error"]["message"] == "Bad value"
        assert resp["error"]["recoverable"] is False

    def test_without_context(self):
        """Exclude context when requested."""
        err = NotFoundError("Missing", resource_id="abc123")
        assert error_response(err, include_context=False)["error"]["context"] is None


class TestHandleEventErrors:
    """Test handle_event_errors decorator."""

    def test_success_passthrough(self):
        """Successful handler returns normally."""

        @handle_event_errors("test")
        async def handler():
            return 42

        assert asyncio.run(handler()) == 42

    def test_agent_error_swallowed(self, caplog):
        """AgentError is logged as a warning and None returned."""

        @handle_event_errors("admin_reply")
        async def handler():
            raise NotFoundError("Room gone", resource_type="room")

        with caplog.at_level(logging.WARNING):
            assert asyncio.run(handler()) is None

        assert "NOT_FOUND_ROOM" in caplog.text
        assert "[admin_reply]" in caplog.text

    def test_generic_exception_swallowed(self, caplog):
        """Unexpected errors are logged with traceback and None returned."""

        @handle_event_errors("visitor_message")
        async def handler():
            raise RuntimeError("database exploded")

        with caplog.at_level(logging.ERROR):
            assert asyncio.run(handler()) is None

        assert "database exploded" in caplog.text

    def test_preserves_function_metadata(self):
        """Decorator preserves function name and docstring."""

        @handle_event_errors("test")
        async def my_handler():
            """My docstring."""

        assert my_handler.__name__ == "my_handler"
        assert my_handler.__doc__ == "My docstring."
        assert asyncio.iscoroutinefunction(my_handler)


class TestExceptionHandlers:
    """Test install_exception_handlers wiring."""

    def _client(self):
        app = FastAPI()
        install_exception_handlers(app)

        @app.get("/conflict")
        async def conflict():
            raise ConflictError("Admin is online; continue in chat.")

        @app.get("/number")
        async def number(n: int = Query(...)):
            return {"n": n}

        return TestClient(app)

    def test_agent_error_status_and_body(self):
        """AgentError becomes its status code with the structured body."""
        resp = self._client().get("/conflict")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "CONFLICT_ADMIN_ONLINE"

    def test_request_validation_is_400(self):
        """Request validation failures are 400, not 422."""
        resp = self._client().get("/number", params={"n": "abc"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_INVALID_FORMAT"
        assert body["error"]["context"]["parameter"] == "n"
