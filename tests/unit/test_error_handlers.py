"""
Unit tests for error handlers and the store error hierarchy.

Tests the error response model, exception handlers and the mapping of
sqlite3 failures onto StatementExecutionError.
"""

import json
import sqlite3

import pytest
from unittest.mock import MagicMock
from fastapi import Request
from fastapi.responses import JSONResponse

from sqlite_sessions.errors.codes import ErrorCode, get_default_status_code
from sqlite_sessions.errors.exceptions import (
    AppException,
    InvalidConfigurationError,
    InvalidTableNameError,
    SessionStoreError,
    StatementExecutionError,
    StoreClosedError,
    statement_error,
)
from sqlite_sessions.errors.handlers import (
    ErrorResponse,
    get_request_id,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
)


def make_request(request_id="test-request-id", path="/sessions/count", method="GET", headers=None):
    request = MagicMock(spec=Request)
    request.state.request_id = request_id
    request.url.path = path
    request.method = method
    request.headers = headers or {}
    return request


class TestErrorResponse:
    """Tests for the ErrorResponse model."""

    def test_error_response_without_optional_fields(self):
        response = ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An error occurred",
            request_id="req-456",
        )

        dumped = response.model_dump(exclude_none=True)
        assert dumped == {
            "error_code": "INTERNAL_ERROR",
            "message": "An error occurred",
            "request_id": "req-456",
        }

    def test_error_response_keeps_false_retryable(self):
        response = ErrorResponse(
            error_code="STORE_CLOSED",
            message="Session store is closed",
            retryable=False,
            request_id="req-1",
        )

        assert response.model_dump(exclude_none=True)["retryable"] is False


class TestGetRequestId:
    """Tests for the get_request_id function."""

    def test_get_request_id_from_state(self):
        assert get_request_id(make_request("existing-request-id")) == "existing-request-id"

    def test_get_request_id_from_header(self):
        request = make_request(headers={"X-Request-ID": "from-proxy"})
        del request.state.request_id

        assert get_request_id(request) == "from-proxy"

    def test_get_request_id_generates_uuid_when_not_set(self):
        request = MagicMock(spec=Request)
        del request.state.request_id
        request.headers = {}

        result = get_request_id(request)

        assert len(result) == 36
        assert result.count("-") == 4


class TestErrorHierarchy:
    """Tests for the SessionStoreError classes."""

    @pytest.mark.parametrize("exc_type, code, status", [
        (InvalidConfigurationError, ErrorCode.INVALID_CONFIGURATION, 500),
        (InvalidTableNameError, ErrorCode.INVALID_CONFIGURATION, 500),
        (StoreClosedError, ErrorCode.STORE_CLOSED, 503),
        (StatementExecutionError, ErrorCode.STATEMENT_FAILED, 503),
    ])
    def test_error_codes_and_status(self, exc_type, code, status):
        exc = exc_type("boom")

        assert isinstance(exc, SessionStoreError)
        assert exc.error_code == code
        assert exc.status_code == status
        assert exc.to_dict() == {"error_code": code.value, "message": "boom"}

    def test_every_code_has_a_status(self):
        for code in ErrorCode:
            assert 400 <= get_default_status_code(code) < 600

    def test_lock_contention_is_retryable(self):
        exc = statement_error("set", sqlite3.OperationalError("database is locked"))

        assert exc.retryable is True
        assert exc.details == {"operation": "set", "sqlite_error": "OperationalError"}
        assert str(exc) == "Session store set failed: database is locked"

    @pytest.mark.parametrize("error", [
        sqlite3.OperationalError("no such table: sessions"),
        sqlite3.IntegrityError("NOT NULL constraint failed: sessions.expires_at"),
        sqlite3.ProgrammingError("Cannot operate on a closed database."),
    ])
    def test_other_sqlite_errors_are_not_retryable(self, error):
        assert statement_error("get", error).retryable is False


class TestHandleAppException:
    """Tests for the handle_app_exception handler."""

    @pytest.mark.asyncio
    async def test_handle_app_exception_includes_all_fields(self):
        exc = AppException(
            error_code=ErrorCode.SESSION_ENCODE_FAILED,
            message="Failed to encode session",
            details={"session_id": "abc"},
        )

        response = await handle_app_exception(make_request(), exc)

        assert isinstance(response, JSONResponse)
        assert response.status_code == 400
        data = json.loads(response.body.decode("utf-8"))
        assert data == {
            "error_code": "SESSION_ENCODE_FAILED",
            "message": "Failed to encode session",
            "details": {"session_id": "abc"},
            "request_id": "test-request-id",
        }

    @pytest.mark.asyncio
    async def test_store_errors_report_retryable(self):
        exc = statement_error("touch", sqlite3.OperationalError("database is locked"))

        response = await handle_app_exception(make_request(), exc)

        assert response.status_code == 503
        data = json.loads(response.body.decode("utf-8"))
        assert data["error_code"] == "STATEMENT_FAILED"
        assert data["retryable"] is True
        assert data["details"]["operation"] == "touch"
        assert response.headers["retry-after"] == "1"

    @pytest.mark.asyncio
    async def test_permanent_store_errors_have_no_retry_after(self):
        response = await handle_app_exception(make_request(), StoreClosedError("Session store is closed"))

        assert response.status_code == 503
        assert "retry-after" not in response.headers
        assert json.loads(response.body.decode("utf-8"))["retryable"] is False


class TestHandleUnexpectedException:
    """Tests for the handle_unexpected_exception handler."""

    @pytest.mark.asyncio
    async def test_handle_unexpected_exception_hides_internal_details(self):
        exc = RuntimeError("disk image is malformed at /var/lib/app/sessions.sqlite3")

        response = await handle_unexpected_exception(make_request(method="POST"), exc)

        assert response.status_code == 500
        data = json.loads(response.body.decode("utf-8"))
        assert "sessions.sqlite3" not in data["message"]
        assert data["error_code"] == "INTERNAL_ERROR"
        assert "unexpected error" in data["message"].lower()
        assert data["request_id"] == "test-request-id"
        assert "details" not in data


class TestRegisterExceptionHandlers:
    """Tests for the register_exception_handlers function."""

    def test_register_exception_handlers_adds_handlers(self):
        mock_app = MagicMock()

        register_exception_handlers(mock_app)

        calls = mock_app.add_exception_handler.call_args_list
        exception_types = [call[0][0] for call in calls]
        assert exception_types == [AppException, Exception]
