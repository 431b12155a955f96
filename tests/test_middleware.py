"""Tests for MCP and HTTP middleware."""

from types import SimpleNamespace

import pytest

from container_gateway.core.exceptions import BackendFailureError, ContainerNotFoundError
from container_gateway.middleware import ErrorHandlingMiddleware, LoggingMiddleware
from container_gateway.middleware.logging import is_sensitive_field, truncate

from .conftest import MockCall


class TestLoggingMiddleware:
    @pytest.mark.asyncio
    async def test_request_logging_success(self, logging_middleware, mock_context):
        call_next = MockCall(return_value={"status": "success"})

        result = await logging_middleware.on_message(mock_context, call_next)

        assert result == {"status": "success"}
        assert call_next.call_count == 1

    @pytest.mark.asyncio
    async def test_request_logging_failure_reraises(self, logging_middleware, mock_context):
        call_next = MockCall(exception=ValueError("Test error"))

        with pytest.raises(ValueError, match="Test error"):
            await logging_middleware.on_message(mock_context, call_next)

    def test_sensitive_fields_redacted(self):
        middleware = LoggingMiddleware(include_payloads=True, max_payload_length=500)
        message = SimpleNamespace(name="docker_container", api_token="sk-123", _private="x")

        sanitized = middleware._sanitize_message(message)

        assert sanitized == {"name": "docker_container", "api_token": "[REDACTED]"}

    def test_large_payload_truncated(self):
        middleware = LoggingMiddleware(include_payloads=True, max_payload_length=50)
        message = SimpleNamespace(arguments={"container_ids": ["x" * 20] * 10})

        sanitized = middleware._sanitize_message(message)

        assert sanitized["arguments"].endswith("... [TRUNCATED]")

    def test_non_object_message(self):
        middleware = LoggingMiddleware(max_payload_length=10)

        assert middleware._sanitize_message("a" * 30) == {"message": "a" * 10 + "... [TRUNCATED]"}


def test_sensitive_field_detection():
    assert is_sensitive_field("password")
    assert is_sensitive_field("Authorization")
    assert not is_sensitive_field("container_id")


def test_truncate_leaves_short_values():
    assert truncate("short", 10) == "short"
    assert truncate(42, 1) == 42


class TestErrorHandlingMiddleware:
    @pytest.mark.asyncio
    async def test_error_recorded_and_reraised(self, error_handling_middleware, mock_context):
        call_next = MockCall(exception=BackendFailureError("daemon unavailable"))

        with pytest.raises(BackendFailureError):
            await error_handling_middleware.on_message(mock_context, call_next)

        stats = error_handling_middleware.get_error_statistics()
        assert stats["total_errors"] == 1
        assert stats["error_distribution"] == {"BackendFailureError:tools/call": 1}

    @pytest.mark.asyncio
    async def test_statistics_accumulate(self, error_handling_middleware, mock_context):
        for error in (ContainerNotFoundError("a"), ContainerNotFoundError("b"), ValueError("c")):
            with pytest.raises(type(error)):
                await error_handling_middleware.on_message(mock_context, MockCall(exception=error))

        stats = error_handling_middleware.get_error_statistics()
        assert stats["total_errors"] == 3
        assert stats["unique_error_types"] == 2
        assert stats["top_errors"][0] == ("ContainerNotFoundError:tools/call", 2)
        assert stats["top_error_methods"] == [("tools/call", 3)]

    @pytest.mark.asyncio
    async def test_success_passes_through(self, error_handling_middleware, mock_context):
        result = await error_handling_middleware.on_message(mock_context, MockCall())

        assert result == {"status": "success"}
        assert error_handling_middleware.get_error_statistics()["total_errors"] == 0

    @pytest.mark.asyncio
    async def test_reset_statistics(self, error_handling_middleware, mock_context):
        with pytest.raises(ValueError):
            await error_handling_middleware.on_message(mock_context, MockCall(exception=ValueError()))

        error_handling_middleware.reset_statistics()

        assert error_handling_middleware.get_error_statistics()["total_errors"] == 0

    def test_tracking_disabled(self):
        middleware = ErrorHandlingMiddleware(track_error_stats=False)

        assert middleware.get_error_statistics() == {"error_tracking": "disabled"}


def test_request_id_generated(http_client):
    response = http_client.get("/api/v1/health")

    assert len(response.headers["X-Request-ID"]) == 32


def test_health_reports_mcp_error_statistics(server, http_client, mock_context):
    server.error_middleware._record_error(BackendFailureError("daemon unavailable"), mock_context)

    response = http_client.get("/api/v1/health")

    assert response.status_code == 200
    errors = response.json()["mcp_errors"]
    assert errors["total_errors"] == 1
    assert errors["error_distribution"] == {"BackendFailureError:tools/call": 1}


def test_health_without_mcp_errors(http_client):
    errors = http_client.get("/api/v1/health").json()["mcp_errors"]

    assert errors["total_errors"] == 0
    assert errors["top_errors"] == []
