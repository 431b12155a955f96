"""RFC 7807 compliant error response helpers.

This module provides standardized error response formatting following RFC 7807:
Problem Details for HTTP APIs, used for every error body the gateway writes.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from .exceptions import (
    BackendFailureError,
    BadRequestError,
    ContainerGatewayError,
    ContainerNotFoundError,
    UnknownOperationError,
    ValidationFailedError,
)


def utc_timestamp() -> str:
    """Current UTC time in ISO 8601 format."""
    return datetime.now(UTC).isoformat()


class ErrorDetail(BaseModel):
    """RFC 7807 compliant error detail structure.

    Required fields:
    - success: Always False for error responses
    - error: Human-readable error message

    Optional RFC 7807 fields:
    - type: URI reference that identifies the problem type
    - title: Short, human-readable summary of the problem type
    - detail: Human-readable explanation specific to this occurrence
    - instance: URI reference that identifies the specific occurrence
    """

    success: bool = Field(default=False, description="Always False for errors")
    error: str = Field(description="Human-readable error message")
    type: str | None = Field(default=None, description="Problem type URI")
    title: str | None = Field(default=None, description="Problem type summary")
    detail: str | None = Field(default=None, description="Specific problem details")
    instance: str | None = Field(default=None, description="Problem occurrence URI")
    timestamp: str = Field(default_factory=utc_timestamp)


# HTTP status per problem type
STATUS_CODES: dict[str, int] = {
    BadRequestError.problem_type: 400,
    UnknownOperationError.problem_type: 400,
    ContainerNotFoundError.problem_type: 404,
    "method-not-allowed": 405,
    ValidationFailedError.problem_type: 409,
    BackendFailureError.problem_type: 500,
    ContainerGatewayError.problem_type: 500,
}


def status_for(problem_type: str | None, default: int = 500) -> int:
    """Map a problem type key to its HTTP status code."""
    if problem_type is None:
        return default
    return STATUS_CODES.get(problem_type, default)


class GatewayErrorResponse:
    """Factory for creating standardized Container Gateway error responses."""

    PROBLEM_TYPES: dict[str, dict[str, str]] = {
        "bad-request": {
            "type": "/problems/bad-request",
            "title": "Bad Request",
        },
        "unknown-operation": {
            "type": "/problems/unknown-operation",
            "title": "Unknown Container Operation",
        },
        "container-not-found": {
            "type": "/problems/container-not-found",
            "title": "Container Not Found",
        },
        "validation-failed": {
            "type": "/problems/validation-failed",
            "title": "Container State Validation Failed",
        },
        "backend-failure": {
            "type": "/problems/backend-failure",
            "title": "Container Runtime Call Failed",
        },
        "method-not-allowed": {
            "type": "/problems/method-not-allowed",
            "title": "Method Not Allowed",
        },
        "gateway-error": {
            "type": "/problems/gateway-error",
            "title": "Internal Server Error",
        },
    }

    @classmethod
    def create_error(
        cls,
        error_message: str,
        problem_type: str | None = None,
        detail: str | None = None,
        instance: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a standardized error response.

        Args:
            error_message: Primary error message
            problem_type: Standard problem type key or custom type URI
            detail: Additional problem-specific details
            instance: Identifier for this specific occurrence
            context: Additional context fields (container_id, operation, etc.)

        Returns:
            RFC 7807 compliant error response dictionary
        """
        error_detail = ErrorDetail(error=error_message, detail=detail, instance=instance)

        if problem_type and problem_type in cls.PROBLEM_TYPES:
            problem_info = cls.PROBLEM_TYPES[problem_type]
            error_detail.type = problem_info["type"]
            error_detail.title = problem_info["title"]
        elif problem_type:
            error_detail.type = problem_type

        response = error_detail.model_dump(exclude_none=True)

        if context:
            # Reserved RFC 7807 fields are never overwritten by context
            reserved_fields = {
                "success",
                "error",
                "type",
                "title",
                "detail",
                "instance",
                "timestamp",
            }
            filtered_context = {k: v for k, v in context.items() if k not in reserved_fields}
            response.update(filtered_context)

        return response

    @classmethod
    def from_exception(
        cls,
        error: ContainerGatewayError,
        instance: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a problem response from a gateway exception."""
        return cls.create_error(
            error_message=str(error),
            problem_type=error.problem_type,
            instance=instance,
            context=context,
        )

    @classmethod
    def bad_request(cls, reason: str, instance: str | None = None) -> dict[str, Any]:
        """Standard malformed input error."""
        return cls.create_error(
            error_message=reason,
            problem_type="bad-request",
            instance=instance,
        )

    @classmethod
    def method_not_allowed(cls, method: str, instance: str) -> dict[str, Any]:
        """Standard wrong HTTP method error."""
        return cls.create_error(
            error_message="Method not allowed",
            problem_type="method-not-allowed",
            detail=f"Method {method} is not supported on {instance}",
            instance=instance,
            context={"method": method},
        )

    @classmethod
    def validation_error(cls, field: str, value: Any, reason: str) -> dict[str, Any]:
        """Standard parameter validation error."""
        return cls.create_error(
            error_message=f"Validation failed for '{field}': {reason}",
            problem_type="bad-request",
            detail=f"The value '{value}' for field '{field}' is invalid: {reason}",
            instance=f"/validation/{field}",
            context={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def generic_error(
        cls,
        error_message: str,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Generic error response for unexpected errors."""
        return cls.create_error(
            error_message=error_message,
            problem_type="gateway-error",
            context=context or {},
        )


def create_success_response(
    data: Any = None,
    message: str | None = None,
    context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a standardized success envelope for MCP tool results."""
    response: dict[str, Any] = {"success": True, "timestamp": utc_timestamp()}
    if message:
        response["message"] = message
    if data is not None:
        response["data"] = data
    if context:
        response.update({k: v for k, v in context.items() if k not in response})
    return response
