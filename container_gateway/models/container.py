"""Container-related data models."""

import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..constants import DEFAULT_OPERATION_TIMEOUT
from ..core.error_response import utc_timestamp
from ..core.exceptions import BadRequestError
from .enums import ContainerOperation, ValidationVerdict


class GatewayModel(BaseModel):
    """Base model with common gateway settings."""

    def model_dump(self, **kwargs) -> dict[str, Any]:
        """Convert to dict with exclude_none by default."""
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)


# Typed backend records. The Docker adapter returns these; the normalizer
# canonicalises them into plain mappings before any field access.
class MountInfo(BaseModel):
    """A mount point as reported by the container runtime."""

    type: str = "bind"
    source: str = ""
    destination: str = ""
    mode: str = ""
    read_only: bool = False


class PortMapping(BaseModel):
    """A published or exposed container port."""

    host_ip: str = ""
    host_port: str = ""
    container_port: str
    protocol: str = "tcp"


class NetworkInfo(BaseModel):
    """A network attachment of a container."""

    name: str
    ip_address: str = ""
    gateway: str = ""


class ContainerInfo(BaseModel):
    """Information about a Docker container as returned by the backend."""

    id: str
    name: str = ""
    image: str = ""
    status: str = ""
    state: str | None = None
    created: str | None = None
    ports: list[PortMapping] | None = None
    mounts: list[MountInfo] | None = None
    networks: list[NetworkInfo] | None = None
    labels: dict[str, str] | None = None
    restart_policy: str = ""
    compose_project: str | None = None


class ContainerStats(GatewayModel):
    """Resource statistics snapshot for a container."""

    container_id: str
    cpu_percentage: float = 0.0
    memory_usage: int = 0  # bytes
    memory_limit: int = 0  # bytes
    memory_percentage: float = 0.0
    network_rx: int = 0  # bytes
    network_tx: int = 0  # bytes
    block_read: int = 0  # bytes
    block_write: int = 0  # bytes
    pids: int = 0
    timestamp: str = Field(default_factory=utc_timestamp)


class ContainerLogs(GatewayModel):
    """Container log data."""

    container_id: str
    logs: list[str]
    timestamp: str = Field(default_factory=utc_timestamp, description="ISO 8601 retrieval time")
    truncated: bool = False


class StopOptions(GatewayModel):
    """Optional body of a stop request.

    ``timeout`` only overrides the default when it is a positive integer;
    ``force`` is informational.
    """

    timeout: int = DEFAULT_OPERATION_TIMEOUT
    force: bool = False

    @classmethod
    def from_body(
        cls, body: bytes | str | dict[str, Any] | None, default_timeout: int = DEFAULT_OPERATION_TIMEOUT
    ) -> "StopOptions":
        """Parse a request body leniently; anything unusable keeps the defaults."""
        payload: Any = body
        if isinstance(body, bytes | str):
            if not body.strip():
                return cls(timeout=default_timeout)
            try:
                payload = json.loads(body)
            except (ValueError, UnicodeDecodeError):
                return cls(timeout=default_timeout)

        if not isinstance(payload, dict):
            return cls(timeout=default_timeout)

        timeout = payload.get("timeout")
        force = payload.get("force")
        return cls(
            timeout=timeout
            if isinstance(timeout, int) and not isinstance(timeout, bool) and timeout > 0
            else default_timeout,
            force=force if isinstance(force, bool) else False,
        )


class BulkActionRequest(GatewayModel):
    """Body of a bulk lifecycle request."""

    container_ids: list[str]
    force: bool = False

    @field_validator("container_ids")
    @classmethod
    def validate_container_ids(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Container IDs list cannot be empty")
        if any(not container_id.strip() for container_id in v):
            raise ValueError("Container IDs must be non-empty strings")
        return v

    @classmethod
    def from_body(cls, body: bytes | str | dict[str, Any]) -> "BulkActionRequest":
        """Parse and validate a bulk request, raising BadRequestError on any problem."""
        try:
            if isinstance(body, dict):
                return cls.model_validate(body)
            return cls.model_validate_json(body)
        except ValidationError as e:
            errors = e.errors()
            if any(err["type"] == "json_invalid" for err in errors):
                raise BadRequestError("Invalid JSON request") from e
            messages = "; ".join(err["msg"].removeprefix("Value error, ") for err in errors)
            raise BadRequestError(messages) from e


class ValidationOutcome(GatewayModel):
    """Structured result of the transition validator."""

    verdict: ValidationVerdict
    container_id: str
    operation: ContainerOperation
    state: str | None = None
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.verdict is not ValidationVerdict.REJECTED


class OperationOutcome(GatewayModel):
    """Result of one single-target lifecycle operation."""

    success: bool
    message: str
    id: str
    operation: str
    timestamp: str = Field(default_factory=utc_timestamp)
    error_type: str | None = None


class BulkOperationResult(GatewayModel):
    """Result of one member of a bulk lifecycle operation."""

    id: str
    success: bool
    message: str | None = None
    error: str | None = None


class BulkOperationSummary(GatewayModel):
    """Counts over a bulk operation's results."""

    total: int
    succeeded: int
    failed: int


class BulkOperationResponse(GatewayModel):
    """Envelope written for a bulk lifecycle request."""

    success: bool
    message: str = "Bulk operation completed"
    operation: str
    results: list[BulkOperationResult]
    summary: BulkOperationSummary

    @classmethod
    def from_results(cls, operation: str, results: list[BulkOperationResult]) -> "BulkOperationResponse":
        succeeded = sum(1 for result in results if result.success)
        failed = len(results) - succeeded
        return cls(
            success=failed == 0,
            operation=operation,
            results=results,
            summary=BulkOperationSummary(total=len(results), succeeded=succeeded, failed=failed),
        )
