"""Data models for Container Gateway."""

from .container import (  # noqa: F401
    BulkActionRequest,
    BulkOperationResponse,
    BulkOperationResult,
    BulkOperationSummary,
    ContainerInfo,
    ContainerLogs,
    ContainerStats,
    MountInfo,
    NetworkInfo,
    OperationOutcome,
    PortMapping,
    StopOptions,
    ValidationOutcome,
)
from .enums import ContainerAction, ContainerOperation, ValidationVerdict  # noqa: F401
from .params import DockerContainerParams  # noqa: F401

__all__ = [
    # Backend records
    "ContainerInfo",
    "MountInfo",
    "NetworkInfo",
    "PortMapping",
    "ContainerStats",
    "ContainerLogs",
    # Requests and outcomes
    "StopOptions",
    "BulkActionRequest",
    "ValidationOutcome",
    "OperationOutcome",
    "BulkOperationResult",
    "BulkOperationSummary",
    "BulkOperationResponse",
    # Enums
    "ContainerAction",
    "ContainerOperation",
    "ValidationVerdict",
    # Parameter models
    "DockerContainerParams",
]
