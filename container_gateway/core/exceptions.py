"""Core exceptions for Container Gateway operations."""


class ContainerGatewayError(Exception):
    """Base exception for Container Gateway operations."""

    problem_type = "gateway-error"


class BadRequestError(ContainerGatewayError):
    """Malformed or empty input rejected at the boundary."""

    problem_type = "bad-request"


class UnknownOperationError(ContainerGatewayError):
    """Operation name is not one of start, stop or restart."""

    problem_type = "unknown-operation"


class ContainerNotFoundError(ContainerGatewayError):
    """Identifier could not be resolved by the backend."""

    problem_type = "container-not-found"


class ValidationFailedError(ContainerGatewayError):
    """Container state could not be determined before an operation."""

    problem_type = "validation-failed"


class BackendFailureError(ContainerGatewayError):
    """The container runtime call itself failed or timed out."""

    problem_type = "backend-failure"
