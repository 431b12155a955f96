"""
Operation Dispatch

Maps a lifecycle operation name onto the matching backend call and parses
the operation's optional parameters from the request body.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any

import structlog

from ..core.backend import ContainerBackend
from ..core.exceptions import BackendFailureError, UnknownOperationError
from ..core.settings import OperationSettings
from ..models.container import StopOptions
from ..models.enums import ContainerOperation

logger = structlog.get_logger()

RequestBody = bytes | str | dict[str, Any] | None


def parse_operation(operation: str | ContainerOperation) -> ContainerOperation:
    """Resolve an operation name, raising UnknownOperationError for anything else."""
    if isinstance(operation, ContainerOperation):
        return operation
    try:
        return ContainerOperation(operation)
    except ValueError as e:
        raise UnknownOperationError(f"Unknown operation: {operation}") from e


class OperationDispatcher:
    """Invokes start, stop or restart on the backend."""

    def __init__(self, backend: ContainerBackend, settings: OperationSettings):
        self.backend = backend
        self.settings = settings

    async def dispatch(
        self, container_id: str, operation: str | ContainerOperation, body: RequestBody = None
    ) -> None:
        """Run one lifecycle call against the backend.

        Args:
            container_id: Target container
            operation: start, stop or restart
            body: Optional request body; only stop reads ``timeout`` and ``force``

        Raises:
            UnknownOperationError: operation is not start, stop or restart
            ContainerNotFoundError: backend could not resolve the container
            BackendFailureError: backend call failed or exceeded its bound
        """
        op = parse_operation(operation)
        default_timeout = self.settings.default_timeout

        if op is ContainerOperation.START:
            await self._bounded(op, container_id, self.backend.start_container(container_id))
        elif op is ContainerOperation.STOP:
            options = StopOptions.from_body(body, default_timeout)
            logger.debug(
                "Stopping container",
                container_id=container_id,
                timeout=options.timeout,
                force=options.force,
            )
            await self._bounded(
                op,
                container_id,
                self.backend.stop_container(container_id, options.timeout),
                options.timeout,
            )
        else:
            await self._bounded(
                op,
                container_id,
                self.backend.restart_container(container_id, default_timeout),
                default_timeout,
            )

    async def _bounded(
        self,
        operation: ContainerOperation,
        container_id: str,
        call: Awaitable[None],
        docker_timeout: int | None = None,
    ) -> None:
        bound = self.settings.call_timeout(docker_timeout)
        try:
            await asyncio.wait_for(call, bound)
        except TimeoutError as e:
            logger.error(
                "Container operation timed out",
                container_id=container_id,
                operation=operation.value,
                timeout=bound,
            )
            raise BackendFailureError(
                f"{operation.value} {container_id} timed out after {bound:g}s"
            ) from e
