"""
State Inspection

Reads a container's lifecycle state label from the backend regardless of
whether the backend answered with a generic mapping or a typed record.
"""

import asyncio
from typing import NamedTuple

import structlog

from ..constants import STATE
from ..core.backend import ContainerBackend
from ..core.exceptions import BackendFailureError
from .normalizer import to_record

logger = structlog.get_logger()


class InspectionResult(NamedTuple):
    """Observed lifecycle state; ``found`` is False when it is undeterminable."""

    state: str | None
    found: bool


class StateInspector:
    """Extracts a normalized lifecycle state label for one container."""

    def __init__(self, backend: ContainerBackend, timeout: float):
        self.backend = backend
        self.timeout = timeout

    async def inspect(self, container_id: str) -> InspectionResult:
        """Return the container's state.

        Raises:
            ContainerNotFoundError: the backend could not locate the container
            BackendFailureError: the lookup failed or timed out
        """
        try:
            payload = await asyncio.wait_for(self.backend.get_container(container_id), self.timeout)
        except TimeoutError as e:
            raise BackendFailureError(
                f"inspect {container_id} timed out after {self.timeout:g}s"
            ) from e

        record = to_record(payload)
        if record is None:
            logger.warning("Container record could not be read", container_id=container_id)
            return InspectionResult(None, False)

        state = record.get(STATE)
        if not isinstance(state, str) or not state:
            return InspectionResult(None, False)
        return InspectionResult(state, True)
