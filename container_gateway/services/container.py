"""
Container Management Service

Business logic for container lifecycle operations and read-only queries.
Every write goes through the transition validator before it is dispatched;
bulk operations run each member independently and always report one result
per requested container.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

import structlog

from ..core.backend import ContainerBackend
from ..core.error_response import GatewayErrorResponse, create_success_response, utc_timestamp
from ..core.exceptions import (
    BackendFailureError,
    BadRequestError,
    ContainerGatewayError,
    ContainerNotFoundError,
    ValidationFailedError,
)
from ..core.settings import OperationSettings
from ..models.container import (
    BulkOperationResponse,
    BulkOperationResult,
    ContainerLogs,
    ContainerStats,
    OperationOutcome,
)
from ..models.enums import ContainerAction, ContainerOperation
from ..models.params import DockerContainerParams
from .dispatcher import OperationDispatcher, RequestBody, parse_operation
from .inspector import StateInspector
from .normalizer import canonical_container, normalize_containers, normalize_listing, normalize_system_info
from .validation import TransitionValidator

T = TypeVar("T")

BULK_OPERATIONS = {
    ContainerAction.BULK_START: ContainerOperation.START,
    ContainerAction.BULK_STOP: ContainerOperation.STOP,
    ContainerAction.BULK_RESTART: ContainerOperation.RESTART,
}


class ContainerService:
    """Service for container lifecycle management operations."""

    def __init__(
        self,
        backend: ContainerBackend,
        settings: OperationSettings | None = None,
        inspector: StateInspector | None = None,
        validator: TransitionValidator | None = None,
        dispatcher: OperationDispatcher | None = None,
    ):
        self.backend = backend
        self.settings = settings or OperationSettings()
        self.inspector = inspector or StateInspector(backend, self.settings.inspect_timeout)
        self.validator = validator or TransitionValidator()
        self.dispatcher = dispatcher or OperationDispatcher(backend, self.settings)
        self.logger = structlog.get_logger()

    # ------------------------------------------------------------------
    # Single-target executor
    # ------------------------------------------------------------------

    async def execute(
        self, container_id: str, operation: str | ContainerOperation, body: RequestBody = None
    ) -> ContainerOperation:
        """Validate then dispatch one lifecycle operation.

        Raises:
            BadRequestError: empty container identifier
            UnknownOperationError: operation is not start, stop or restart
            ValidationFailedError: container state could not be determined;
                chained from ContainerNotFoundError when the container is missing
            ContainerNotFoundError, BackendFailureError: the dispatched call failed
        """
        if not container_id or not container_id.strip():
            raise BadRequestError("Container ID is required")

        op = parse_operation(operation)
        self.logger.info("Container operation requested", container_id=container_id, operation=op.value)

        try:
            state, _found = await self.inspector.inspect(container_id)
        except ContainerNotFoundError as e:
            raise ValidationFailedError(f"validation failed: container not found: {e}") from e
        except BackendFailureError as e:
            raise ValidationFailedError(f"validation failed: {e}") from e

        outcome = self.validator.validate(container_id, op, state)
        if not outcome.allowed:
            raise ValidationFailedError(f"validation failed: {outcome.reason}")

        await self.dispatcher.dispatch(container_id, op, body)
        self.logger.info("Container operation completed", container_id=container_id, operation=op.value)
        return op

    async def execute_operation(
        self, container_id: str, operation: str | ContainerOperation, body: RequestBody = None
    ) -> OperationOutcome:
        """Run ``execute`` and fold the result into an outcome record."""
        op_name = operation.value if isinstance(operation, ContainerOperation) else str(operation)
        try:
            await self.execute(container_id, operation, body)
        except ContainerGatewayError as e:
            self.logger.error(
                "Container operation failed",
                container_id=container_id,
                operation=op_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return OperationOutcome(
                success=False,
                message=f"Failed to {op_name} container: {e}",
                id=container_id,
                operation=op_name,
                error_type=self._problem_type(e),
            )

        return OperationOutcome(
            success=True,
            message=f"Container {op_name} operation completed successfully",
            id=container_id,
            operation=op_name,
        )

    @staticmethod
    def _problem_type(error: ContainerGatewayError) -> str:
        if isinstance(error, ValidationFailedError) and isinstance(error.__cause__, ContainerNotFoundError):
            return ContainerNotFoundError.problem_type
        return error.problem_type

    # ------------------------------------------------------------------
    # Bulk executor
    # ------------------------------------------------------------------

    async def execute_bulk(
        self,
        container_ids: list[str],
        operation: str | ContainerOperation,
        force: bool = False,
    ) -> list[BulkOperationResult]:
        """Run one lifecycle call per container, in input order.

        Bulk calls skip state validation and always use the default
        Docker-side timeout. ``force`` is recorded but not acted on.
        """
        op = parse_operation(operation)
        if not container_ids:
            raise BadRequestError("Container IDs list cannot be empty")

        self.logger.info(
            "Bulk container operation started",
            operation=op.value,
            count=len(container_ids),
            force=force,
            concurrency=self.settings.bulk_concurrency,
        )

        results: list[BulkOperationResult | None] = [None] * len(container_ids)

        async def run(index: int, container_id: str) -> None:
            results[index] = await self._bulk_member(container_id, op)

        if self.settings.bulk_concurrency <= 1:
            for index, container_id in enumerate(container_ids):
                await run(index, container_id)
        else:
            semaphore = asyncio.Semaphore(self.settings.bulk_concurrency)

            async def limited(index: int, container_id: str) -> None:
                async with semaphore:
                    await run(index, container_id)

            await asyncio.gather(*(limited(i, cid) for i, cid in enumerate(container_ids)))

        completed = [result for result in results if result is not None]
        succeeded = sum(1 for result in completed if result.success)
        self.logger.info(
            "Bulk container operation finished",
            operation=op.value,
            total=len(completed),
            succeeded=succeeded,
            failed=len(completed) - succeeded,
        )
        return completed

    async def _bulk_member(self, container_id: str, operation: ContainerOperation) -> BulkOperationResult:
        timeout = self.settings.default_timeout
        if operation is ContainerOperation.START:
            call = self.backend.start_container(container_id)
        elif operation is ContainerOperation.STOP:
            call = self.backend.stop_container(container_id, timeout)
        else:
            call = self.backend.restart_container(container_id, timeout)

        bound = self.settings.call_timeout(timeout)
        try:
            await asyncio.wait_for(call, bound)
        except TimeoutError:
            error = f"{operation.value} {container_id} timed out after {bound:g}s"
        except ContainerGatewayError as e:
            error = str(e)
        except Exception as e:  # a single member never aborts the batch
            self.logger.exception("Unexpected bulk member failure", container_id=container_id)
            error = str(e) or type(e).__name__
        else:
            return BulkOperationResult(
                id=container_id,
                success=True,
                message=f"Container {container_id} {operation.past_tense} successfully",
            )

        self.logger.warning(
            "Bulk member failed", container_id=container_id, operation=operation.value, error=error
        )
        return BulkOperationResult(id=container_id, success=False, error=error)

    async def bulk_response(
        self, container_ids: list[str], operation: str | ContainerOperation, force: bool = False
    ) -> BulkOperationResponse:
        op = parse_operation(operation)
        results = await self.execute_bulk(container_ids, op, force)
        return BulkOperationResponse.from_results(op.value, results)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read(self, description: str, call: Awaitable[T]) -> T:
        bound = self.settings.inspect_timeout
        try:
            return await asyncio.wait_for(call, bound)
        except TimeoutError as e:
            raise BackendFailureError(f"{description} timed out after {bound:g}s") from e

    async def list_containers(self, all_containers: bool = True) -> list[dict[str, Any]]:
        """List containers as canonical records."""
        payload = await self._read("list containers", self.backend.list_containers(all_containers))
        containers = normalize_containers(payload)
        self.logger.debug("Listed containers", count=len(containers), all_containers=all_containers)
        return containers

    async def get_container(self, container_id: str) -> dict[str, Any]:
        """Return one canonical container record."""
        payload = await self._read(f"inspect {container_id}", self.backend.get_container(container_id))
        container = canonical_container(payload)
        if container is None:
            raise BackendFailureError(f"Unreadable record returned for container {container_id}")
        return container

    async def get_container_stats(self, container_id: str) -> ContainerStats:
        """Compute one resource usage snapshot for a container."""
        stats_raw = await self._read(
            f"stats {container_id}", self.backend.get_container_stats(container_id)
        )

        cpu_stats = stats_raw.get("cpu_stats") or {}
        memory_stats = stats_raw.get("memory_stats") or {}
        networks = stats_raw.get("networks") or {}
        blkio_stats = stats_raw.get("blkio_stats") or {}
        pids_stats = stats_raw.get("pids_stats") or {}

        cpu_percent = self._calculate_cpu_percentage(cpu_stats, stats_raw.get("precpu_stats") or {})

        memory_usage = memory_stats.get("usage", 0)
        memory_limit = memory_stats.get("limit", 0)
        memory_percent = (memory_usage / memory_limit * 100) if memory_limit > 0 else 0.0

        # Network stats (sum all interfaces)
        net_rx = sum(net.get("rx_bytes", 0) for net in networks.values())
        net_tx = sum(net.get("tx_bytes", 0) for net in networks.values())

        io_entries = blkio_stats.get("io_service_bytes_recursive") or []
        blk_read = sum(
            stat.get("value", 0) for stat in io_entries if str(stat.get("op", "")).lower() == "read"
        )
        blk_write = sum(
            stat.get("value", 0) for stat in io_entries if str(stat.get("op", "")).lower() == "write"
        )

        return ContainerStats(
            container_id=container_id,
            cpu_percentage=round(cpu_percent, 2),
            memory_usage=memory_usage,
            memory_limit=memory_limit,
            memory_percentage=round(memory_percent, 2),
            network_rx=net_rx,
            network_tx=net_tx,
            block_read=blk_read,
            block_write=blk_write,
            pids=pids_stats.get("current", 0),
        )

    @staticmethod
    def _calculate_cpu_percentage(cpu_stats: dict, precpu_stats: dict) -> float:
        """Calculate CPU percentage from Docker stats."""
        cpu_delta = (cpu_stats.get("cpu_usage") or {}).get("total_usage", 0) - (
            precpu_stats.get("cpu_usage") or {}
        ).get("total_usage", 0)
        system_delta = cpu_stats.get("system_cpu_usage", 0) - precpu_stats.get("system_cpu_usage", 0)
        online_cpus = cpu_stats.get("online_cpus") or 1

        if system_delta > 0 and cpu_delta >= 0:
            return (cpu_delta / system_delta) * online_cpus * 100.0
        return 0.0

    async def get_container_logs(self, container_id: str, tail: int) -> ContainerLogs:
        lines = await self._read(
            f"logs {container_id}", self.backend.get_container_logs(container_id, tail)
        )
        return ContainerLogs(container_id=container_id, logs=lines, truncated=len(lines) >= tail)

    async def list_images(self) -> list[Any]:
        return normalize_listing(await self._read("list images", self.backend.list_images()))

    async def list_networks(self) -> list[Any]:
        return normalize_listing(await self._read("list networks", self.backend.list_networks()))

    async def get_system_info(self) -> dict[str, Any]:
        return normalize_system_info(await self._read("docker info", self.backend.get_system_info()))

    async def health(self) -> dict[str, Any]:
        """Report whether the container runtime answers."""
        try:
            docker_ok = await asyncio.wait_for(self.backend.ping(), self.settings.inspect_timeout)
        except TimeoutError:
            docker_ok = False
        return {
            "status": "healthy" if docker_ok else "degraded",
            "docker": docker_ok,
            "timestamp": utc_timestamp(),
        }

    # ------------------------------------------------------------------
    # MCP tool entry point
    # ------------------------------------------------------------------

    async def handle_action(self, params: DockerContainerParams) -> dict[str, Any]:
        """Unified action handler for the docker_container tool."""
        action = params.action
        try:
            if action == ContainerAction.LIST:
                containers = await self.list_containers(params.all_containers)
                return create_success_response(
                    data=containers,
                    message=f"Found {len(containers)} containers",
                    context={"action": action.value},
                )
            elif action == ContainerAction.INFO:
                return create_success_response(
                    data=await self.get_container(params.container_id),
                    context={"action": action.value, "container_id": params.container_id},
                )
            elif action == ContainerAction.STATS:
                stats = await self.get_container_stats(params.container_id)
                return create_success_response(
                    data=stats.model_dump(),
                    message=f"Container {params.container_id} stats retrieved successfully",
                    context={"action": action.value, "container_id": params.container_id},
                )
            elif action == ContainerAction.LOGS:
                logs = await self.get_container_logs(params.container_id, params.tail)
                return create_success_response(
                    data=logs.model_dump(),
                    context={"action": action.value, "container_id": params.container_id},
                )
            elif action in BULK_OPERATIONS:
                response = await self.bulk_response(
                    params.container_ids, BULK_OPERATIONS[action], params.force
                )
                return response.model_dump()
            else:
                return await self._handle_management_action(params)
        except ContainerGatewayError as e:
            self.logger.error("container service action error", action=action.value, error=str(e))
            return GatewayErrorResponse.from_exception(e, context={"action": action.value})

    async def _handle_management_action(self, params: DockerContainerParams) -> dict[str, Any]:
        body: dict[str, Any] = {"force": params.force}
        if params.timeout is not None:
            body["timeout"] = params.timeout
        outcome = await self.execute_operation(params.container_id, params.action.value, body)
        return outcome.model_dump()
