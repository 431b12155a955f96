"""Shared pytest fixtures for Container Gateway tests."""

import asyncio
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest
from starlette.testclient import TestClient

from container_gateway.core.config_loader import GatewayConfig
from container_gateway.core.exceptions import ContainerNotFoundError
from container_gateway.core.settings import OperationSettings
from container_gateway.middleware import ErrorHandlingMiddleware, LoggingMiddleware
from container_gateway.models.container import ContainerInfo, MountInfo
from container_gateway.server import ContainerGatewayServer
from container_gateway.services import ContainerService

MUTATIONS = {"start", "stop", "restart"}


class FakeBackend:
    """In-memory ContainerBackend that records every call it receives."""

    def __init__(
        self,
        containers: dict[str, Any] | None = None,
        failures: dict[str, Exception] | None = None,
        delays: dict[str, float] | None = None,
        system_info: Any = None,
        stats: dict[str, Any] | None = None,
        logs: list[str] | None = None,
        healthy: bool = True,
    ):
        self.containers = dict(containers or {})
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.system_info = system_info if system_info is not None else {}
        self.stats = stats or {}
        self.logs = logs or []
        self.healthy = healthy
        self.images: list[Any] = []
        self.networks: list[Any] = []
        self.calls: list[tuple] = []

    @property
    def mutations(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in MUTATIONS]

    def _lookup(self, container_id: str) -> Any:
        if container_id not in self.containers:
            raise ContainerNotFoundError(f"No such container: {container_id}")
        return self.containers[container_id]

    async def _mutate(self, name: str, container_id: str, *args: Any) -> None:
        self.calls.append((name, container_id, *args))
        if delay := self.delays.get(container_id):
            await asyncio.sleep(delay)
        if container_id in self.failures:
            raise self.failures[container_id]

    async def get_container(self, container_id: str) -> Any:
        self.calls.append(("get", container_id))
        return self._lookup(container_id)

    async def list_containers(self, all_containers: bool = True) -> list[Any]:
        self.calls.append(("list", all_containers))
        return list(self.containers.values())

    async def start_container(self, container_id: str) -> None:
        await self._mutate("start", container_id)

    async def stop_container(self, container_id: str, timeout: int) -> None:
        await self._mutate("stop", container_id, timeout)

    async def restart_container(self, container_id: str, timeout: int) -> None:
        await self._mutate("restart", container_id, timeout)

    async def get_system_info(self) -> Any:
        self.calls.append(("info",))
        return self.system_info

    async def get_container_stats(self, container_id: str) -> dict[str, Any]:
        self.calls.append(("stats", container_id))
        self._lookup(container_id)
        return self.stats

    async def get_container_logs(self, container_id: str, tail: int) -> list[str]:
        self.calls.append(("logs", container_id, tail))
        self._lookup(container_id)
        return self.logs[-tail:]

    async def list_images(self) -> list[Any]:
        return self.images

    async def list_networks(self) -> list[Any]:
        return self.networks

    async def ping(self) -> bool:
        return self.healthy


@pytest.fixture
def containers() -> dict[str, Any]:
    """Mix of generic and typed container records."""
    return {
        "web": {"id": "web", "name": "web", "state": "running", "mounts": None, "labels": None},
        "db": {"id": "db", "name": "db", "state": "exited"},
        "api": ContainerInfo(
            id="api",
            name="api",
            state="running",
            mounts=[MountInfo(source="/srv/api", destination="/data")],
        ),
        "ghost": {"id": "ghost", "name": "ghost", "state": None},
    }


@pytest.fixture
def backend(containers: dict[str, Any]) -> FakeBackend:
    return FakeBackend(containers=containers)


@pytest.fixture
def operation_settings() -> OperationSettings:
    """Short bounds so timeout tests finish quickly."""
    return OperationSettings(default_timeout=10, timeout_grace=1, inspect_timeout=2)


@pytest.fixture
def container_service(backend: FakeBackend, operation_settings: OperationSettings) -> ContainerService:
    return ContainerService(backend, operation_settings)


@pytest.fixture
def gateway_config(operation_settings: OperationSettings) -> GatewayConfig:
    config = GatewayConfig()
    config.operations = operation_settings
    return config


@pytest.fixture
def server(gateway_config: GatewayConfig, backend: FakeBackend) -> ContainerGatewayServer:
    """Gateway server wired to the in-memory backend."""
    server = ContainerGatewayServer(gateway_config, backend=backend)
    server._initialize_app()
    return server


@pytest.fixture
def http_client(server: ContainerGatewayServer) -> TestClient:
    """HTTP client for the REST routes (MCP lifespan not started)."""
    return TestClient(server.http_app())


@pytest.fixture
def logging_middleware() -> LoggingMiddleware:
    return LoggingMiddleware(include_payloads=True, max_payload_length=100)


@pytest.fixture
def error_handling_middleware() -> ErrorHandlingMiddleware:
    return ErrorHandlingMiddleware(include_traceback=True, track_error_stats=True)


@pytest.fixture
def mock_context():
    """Create mock MiddlewareContext for unit tests."""
    context = MagicMock()
    context.method = "tools/call"
    context.source = "client"
    context.type = "request"
    context.message = SimpleNamespace(name="docker_container", arguments={"action": "list"})
    return context


class MockCall:
    """Mock call_next function for middleware testing."""

    def __init__(self, return_value=None, exception=None):
        self.return_value = return_value or {"status": "success"}
        self.exception = exception
        self.call_count = 0

    async def __call__(self, context):
        self.call_count += 1
        if self.exception:
            raise self.exception
        return self.return_value
