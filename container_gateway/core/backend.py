"""Container runtime backend for Container Gateway.

The gateway only talks to the runtime through the ``ContainerBackend``
protocol. ``DockerBackend`` implements it with the Docker SDK, pushing every
blocking SDK call onto a worker thread.
"""

import asyncio
from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypeVar

import docker
import docker.errors
import requests.exceptions
import structlog

from ..constants import DOCKER_COMPOSE_PROJECT
from ..models.container import ContainerInfo, MountInfo, NetworkInfo, PortMapping
from .exceptions import BackendFailureError, ContainerNotFoundError
from .settings import DockerSettings

logger = structlog.get_logger()

T = TypeVar("T")

# A record is either a generic mapping or a typed object (pydantic model,
# dataclass, ...) that the normalizer canonicalises.
ContainerRecord = Mapping[str, Any] | Any


class ContainerBackend(Protocol):
    """Capability interface of the container runtime.

    Implementations raise ``ContainerNotFoundError`` for unknown identifiers
    and ``BackendFailureError`` when the runtime call itself fails.
    """

    async def get_container(self, container_id: str) -> ContainerRecord:
        """Return the current record of one container."""
        ...

    async def list_containers(self, all_containers: bool = True) -> list[ContainerRecord]:
        """Return records for all (or only running) containers."""
        ...

    async def start_container(self, container_id: str) -> None:
        """Start a container."""
        ...

    async def stop_container(self, container_id: str, timeout: int) -> None:
        """Stop a container, killing it after ``timeout`` seconds."""
        ...

    async def restart_container(self, container_id: str, timeout: int) -> None:
        """Restart a container, killing it after ``timeout`` seconds."""
        ...

    async def get_system_info(self) -> Any:
        """Return the runtime's system information record."""
        ...

    async def get_container_stats(self, container_id: str) -> dict[str, Any]:
        """Return one raw resource statistics snapshot."""
        ...

    async def get_container_logs(self, container_id: str, tail: int) -> list[str]:
        """Return the last ``tail`` log lines."""
        ...

    async def list_images(self) -> list[Any]:
        """Return image records."""
        ...

    async def list_networks(self) -> list[Any]:
        """Return network records."""
        ...

    async def ping(self) -> bool:
        """Return True when the runtime answers."""
        ...


class DockerBackend:
    """ContainerBackend backed by the Docker SDK."""

    def __init__(self, settings: DockerSettings, client: docker.DockerClient | None = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> docker.DockerClient:
        """Return the cached Docker SDK client, creating it on first use."""
        if self._client is None:
            try:
                if self.settings.base_url:
                    self._client = docker.DockerClient(
                        base_url=self.settings.base_url, timeout=self.settings.client_timeout
                    )
                else:
                    self._client = docker.from_env(timeout=self.settings.client_timeout)
            except docker.errors.DockerException as e:
                raise BackendFailureError(f"Could not connect to Docker: {e}") from e
            logger.debug("Created Docker SDK client", base_url=self.settings.base_url or "environment")
        return self._client

    async def _call(self, description: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking SDK call in a worker thread and map SDK errors."""
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError(f"{description}: {e.explanation or e}") from e
        except docker.errors.APIError as e:
            raise BackendFailureError(f"{description}: {e.explanation or e}") from e
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise BackendFailureError(f"{description}: {e}") from e

    async def _get_sdk_container(self, container_id: str) -> Any:
        client = self._get_client()
        return await self._call(f"inspect {container_id}", client.containers.get, container_id)

    async def get_container(self, container_id: str) -> ContainerInfo:
        container = await self._get_sdk_container(container_id)
        return container_from_attrs(container.attrs)

    async def list_containers(self, all_containers: bool = True) -> list[ContainerInfo]:
        client = self._get_client()
        containers = await self._call("list containers", client.containers.list, all=all_containers)

        records = []
        for container in containers:
            try:
                records.append(container_from_attrs(container.attrs))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Failed to process container", container_id=container.id, error=str(e))
        return records

    async def start_container(self, container_id: str) -> None:
        container = await self._get_sdk_container(container_id)
        await self._call(f"start {container_id}", container.start)
        logger.info("Container started", container_id=container_id)

    async def stop_container(self, container_id: str, timeout: int) -> None:
        container = await self._get_sdk_container(container_id)
        await self._call(f"stop {container_id}", container.stop, timeout=timeout)
        logger.info("Container stopped", container_id=container_id, timeout=timeout)

    async def restart_container(self, container_id: str, timeout: int) -> None:
        container = await self._get_sdk_container(container_id)
        await self._call(f"restart {container_id}", container.restart, timeout=timeout)
        logger.info("Container restarted", container_id=container_id, timeout=timeout)

    async def get_system_info(self) -> dict[str, Any]:
        client = self._get_client()
        return await self._call("docker info", client.info)

    async def get_container_stats(self, container_id: str) -> dict[str, Any]:
        container = await self._get_sdk_container(container_id)
        # Docker SDK returns a single snapshot dict when stream=False
        return await self._call(f"stats {container_id}", container.stats, stream=False)

    async def get_container_logs(self, container_id: str, tail: int) -> list[str]:
        container = await self._get_sdk_container(container_id)
        raw = await self._call(f"logs {container_id}", container.logs, tail=tail)
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
        return text.splitlines()

    async def list_images(self) -> list[dict[str, Any]]:
        client = self._get_client()
        images = await self._call("list images", client.images.list)
        return [
            {
                "id": image.id,
                "tags": list(image.tags),
                "size": image.attrs.get("Size", 0),
                "created": image.attrs.get("Created", ""),
                "labels": image.labels,
            }
            for image in images
        ]

    async def list_networks(self) -> list[dict[str, Any]]:
        client = self._get_client()
        networks = await self._call("list networks", client.networks.list)
        return [
            {
                "id": network.id,
                "name": network.name,
                "driver": network.attrs.get("Driver", ""),
                "scope": network.attrs.get("Scope", ""),
                "internal": network.attrs.get("Internal", False),
                "attachable": network.attrs.get("Attachable", False),
                "labels": network.attrs.get("Labels"),
            }
            for network in networks
        ]

    async def ping(self) -> bool:
        try:
            client = self._get_client()
            return bool(await self._call("ping", client.ping))
        except BackendFailureError as e:
            logger.warning("Docker ping failed", error=str(e))
            return False


def container_from_attrs(attrs: dict[str, Any]) -> ContainerInfo:
    """Build a typed container record from Docker inspect data."""
    config = attrs.get("Config") or {}
    state = attrs.get("State") or {}
    network_settings = attrs.get("NetworkSettings") or {}
    labels = config.get("Labels")

    mounts = [
        MountInfo(
            type=mount.get("Type", "bind"),
            source=mount.get("Source", "") or mount.get("Name", ""),
            destination=mount.get("Destination", ""),
            mode=mount.get("Mode", ""),
            read_only=not mount.get("RW", True),
        )
        for mount in attrs.get("Mounts") or []
    ]

    ports = []
    for container_port, bindings in (network_settings.get("Ports") or {}).items():
        port, _, protocol = container_port.partition("/")
        if not bindings:
            ports.append(PortMapping(container_port=port, protocol=protocol or "tcp"))
            continue
        for binding in bindings:
            ports.append(
                PortMapping(
                    host_ip=binding.get("HostIp", ""),
                    host_port=binding.get("HostPort", ""),
                    container_port=port,
                    protocol=protocol or "tcp",
                )
            )

    networks = [
        NetworkInfo(
            name=name,
            ip_address=(details or {}).get("IPAddress", ""),
            gateway=(details or {}).get("Gateway", ""),
        )
        for name, details in (network_settings.get("Networks") or {}).items()
    ]

    return ContainerInfo(
        id=attrs.get("Id", ""),
        name=attrs.get("Name", "").lstrip("/"),
        image=config.get("Image", ""),
        status=state.get("Status", ""),
        state=state.get("Status") or None,
        created=attrs.get("Created"),
        ports=ports,
        mounts=mounts,
        networks=networks,
        labels=labels,
        restart_policy=((attrs.get("HostConfig") or {}).get("RestartPolicy") or {}).get("Name", ""),
        compose_project=(labels or {}).get(DOCKER_COMPOSE_PROJECT),
    )
