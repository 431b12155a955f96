"""Docker connection and operation timeout settings.

Provides centralized timeout configuration using Pydantic BaseSettings
with environment variable support for operational tuning.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import DEFAULT_OPERATION_TIMEOUT


class DockerSettings(BaseSettings):
    """Docker SDK client configuration."""

    base_url: str | None = Field(
        None,
        alias="DOCKER_BASE_URL",
        description="Docker daemon URL; unset means DOCKER_HOST or the local socket",
    )

    client_timeout: int = Field(
        30, alias="DOCKER_CLIENT_TIMEOUT", ge=1, description="Docker SDK client timeout in seconds"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


class OperationSettings(BaseSettings):
    """Lifecycle operation timeout and concurrency configuration."""

    default_timeout: int = Field(
        DEFAULT_OPERATION_TIMEOUT,
        alias="OPERATION_TIMEOUT",
        ge=1,
        description="Docker-side stop/restart timeout in seconds, also used for bulk calls",
    )

    timeout_grace: int = Field(
        5,
        alias="OPERATION_TIMEOUT_GRACE",
        ge=0,
        description="Seconds added to the Docker-side timeout when bounding a backend call",
    )

    inspect_timeout: int = Field(
        15, alias="INSPECT_TIMEOUT", ge=1, description="Bound for read-only backend calls"
    )

    bulk_concurrency: int = Field(
        1,
        alias="BULK_CONCURRENCY",
        ge=1,
        le=32,
        description="Concurrent backend calls per bulk request (1 = sequential)",
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    def call_timeout(self, docker_timeout: int | None = None) -> float:
        """Upper bound for one blocking backend call, in seconds."""
        base = docker_timeout if docker_timeout is not None else self.default_timeout
        return float(base + self.timeout_grace)
