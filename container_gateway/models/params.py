"""Parameter models for FastMCP tool validation."""

from typing import Any

from pydantic import Field, model_validator

from ..constants import DEFAULT_LOG_TAIL, MAX_LOG_TAIL
from .container import GatewayModel
from .enums import ContainerAction

BULK_ACTIONS = {ContainerAction.BULK_START, ContainerAction.BULK_STOP, ContainerAction.BULK_RESTART}
TARGETED_ACTIONS = {
    ContainerAction.INFO,
    ContainerAction.STATS,
    ContainerAction.LOGS,
    ContainerAction.START,
    ContainerAction.STOP,
    ContainerAction.RESTART,
}


def _validate_enum_action(value: Any, enum_class: type) -> Any:
    """Generic validator for enum action fields."""
    if isinstance(value, str):
        # Handle "EnumClass.VALUE" format
        if "." in value:
            enum_value = value.split(".")[-1].lower()
        else:
            enum_value = value.lower()

        for action in enum_class:
            if action.value == enum_value or action.name.lower() == enum_value:
                return action
    elif isinstance(value, enum_class):
        return value

    # Let Pydantic handle the error if no match
    return value


class DockerContainerParams(GatewayModel):
    """Parameters for the docker_container consolidated tool."""

    action: ContainerAction = Field(..., description="Action to perform")
    container_id: str = Field(default="", description="Container identifier")
    container_ids: list[str] = Field(
        default_factory=list, description="Container identifiers (bulk actions)"
    )
    all_containers: bool = Field(
        default=True, description="Include stopped containers when listing"
    )
    tail: int = Field(
        default=DEFAULT_LOG_TAIL, ge=1, le=MAX_LOG_TAIL, description="Number of log lines to retrieve"
    )
    force: bool = Field(default=False, description="Force the operation (informational)")
    timeout: int | None = Field(
        default=None, description="Stop timeout in seconds; non-positive values keep the default"
    )

    @model_validator(mode="before")
    @classmethod
    def validate_action(cls, data: Any) -> Any:
        """Normalize the action field to handle various enum input formats."""
        if isinstance(data, dict) and "action" in data:
            data = {**data, "action": _validate_enum_action(data["action"], ContainerAction)}
        return data

    @model_validator(mode="after")
    def validate_targets(self) -> "DockerContainerParams":
        if self.action in TARGETED_ACTIONS and not self.container_id.strip():
            raise ValueError(f"container_id is required for action '{self.action.value}'")
        if self.action in BULK_ACTIONS and not self.container_ids:
            raise ValueError("Container IDs list cannot be empty")
        return self
