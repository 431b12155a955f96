"""Enum definitions for Container Gateway."""

from enum import Enum


class ContainerOperation(Enum):
    """Lifecycle transitions accepted by the operation executors."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"

    @property
    def past_tense(self) -> str:
        return {"start": "started", "stop": "stopped", "restart": "restarted"}[self.value]


class ValidationVerdict(Enum):
    """Outcome of checking a requested transition against observed state."""

    ALLOWED = "allowed"
    ALLOWED_WITH_WARNING = "allowed_with_warning"
    REJECTED = "rejected"


class ContainerAction(Enum):
    """Actions for the docker_container MCP tool."""

    LIST = "list"
    INFO = "info"
    STATS = "stats"
    LOGS = "logs"
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    BULK_START = "bulk_start"
    BULK_STOP = "bulk_stop"
    BULK_RESTART = "bulk_restart"
