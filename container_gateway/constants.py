"""Centralized constants for Container Gateway to eliminate duplicate strings."""

# API prefixes
API_PREFIX = "/api/v1"
DOCKER_PREFIX = f"{API_PREFIX}/docker"

# Docker-side default timeout for stop/restart and every bulk call (seconds)
DEFAULT_OPERATION_TIMEOUT = 10

# States the transition validator treats as already running / already stopped
STATE_RUNNING = "running"
STOPPED_STATES = frozenset({"exited", "stopped"})

# Canonical container record fields
STATE = "state"
MOUNTS = "mounts"
PORTS = "ports"
NETWORKS = "networks"
LABELS = "labels"

# Canonical mount fields and their defaults
MOUNT_DEFAULTS: dict[str, object] = {
    "source": "",
    "destination": "",
    "type": "bind",
    "read_only": False,
}

# Docker info: backend field name -> canonical field name
SYSTEM_INFO_FIELDS: dict[str, str] = {
    "Containers": "containers",
    "ContainersRunning": "containers_running",
    "ContainersPaused": "containers_paused",
    "ContainersStopped": "containers_stopped",
    "Images": "images",
}
SERVER_VERSION_SOURCE = "ServerVersion"
SERVER_VERSION = "server_version"
LAST_UPDATED = "last_updated"

# Docker labels
DOCKER_COMPOSE_PROJECT = "com.docker.compose.project"

# Log retrieval bounds
DEFAULT_LOG_TAIL = 100
MAX_LOG_TAIL = 10000
