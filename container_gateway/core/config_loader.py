"""Configuration management for Container Gateway."""

import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from .exceptions import ContainerGatewayError
from .settings import DockerSettings, OperationSettings

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = "config/gateway.yml"
USER_CONFIG_FILE = Path.home() / ".config" / "container-gateway" / "gateway.yml"


class ConfigurationError(ContainerGatewayError):
    """Configuration validation or loading failed."""

    problem_type = "configuration-error"


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="127.0.0.1", alias="GATEWAY_HOST")  # 0.0.0.0 inside containers
    port: int = Field(default=8000, alias="GATEWAY_PORT", ge=1, le=65535)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {"populate_by_name": True}


class GatewayConfig(BaseSettings):
    """Main configuration for Container Gateway."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    docker: DockerSettings = Field(default_factory=DockerSettings)
    operations: OperationSettings = Field(default_factory=OperationSettings)
    config_file: str = Field(default=DEFAULT_CONFIG_FILE, alias="GATEWAY_CONFIG")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


def load_config(config_path: str | None = None) -> GatewayConfig:
    """Load configuration from multiple sources.

    Priority (lowest first): defaults, user config file, project config file,
    environment variables.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration
    """
    load_dotenv()

    try:
        config = GatewayConfig()
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment configuration: {e}") from e

    _load_config_file(config, USER_CONFIG_FILE)

    project_config_path = Path(config_path or os.getenv("GATEWAY_CONFIG", DEFAULT_CONFIG_FILE))
    _load_config_file(config, project_config_path)
    config.config_file = str(project_config_path)

    _apply_env_overrides(config)

    return config


def _load_config_file(config: GatewayConfig, config_path: Path) -> None:
    """Load and apply configuration from a YAML file."""
    if not config_path.exists():
        return

    yaml_config = _load_yaml_config(config_path)
    _apply_section(config.server, yaml_config.get("server"))
    _apply_section(config.docker, yaml_config.get("docker"))
    _apply_section(config.operations, yaml_config.get("operations"))
    logger.debug("Configuration file applied", path=str(config_path))


def _apply_section(section: BaseModel, values: Any) -> None:
    """Apply one YAML mapping onto a config section, validating each value."""
    if not isinstance(values, dict):
        return
    merged = section.model_dump() | {k: v for k, v in values.items() if k in type(section).model_fields}
    try:
        validated = type(section).model_validate(merged)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {type(section).__name__} configuration: {e}") from e
    for key in values:
        if key in type(section).model_fields:
            setattr(section, key, getattr(validated, key))


def _apply_env_overrides(config: GatewayConfig) -> None:
    """Apply environment variable overrides."""
    if os.getenv("GATEWAY_HOST"):
        config.server.host = os.getenv("GATEWAY_HOST", config.server.host)
    if port_env := os.getenv("GATEWAY_PORT"):
        try:
            config.server.port = int(port_env)
        except ValueError as e:
            raise ConfigurationError(f"GATEWAY_PORT must be an integer, got {port_env!r}") from e
    if os.getenv("LOG_LEVEL"):
        config.server.log_level = os.getenv("LOG_LEVEL", config.server.log_level)

    _apply_settings_env(config.docker)
    _apply_settings_env(config.operations)


def _apply_settings_env(section: BaseSettings) -> None:
    """Re-read a settings section from the environment and keep the variables that are set."""
    fields = type(section).model_fields
    overridden = [
        name for name, field in fields.items() if field.alias and os.getenv(field.alias) is not None
    ]
    if not overridden:
        return
    try:
        from_env = type(section)()
    except ValueError as e:
        raise ConfigurationError(f"Invalid {type(section).__name__} environment: {e}") from e
    for name in overridden:
        setattr(section, name, getattr(from_env, name))


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = config_path.read_text(encoding="utf-8")
        content = _expand_yaml_config(content)
        loaded = yaml.safe_load(content)
        # yaml.safe_load can return None, str, list, etc.
        if not isinstance(loaded, dict):
            return {}
        return loaded
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e


def _expand_yaml_config(content: str) -> str:
    """Securely expand environment variables with allowlist."""
    allowed_env_vars = {
        "HOME",
        "USER",
        "XDG_CONFIG_HOME",
        "DOCKER_HOST",
        "DOCKER_BASE_URL",
        "GATEWAY_HOST",
        "GATEWAY_PORT",
        "LOG_LEVEL",
    }

    def replace_if_allowed(match: re.Match) -> str:
        var_name = match.group(1) or match.group(2)
        original_pattern = match.group(0)
        if var_name in allowed_env_vars:
            return os.getenv(var_name, original_pattern)  # keep original if unset
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
            pattern=original_pattern,
        )
        return original_pattern

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", replace_if_allowed, content)
