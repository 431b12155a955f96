"""Tests for configuration management."""

from pathlib import Path
from unittest.mock import patch

import pytest

from container_gateway.core.config_loader import ConfigurationError, GatewayConfig, load_config
from container_gateway.core.settings import OperationSettings

ENV_VARS = (
    "GATEWAY_HOST",
    "GATEWAY_PORT",
    "LOG_LEVEL",
    "GATEWAY_CONFIG",
    "DOCKER_BASE_URL",
    "DOCKER_CLIENT_TIMEOUT",
    "OPERATION_TIMEOUT",
    "OPERATION_TIMEOUT_GRACE",
    "INSPECT_TIMEOUT",
    "BULK_CONCURRENCY",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep real environment, .env files and the user config out of config tests."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    with (
        patch("container_gateway.core.config_loader.load_dotenv"),
        patch(
            "container_gateway.core.config_loader.USER_CONFIG_FILE",
            tmp_path / "missing" / "gateway.yml",
        ),
    ):
        yield


def write_config(tmp_path: Path, content: str) -> str:
    path = tmp_path / "gateway.yml"
    path.write_text(content)
    return str(path)


def test_default_config():
    config = GatewayConfig()

    assert config.server.host == "127.0.0.1"
    assert config.server.port == 8000
    assert config.server.log_level == "INFO"
    assert config.docker.base_url is None
    assert config.operations.default_timeout == 10
    assert config.operations.bulk_concurrency == 1


def test_load_yaml_config(tmp_path):
    config_path = write_config(
        tmp_path,
        """
server:
  host: 0.0.0.0
  port: 9000
  log_level: DEBUG
docker:
  base_url: tcp://docker.internal:2375
  client_timeout: 60
operations:
  default_timeout: 20
  bulk_concurrency: 4
""",
    )

    config = load_config(config_path)

    assert config.server.host == "0.0.0.0"
    assert config.server.port == 9000
    assert config.server.log_level == "DEBUG"
    assert config.docker.base_url == "tcp://docker.internal:2375"
    assert config.docker.client_timeout == 60
    assert config.operations.default_timeout == 20
    assert config.operations.bulk_concurrency == 4
    assert config.operations.inspect_timeout == 15
    assert config.config_file == config_path


def test_environment_overrides_file(tmp_path, monkeypatch):
    config_path = write_config(tmp_path, "server:\n  host: 10.0.0.1\n  port: 9000\n")
    monkeypatch.setenv("GATEWAY_PORT", "9100")
    monkeypatch.setenv("DOCKER_BASE_URL", "unix:///run/user/docker.sock")

    config = load_config(config_path)

    assert config.server.host == "10.0.0.1"
    assert config.server.port == 9100
    assert config.docker.base_url == "unix:///run/user/docker.sock"


def test_environment_overrides_file_for_settings_sections(tmp_path, monkeypatch):
    config_path = write_config(
        tmp_path,
        """
docker:
  client_timeout: 30
operations:
  default_timeout: 10
  bulk_concurrency: 1
  inspect_timeout: 7
""",
    )
    monkeypatch.setenv("BULK_CONCURRENCY", "4")
    monkeypatch.setenv("OPERATION_TIMEOUT", "20")
    monkeypatch.setenv("OPERATION_TIMEOUT_GRACE", "2")
    monkeypatch.setenv("DOCKER_CLIENT_TIMEOUT", "60")

    config = load_config(config_path)

    assert config.operations.bulk_concurrency == 4
    assert config.operations.default_timeout == 20
    assert config.operations.timeout_grace == 2
    assert config.operations.inspect_timeout == 7
    assert config.docker.client_timeout == 60


def test_invalid_settings_environment(monkeypatch):
    monkeypatch.setenv("BULK_CONCURRENCY", "0")

    with pytest.raises(ConfigurationError, match="environment"):
        load_config()


def test_invalid_port_environment(monkeypatch):
    monkeypatch.setenv("GATEWAY_PORT", "eighty")

    with pytest.raises(ConfigurationError, match="GATEWAY_PORT"):
        load_config()


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "nonexistent.yml"))

    assert config.server.port == 8000


def test_invalid_yaml(tmp_path):
    config_path = write_config(tmp_path, "server: [unclosed\n")

    with pytest.raises(ConfigurationError, match="Failed to load config"):
        load_config(config_path)


def test_invalid_section_value(tmp_path):
    config_path = write_config(tmp_path, "operations:\n  bulk_concurrency: 0\n")

    with pytest.raises(ConfigurationError, match="OperationSettings"):
        load_config(config_path)


def test_non_mapping_yaml_ignored(tmp_path):
    config_path = write_config(tmp_path, "- just\n- a list\n")

    assert load_config(config_path).server.port == 8000


def test_allowlisted_variable_expansion(tmp_path, monkeypatch):
    monkeypatch.setenv("DOCKER_HOST", "tcp://remote:2376")
    monkeypatch.setenv("SECRET_VALUE", "leak")
    config_path = write_config(
        tmp_path, "docker:\n  base_url: ${DOCKER_HOST}\nserver:\n  host: $SECRET_VALUE\n"
    )

    config = load_config(config_path)

    assert config.docker.base_url == "tcp://remote:2376"
    assert config.server.host == "$SECRET_VALUE"


def test_call_timeout_adds_grace():
    settings = OperationSettings(default_timeout=10, timeout_grace=5)

    assert settings.call_timeout() == 15.0
    assert settings.call_timeout(45) == 50.0
