"""Tests for logging setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest
import structlog

from container_gateway.core.logging_config import (
    ACCESS_LOGGER,
    SERVER_LOGGER,
    get_access_logger,
    get_server_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    saved = root.handlers[:], root.level
    yield
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    for name in (SERVER_LOGGER, ACCESS_LOGGER):
        for handler in logging.getLogger(name).handlers:
            handler.close()
        logging.getLogger(name).handlers.clear()
    structlog.reset_defaults()


def test_file_handlers_created(tmp_path):
    setup_logging(log_dir=tmp_path, log_level="DEBUG", max_file_size_mb=1)

    for name, file_name in ((SERVER_LOGGER, "gateway.log"), (ACCESS_LOGGER, "access.log")):
        handlers = logging.getLogger(name).handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RotatingFileHandler)
        assert handlers[0].maxBytes == 1024 * 1024
        assert handlers[0].backupCount == 0
        assert (tmp_path / file_name).exists()

    assert logging.getLogger().level == logging.DEBUG


def test_console_only(tmp_path):
    setup_logging(log_dir=None, log_level="WARNING")

    assert logging.getLogger(SERVER_LOGGER).handlers == []
    assert logging.getLogger().level == logging.WARNING


def test_server_log_written(tmp_path):
    setup_logging(log_dir=tmp_path, log_level="INFO")

    get_server_logger().info("Container operation requested", container_id="web")
    get_access_logger().info("HTTP request", path="/api/v1/health")
    for name in (SERVER_LOGGER, ACCESS_LOGGER):
        for handler in logging.getLogger(name).handlers:
            handler.flush()

    assert "Container operation requested" in (tmp_path / "gateway.log").read_text()
    assert "/api/v1/health" in (tmp_path / "access.log").read_text()
