"""Logging configuration for Container Gateway with dual output (console + files)."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

SERVER_LOGGER = "gateway"
ACCESS_LOGGER = "access"


def setup_logging(
    log_dir: Path | str | None = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Setup dual logging system: console + files with automatic truncation.

    Creates two log files:
    - gateway.log: Container operations, validation warnings, backend failures
    - access.log: HTTP request/response and MCP message tracking

    Args:
        log_dir: Directory for log files, or None for console-only logging
        log_level: Log level (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Max file size before truncation (no backup files kept)
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    log_level_num = getattr(logging, log_level.upper(), logging.INFO)
    max_bytes = max_file_size_mb * 1024 * 1024

    # Clear any existing handlers to prevent duplicates
    logging.getLogger().handlers.clear()

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stdout.isatty()
        else structlog.processors.JSONRenderer()
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_num)
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_num)
    root_logger.addHandler(console_handler)

    file_targets: dict[str, str] = {}
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        for logger_name, file_name in ((SERVER_LOGGER, "gateway.log"), (ACCESS_LOGGER, "access.log")):
            file_handler = RotatingFileHandler(
                log_dir / file_name,
                maxBytes=max_bytes,
                backupCount=0,  # truncate, never rotate into backups
                encoding="utf-8",
            )
            file_handler.setLevel(log_level_num)
            file_handler.setFormatter(
                ProcessorFormatter(processor=structlog.processors.JSONRenderer())
            )
            named_logger = logging.getLogger(logger_name)
            named_logger.handlers.clear()
            named_logger.addHandler(file_handler)
            named_logger.propagate = True  # console via root logger
            file_targets[logger_name] = str(log_dir / file_name)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(SERVER_LOGGER).info(
        "Logging system initialized",
        log_dir=str(Path(log_dir).absolute()) if log_dir is not None else None,
        log_level=log_level,
        max_file_size_mb=max_file_size_mb,
        gateway_log=file_targets.get(SERVER_LOGGER),
        access_log=file_targets.get(ACCESS_LOGGER),
    )


def get_server_logger() -> Any:
    """Get logger for container operations (writes to gateway.log)."""
    return structlog.get_logger(SERVER_LOGGER)


def get_access_logger() -> Any:
    """Get logger for request tracking (writes to access.log)."""
    return structlog.get_logger(ACCESS_LOGGER)
