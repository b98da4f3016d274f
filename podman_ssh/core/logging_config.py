"""Logging configuration for podman-ssh (console on stderr, optional file)."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

LOGGER_NAME = "podman_ssh"
LOG_FILE_NAME = "podman_ssh.log"


def setup_logging(
    log_level: str | None = None,
    log_dir: Path | str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Setup structlog on top of stdlib logging.

    Console output always goes to stderr because stdout carries the API
    response. When ``log_dir`` is given, a JSON log file is written there
    as well and truncated once it reaches ``max_file_size_mb``.

    Args:
        log_level: Log level (defaults to LOG_LEVEL env var or WARNING)
        log_dir: Optional directory for the JSON log file
        max_file_size_mb: Max file size before truncation (no backup files kept)
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "WARNING")

    log_level_num = getattr(logging, log_level.upper(), logging.WARNING)

    # Clear any existing handlers to prevent duplicates
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level_num)

    from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stderr.isatty()
        else structlog.processors.JSONRenderer()
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level_num)
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=0,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level_num)
        file_handler.setFormatter(
            ProcessorFormatter(processor=structlog.processors.JSONRenderer())
        )
        root_logger.addHandler(file_handler)

    # paramiko logs every transport event at INFO; keep it quiet unless debugging
    logging.getLogger("paramiko").setLevel(max(log_level_num, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    get_logger().debug(
        "Logging system initialized",
        log_level=log_level,
        log_dir=str(log_dir) if log_dir is not None else None,
    )


def get_logger(name: str = LOGGER_NAME) -> Any:
    """Get a structlog logger bound to the podman-ssh namespace."""
    return structlog.get_logger(name)
