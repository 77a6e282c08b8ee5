"""Centralized logging configuration for the container registry client.

All loggers live under the "container_registry" namespace so a single
configure call covers the parser, the authorizers and the HTTP transport.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

# Environment variables
DEBUG_MODE = os.getenv("CONTAINER_REGISTRY_DEBUG", "0") == "1"
LOG_LEVEL = os.getenv("CONTAINER_REGISTRY_LOG_LEVEL", "DEBUG" if DEBUG_MODE else "INFO")
TRACE_REQUESTS = os.getenv("CONTAINER_REGISTRY_TRACE_REQUESTS", "0") == "1"

# Log directory configuration
LOG_DIR = Path(os.getenv("CONTAINER_REGISTRY_LOG_DIR", "logs/container_registry"))

ROOT_LOGGER_NAME = "container_registry"

DETAILED_FORMAT = (
    "[%(asctime)s] [%(levelname)-8s] [%(name)s] [%(filename)s:%(lineno)d] %(message)s"
)
SIMPLE_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(name)s] %(message)s"

# Use detailed format in debug mode
LOG_FORMAT = DETAILED_FORMAT if DEBUG_MODE else SIMPLE_FORMAT


def _get_file_handler(log_file: Path, level: int) -> logging.FileHandler:
    """Create a rotating file handler for the given log file."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _get_console_handler(level: int) -> logging.StreamHandler:
    """Create a console handler for streaming logs."""
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def configure_logging(
    log_level: Optional[str] = None,
    include_console: bool = True,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the container_registry logger hierarchy.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_console: Whether to also log to console
        log_file: Log file path (default: LOG_DIR/container_registry.log);
            pass a falsy value together with include_console to skip files

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = LOG_LEVEL

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file is None:
        log_file = LOG_DIR / "container_registry.log"
    if log_file:
        logger.addHandler(_get_file_handler(Path(log_file), level))

    if include_console:
        logger.addHandler(_get_console_handler(level))

    return logger


def configure_module_logging(module_name: str) -> logging.Logger:
    """
    Get a child logger under the "container_registry" namespace.

    Args:
        module_name: Module name (e.g., "cli", "settings")

    Returns:
        Logger inheriting the package handlers and level
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")


class StructuredLogContext:
    """Helper for adding context to log messages."""

    def __init__(self, **context):
        self.context = context

    def __str__(self):
        items = [f"{k}={v}" for k, v in self.context.items() if v is not None]
        return " | ".join(items)
