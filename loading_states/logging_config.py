"""
Centralized logging configuration for the loading states coordinator.

Offers:
- Optional rotating file logs (10MB max, 5 backups) for troubleshooting
- Console output for warnings and errors
- Per-module loggers with consistent formatting

The coordinator itself only logs at DEBUG/INFO (state transitions, retries,
network quality changes), so nothing reaches the console unless an
application lowers the console level.

Usage:
    from loading_states.logging_config import get_logger

    logger = get_logger(__name__)
    logger.debug("Entry %s -> loading", key)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Environment variable naming a log file; used when setup_logging() gets none
LOG_FILE_ENV = "LOADING_STATES_LOG_FILE"

# Global flag to track if logging is initialized
_logging_initialized = False


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    max_bytes: int = 10_485_760,  # 10MB
    backup_count: int = 5,
    console_level: str = "WARNING",
) -> None:
    """
    Configure the package logger with console and optional file handlers.

    Subsequent calls are ignored to prevent duplicate handlers.

    Args:
        log_level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file. If None, LOADING_STATES_LOG_FILE is consulted
            and no file handler is added when it is unset
        max_bytes: Maximum size of log file before rotation (default: 10MB)
        backup_count: Number of backup log files to keep (default: 5)
        console_level: Minimum level for console output (default: WARNING)
    """
    global _logging_initialized

    if _logging_initialized:
        return

    package_logger = logging.getLogger("loading_states")
    package_logger.setLevel(logging.DEBUG)  # Capture everything, filter in handlers
    package_logger.propagate = False

    for handler in package_logger.handlers[:]:
        handler.close()
        package_logger.removeHandler(handler)

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = logging.Formatter(fmt="%(levelname)s: %(message)s")

    if log_file is None and os.environ.get(LOG_FILE_ENV):
        log_file = Path(os.environ[LOG_FILE_ENV])

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(detailed_formatter)
        package_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, console_level.upper()))
    console_handler.setFormatter(console_formatter)
    package_logger.addHandler(console_handler)

    _logging_initialized = True

    package_logger.info(
        "Logging initialized: file=%s (level=%s), console (level=%s)",
        log_file,
        log_level,
        console_level,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name, typically __name__ of the calling module

    Returns:
        Logger instance configured with the package's settings
    """
    if not _logging_initialized:
        setup_logging()

    return logging.getLogger(name)


def reset_logging() -> None:
    """
    Reset logging configuration (primarily for testing).

    Closes all package handlers and resets the initialization flag,
    allowing setup_logging() to be called again.
    """
    global _logging_initialized

    package_logger = logging.getLogger("loading_states")

    for handler in package_logger.handlers[:]:
        handler.close()
        package_logger.removeHandler(handler)

    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True
    _logging_initialized = False
