# liveconfig/core/utils/logger.py

"""
Logging configuration and utilities for liveconfig.

This module provides centralized logging configuration and a few helpers
for consistent, module-tagged log messages across the package.

The logging system is designed to provide:
- Consistent log formatting across all modules
- Console output with optional file output
- Module-specific messages with context
- Configuration change and file operation tracking

Persistence failures are never raised to callers of the writable monitor;
they are reported here as warnings carrying the file path and the cause.
"""

import logging
import os
import sys
from typing import Any

# Global logger instance for singleton pattern
_logger: logging.Logger | None = None

LOGGER_NAME = "liveconfig"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_ENV = "LIVECONFIG_LOG_LEVEL"


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """
    Set up logging configuration for liveconfig.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). When
               omitted, ``LIVECONFIG_LOG_LEVEL`` is used, then INFO.
        log_file: Path to log file (optional). If provided, logs will be
                 written to both console and file.
        format_string: Custom log format string (optional).

    Returns:
        Configured logger instance

    Note:
        Calling this again replaces the handlers installed by a previous call.
    """
    global _logger

    level_name = (level or os.getenv(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.disabled = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(numeric_level)

    formatter = logging.Formatter(format_string or DEFAULT_LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """
    Get the global logger instance.

    If the logger hasn't been initialized yet, it will be set up with the
    default configuration.
    """
    if _logger is None:
        return setup_logging()
    return _logger


def _format(module: str, message: str, context: str) -> str:
    formatted = f"[{module.upper()}] {message}"
    if context:
        formatted += f" | Context: {context}"
    return formatted


def log_error(
    module: str, error: str, context: str = "", exception: Exception | None = None
) -> None:
    """
    Log a standardized error message.

    Args:
        module: Name of the module where the error occurred
        error: Error message describing what went wrong
        context: Additional context information (optional)
        exception: Exception object to include stack trace (optional)
    """
    logger = get_logger()
    logger.error(_format(module, error, context), exc_info=exception is not None)


def log_warning(module: str, warning: str, context: str = "") -> None:
    """
    Log a standardized warning message.

    Warnings indicate potential issues that don't prevent execution but
    should be noted, such as a settings file that could not be written.
    """
    get_logger().warning(_format(module, warning, context))


def log_info(module: str, message: str, context: str = "") -> None:
    """Log a standardized info message."""
    get_logger().info(_format(module, message, context))


def log_debug(module: str, message: str, context: str = "") -> None:
    """Log a standardized debug message."""
    get_logger().debug(_format(module, message, context))


def log_configuration_change(setting: str, old_value: Any, new_value: Any) -> None:
    """
    Log a configuration change.

    Args:
        setting: Name of the setting that changed
        old_value: Previous value of the setting
        new_value: New value of the setting
    """
    get_logger().info(f"Configuration changed: {setting} = {old_value} -> {new_value}")


def log_file_operation(
    operation: str, file_path: str, success: bool, error: str | None = None
) -> None:
    """
    Log a file operation.

    Failed operations are logged at WARNING level: file failures in this
    package are reported to the caller as a boolean, not raised.
    """
    logger = get_logger()
    if success:
        logger.debug(f"File {operation}: {file_path}")
    else:
        logger.warning(f"File {operation} failed: {file_path} - {error}")


def reset_logging() -> None:
    """
    Reset the global logger instance.

    This is useful for testing or when you need to reconfigure
    the logging system from scratch.
    """
    global _logger
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    _logger = None
