"""
Centralized logging configuration for the Market Signal Engine.
This provides a consistent logging setup across all project components.
"""

import os
import sys
import logging
import logging.handlers
from typing import Dict, Optional

# Define log levels dictionary for easy reference
LOG_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}

# Default format string for log messages
DEFAULT_LOG_FORMAT = "%(asctime)s - [%(levelname)s] - %(name)s - %(message)s"

# Global configuration
logs_directory = os.environ.get(
    'MSE_LOG_DIR',
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'logs')
)
default_log_file = os.path.join(logs_directory, 'market_signal_engine.log')

# Global log handler registry to avoid duplicates
_log_handlers = {}

# Loggers handed out by get_component_logger
_component_loggers: Dict[str, logging.Logger] = {}


def configure_logging(
    level: str = 'INFO',
    component: Optional[str] = None,
    log_file: Optional[str] = None,
    console: bool = True,
    file_logging: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
    log_format: str = DEFAULT_LOG_FORMAT
) -> logging.Logger:
    """
    Configure logging for a specific component.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        component: Component name (used as logger name)
        log_file: Path to log file (defaults to the shared engine log)
        console: Whether to log to console
        file_logging: Whether to log to file
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup log files to keep
        log_format: Format string for log messages

    Returns:
        Configured logger instance
    """
    logger_name = component or "market_signal_engine"
    logger = logging.getLogger(logger_name)

    # Skip if already configured with handlers
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVELS.get(level.upper(), logging.INFO))
    # Handlers are attached here, keep records away from the root logger
    logger.propagate = False

    if log_file is None:
        log_file = default_log_file

    formatter = logging.Formatter(log_format)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if file_logging:
        try:
            # Share one rotating handler per file
            if log_file in _log_handlers:
                file_handler = _log_handlers[log_file]
            else:
                os.makedirs(os.path.dirname(log_file), exist_ok=True)
                file_handler = logging.handlers.RotatingFileHandler(
                    log_file,
                    maxBytes=max_bytes,
                    backupCount=backup_count
                )
                file_handler.setFormatter(formatter)
                _log_handlers[log_file] = file_handler

            logger.addHandler(file_handler)
        except OSError as e:
            # If file logging fails, log to stderr as fallback
            fallback_handler = logging.StreamHandler(sys.stderr)
            fallback_handler.setFormatter(formatter)
            logger.addHandler(fallback_handler)
            logger.error(f"Failed to set up file logging: {e}")

    return logger


def get_component_logger(component: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger for a specific component, configuring it on first use.

    Args:
        component: Component name (e.g. "data.fetcher")
        level: Logging level (defaults to MSE_LOG_LEVEL or INFO)

    Returns:
        Logger instance
    """
    if component not in _component_loggers:
        _component_loggers[component] = configure_logging(
            level=level or os.environ.get('MSE_LOG_LEVEL', 'INFO'),
            component=component
        )
    return _component_loggers[component]


def log_exception(logger: logging.Logger, exception: Exception, message: str = "An error occurred:"):
    """
    Log an exception with full traceback information.

    Args:
        logger: Logger instance
        exception: Exception to log
        message: Message to prefix the exception
    """
    logger.error(f"{message} {str(exception)}")
    logger.debug("Exception traceback:", exc_info=exception)


def set_log_level(component: Optional[str] = None, level: str = 'INFO'):
    """
    Set the log level for a specific component, or for every component
    logger when no component is given.

    Args:
        component: Component name (None for all component loggers)
        level: Logging level
    """
    level_value = LOG_LEVELS.get(level.upper(), logging.INFO)
    if component:
        get_component_logger(component).setLevel(level_value)
        return

    for logger in _component_loggers.values():
        logger.setLevel(level_value)
    logging.getLogger().setLevel(level_value)
