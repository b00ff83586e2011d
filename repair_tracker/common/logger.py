"""
Centralized logging configuration for the repair tracker.

Provides structured logging with backend and operation tagging so a single
log stream shows which store served (or failed) each call.
Supports a debug_mode flag for verbose logging.
"""

import logging
import sys
from typing import Optional

from .config import env_bool


# Global debug mode flag - can be set via environment or the CLI
_GLOBAL_DEBUG_MODE = env_bool("DEBUG_MODE", False)


def set_global_debug_mode(enabled: bool) -> None:
    """Set global debug mode (used by scripts/check_backends.py --debug)."""
    global _GLOBAL_DEBUG_MODE
    _GLOBAL_DEBUG_MODE = enabled


def is_debug_mode() -> bool:
    """Check if debug mode is enabled globally."""
    return _GLOBAL_DEBUG_MODE


class BackendLogger:
    """
    Structured logger for backend calls.

    Adds contextual information like backend and operation to all log messages.
    """

    def __init__(
        self,
        name: str,
        backend: Optional[str] = None,
        operation: Optional[str] = None,
        debug_mode: Optional[bool] = None
    ):
        """
        Initialize backend logger.

        Args:
            name: Logger name (usually __name__)
            backend: Optional backend tag (e.g., "relational", "document")
            operation: Optional operation name (e.g., "createRepairOrder")
            debug_mode: If True, enables DEBUG level for this logger.
                       If None, uses global debug mode setting.
        """
        self.logger = logging.getLogger(name)
        self.backend = backend
        self.operation = operation

        self._debug_mode = debug_mode if debug_mode is not None else is_debug_mode()

        if self._debug_mode:
            self.logger.setLevel(logging.DEBUG)

    def bind(self, operation: str) -> "BackendLogger":
        """Return a logger for the same backend tagged with another operation."""
        return BackendLogger(self.logger.name, self.backend, operation, self._debug_mode)

    def _format_message(self, message: str) -> str:
        """Add contextual prefix to message."""
        prefix_parts = []
        if self.backend:
            prefix_parts.append(f"[{self.backend}]")
        if self.operation:
            prefix_parts.append(f"[{self.operation}]")

        if prefix_parts:
            return f"{' '.join(prefix_parts)} {message}"
        return message

    def log(self, level: int, message: str, **kwargs):
        """Log at an explicit level (lets safe_execute take a BackendLogger)."""
        self.logger.log(level, self._format_message(message), **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self.logger.debug(self._format_message(message), **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(self._format_message(message), **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(self._format_message(message), **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message."""
        self.logger.error(self._format_message(message), **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message), **kwargs)


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Log format ("simple" or "json")
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if format == "json":
        formatter = logging.Formatter(
            '{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))


def get_logger(
    name: str,
    backend: Optional[str] = None,
    operation: Optional[str] = None,
    debug_mode: Optional[bool] = None
) -> BackendLogger:
    """
    Get a backend logger instance.

    Args:
        name: Logger name (usually __name__)
        backend: Optional backend tag
        operation: Optional operation name
        debug_mode: If True, enables DEBUG level. If None, uses global setting.

    Returns:
        BackendLogger instance
    """
    return BackendLogger(name, backend, operation, debug_mode)
