"""
Centralized error handling helpers for the data-access layer.

Best-effort work (closing a session, notifying a listener, logging a
failure reason) must never change the outcome of the operation it
accompanies. These helpers give that work one consistent shape:
log at the right level, never swallow silently.
"""

import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from .logger import BackendLogger, get_logger

# Type variable for generic return types
T = TypeVar("T")


def describe_error(error: BaseException) -> str:
    """
    Render an exception as a short reason string.

    Used for failure reasons stored in metrics and carried by
    BothBackendsFailedError. Falls back to the class name for
    exceptions raised without a message.
    """
    message = str(error).strip()
    return message or type(error).__name__


def safe_execute(
    func: Callable[..., T],
    *args,
    operation_name: str = "operation",
    logger: Optional[Union[logging.Logger, BackendLogger]] = None,
    fallback: T = None,
    critical: bool = False,
    **kwargs,
) -> T:
    """
    Execute a function safely with error handling and logging.

    Used for listener callbacks whose failures must not propagate.

    Args:
        func: Function to execute
        *args: Positional arguments for func
        operation_name: Name for logging
        logger: Logger or BackendLogger (uses module logger if None)
        fallback: Value to return on failure
        critical: If True, log at ERROR level with traceback
        **kwargs: Keyword arguments for func

    Returns:
        Function result or fallback value on error
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    try:
        return func(*args, **kwargs)
    except Exception as e:
        log_level = logging.ERROR if critical else logging.WARNING
        logger.log(
            log_level,
            f"[{operation_name}] Failed: {e}",
            exc_info=critical,
        )
        return fallback


async def safe_execute_async(
    func: Callable[..., Awaitable[T]],
    *args,
    operation_name: str = "operation",
    logger: Optional[Union[logging.Logger, BackendLogger]] = None,
    fallback: T = None,
    critical: bool = False,
    **kwargs,
) -> T:
    """
    Async counterpart of safe_execute.

    Used for best-effort remote calls such as closing a workbook session.
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    try:
        return await func(*args, **kwargs)
    except Exception as e:
        log_level = logging.ERROR if critical else logging.WARNING
        logger.log(
            log_level,
            f"[{operation_name}] Failed: {e}",
            exc_info=critical,
        )
        return fallback


def backend_operation(
    operation_name: str,
    backend: str = "unknown",
    log_success: bool = False,
):
    """
    Decorator for async repository methods with consistent failure logging.

    Logs a WARNING tagged with backend and operation when the wrapped call
    raises, then re-raises unchanged so the failover arbiter sees the
    original exception.

    Args:
        operation_name: Operation name (e.g., "getRepairOrders")
        backend: Backend identifier (e.g., "relational", "document")
        log_success: If True, logs successful completion at DEBUG level

    Usage:
        @backend_operation("getRepairOrders", backend="relational")
        async def list_repair_orders(self, archive_status):
            ...
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            logger = get_logger(func.__module__, backend=backend, operation=operation_name)
            try:
                result = await func(*args, **kwargs)
                if log_success:
                    logger.debug("✓ Completed")
                return result
            except Exception as e:
                logger.warning(f"✗ Failed: {describe_error(e)}")
                raise

        return wrapper

    return decorator
