"""
Exception hierarchy for the repair order data-access layer.

Backend errors (HTTP status, retry exhaustion) are what the failover
arbiter routes on. Domain errors (not found, duplicate, invalid archive
transition) are raised by the repositories. IdentifierMismatchError is a
programming error and is never retried or routed to the other backend.
"""

from typing import Any, Optional


class RepairTrackerError(Exception):
    """Base class for all data-access errors."""


# ===== Backend errors =====


class BackendHTTPError(RepairTrackerError):
    """Raised by the HTTP clients when a backend answers with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        backend: str,
        details: Optional[Any] = None,
    ):
        self.status_code = status_code
        self.backend = backend
        self.details = details
        super().__init__(f"{backend} backend returned HTTP {status_code}: {message}")


class BackendOperationError(RepairTrackerError):
    """
    Raised by the session retry wrapper when an operation gives up.

    is_retryable is True when the failure was transient but every attempt
    was used, False when a non-retryable error aborted the loop.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        is_retryable: bool = False,
        operation: Optional[str] = None,
        attempts: int = 1,
    ):
        self.status_code = status_code
        self.is_retryable = is_retryable
        self.operation = operation
        self.attempts = attempts
        super().__init__(message)


class SessionError(RepairTrackerError):
    """Raised when the document backend rejects or loses a workbook session."""


class BothBackendsFailedError(RepairTrackerError):
    """Raised when the primary (if tried) and the fallback both failed."""

    def __init__(
        self,
        operation_name: str,
        primary_error: Optional[BaseException],
        fallback_error: BaseException,
        primary_reason: Optional[str] = None,
        fallback_reason: Optional[str] = None,
    ):
        self.operation_name = operation_name
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        self.primary_reason = primary_reason or (str(primary_error) if primary_error else None)
        self.fallback_reason = fallback_reason or str(fallback_error)
        super().__init__(
            f"Both data sources failed for {operation_name}. "
            f"Primary: {self.primary_reason or 'not attempted'}; "
            f"Fallback: {self.fallback_reason}"
        )

    @property
    def not_found(self) -> bool:
        """True when every backend that was tried reported the order missing."""
        errors = [e for e in (self.primary_error, self.fallback_error) if e is not None]
        return bool(errors) and all(isinstance(e, RepairOrderNotFoundError) for e in errors)


# ===== Domain errors =====


class RepairOrderNotFoundError(RepairTrackerError, LookupError):
    """Raised when a repair order does not exist in the backend that was asked."""

    def __init__(self, identifier: str, backend: Optional[str] = None):
        self.identifier = identifier
        self.backend = backend
        where = f" in {backend} backend" if backend else ""
        super().__init__(f"Repair order {identifier} not found{where}")


class DuplicateOrderNumberError(RepairTrackerError, ValueError):
    """Raised when creating an order whose number already exists."""

    def __init__(self, order_number: str, backend: Optional[str] = None):
        self.order_number = order_number
        self.backend = backend
        super().__init__(f"Repair order number {order_number} already exists")


class InvalidArchiveTransitionError(RepairTrackerError, ValueError):
    """Raised for any archive transition other than ACTIVE to a terminal status."""

    def __init__(self, current: Any, target: Any):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move repair order from {getattr(current, 'value', current)} "
            f"to {getattr(target, 'value', target)}"
        )


class IdentifierMismatchError(RepairTrackerError, TypeError):
    """Raised when a key of one backend's kind is handed to the other backend."""

    def __init__(self, key: Any, backend: str):
        self.key = key
        self.backend = backend
        super().__init__(
            f"Cannot use {type(key).__name__} '{key}' with the {backend} backend"
        )
