"""
Failover Arbiter.

Routes every repair order operation to the primary (relational) backend
and falls back to the document backend when the primary fails.

States:
- NORMAL: primary tried first on every call
- FALLBACK: primary failed recently; calls go straight to the fallback
  until the retry interval has elapsed, then the next call probes the
  primary again

Transitions:
- NORMAL -> FALLBACK: any primary failure
- FALLBACK -> NORMAL: the first primary success (emits RECOVERED once)

Usage:
    arbiter = FailoverArbiter(retry_interval_ms=60_000)

    result = await arbiter.execute(
        primary=lambda: relational.list_repair_orders(),
        fallback=lambda: document.list_repair_orders(),
        operation_name="getRepairOrders",
    )
    result.data      # the orders
    result.source    # DataSource.PRIMARY or DataSource.FALLBACK

State is deliberately unlocked: concurrent calls may both probe the
primary around an interval boundary. That only costs an extra probe.
"""

import copy
import logging
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from ..error_handling import describe_error, safe_execute
from ..errors import BothBackendsFailedError, IdentifierMismatchError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_INTERVAL_MS = 60_000


class DataSource(str, Enum):
    """Which backend served a call."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


class FailoverEvent(str, Enum):
    """Signals emitted to the on_event listener."""
    FALLBACK_ENTERED = "fallback_entered"   # first primary failure
    RECOVERED = "recovered"                 # primary back after fallback mode
    BOTH_FAILED = "both_failed"


@dataclass
class ExecutionResult(Generic[T]):
    """Result of an arbitrated call, tagged with the backend that served it."""
    data: T
    source: DataSource


@dataclass
class ArbiterState:
    """Routing state."""
    fallback_mode: bool = False
    last_primary_attempt: Optional[float] = None  # clock seconds
    retry_interval_ms: float = DEFAULT_RETRY_INTERVAL_MS


@dataclass
class FailoverMetrics:
    """Counters and timestamps for an arbiter (clock seconds)."""
    primary_success_count: int = 0
    primary_failure_count: int = 0
    fallback_success_count: int = 0
    fallback_failure_count: int = 0
    both_failed_count: int = 0
    recovery_count: int = 0
    last_failure_reason: Optional[str] = None
    last_primary_success_at: Optional[float] = None
    last_primary_failure_at: Optional[float] = None
    last_fallback_failure_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class FailoverArbiter:
    """
    Primary/fallback router with a time-based retry of the primary.

    One instance is shared by every operation of a RepairOrderService.
    """

    def __init__(
        self,
        retry_interval_ms: float = DEFAULT_RETRY_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        on_event: Optional[Callable[[FailoverEvent, str], None]] = None,
    ):
        """
        Initialize failover arbiter.

        Args:
            retry_interval_ms: Minimum time in fallback mode before the
                primary is tried again
            clock: Monotonic clock in seconds (injected in tests)
            on_event: Listener called with (event, operation_name); its
                failures are logged and ignored
        """
        if retry_interval_ms < 0:
            raise ValueError("retry_interval_ms cannot be negative")
        self._clock = clock
        self.on_event = on_event
        self._state = ArbiterState(retry_interval_ms=retry_interval_ms)
        self._metrics = FailoverMetrics()

    # ===== Introspection =====

    @property
    def state(self) -> ArbiterState:
        return copy.copy(self._state)

    def is_in_fallback_mode(self) -> bool:
        return self._state.fallback_mode

    def get_metrics(self) -> FailoverMetrics:
        """Snapshot of the metrics; later calls do not mutate it."""
        return copy.copy(self._metrics)

    def set_retry_interval(self, retry_interval_ms: float) -> None:
        if retry_interval_ms < 0:
            raise ValueError("retry_interval_ms cannot be negative")
        self._state.retry_interval_ms = retry_interval_ms
        logger.info(f"Primary retry interval set to {retry_interval_ms}ms")

    def reset_fallback_state(self) -> None:
        """Leave fallback mode without a recovery signal."""
        self._state.fallback_mode = False
        self._state.last_primary_attempt = None
        logger.info("Fallback state reset")

    def reset_metrics(self) -> None:
        self._metrics = FailoverMetrics()

    # ===== Routing =====

    def should_try_primary(self) -> bool:
        """
        Decide whether the next call should go to the primary.

        Always outside fallback mode; in fallback mode only once the retry
        interval has elapsed since the last primary attempt.
        """
        if not self._state.fallback_mode:
            return True
        last_attempt = self._state.last_primary_attempt
        if last_attempt is None:
            return True
        elapsed_ms = (self._clock() - last_attempt) * 1000
        return elapsed_ms >= self._state.retry_interval_ms

    def _emit(self, event: FailoverEvent, operation_name: str) -> None:
        if self.on_event is None:
            return
        safe_execute(
            self.on_event,
            event,
            operation_name,
            operation_name=f"failover listener ({event.value})",
            logger=logger,
        )

    def _record_primary_success(self, operation_name: str) -> None:
        was_in_fallback = self._state.fallback_mode
        self._state.fallback_mode = False
        self._metrics.primary_success_count += 1
        self._metrics.last_primary_success_at = self._clock()

        if was_in_fallback:
            self._metrics.recovery_count += 1
            logger.info(f"[{operation_name}] Primary backend recovered, leaving fallback mode")
            self._emit(FailoverEvent.RECOVERED, operation_name)

    def _record_primary_failure(self, operation_name: str, reason: str) -> None:
        was_in_fallback = self._state.fallback_mode
        now = self._clock()
        self._state.fallback_mode = True
        self._state.last_primary_attempt = now
        self._metrics.primary_failure_count += 1
        self._metrics.last_primary_failure_at = now
        self._metrics.last_failure_reason = reason

        if not was_in_fallback:
            logger.warning(
                f"[{operation_name}] Primary backend failed, switching to fallback: {reason}"
            )
            self._emit(FailoverEvent.FALLBACK_ENTERED, operation_name)
        else:
            logger.warning(f"[{operation_name}] Primary backend still failing: {reason}")

    async def execute(
        self,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
        operation_name: str,
    ) -> ExecutionResult[T]:
        """
        Run an operation against the primary, falling back on failure.

        Args:
            primary: Zero-argument coroutine factory for the primary backend
            fallback: Zero-argument coroutine factory for the fallback backend
            operation_name: Name used in logs, metrics and errors

        Returns:
            ExecutionResult with the data and the backend that served it

        Raises:
            BothBackendsFailedError: Fallback failed (after the primary
                failed or was skipped)
            IdentifierMismatchError: A key of the wrong kind reached either
                backend; never routed, never counted
        """
        primary_error: Optional[BaseException] = None
        primary_reason: Optional[str] = None

        if self.should_try_primary():
            try:
                data = await primary()
            except IdentifierMismatchError:
                raise
            except Exception as e:
                primary_error = e
                primary_reason = describe_error(e)
                self._record_primary_failure(operation_name, primary_reason)
            else:
                self._record_primary_success(operation_name)
                return ExecutionResult(data=data, source=DataSource.PRIMARY)
        else:
            logger.debug(f"[{operation_name}] In fallback mode, skipping primary")

        try:
            data = await fallback()
        except IdentifierMismatchError:
            raise
        except Exception as e:
            fallback_reason = describe_error(e)
            self._metrics.fallback_failure_count += 1
            self._metrics.both_failed_count += 1
            self._metrics.last_fallback_failure_at = self._clock()
            logger.error(
                f"[{operation_name}] Both backends failed. "
                f"Primary: {primary_reason or 'not attempted'}; Fallback: {fallback_reason}"
            )
            self._emit(FailoverEvent.BOTH_FAILED, operation_name)
            raise BothBackendsFailedError(
                operation_name,
                primary_error,
                e,
                primary_reason=primary_reason,
                fallback_reason=fallback_reason,
            ) from e

        self._metrics.fallback_success_count += 1
        return ExecutionResult(data=data, source=DataSource.FALLBACK)
