"""
Retry policy for document backend calls.

Transient failures (timeouts, throttling, 5xx, dropped connections, a
session the backend no longer recognises) are retried with exponential
backoff plus up to 20% jitter. Anything else aborts on the first attempt.
Every give-up surfaces as BackendOperationError so the failover arbiter
sees one error type per backend.

Built on tenacity's AsyncRetrying with an injectable sleep and random
source so tests can run without waiting.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from ..error_handling import describe_error
from ..errors import (
    BackendOperationError,
    DuplicateOrderNumberError,
    IdentifierMismatchError,
    InvalidArchiveTransitionError,
    RepairOrderNotFoundError,
    SessionError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

JITTER_FRACTION = 0.2

# Domain outcomes pass through the retry wrapper untouched
PASSTHROUGH_ERRORS = (
    BackendOperationError,
    DuplicateOrderNumberError,
    IdentifierMismatchError,
    InvalidArchiveTransitionError,
    RepairOrderNotFoundError,
)


def is_retryable_error(error: BaseException) -> bool:
    """
    Classify an error as transient.

    Retryable:
    - HTTP 408, 429, 500, 502, 503, 504
    - httpx transport errors (connect/read failures, timeouts)
    - lost or invalid workbook sessions
    - status-less errors whose message mentions network failures,
      connection resets or sessions

    An error carrying an HTTP status is judged on the status alone.
    """
    if isinstance(error, PASSTHROUGH_ERRORS):
        return False

    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return status_code in RETRYABLE_STATUS_CODES

    if isinstance(error, (httpx.TransportError, SessionError)):
        return True

    message = str(error).lower()
    return "network" in message or "econnreset" in message or "session" in message


def calculate_backoff_delay(
    attempt: int,
    base_delay_ms: float,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Backoff delay in milliseconds before retrying after `attempt` failed.

    base * 2^(attempt-1), plus up to 20% of that as jitter.
    """
    exponential = base_delay_ms * (2 ** (attempt - 1))
    jitter = exponential * JITTER_FRACTION * (rng or random).random()
    return exponential + jitter


class wait_exponential_jitter_ms(wait_base):
    """Tenacity wait strategy wrapping calculate_backoff_delay (returns seconds)."""

    def __init__(self, base_delay_ms: float, rng: Optional[random.Random] = None):
        self.base_delay_ms = base_delay_ms
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        return calculate_backoff_delay(
            retry_state.attempt_number, self.base_delay_ms, self.rng
        ) / 1000.0


@dataclass
class RetryPolicy:
    """
    Retry settings for one Session Manager.

    Attributes:
        max_retries: Total attempts per operation (including the first)
        base_delay_ms: Delay before the first retry
        sleep: Awaitable sleep taking seconds (injected in tests)
        rng: Random source for jitter (seeded in tests)
    """
    max_retries: int = 3
    base_delay_ms: float = 1000
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    rng: random.Random = field(default_factory=random.Random)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
    ) -> T:
        """
        Run `operation` until it succeeds, hits a non-retryable error, or
        runs out of attempts.

        Raises:
            BackendOperationError: On abort (is_retryable=False) or
                exhaustion (is_retryable=True)
            RepairOrderNotFoundError, DuplicateOrderNumberError,
            InvalidArchiveTransitionError, IdentifierMismatchError:
                Re-raised unchanged
        """
        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            return await operation()

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay_ms = (retry_state.next_action.sleep * 1000) if retry_state.next_action else 0
            logger.warning(
                f"[{operation_name}] Attempt {retry_state.attempt_number}/{self.max_retries} "
                f"failed: {describe_error(error) if error else 'unknown'}. "
                f"Retrying in {delay_ms:.0f}ms"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential_jitter_ms(self.base_delay_ms, self.rng),
            retry=retry_if_exception(is_retryable_error),
            sleep=self.sleep,
            before_sleep=log_retry,
            reraise=True,
        )

        try:
            return await retrying(attempt)
        except PASSTHROUGH_ERRORS:
            raise
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            if not is_retryable_error(e):
                raise BackendOperationError(
                    f"{operation_name} failed: {describe_error(e)}",
                    status_code=status_code,
                    is_retryable=False,
                    operation=operation_name,
                    attempts=attempts,
                ) from e
            logger.error(f"[{operation_name}] Giving up after {attempts} attempts: {describe_error(e)}")
            raise BackendOperationError(
                f"Operation failed after {attempts} attempts: {describe_error(e)}",
                status_code=status_code,
                is_retryable=True,
                operation=operation_name,
                attempts=attempts,
            ) from e
