"""
Unit tests for repair_tracker/common/repositories/retry.py

Tests the document backend retry policy:
- Error classification (retryable vs not)
- Backoff delays (exponential with at most 20% jitter)
- Abort on non-retryable errors vs exhaustion of attempts
- Domain errors passing through untouched
"""

import random
import sys
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from helpers.fake_backends import RecordingSleep

from repair_tracker.common.errors import (
    BackendHTTPError,
    BackendOperationError,
    DuplicateOrderNumberError,
    IdentifierMismatchError,
    RepairOrderNotFoundError,
    SessionError,
)
from repair_tracker.common.repositories.retry import (
    RetryPolicy,
    calculate_backoff_delay,
    is_retryable_error,
)
from repair_tracker.common.types import DocumentKey


def http_error(status: int) -> BackendHTTPError:
    return BackendHTTPError(status, "boom", backend="document")


class Flaky:
    """Async operation that raises the queued errors, then returns a value."""

    def __init__(self, *errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


# ===== FIXTURES =====


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def policy(sleep):
    return RetryPolicy(max_retries=3, base_delay_ms=1000, sleep=sleep, rng=random.Random(7))


class TestIsRetryableError:
    """Tests for is_retryable_error."""

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        assert is_retryable_error(http_error(status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409, 422, 501])
    def test_non_retryable_statuses(self, status):
        assert not is_retryable_error(http_error(status))

    def test_transport_errors_retryable(self):
        request = httpx.Request("GET", "https://graph.test/v1.0")
        assert is_retryable_error(httpx.ConnectError("refused", request=request))
        assert is_retryable_error(httpx.ReadTimeout("slow", request=request))

    def test_session_errors_retryable(self):
        assert is_retryable_error(SessionError("createSession returned no session id"))

    @pytest.mark.parametrize("message", ["Network unreachable", "read ECONNRESET", "Invalid session"])
    def test_transient_messages_retryable(self, message):
        assert is_retryable_error(RuntimeError(message))

    def test_other_errors_not_retryable(self):
        assert not is_retryable_error(ValueError("bad input"))

    @pytest.mark.parametrize("message", ["bad session", "Invalid session id", "network path not allowed"])
    def test_http_errors_judged_by_status_alone(self, message):
        assert not is_retryable_error(BackendHTTPError(400, message, backend="document"))
        assert is_retryable_error(BackendHTTPError(503, message, backend="document"))

    def test_domain_errors_never_retried(self):
        for error in (
            RepairOrderNotFoundError("RO-1", "document"),
            DuplicateOrderNumberError("RO-1", "document"),
            IdentifierMismatchError(DocumentKey(1), "relational"),
            BackendOperationError("session gave up", status_code=503, is_retryable=True),
        ):
            assert not is_retryable_error(error)


class TestCalculateBackoffDelay:
    """Tests for calculate_backoff_delay."""

    @pytest.mark.parametrize("attempt,base", [(1, 1000), (2, 2000), (3, 4000), (4, 8000)])
    def test_exponential_without_jitter(self, attempt, base):
        rng = MagicMock(random=MagicMock(return_value=0.0))
        assert calculate_backoff_delay(attempt, 1000, rng) == base

    def test_jitter_at_most_twenty_percent(self):
        rng = MagicMock(random=MagicMock(return_value=0.5))
        assert calculate_backoff_delay(2, 1000, rng) == pytest.approx(2200)

    def test_bounds_with_real_randomness(self):
        rng = random.Random(123)
        for attempt in range(1, 6):
            expected = 500 * 2 ** (attempt - 1)
            for _ in range(50):
                delay = calculate_backoff_delay(attempt, 500, rng)
                assert expected <= delay <= expected * 1.2


class TestRetryPolicy:
    """Tests for RetryPolicy.run."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, policy, sleep):
        operation = Flaky()

        assert await policy.run(operation, "listRows") == "ok"
        assert operation.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, policy, sleep):
        """Two 503s then success: three attempts, two backoff sleeps."""
        operation = Flaky(http_error(503), http_error(503))

        assert await policy.run(operation, "listRows") == "ok"
        assert operation.calls == 3
        assert len(sleep.delays) == 2
        assert 1.0 <= sleep.delays[0] <= 1.2
        assert 2.0 <= sleep.delays[1] <= 2.4

    @pytest.mark.asyncio
    async def test_exhaustion(self, policy, sleep):
        """Retryable errors on every attempt surface as a retryable BackendOperationError."""
        operation = Flaky(http_error(503), http_error(502), http_error(504))

        with pytest.raises(BackendOperationError) as exc_info:
            await policy.run(operation, "userOperation")

        error = exc_info.value
        assert str(error).startswith("Operation failed after 3 attempts")
        assert error.is_retryable is True
        assert error.attempts == 3
        assert error.status_code == 504
        assert error.operation == "userOperation"
        assert isinstance(error.__cause__, BackendHTTPError)
        assert operation.calls == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_abort_on_non_retryable(self, policy, sleep):
        """A 400 aborts immediately without sleeping."""
        operation = Flaky(http_error(400))

        with pytest.raises(BackendOperationError) as exc_info:
            await policy.run(operation, "createSession")

        error = exc_info.value
        assert str(error).startswith("createSession failed:")
        assert error.is_retryable is False
        assert error.attempts == 1
        assert error.status_code == 400
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transport_error_then_success(self, policy):
        request = httpx.Request("POST", "https://graph.test/v1.0")
        operation = Flaky(httpx.ConnectError("refused", request=request))

        assert await policy.run(operation, "createSession") == "ok"
        assert operation.calls == 2

    @pytest.mark.asyncio
    async def test_domain_errors_pass_through(self, policy, sleep):
        """Not-found is an answer, not a failure: re-raised unchanged, never retried."""
        operation = Flaky(RepairOrderNotFoundError("RO-9", "document"))

        with pytest.raises(RepairOrderNotFoundError):
            await policy.run(operation, "userOperation")

        assert operation.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self, sleep):
        policy = RetryPolicy(max_retries=1, base_delay_ms=10, sleep=sleep)
        operation = Flaky(http_error(503))

        with pytest.raises(BackendOperationError) as exc_info:
            await policy.run(operation, "userOperation")

        assert exc_info.value.attempts == 1
        assert exc_info.value.is_retryable is True
        assert sleep.delays == []
