"""
Session Manager for the document backend.

The workbook API scopes every read and write to a session. This manager
owns the single logical session, serializes its use with one asyncio.Lock,
runs each unit of work under the retry policy, and always closes the
session afterwards.

Usage:
    manager = SessionManager(document_client)

    rows = await manager.with_session(
        lambda session_id: document_client.list_rows("RepairTable", session_id)
    )
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ..error_handling import safe_execute_async
from ..errors import BackendOperationError
from ..logger import get_logger
from .document_client import DocumentClient
from .retry import RetryPolicy

logger = get_logger(__name__, backend="document")

T = TypeVar("T")

DEFAULT_SESSION_TIMEOUT_MS = 30 * 60 * 1000


@dataclass
class WorkbookSession:
    """A live workbook session (times from the manager's clock, in seconds)."""
    id: str
    created_at: float
    expires_at: float
    in_use: bool = False


class SessionManager:
    """
    Manages the document backend session lifecycle.

    Every with_session call is one unit of work: acquire (creating a session
    when none is valid), run the operation with retries, release, close.
    Calls are serialized, so at most one unit of work is in flight.
    """

    def __init__(
        self,
        client: DocumentClient,
        max_retries: int = 3,
        retry_delay_ms: float = 1000,
        session_timeout_ms: float = DEFAULT_SESSION_TIMEOUT_MS,
        persist_changes: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize session manager.

        Args:
            client: Document backend HTTP client
            max_retries: Total attempts per operation
            retry_delay_ms: Base backoff delay
            session_timeout_ms: Session lifetime before it must be recreated
            persist_changes: Passed to createSession
            clock: Monotonic clock in seconds (injected in tests)
            sleep: Backoff sleep (injected in tests)
            rng: Jitter source (seeded in tests)
        """
        self._client = client
        self.session_timeout_ms = session_timeout_ms
        self.persist_changes = persist_changes
        self._clock = clock
        self.retry_policy = RetryPolicy(
            max_retries=max_retries,
            base_delay_ms=retry_delay_ms,
            sleep=sleep,
            rng=rng or random.Random(),
        )

        self._session: Optional[WorkbookSession] = None
        self._lock = asyncio.Lock()

    def is_session_valid(self) -> bool:
        """A session is valid when it exists, has not expired, and is not in use."""
        session = self._session
        if session is None:
            return False
        return not session.in_use and self._clock() < session.expires_at

    async def retry_operation(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
    ) -> T:
        """Run an operation under this manager's retry policy."""
        return await self.retry_policy.run(operation, operation_name)

    async def _create_session(self) -> WorkbookSession:
        session_id = await self.retry_operation(
            lambda: self._client.create_session(self.persist_changes),
            "createSession",
        )
        now = self._clock()
        self._session = WorkbookSession(
            id=session_id,
            created_at=now,
            expires_at=now + self.session_timeout_ms / 1000.0,
        )
        logger.bind("createSession").debug(f"Created workbook session {session_id[:12]}")
        return self._session

    async def _close_session(self) -> None:
        """Close the current session. Best-effort: failures are logged, never raised."""
        session = self._session
        if session is None:
            return
        try:
            await safe_execute_async(
                self.retry_operation,
                lambda: self._client.close_session(session.id),
                "closeSession",
                operation_name="closeSession",
                logger=logger,
            )
        finally:
            self._session = None

    async def with_session(self, operation: Callable[[str], Awaitable[T]]) -> T:
        """
        Run `operation(session_id)` as one serialized unit of work.

        The session is closed exactly once afterwards, whether the
        operation returned or raised.

        Raises:
            BackendOperationError: Session creation or the operation failed
                after the retry policy gave up
        """
        async with self._lock:
            if not self.is_session_valid():
                if self._session is not None:
                    await self._close_session()
                await self._create_session()

            session = self._session
            session.in_use = True
            try:
                return await self.retry_operation(
                    lambda: operation(session.id), "userOperation"
                )
            finally:
                session.in_use = False
                await self._close_session()

    async def check_health(self) -> bool:
        """Probe the workbook item through the retry policy."""
        try:
            await self.retry_operation(self._client.get_item, "checkHealth")
            return True
        except BackendOperationError as e:
            logger.bind("checkHealth").warning(f"Health check failed: {e}")
            return False

    def get_session_info(self) -> Optional[Dict[str, Any]]:
        """Describe the current session (None when there is none)."""
        session = self._session
        if session is None:
            return None
        return {
            "session_id": session.id,
            "created_at": session.created_at,
            "expires_at": session.expires_at,
            "in_use": session.in_use,
            "is_valid": self.is_session_valid(),
        }

    async def force_close(self) -> None:
        """Close the current session immediately, outside the lock."""
        logger.bind("forceClose").info("Force-closing workbook session")
        await self._close_session()
