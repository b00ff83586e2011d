"""
Repair Order Service - public data-access API.

Every method pairs a relational (primary) closure with a document
(fallback) closure and hands both to the FailoverArbiter. Input (field
names and values) is validated before either backend is touched; keys are checked by kind
inside each closure, so a key of the wrong kind fails fast with
IdentifierMismatchError instead of being routed.

Usage:
    service = build_repair_order_service(DataAccessConfig.from_env(), token_provider)

    result = await service.list_repair_orders()
    result.data     # List[RepairOrder]
    result.source   # DataSource.PRIMARY or DataSource.FALLBACK
"""

import asyncio
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from repair_tracker.common.archive import ArchiveStatus, validate_transition
from repair_tracker.common.business_rules import prepare_new_order
from repair_tracker.common.repositories import (
    DataAccessConfig,
    ExecutionResult,
    FailoverArbiter,
    FailoverEvent,
    FailoverMetrics,
    RepairOrderRepositoryInterface,
    SessionManager,
    build_repositories,
)
from repair_tracker.common.repositories.http_client import TokenProvider
from repair_tracker.common.types import (
    DashboardStats,
    RepairOrder,
    RepairOrderKey,
    StatusUpdate,
    parse_key,
    validate_changes,
)

logger = logging.getLogger(__name__)

KeyInput = Union[RepairOrderKey, str, int]


def _require_order_number(order_number: str) -> str:
    if order_number is None or not str(order_number).strip():
        raise ValueError("Order number is required")
    return str(order_number).strip()


def _require_terminal(target: Union[str, ArchiveStatus]) -> ArchiveStatus:
    # Target-only check; the repository re-validates against the order's state
    return validate_transition(ArchiveStatus.ACTIVE, target)


class RepairOrderService:
    """
    Facade over the relational and document repositories.

    All methods return an ExecutionResult tagged with the backend that
    served the call. The only backend error a caller sees is
    BothBackendsFailedError.
    """

    def __init__(
        self,
        relational: RepairOrderRepositoryInterface,
        document: RepairOrderRepositoryInterface,
        arbiter: Optional[FailoverArbiter] = None,
        session_manager: Optional[SessionManager] = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the service.

        Args:
            relational: Primary repository
            document: Fallback repository
            arbiter: Failover arbiter (a default one is created if None)
            session_manager: Document Session Manager, exposed for diagnostics
            today: Date source (injected in tests)
        """
        self.relational = relational
        self.document = document
        self.arbiter = arbiter or FailoverArbiter()
        self.session_manager = session_manager
        self._today = today

    # ===== Reads =====

    async def list_repair_orders(
        self, archive_status: Union[str, ArchiveStatus] = ArchiveStatus.ACTIVE
    ) -> ExecutionResult[List[RepairOrder]]:
        """List orders in one archive state (ACTIVE by default)."""
        status = ArchiveStatus.parse(archive_status)
        return await self.arbiter.execute(
            primary=lambda: self.relational.list_repair_orders(status),
            fallback=lambda: self.document.list_repair_orders(status),
            operation_name="getRepairOrders",
        )

    async def list_archived(
        self, archive_status: Union[str, ArchiveStatus]
    ) -> ExecutionResult[List[RepairOrder]]:
        status = _require_terminal(archive_status)
        return await self.arbiter.execute(
            primary=lambda: self.relational.list_archived(status),
            fallback=lambda: self.document.list_archived(status),
            operation_name="getArchivedROs",
        )

    async def get_by_id(self, key: KeyInput) -> ExecutionResult[RepairOrder]:
        order_key = parse_key(key)
        return await self.arbiter.execute(
            primary=lambda: self.relational.get_by_key(order_key),
            fallback=lambda: self.document.get_by_key(order_key),
            operation_name="getRepairOrderById",
        )

    async def get_by_order_number(self, order_number: str) -> ExecutionResult[RepairOrder]:
        number = _require_order_number(order_number)
        return await self.arbiter.execute(
            primary=lambda: self.relational.get_by_order_number(number),
            fallback=lambda: self.document.get_by_order_number(number),
            operation_name="getRepairOrderByNumber",
        )

    async def get_dashboard_stats(self) -> ExecutionResult[DashboardStats]:
        """Dashboard counters; each backend uses its own formulas."""
        return await self.arbiter.execute(
            primary=self.relational.get_dashboard_stats,
            fallback=self.document.get_dashboard_stats,
            operation_name="getDashboardStats",
        )

    # ===== Writes =====

    async def create(self, order: RepairOrder) -> ExecutionResult[RepairOrder]:
        """
        Create an ACTIVE order.

        Creation, status and follow-up dates are filled in once here so
        both backends store the same record.
        """
        prepared = prepare_new_order(order, self._today())
        return await self.arbiter.execute(
            primary=lambda: self.relational.create(prepared),
            fallback=lambda: self.document.create(prepared),
            operation_name="createRepairOrder",
        )

    async def update(self, key: KeyInput, changes: Dict[str, Any]) -> ExecutionResult[RepairOrder]:
        """
        Apply a partial update by backend key.

        The key must match the backend the arbiter selects for this call.
        Row keys ("row-N") only resolve while the primary is being skipped;
        once the retry interval has elapsed the primary is selected again
        and a row key raises IdentifierMismatchError without probing it.
        Use update_by_order_number when the serving backend is unknown.
        """
        order_key = parse_key(key)
        changes = validate_changes(changes)
        return await self.arbiter.execute(
            primary=lambda: self.relational.update(order_key, changes),
            fallback=lambda: self.document.update(order_key, changes),
            operation_name="updateRepairOrder",
        )

    async def update_by_order_number(
        self, order_number: str, changes: Dict[str, Any]
    ) -> ExecutionResult[RepairOrder]:
        number = _require_order_number(order_number)
        changes = validate_changes(changes)
        return await self.arbiter.execute(
            primary=lambda: self.relational.update_by_order_number(number, changes),
            fallback=lambda: self.document.update_by_order_number(number, changes),
            operation_name="updateRepairOrderByNumber",
        )

    @staticmethod
    def _status_update(
        status: Union[str, StatusUpdate],
        notes: Optional[str],
        cost: Optional[float],
        delivery_date: Optional[date],
        tracking_number: Optional[str],
    ) -> StatusUpdate:
        if isinstance(status, StatusUpdate):
            return status
        if status is None or not str(status).strip():
            raise ValueError("Status is required")
        return StatusUpdate(
            status=status,
            notes=notes,
            cost=cost,
            delivery_date=delivery_date,
            tracking_number=tracking_number,
        )

    async def update_status(
        self,
        key: KeyInput,
        status: Union[str, StatusUpdate],
        notes: Optional[str] = None,
        cost: Optional[float] = None,
        delivery_date: Optional[date] = None,
        tracking_number: Optional[str] = None,
    ) -> ExecutionResult[RepairOrder]:
        """Change an order's status and reschedule its next follow-up."""
        order_key = parse_key(key)
        update = self._status_update(status, notes, cost, delivery_date, tracking_number)
        return await self.arbiter.execute(
            primary=lambda: self.relational.update_status(order_key, update),
            fallback=lambda: self.document.update_status(order_key, update),
            operation_name="updateROStatus",
        )

    async def update_status_by_order_number(
        self,
        order_number: str,
        status: Union[str, StatusUpdate],
        notes: Optional[str] = None,
        cost: Optional[float] = None,
        delivery_date: Optional[date] = None,
        tracking_number: Optional[str] = None,
    ) -> ExecutionResult[RepairOrder]:
        number = _require_order_number(order_number)
        update = self._status_update(status, notes, cost, delivery_date, tracking_number)
        return await self.arbiter.execute(
            primary=lambda: self.relational.update_status_by_order_number(number, update),
            fallback=lambda: self.document.update_status_by_order_number(number, update),
            operation_name="updateROStatusByNumber",
        )

    async def delete(self, key: KeyInput) -> ExecutionResult[None]:
        """
        Delete by backend key (legacy). Prefer delete_by_order_number.

        Same key rule as update(): a row key raises IdentifierMismatchError
        whenever the primary is selected, including the first call after
        the retry interval elapses in fallback mode.
        """
        order_key = parse_key(key)
        return await self.arbiter.execute(
            primary=lambda: self.relational.delete(order_key),
            fallback=lambda: self.document.delete(order_key),
            operation_name="deleteRepairOrder",
        )

    async def delete_by_order_number(self, order_number: str) -> ExecutionResult[None]:
        """Delete an order by number, whatever archive state it is in."""
        number = _require_order_number(order_number)
        return await self.arbiter.execute(
            primary=lambda: self.relational.delete_by_order_number(number),
            fallback=lambda: self.document.delete_by_order_number(number),
            operation_name="deleteRepairOrderByNumber",
        )

    async def archive(
        self, key: KeyInput, target: Union[str, ArchiveStatus]
    ) -> ExecutionResult[RepairOrder]:
        """Move an ACTIVE order to PAID, NET or RETURNED."""
        order_key = parse_key(key)
        destination = _require_terminal(target)
        return await self.arbiter.execute(
            primary=lambda: self.relational.archive(order_key, destination),
            fallback=lambda: self.document.archive(order_key, destination),
            operation_name="archiveRepairOrder",
        )

    async def archive_by_order_number(
        self, order_number: str, target: Union[str, ArchiveStatus]
    ) -> ExecutionResult[RepairOrder]:
        number = _require_order_number(order_number)
        destination = _require_terminal(target)
        return await self.arbiter.execute(
            primary=lambda: self.relational.archive_by_order_number(number, destination),
            fallback=lambda: self.document.archive_by_order_number(number, destination),
            operation_name="archiveRepairOrderByNumber",
        )

    # ===== Health & introspection =====

    async def check_health(self) -> Dict[str, bool]:
        """Probe both backends directly, bypassing the arbiter."""
        relational_ok, document_ok = await asyncio.gather(
            self.relational.check_health(), self.document.check_health()
        )
        return {"relational": relational_ok, "document": document_ok}

    def is_in_fallback_mode(self) -> bool:
        return self.arbiter.is_in_fallback_mode()

    def get_metrics(self) -> FailoverMetrics:
        return self.arbiter.get_metrics()

    def set_retry_interval(self, retry_interval_ms: float) -> None:
        self.arbiter.set_retry_interval(retry_interval_ms)

    def reset_fallback_state(self) -> None:
        self.arbiter.reset_fallback_state()

    def reset_metrics(self) -> None:
        self.arbiter.reset_metrics()


def build_repair_order_service(
    config: DataAccessConfig,
    token_provider: TokenProvider,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    on_event: Optional[Callable[[FailoverEvent, str], None]] = None,
) -> RepairOrderService:
    """
    Wire clients, repositories, Session Manager and arbiter into a service.

    Args:
        config: Data-access configuration (see DataAccessConfig.from_env)
        token_provider: Async callable returning a bearer token
        transport: Optional httpx transport for both clients
        on_event: Optional failover listener (fallback entered, recovered,
            both failed)

    Returns:
        RepairOrderService
    """
    repos = build_repositories(config, token_provider, transport=transport)
    arbiter = FailoverArbiter(
        retry_interval_ms=config.failover_retry_interval_ms,
        on_event=on_event,
    )
    return RepairOrderService(
        repos.relational,
        repos.document,
        arbiter=arbiter,
        session_manager=repos.session_manager,
    )
