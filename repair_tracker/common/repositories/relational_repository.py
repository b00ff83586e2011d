"""
Relational Repository

Repair order storage behind the relational backend's REST API. Each
archive status has its own table and the API speaks the tables' native
column names; this repository translates both ways through
RELATIONAL_COLUMNS and resolves which table a key lives in.

No client-side retries: a failed call surfaces straight to the failover
arbiter, which falls back to the document backend.
"""

from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from ..archive import PROBE_ORDER, ArchiveStatus, table_for, validate_transition
from ..business_rules import apply_status_update
from ..error_handling import backend_operation
from ..errors import (
    BackendHTTPError,
    DuplicateOrderNumberError,
    IdentifierMismatchError,
    RepairOrderNotFoundError,
)
from ..logger import get_logger
from ..types import (
    DashboardStats,
    RelationalKey,
    RepairOrder,
    RepairOrderKey,
    StatusUpdate,
    validate_changes,
)
from .base import RepairOrderRepositoryInterface
from .columns import (
    RELATIONAL_COLUMNS,
    RELATIONAL_FIELDS,
    Column,
    ColumnKind,
    format_date,
    parse_date,
    parse_money,
    parse_text,
)
from .relational_client import NativeRow, RelationalClient

BACKEND = "relational"

logger = get_logger(__name__, backend=BACKEND)


# ===== ROW CODEC =====


def _decode_cell(column: Column, raw: Any) -> Any:
    if column.kind is ColumnKind.DATE:
        return parse_date(raw)
    if column.kind is ColumnKind.MONEY:
        return parse_money(raw)
    return parse_text(raw)


def _encode_cell(column: Column, value: Any) -> Any:
    if column.kind is ColumnKind.DATE:
        return format_date(value) or None
    if column.kind is ColumnKind.MONEY:
        return value
    return value or ""


def from_native(row: NativeRow, archive_status: ArchiveStatus) -> RepairOrder:
    """Translate a native row into a RepairOrder in the given archive state."""
    data: Dict[str, Any] = {
        column.field: _decode_cell(column, row.get(column.key))
        for column in RELATIONAL_COLUMNS
    }
    data["archive_status"] = archive_status
    if row.get("id") is not None:
        data["key"] = RelationalKey(str(row["id"]))
    return RepairOrder.model_validate(data)


def to_native(order: RepairOrder, fields: Optional[Iterable[str]] = None) -> NativeRow:
    """
    Translate an order (or a subset of its fields) into native columns.

    Fields without a relational column (status history, archive status)
    are skipped.
    """
    wanted = set(fields) if fields is not None else set(RELATIONAL_FIELDS)
    return {
        column.key: _encode_cell(column, getattr(order, column.field))
        for column in RELATIONAL_COLUMNS
        if column.field in wanted
    }


class RelationalRepairOrderRepository(RepairOrderRepositoryInterface):
    """REST-backed repair order repository (primary backend)."""

    backend = BACKEND

    def __init__(
        self,
        client: RelationalClient,
        today: Callable[[], date] = date.today,
    ):
        self._client = client
        self._today = today

    @staticmethod
    def _require_key(key: RepairOrderKey) -> RelationalKey:
        if not isinstance(key, RelationalKey):
            raise IdentifierMismatchError(key, BACKEND)
        return key

    async def _locate(self, key: RelationalKey) -> Tuple[RepairOrder, ArchiveStatus]:
        """Probe the archive tables in order; first match wins."""
        for status in PROBE_ORDER:
            row = await self._client.get_order(key.value, status)
            if row is not None:
                return from_native({"id": key.value, **row}, status), status
        raise RepairOrderNotFoundError(key.value, BACKEND)

    async def _find(self, order_number: str) -> Tuple[RepairOrder, ArchiveStatus]:
        """
        Scan the archive tables in probe order for an order number.

        The API has no read-by-number route, so each table is listed in
        full until a match: an order that is missing or RETURNED costs four
        full-table downloads. Every by-number get, update, status change and
        archive pays this before its write.
        """
        wanted = order_number.strip().upper()
        for status in PROBE_ORDER:
            for row in await self._client.list_orders(status):
                if parse_text(row.get("RO")).upper() == wanted:
                    return from_native(row, status), status
        raise RepairOrderNotFoundError(order_number, BACKEND)

    async def _patch(
        self,
        order: RepairOrder,
        status: ArchiveStatus,
        changes: Dict[str, Any],
    ) -> RepairOrder:
        updated = order.with_changes(changes)
        native = to_native(updated, changes.keys())
        if not native:
            return updated
        row = await self._client.update_order(order.key.value, status, native)
        if not row:
            return updated
        return from_native({"id": order.key.value, **row}, status)

    # ===== Reads =====

    @backend_operation("getRepairOrders", backend=BACKEND)
    async def list_repair_orders(
        self, archive_status: ArchiveStatus = ArchiveStatus.ACTIVE
    ) -> List[RepairOrder]:
        status = ArchiveStatus.parse(archive_status)
        rows = await self._client.list_orders(status)
        return [from_native(row, status) for row in rows]

    async def list_archived(self, archive_status: ArchiveStatus) -> List[RepairOrder]:
        status = ArchiveStatus.parse(archive_status)
        if not status.is_terminal:
            raise ValueError("Archived orders are PAID, NET or RETURNED")
        return await self.list_repair_orders(status)

    @backend_operation("getRepairOrderById", backend=BACKEND)
    async def get_by_key(self, key: RepairOrderKey) -> RepairOrder:
        order, _ = await self._locate(self._require_key(key))
        return order

    @backend_operation("getRepairOrderByNumber", backend=BACKEND)
    async def get_by_order_number(self, order_number: str) -> RepairOrder:
        order, _ = await self._find(order_number)
        return order

    # ===== Writes =====

    @backend_operation("createRepairOrder", backend=BACKEND)
    async def create(self, order: RepairOrder) -> RepairOrder:
        try:
            row = await self._client.create_order(to_native(order))
        except BackendHTTPError as e:
            if e.status_code == 409:
                raise DuplicateOrderNumberError(order.order_number, BACKEND) from e
            raise
        return from_native(row, ArchiveStatus.ACTIVE) if row else order

    @backend_operation("updateRepairOrder", backend=BACKEND)
    async def update(self, key: RepairOrderKey, changes: Dict[str, Any]) -> RepairOrder:
        order, status = await self._locate(self._require_key(key))
        return await self._patch(order, status, validate_changes(changes))

    @backend_operation("updateRepairOrderByNumber", backend=BACKEND)
    async def update_by_order_number(self, order_number: str, changes: Dict[str, Any]) -> RepairOrder:
        changes = validate_changes(changes)
        order, status = await self._find(order_number)
        return await self._patch(order, status, changes)

    @backend_operation("updateROStatus", backend=BACKEND)
    async def update_status(self, key: RepairOrderKey, update: StatusUpdate) -> RepairOrder:
        order, status = await self._locate(self._require_key(key))
        return await self._patch(order, status, apply_status_update(order, update, self._today()))

    @backend_operation("updateROStatusByNumber", backend=BACKEND)
    async def update_status_by_order_number(self, order_number: str, update: StatusUpdate) -> RepairOrder:
        order, status = await self._find(order_number)
        return await self._patch(order, status, apply_status_update(order, update, self._today()))

    @backend_operation("deleteRepairOrder", backend=BACKEND)
    async def delete(self, key: RepairOrderKey) -> None:
        row_key = self._require_key(key)
        try:
            await self._client.delete_order(row_key.value)
        except BackendHTTPError as e:
            if e.status_code == 404:
                raise RepairOrderNotFoundError(row_key.value, BACKEND) from e
            raise

    @backend_operation("deleteRepairOrderByNumber", backend=BACKEND)
    async def delete_by_order_number(self, order_number: str) -> None:
        try:
            await self._client.delete_by_order_number(order_number)
        except BackendHTTPError as e:
            if e.status_code == 404:
                raise RepairOrderNotFoundError(order_number, BACKEND) from e
            raise

    # ===== Archive =====

    async def _move(self, order: RepairOrder, current: ArchiveStatus, target: ArchiveStatus) -> RepairOrder:
        destination = validate_transition(current, target)
        merged = order.with_changes({"last_date_updated": self._today()})
        row = await self._client.move_order(
            order.key.value,
            table_for(current),
            destination,
            table_for(destination),
            to_native(merged),
        )
        logger.bind("archiveRepairOrder").info(
            f"Moved repair order {order.order_number} "
            f"from {table_for(current)} to {table_for(destination)}"
        )
        if not row:
            return merged.model_copy(update={"archive_status": destination})
        return from_native(row, destination)

    @backend_operation("archiveRepairOrder", backend=BACKEND)
    async def archive(self, key: RepairOrderKey, target: ArchiveStatus) -> RepairOrder:
        order, current = await self._locate(self._require_key(key))
        return await self._move(order, current, target)

    @backend_operation("archiveRepairOrderByNumber", backend=BACKEND)
    async def archive_by_order_number(self, order_number: str, target: ArchiveStatus) -> RepairOrder:
        order, current = await self._find(order_number)
        return await self._move(order, current, target)

    # ===== Stats & health =====

    @backend_operation("getDashboardStats", backend=BACKEND)
    async def get_dashboard_stats(self) -> DashboardStats:
        return DashboardStats.model_validate(await self._client.dashboard_stats())

    async def check_health(self) -> bool:
        try:
            await self._client.health()
            return True
        except (BackendHTTPError, httpx.HTTPError) as e:
            logger.bind("checkHealth").warning(f"Health check failed: {e}")
            return False
