"""
Document Repository

Repair order storage in a remote workbook table. One unified table holds
every order; the ARCHIVE STATUS column says which archive state it is in.
Every operation is a single Session Manager unit of work, so lookups by
order number and the write that follows see the same row positions.
"""

from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..archive import ArchiveStatus, validate_transition
from ..business_rules import apply_status_update, compute_dashboard_counts
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
    DocumentKey,
    RepairOrder,
    RepairOrderKey,
    StatusUpdate,
    validate_changes,
)
from .base import RepairOrderRepositoryInterface
from .columns import (
    DOCUMENT_COLUMNS,
    DOCUMENT_ROW_WIDTH,
    ColumnKind,
    format_date,
    format_notes,
    parse_date,
    parse_money,
    parse_notes,
    parse_text,
)
from .document_client import DocumentClient, Row
from .session_manager import SessionManager

BACKEND = "document"

logger = get_logger(__name__, backend=BACKEND)


# ===== ROW CODEC =====


def decode_row(values: List[Any], index: int) -> Optional[RepairOrder]:
    """
    Decode a positional workbook row.

    Returns None for rows without an order number (blank or malformed
    rows); individual cells that cannot be parsed become empty values.
    """
    cells = list(values) + [None] * (DOCUMENT_ROW_WIDTH - len(values))
    data: Dict[str, Any] = {}

    for column in DOCUMENT_COLUMNS:
        raw = cells[column.key]
        if column.kind is ColumnKind.DATE:
            data[column.field] = parse_date(raw)
        elif column.kind is ColumnKind.MONEY:
            data[column.field] = parse_money(raw)
        elif column.kind is ColumnKind.NOTES:
            data[column.field], data["status_history"] = parse_notes(raw)
        elif column.kind is ColumnKind.ARCHIVE:
            data[column.field] = _parse_archive(raw, index)
        else:
            data[column.field] = parse_text(raw)

    if not data["order_number"]:
        return None

    data["key"] = DocumentKey(index)
    return RepairOrder.model_validate(data)


def _parse_archive(raw: Any, index: int) -> ArchiveStatus:
    try:
        return ArchiveStatus.parse(parse_text(raw))
    except ValueError:
        logger.warning(f"Row {index}: unknown archive status {raw!r}, reading as ACTIVE")
        return ArchiveStatus.ACTIVE


def encode_row(order: RepairOrder) -> List[Any]:
    """Encode an order into positional workbook cells."""
    values: List[Any] = [""] * DOCUMENT_ROW_WIDTH

    for column in DOCUMENT_COLUMNS:
        value = getattr(order, column.field)
        if column.kind is ColumnKind.DATE:
            values[column.key] = format_date(value)
        elif column.kind is ColumnKind.MONEY:
            values[column.key] = value if value is not None else ""
        elif column.kind is ColumnKind.NOTES:
            values[column.key] = format_notes(value, order.status_history)
        elif column.kind is ColumnKind.ARCHIVE:
            values[column.key] = value.value
        else:
            values[column.key] = value or ""

    return values


def _normalize_number(order_number: str) -> str:
    return order_number.strip().upper()


class DocumentRepairOrderRepository(RepairOrderRepositoryInterface):
    """
    Workbook-backed repair order repository (fallback backend).

    Keys are DocumentKey row positions. Positions shift when rows are
    deleted, so order-number operations are preferred for writes.
    """

    backend = BACKEND

    def __init__(
        self,
        client: DocumentClient,
        session_manager: SessionManager,
        table_name: str = "RepairTable",
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize document repository.

        Args:
            client: Document backend HTTP client
            session_manager: Session Manager owning the workbook session
            table_name: Workbook table holding the orders
            today: Date source (injected in tests)
        """
        self._client = client
        self._sessions = session_manager
        self.table_name = table_name
        self._today = today

    # ===== Helpers (run inside a session) =====

    @staticmethod
    def _require_key(key: RepairOrderKey) -> DocumentKey:
        if not isinstance(key, DocumentKey):
            raise IdentifierMismatchError(key, BACKEND)
        return key

    async def _rows(self, session_id: str) -> List[Row]:
        return await self._client.list_rows(self.table_name, session_id)

    async def _read(self, key: DocumentKey, session_id: str) -> RepairOrder:
        try:
            values = await self._client.get_row(self.table_name, key.index, session_id)
        except BackendHTTPError as e:
            if e.status_code == 404:
                raise RepairOrderNotFoundError(str(key), BACKEND) from e
            raise
        order = decode_row(values, key.index)
        if order is None:
            raise RepairOrderNotFoundError(str(key), BACKEND)
        return order

    async def _find(self, order_number: str, session_id: str) -> RepairOrder:
        wanted = _normalize_number(order_number)
        for index, values in await self._rows(session_id):
            order = decode_row(values, index)
            if order is not None and _normalize_number(order.order_number) == wanted:
                return order
        raise RepairOrderNotFoundError(order_number, BACKEND)

    async def _write(self, order: RepairOrder, session_id: str) -> RepairOrder:
        await self._client.update_row(
            self.table_name, order.key.index, encode_row(order), session_id
        )
        return order

    async def _run(self, operation: Callable[[str], Awaitable[Any]]) -> Any:
        return await self._sessions.with_session(operation)

    # ===== Reads =====

    @backend_operation("getRepairOrders", backend=BACKEND)
    async def list_repair_orders(
        self, archive_status: ArchiveStatus = ArchiveStatus.ACTIVE
    ) -> List[RepairOrder]:
        status = ArchiveStatus.parse(archive_status)

        async def operation(session_id: str) -> List[RepairOrder]:
            orders = []
            for index, values in await self._rows(session_id):
                order = decode_row(values, index)
                if order is not None and order.archive_status == status:
                    orders.append(order)
            return orders

        return await self._run(operation)

    async def list_archived(self, archive_status: ArchiveStatus) -> List[RepairOrder]:
        status = ArchiveStatus.parse(archive_status)
        if not status.is_terminal:
            raise ValueError("Archived orders are PAID, NET or RETURNED")
        return await self.list_repair_orders(status)

    @backend_operation("getRepairOrderById", backend=BACKEND)
    async def get_by_key(self, key: RepairOrderKey) -> RepairOrder:
        row_key = self._require_key(key)
        return await self._run(lambda session_id: self._read(row_key, session_id))

    @backend_operation("getRepairOrderByNumber", backend=BACKEND)
    async def get_by_order_number(self, order_number: str) -> RepairOrder:
        return await self._run(lambda session_id: self._find(order_number, session_id))

    # ===== Writes =====

    @backend_operation("createRepairOrder", backend=BACKEND)
    async def create(self, order: RepairOrder) -> RepairOrder:
        async def operation(session_id: str) -> RepairOrder:
            rows = await self._rows(session_id)
            wanted = _normalize_number(order.order_number)
            for index, values in rows:
                existing = decode_row(values, index)
                if existing is not None and _normalize_number(existing.order_number) == wanted:
                    raise DuplicateOrderNumberError(order.order_number, BACKEND)

            index, stored = await self._client.add_row(
                self.table_name, encode_row(order), session_id
            )
            if index < 0:
                index = len(rows)
            return decode_row(stored, index) or order.model_copy(update={"key": DocumentKey(index)})

        return await self._run(operation)

    @backend_operation("updateRepairOrder", backend=BACKEND)
    async def update(self, key: RepairOrderKey, changes: Dict[str, Any]) -> RepairOrder:
        row_key = self._require_key(key)
        changes = validate_changes(changes)

        async def operation(session_id: str) -> RepairOrder:
            order = await self._read(row_key, session_id)
            return await self._write(order.with_changes(changes), session_id)

        return await self._run(operation)

    @backend_operation("updateRepairOrderByNumber", backend=BACKEND)
    async def update_by_order_number(self, order_number: str, changes: Dict[str, Any]) -> RepairOrder:
        changes = validate_changes(changes)

        async def operation(session_id: str) -> RepairOrder:
            order = await self._find(order_number, session_id)
            return await self._write(order.with_changes(changes), session_id)

        return await self._run(operation)

    @backend_operation("updateROStatus", backend=BACKEND)
    async def update_status(self, key: RepairOrderKey, update: StatusUpdate) -> RepairOrder:
        row_key = self._require_key(key)

        async def operation(session_id: str) -> RepairOrder:
            order = await self._read(row_key, session_id)
            changes = apply_status_update(order, update, self._today())
            return await self._write(order.with_changes(changes), session_id)

        return await self._run(operation)

    @backend_operation("updateROStatusByNumber", backend=BACKEND)
    async def update_status_by_order_number(self, order_number: str, update: StatusUpdate) -> RepairOrder:
        async def operation(session_id: str) -> RepairOrder:
            order = await self._find(order_number, session_id)
            changes = apply_status_update(order, update, self._today())
            return await self._write(order.with_changes(changes), session_id)

        return await self._run(operation)

    @backend_operation("deleteRepairOrder", backend=BACKEND)
    async def delete(self, key: RepairOrderKey) -> None:
        row_key = self._require_key(key)

        async def operation(session_id: str) -> None:
            await self._read(row_key, session_id)
            await self._client.delete_row(self.table_name, row_key.index, session_id)

        await self._run(operation)

    @backend_operation("deleteRepairOrderByNumber", backend=BACKEND)
    async def delete_by_order_number(self, order_number: str) -> None:
        async def operation(session_id: str) -> None:
            order = await self._find(order_number, session_id)
            await self._client.delete_row(self.table_name, order.key.index, session_id)

        await self._run(operation)

    # ===== Archive =====

    def _archived(self, order: RepairOrder, target: ArchiveStatus) -> RepairOrder:
        status = validate_transition(order.archive_status, target)
        logger.bind("archiveRepairOrder").info(
            f"Archiving repair order {order.order_number} (row {order.key.index}) as {status.value}"
        )
        return order.with_changes({"archive_status": status, "last_date_updated": self._today()})

    @backend_operation("archiveRepairOrder", backend=BACKEND)
    async def archive(self, key: RepairOrderKey, target: ArchiveStatus) -> RepairOrder:
        row_key = self._require_key(key)

        async def operation(session_id: str) -> RepairOrder:
            order = await self._read(row_key, session_id)
            return await self._write(self._archived(order, target), session_id)

        return await self._run(operation)

    @backend_operation("archiveRepairOrderByNumber", backend=BACKEND)
    async def archive_by_order_number(self, order_number: str, target: ArchiveStatus) -> RepairOrder:
        async def operation(session_id: str) -> RepairOrder:
            order = await self._find(order_number, session_id)
            return await self._write(self._archived(order, target), session_id)

        return await self._run(operation)

    # ===== Stats & health =====

    async def get_dashboard_stats(self) -> DashboardStats:
        active = await self.list_repair_orders(ArchiveStatus.ACTIVE)
        return DashboardStats(**compute_dashboard_counts(active, self._today()))

    async def check_health(self) -> bool:
        return await self._sessions.check_health()
