"""
Repository Interface Definitions

Defines the abstract interface for repair order operations.
This enables swapping the backing store (relational REST API or remote
workbook) without changing consumer code; the failover arbiter relies on
both implementations honouring the same contract.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..archive import ArchiveStatus
from ..types import DashboardStats, RepairOrder, RepairOrderKey, StatusUpdate


class RepairOrderRepositoryInterface(ABC):
    """
    Abstract interface for repair order storage.

    Implementations:
    - RelationalRepairOrderRepository: REST API over per-status tables (primary)
    - DocumentRepairOrderRepository: remote workbook table (fallback)

    Each implementation accepts only its own key kind and raises
    IdentifierMismatchError for the other.
    """

    backend: str = "unknown"

    @abstractmethod
    async def list_repair_orders(
        self, archive_status: ArchiveStatus = ArchiveStatus.ACTIVE
    ) -> List[RepairOrder]:
        """
        List repair orders in one archive state.

        Args:
            archive_status: Archive state to list (default ACTIVE)

        Returns:
            Orders in that state only
        """
        pass

    @abstractmethod
    async def list_archived(self, archive_status: ArchiveStatus) -> List[RepairOrder]:
        """
        List orders in a terminal archive state.

        Raises:
            ValueError: If archive_status is ACTIVE
        """
        pass

    @abstractmethod
    async def get_by_key(self, key: RepairOrderKey) -> RepairOrder:
        """
        Fetch one order by backend-native key.

        Raises:
            RepairOrderNotFoundError: No order with that key
            IdentifierMismatchError: Key belongs to the other backend
        """
        pass

    @abstractmethod
    async def get_by_order_number(self, order_number: str) -> RepairOrder:
        """
        Fetch one order by business key, across all archive states.

        Raises:
            RepairOrderNotFoundError: No order with that number
        """
        pass

    @abstractmethod
    async def create(self, order: RepairOrder) -> RepairOrder:
        """
        Create an ACTIVE order.

        Returns:
            The stored order with its backend key set

        Raises:
            DuplicateOrderNumberError: Order number already exists
        """
        pass

    @abstractmethod
    async def update(self, key: RepairOrderKey, changes: Dict[str, Any]) -> RepairOrder:
        """Apply a partial update and return the updated order."""
        pass

    @abstractmethod
    async def update_by_order_number(self, order_number: str, changes: Dict[str, Any]) -> RepairOrder:
        pass

    @abstractmethod
    async def update_status(self, key: RepairOrderKey, update: StatusUpdate) -> RepairOrder:
        """
        Change an order's status, rescheduling its next follow-up.

        Returns:
            The updated order
        """
        pass

    @abstractmethod
    async def update_status_by_order_number(self, order_number: str, update: StatusUpdate) -> RepairOrder:
        pass

    @abstractmethod
    async def delete(self, key: RepairOrderKey) -> None:
        """Permanently delete an order by key."""
        pass

    @abstractmethod
    async def delete_by_order_number(self, order_number: str) -> None:
        """
        Permanently delete an order by number, whatever its archive state.

        Raises:
            RepairOrderNotFoundError: No order with that number
        """
        pass

    @abstractmethod
    async def archive(self, key: RepairOrderKey, target: ArchiveStatus) -> RepairOrder:
        """
        Move an ACTIVE order into a terminal archive state.

        Raises:
            InvalidArchiveTransitionError: Not ACTIVE, or target is ACTIVE
        """
        pass

    @abstractmethod
    async def archive_by_order_number(self, order_number: str, target: ArchiveStatus) -> RepairOrder:
        pass

    @abstractmethod
    async def get_dashboard_stats(self) -> DashboardStats:
        pass

    @abstractmethod
    async def check_health(self) -> bool:
        """Lightweight reachability probe; never raises."""
        pass
