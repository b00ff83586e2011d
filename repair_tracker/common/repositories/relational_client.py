"""
HTTP client for the relational backend's REST API.

Rows travel with the backend's native column names; translation to
domain fields happens in RelationalRepairOrderRepository.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..archive import ArchiveStatus
from ..errors import BackendHTTPError
from .http_client import BackendHTTPClient

NativeRow = Dict[str, Any]


class RelationalClient(BackendHTTPClient):
    """REST calls under /ros plus the /health probe."""

    backend = "relational"

    @staticmethod
    def _status_params(archive_status: ArchiveStatus) -> Dict[str, str]:
        return {"archiveStatus": ArchiveStatus.parse(archive_status).value}

    async def list_orders(self, archive_status: ArchiveStatus) -> List[NativeRow]:
        result = await self.request("GET", "/ros", params=self._status_params(archive_status))
        return list(result or [])

    async def get_order(self, order_id: str, archive_status: ArchiveStatus) -> Optional[NativeRow]:
        """Fetch one row from the table for `archive_status`; None on 404."""
        try:
            return await self.request(
                "GET", f"/ros/{quote(order_id, safe='')}", params=self._status_params(archive_status)
            )
        except BackendHTTPError as e:
            if e.status_code == 404:
                return None
            raise

    async def create_order(self, row: NativeRow) -> NativeRow:
        return await self.request(
            "POST", "/ros", json=row, params=self._status_params(ArchiveStatus.ACTIVE)
        )

    async def update_order(
        self,
        order_id: str,
        archive_status: ArchiveStatus,
        changes: NativeRow,
    ) -> NativeRow:
        return await self.request(
            "PATCH",
            f"/ros/{quote(order_id, safe='')}",
            json=changes,
            params=self._status_params(archive_status),
        )

    async def move_order(
        self,
        order_id: str,
        source_table: str,
        target: ArchiveStatus,
        target_table: str,
        values: NativeRow,
    ) -> NativeRow:
        """
        Move a row between archive tables.

        The backend inserts into the destination and deletes from the
        source in one transaction; the moved row comes back with its new id.
        """
        return await self.request(
            "PATCH",
            f"/ros/{quote(order_id, safe='')}",
            json={
                "archiveStatus": target.value,
                "move": {"from": source_table, "to": target_table},
                "values": values,
            },
        )

    async def delete_order(self, order_id: str) -> Optional[dict]:
        return await self.request("DELETE", f"/ros/{quote(order_id, safe='')}")

    async def delete_by_order_number(self, order_number: str) -> Optional[dict]:
        return await self.request("DELETE", f"/ros/by-number/{quote(order_number, safe='')}")

    async def dashboard_stats(self) -> Dict[str, Any]:
        return await self.request("GET", "/ros/stats/dashboard") or {}

    async def health(self) -> Optional[dict]:
        return await self.request("GET", "/health")
