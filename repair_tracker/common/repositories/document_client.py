"""
HTTP client for the document backend (remote workbook).

Workbook calls are scoped to a session: the id returned by createSession
travels in the `workbook-session-id` header until closeSession.
"""

from typing import Any, List, Optional, Tuple

import httpx

from ..errors import SessionError
from .http_client import BackendHTTPClient, TokenProvider

SESSION_HEADER = "workbook-session-id"

Row = Tuple[int, List[Any]]


class DocumentClient(BackendHTTPClient):
    """Workbook table operations for a single file in a single drive."""

    backend = "document"

    def __init__(
        self,
        base_url: str,
        drive_id: str,
        file_id: str,
        token_provider: TokenProvider,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, token_provider, timeout=timeout, transport=transport)
        self.drive_id = drive_id
        self.file_id = file_id

    @property
    def item_path(self) -> str:
        return f"/drives/{self.drive_id}/items/{self.file_id}"

    def _rows_path(self, table: str) -> str:
        return f"{self.item_path}/workbook/tables/{table}/rows"

    def _row_path(self, table: str, index: int) -> str:
        return f"{self._rows_path(table)}/itemAt(index={index})"

    @staticmethod
    def _session_headers(session_id: str) -> dict:
        return {SESSION_HEADER: session_id}

    # ===== Sessions =====

    async def create_session(self, persist_changes: bool = True) -> str:
        result = await self.request(
            "POST",
            f"{self.item_path}/workbook/createSession",
            json={"persistChanges": persist_changes},
        )
        if not result or not result.get("id"):
            raise SessionError("createSession returned no session id")
        return result["id"]

    async def close_session(self, session_id: str) -> None:
        await self.request(
            "POST",
            f"{self.item_path}/workbook/closeSession",
            json={},
            headers=self._session_headers(session_id),
        )

    async def get_item(self) -> Optional[dict]:
        """Fetch the workbook's drive item metadata (health probe)."""
        return await self.request("GET", self.item_path)

    # ===== Table rows =====

    async def list_rows(self, table: str, session_id: str) -> List[Row]:
        result = await self.request(
            "GET", self._rows_path(table), headers=self._session_headers(session_id)
        )
        rows: List[Row] = []
        for position, item in enumerate((result or {}).get("value", [])):
            values = item.get("values") or [[]]
            rows.append((item.get("index", position), list(values[0])))
        return rows

    async def get_row(self, table: str, index: int, session_id: str) -> List[Any]:
        result = await self.request(
            "GET", self._row_path(table, index), headers=self._session_headers(session_id)
        )
        values = (result or {}).get("values") or [[]]
        return list(values[0])

    async def add_row(self, table: str, values: List[Any], session_id: str) -> Row:
        """Append a row; returns (index, values) as stored."""
        result = await self.request(
            "POST",
            self._rows_path(table),
            json={"values": [values]},
            headers=self._session_headers(session_id),
        )
        result = result or {}
        stored = (result.get("values") or [values])[0]
        return result.get("index", -1), list(stored)

    async def update_row(self, table: str, index: int, values: List[Any], session_id: str) -> None:
        await self.request(
            "PATCH",
            self._row_path(table, index),
            json={"values": [values]},
            headers=self._session_headers(session_id),
        )

    async def delete_row(self, table: str, index: int, session_id: str) -> None:
        await self.request(
            "DELETE", self._row_path(table, index), headers=self._session_headers(session_id)
        )
