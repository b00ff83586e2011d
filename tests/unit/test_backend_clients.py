"""
Unit tests for the backend HTTP clients.

Tests:
- BackendHTTPClient error mapping and empty responses
- DocumentClient session header and row parsing
- RelationalClient paths, query parameters and 404 handling
"""

import json

import httpx
import pytest

from repair_tracker.common.archive import ArchiveStatus
from repair_tracker.common.errors import BackendHTTPError, SessionError
from repair_tracker.common.repositories import DocumentClient, RelationalClient
from repair_tracker.common.repositories.http_client import BackendHTTPClient


async def token():
    return "abc"


class Recorder:
    """MockTransport handler returning canned responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.responses.pop(0)

    @property
    def transport(self):
        return httpx.MockTransport(self)


def make_client(cls, recorder):
    if cls is DocumentClient:
        return DocumentClient("https://graph.test/v1.0", "d1", "f1", token, transport=recorder.transport)
    return cls("https://db.test/api/", token, transport=recorder.transport)


class TestBackendHTTPClient:
    """Tests for BackendHTTPClient.request."""

    @pytest.mark.asyncio
    async def test_json_response(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True}))
        client = make_client(BackendHTTPClient, recorder)

        assert await client.request("GET", "/health") == {"ok": True}

        request = recorder.requests[0]
        assert str(request.url) == "https://db.test/api/health"
        assert request.headers["Authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_no_content(self):
        recorder = Recorder(httpx.Response(204))
        client = make_client(BackendHTTPClient, recorder)

        assert await client.request("DELETE", "/ros/1") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response,message",
        [
            (httpx.Response(409, json={"error": "RO exists"}), "RO exists"),
            (httpx.Response(404, json={"error": {"code": "ItemNotFound", "message": "gone"}}), "ItemNotFound: gone"),
            (httpx.Response(422, json={"detail": "bad field"}), "bad field"),
            (httpx.Response(500, text="upstream exploded"), "upstream exploded"),
        ],
    )
    async def test_error_messages(self, response, message):
        client = make_client(RelationalClient, Recorder(response))

        with pytest.raises(BackendHTTPError) as exc_info:
            await client.request("GET", "/ros")

        error = exc_info.value
        assert error.status_code == response.status_code
        assert error.backend == "relational"
        assert message in str(error)


class TestDocumentClient:
    """Tests for DocumentClient."""

    @pytest.mark.asyncio
    async def test_create_session(self):
        recorder = Recorder(httpx.Response(201, json={"id": "sess-1"}))
        client = make_client(DocumentClient, recorder)

        assert await client.create_session(persist_changes=False) == "sess-1"

        request = recorder.requests[0]
        assert request.url.path == "/v1.0/drives/d1/items/f1/workbook/createSession"
        assert json.loads(request.content) == {"persistChanges": False}

    @pytest.mark.asyncio
    async def test_create_session_without_id(self):
        client = make_client(DocumentClient, Recorder(httpx.Response(201, json={})))

        with pytest.raises(SessionError):
            await client.create_session()

    @pytest.mark.asyncio
    async def test_session_header(self):
        recorder = Recorder(httpx.Response(200, json={"value": []}))
        client = make_client(DocumentClient, recorder)

        await client.list_rows("RepairTable", "sess-9")

        assert recorder.requests[0].headers["workbook-session-id"] == "sess-9"

    @pytest.mark.asyncio
    async def test_list_rows(self):
        recorder = Recorder(httpx.Response(200, json={"value": [
            {"index": 0, "values": [["RO-1", 45300]]},
            {"values": [["RO-2", ""]]},
        ]}))
        client = make_client(DocumentClient, recorder)

        rows = await client.list_rows("RepairTable", "s")

        assert rows == [(0, ["RO-1", 45300]), (1, ["RO-2", ""])]

    @pytest.mark.asyncio
    async def test_add_row(self):
        recorder = Recorder(httpx.Response(201, json={"index": 7, "values": [["RO-8"]]}))
        client = make_client(DocumentClient, recorder)

        assert await client.add_row("RepairTable", ["RO-8"], "s") == (7, ["RO-8"])
        assert json.loads(recorder.requests[0].content) == {"values": [["RO-8"]]}

    @pytest.mark.asyncio
    async def test_row_paths(self):
        recorder = Recorder(httpx.Response(200, json={}), httpx.Response(204))
        client = make_client(DocumentClient, recorder)

        await client.update_row("RepairTable", 3, ["RO-4"], "s")
        await client.delete_row("RepairTable", 3, "s")

        assert [r.method for r in recorder.requests] == ["PATCH", "DELETE"]
        for request in recorder.requests:
            assert request.url.path.endswith("/workbook/tables/RepairTable/rows/itemAt(index=3)")


class TestRelationalClient:
    """Tests for RelationalClient."""

    @pytest.mark.asyncio
    async def test_list_orders_query(self):
        recorder = Recorder(httpx.Response(200, json=[{"RO": "RO-1"}]))
        client = make_client(RelationalClient, recorder)

        assert await client.list_orders(ArchiveStatus.RETURNED) == [{"RO": "RO-1"}]
        assert recorder.requests[0].url.params["archiveStatus"] == "RETURNED"

    @pytest.mark.asyncio
    async def test_get_order_404_is_none(self):
        client = make_client(RelationalClient, Recorder(httpx.Response(404, json={"error": "nope"})))

        assert await client.get_order("5", ArchiveStatus.ACTIVE) is None

    @pytest.mark.asyncio
    async def test_get_order_other_errors_raise(self):
        client = make_client(RelationalClient, Recorder(httpx.Response(500, json={"error": "db down"})))

        with pytest.raises(BackendHTTPError):
            await client.get_order("5", ArchiveStatus.ACTIVE)

    @pytest.mark.asyncio
    async def test_order_number_is_escaped(self):
        recorder = Recorder(httpx.Response(200, json={"success": True}))
        client = make_client(RelationalClient, recorder)

        await client.delete_by_order_number("RO/7 A")

        assert recorder.requests[0].url.raw_path.startswith(b"/api/ros/by-number/RO%2F7%20A")

    @pytest.mark.asyncio
    async def test_move_order_body(self):
        recorder = Recorder(httpx.Response(200, json={"id": 9, "RO": "RO-1"}))
        client = make_client(RelationalClient, recorder)

        row = await client.move_order("1", "active", ArchiveStatus.PAID, "paid", {"RO": "RO-1"})

        assert row == {"id": 9, "RO": "RO-1"}
        assert json.loads(recorder.requests[0].content) == {
            "archiveStatus": "PAID",
            "move": {"from": "active", "to": "paid"},
            "values": {"RO": "RO-1"},
        }
