"""
Global fixtures for all unit tests.

This conftest provides:
- Environment variable isolation (no real backend URLs or tokens leak in)
- In-memory relational and workbook backends served over httpx.MockTransport
- Clients, Session Manager, repositories and service wired to those fakes

No test in tests/unit/ touches the network.
"""

import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from helpers.fake_backends import (
    DOCUMENT_BASE,
    DRIVE_ID,
    FILE_ID,
    RELATIONAL_BASE,
    TABLE,
    FakeClock,
    FakeRelationalBackend,
    FakeWorkbook,
    RecordingSleep,
    combined_transport,
    static_token,
    today,
)

from repair_tracker.common.repositories import (
    DocumentClient,
    DocumentRepairOrderRepository,
    FailoverArbiter,
    RelationalClient,
    RelationalRepairOrderRepository,
    SessionManager,
)
from repair_tracker.services import RepairOrderService


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate test environment from real backends and credentials.

    Points every configured URL at the fakes and clears the access token
    so nothing can reach a real service by accident.
    """
    monkeypatch.setenv("RELATIONAL_API_URL", RELATIONAL_BASE)
    monkeypatch.setenv("DOCUMENT_API_URL", DOCUMENT_BASE)
    monkeypatch.setenv("DOCUMENT_DRIVE_ID", DRIVE_ID)
    monkeypatch.setenv("DOCUMENT_FILE_ID", FILE_ID)
    monkeypatch.setenv("DOCUMENT_TABLE_NAME", TABLE)
    monkeypatch.delenv("REPAIR_TRACKER_ACCESS_TOKEN", raising=False)
    for name in (
        "FAILOVER_RETRY_INTERVAL_MS",
        "SESSION_MAX_RETRIES",
        "SESSION_RETRY_DELAY_MS",
        "SESSION_TIMEOUT_MS",
        "SESSION_PERSIST_CHANGES",
        "HTTP_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


# ===== FAKE BACKENDS =====


@pytest.fixture
def relational_backend():
    return FakeRelationalBackend()


@pytest.fixture
def workbook():
    return FakeWorkbook()


@pytest.fixture
def transport(relational_backend, workbook):
    return combined_transport(relational_backend, workbook)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


# ===== CLIENTS & SESSIONS =====


@pytest.fixture
def relational_client(transport):
    return RelationalClient(RELATIONAL_BASE, static_token, transport=transport)


@pytest.fixture
def document_client(transport):
    return DocumentClient(DOCUMENT_BASE, DRIVE_ID, FILE_ID, static_token, transport=transport)


@pytest.fixture
def session_manager(document_client, sleep, clock):
    return SessionManager(
        document_client,
        max_retries=3,
        retry_delay_ms=1000,
        clock=clock,
        sleep=sleep,
        rng=random.Random(42),
    )


# ===== REPOSITORIES & SERVICE =====


@pytest.fixture
def relational_repo(relational_client):
    return RelationalRepairOrderRepository(relational_client, today=today)


@pytest.fixture
def document_repo(document_client, session_manager):
    return DocumentRepairOrderRepository(
        document_client, session_manager, table_name=TABLE, today=today
    )


@pytest.fixture
def events():
    """Failover events recorded as (event, operation_name) tuples."""
    return []


@pytest.fixture
def arbiter(clock, events):
    return FailoverArbiter(
        retry_interval_ms=60_000,
        clock=clock,
        on_event=lambda event, name: events.append((event, name)),
    )


@pytest.fixture
def service(relational_repo, document_repo, arbiter, session_manager):
    return RepairOrderService(
        relational_repo,
        document_repo,
        arbiter=arbiter,
        session_manager=session_manager,
        today=today,
    )
