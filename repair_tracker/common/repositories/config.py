"""
Repository Configuration and Factory

Builds both repositories, the Session Manager they share, and their HTTP
clients from one configuration object. Nothing here is a module-level
singleton: callers own the instances they build.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import env_bool, env_float, env_int
from .document_client import DocumentClient
from .document_repository import DocumentRepairOrderRepository
from .failover import DEFAULT_RETRY_INTERVAL_MS
from .http_client import TokenProvider
from .relational_client import RelationalClient
from .relational_repository import RelationalRepairOrderRepository
from .session_manager import DEFAULT_SESSION_TIMEOUT_MS, SessionManager

logger = logging.getLogger(__name__)


@dataclass
class DataAccessConfig:
    """
    Configuration for the dual-backend data-access layer.

    Loaded from environment variables with sensible defaults.
    """
    # Relational backend (required)
    relational_api_url: str

    # Document backend (required)
    document_drive_id: str
    document_file_id: str
    document_api_url: str = "https://graph.microsoft.com/v1.0"
    document_table_name: str = "RepairTable"

    # Session Manager
    session_max_retries: int = 3
    session_retry_delay_ms: int = 1000
    session_timeout_ms: int = DEFAULT_SESSION_TIMEOUT_MS
    session_persist_changes: bool = True

    # Failover
    failover_retry_interval_ms: int = DEFAULT_RETRY_INTERVAL_MS

    http_timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "DataAccessConfig":
        """
        Load configuration from environment variables (and .env, loaded
        when repair_tracker.common.config is imported).

        Environment variables:
        - RELATIONAL_API_URL (required): Base URL of the relational REST API
        - DOCUMENT_DRIVE_ID, DOCUMENT_FILE_ID (required): Workbook location
        - DOCUMENT_API_URL: Workbook API base URL
        - DOCUMENT_TABLE_NAME: Workbook table holding the orders
        - SESSION_MAX_RETRIES, SESSION_RETRY_DELAY_MS, SESSION_TIMEOUT_MS
        - SESSION_PERSIST_CHANGES: true/false
        - FAILOVER_RETRY_INTERVAL_MS
        - HTTP_TIMEOUT_SECONDS

        Returns:
            DataAccessConfig instance

        Raises:
            ValueError: If a required variable is not set
        """
        relational_api_url = os.getenv("RELATIONAL_API_URL")
        if not relational_api_url:
            raise ValueError("RELATIONAL_API_URL environment variable is required")

        drive_id = os.getenv("DOCUMENT_DRIVE_ID")
        file_id = os.getenv("DOCUMENT_FILE_ID")
        if not drive_id or not file_id:
            raise ValueError("DOCUMENT_DRIVE_ID and DOCUMENT_FILE_ID environment variables are required")

        return cls(
            relational_api_url=relational_api_url,
            document_drive_id=drive_id,
            document_file_id=file_id,
            document_api_url=os.getenv("DOCUMENT_API_URL", cls.document_api_url),
            document_table_name=os.getenv("DOCUMENT_TABLE_NAME", cls.document_table_name),
            session_max_retries=env_int("SESSION_MAX_RETRIES", 3),
            session_retry_delay_ms=env_int("SESSION_RETRY_DELAY_MS", 1000),
            session_timeout_ms=env_int("SESSION_TIMEOUT_MS", DEFAULT_SESSION_TIMEOUT_MS),
            session_persist_changes=env_bool("SESSION_PERSIST_CHANGES", True),
            failover_retry_interval_ms=env_int("FAILOVER_RETRY_INTERVAL_MS", DEFAULT_RETRY_INTERVAL_MS),
            http_timeout_seconds=env_float("HTTP_TIMEOUT_SECONDS", 30.0),
        )


@dataclass
class Repositories:
    """Both repositories plus the Session Manager owning the workbook session."""
    relational: RelationalRepairOrderRepository
    document: DocumentRepairOrderRepository
    session_manager: SessionManager


def build_repositories(
    config: DataAccessConfig,
    token_provider: TokenProvider,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Repositories:
    """
    Build clients, Session Manager and both repositories.

    Args:
        config: Data-access configuration
        token_provider: Async callable returning a bearer token
        transport: Optional httpx transport shared by both clients

    Returns:
        Repositories bundle
    """
    relational_client = RelationalClient(
        config.relational_api_url,
        token_provider,
        timeout=config.http_timeout_seconds,
        transport=transport,
    )
    document_client = DocumentClient(
        config.document_api_url,
        config.document_drive_id,
        config.document_file_id,
        token_provider,
        timeout=config.http_timeout_seconds,
        transport=transport,
    )
    session_manager = SessionManager(
        document_client,
        max_retries=config.session_max_retries,
        retry_delay_ms=config.session_retry_delay_ms,
        session_timeout_ms=config.session_timeout_ms,
        persist_changes=config.session_persist_changes,
    )

    logger.info(
        f"Initialized repositories (relational: {config.relational_api_url}, "
        f"workbook table: {config.document_table_name})"
    )

    return Repositories(
        relational=RelationalRepairOrderRepository(relational_client),
        document=DocumentRepairOrderRepository(
            document_client, session_manager, table_name=config.document_table_name
        ),
        session_manager=session_manager,
    )
