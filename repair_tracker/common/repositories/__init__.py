"""
Repository Pattern for Repair Order Storage

Two interchangeable backends behind one interface, plus the machinery
that keeps them usable when one is down.

Public API:
- RepairOrderRepositoryInterface: Abstract interface both backends implement
- RelationalRepairOrderRepository: REST API over per-archive-status tables (primary)
- DocumentRepairOrderRepository: remote workbook table (fallback)
- SessionManager: workbook session lifecycle with retries
- FailoverArbiter: primary/fallback routing with recovery probing
- DataAccessConfig / build_repositories(): configuration and factory

Usage:
    from repair_tracker.common.repositories import DataAccessConfig, build_repositories

    repos = build_repositories(DataAccessConfig.from_env(), token_provider)
    orders = await repos.relational.list_repair_orders()
"""

from .base import RepairOrderRepositoryInterface
from .config import DataAccessConfig, Repositories, build_repositories
from .document_client import DocumentClient
from .document_repository import DocumentRepairOrderRepository
from .failover import (
    DataSource,
    ExecutionResult,
    FailoverArbiter,
    FailoverEvent,
    FailoverMetrics,
)
from .relational_client import RelationalClient
from .relational_repository import RelationalRepairOrderRepository
from .retry import RetryPolicy, calculate_backoff_delay, is_retryable_error
from .session_manager import SessionManager

__all__ = [
    # Interface and implementations
    "RepairOrderRepositoryInterface",
    "RelationalRepairOrderRepository",
    "DocumentRepairOrderRepository",
    # Clients and sessions
    "RelationalClient",
    "DocumentClient",
    "SessionManager",
    "RetryPolicy",
    "calculate_backoff_delay",
    "is_retryable_error",
    # Failover
    "FailoverArbiter",
    "FailoverEvent",
    "FailoverMetrics",
    "DataSource",
    "ExecutionResult",
    # Factory
    "DataAccessConfig",
    "Repositories",
    "build_repositories",
]
