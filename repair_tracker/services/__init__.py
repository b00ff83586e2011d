"""Service layer exposing the public repair order API."""

from .repair_order_service import RepairOrderService, build_repair_order_service

__all__ = ["RepairOrderService", "build_repair_order_service"]
