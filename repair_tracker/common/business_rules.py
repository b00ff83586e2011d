"""
Business rules for repair order follow-up scheduling.

Both backends apply the same rules when a status changes, so the next
follow-up date does not depend on which store served the write.
"""

import logging
import re
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .archive import ArchiveStatus
from .types import RepairOrder, StatusHistoryEntry, StatusUpdate

logger = logging.getLogger(__name__)

# Statuses with a fixed follow-up delay in days
FOLLOW_UP_DAYS: Dict[str, int] = {
    "TO SEND": 3,
    "WAITING QUOTE": 14,
    "APPROVED": 7,
    "BEING REPAIRED": 10,
    "CURRENTLY BEING SHIPPED": 5,
    "RECEIVED": 3,
    "SHIPPING": 3,
}

DEFAULT_FOLLOW_UP_DAYS = 7
UNKNOWN_TERMS_FOLLOW_UP_DAYS = 30
WIRE_FOLLOW_UP_DAYS = 3
ON_TRACK_MARGIN_DAYS = 3

# Only the most recent entries are kept with the order
MAX_STATUS_HISTORY = 20

_NET_TERMS = re.compile(r"NET\s*(\d+)")


def calculate_next_update_date(
    status: str,
    status_date: date,
    payment_terms: Optional[str] = None,
) -> Optional[date]:
    """
    Calculate when a repair order next needs attention.

    Args:
        status: Current status (case-insensitive)
        status_date: Date the status was set
        payment_terms: Payment terms such as "NET 30" or "COD"

    Returns:
        Next follow-up date, or None when no follow-up is needed
    """
    normalized = status.upper().strip()

    if normalized in FOLLOW_UP_DAYS:
        return status_date + timedelta(days=FOLLOW_UP_DAYS[normalized])

    if normalized in ("PAID", "PAID >>>>"):
        return _paid_follow_up(status_date, payment_terms)

    if normalized in ("PAYMENT SENT", "BER"):
        return None

    return status_date + timedelta(days=DEFAULT_FOLLOW_UP_DAYS)


def _paid_follow_up(status_date: date, payment_terms: Optional[str]) -> Optional[date]:
    if not payment_terms or not payment_terms.strip():
        logger.debug("PAID status with no terms: no follow-up needed")
        return None

    terms = payment_terms.upper().strip()

    match = _NET_TERMS.search(terms)
    if match:
        return status_date + timedelta(days=int(match.group(1)))

    if "COD" in terms or "PREPAID" in terms or "C.O.D." in terms:
        return None

    if "WIRE" in terms or "XFER" in terms:
        return status_date + timedelta(days=WIRE_FOLLOW_UP_DAYS)

    if "CREDIT CARD" in terms:
        return None

    logger.debug(f"PAID status with unknown terms '{terms}': defaulting to {UNKNOWN_TERMS_FOLLOW_UP_DAYS} days")
    return status_date + timedelta(days=UNKNOWN_TERMS_FOLLOW_UP_DAYS)


def is_due_today(next_date: Optional[date], today: Optional[date] = None) -> bool:
    if next_date is None:
        return False
    return next_date == (today or date.today())


def is_on_track(next_date: Optional[date], today: Optional[date] = None) -> bool:
    """An order with no follow-up scheduled, or one more than three days out, is on track."""
    if next_date is None:
        return True
    return (next_date - (today or date.today())).days > ON_TRACK_MARGIN_DAYS


def cost_field_for_status(status: str) -> str:
    """Costs reported with a payment or shipping status are final, others are estimates."""
    normalized = status.upper()
    if "PAID" in normalized or "SHIPPING" in normalized:
        return "final_cost"
    return "estimated_cost"


def trim_history(history: List[StatusHistoryEntry]) -> List[StatusHistoryEntry]:
    return list(history)[-MAX_STATUS_HISTORY:]


def apply_status_update(
    order: RepairOrder,
    update: StatusUpdate,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Compute the field changes a status update makes to an order.

    Sets the status and its date, stamps last-updated, reschedules the next
    follow-up, routes any cost to the final or estimated column, and appends
    a history entry.

    Returns:
        Dict of field changes suitable for RepairOrder.with_changes
    """
    today = today or date.today()

    changes: Dict[str, Any] = {
        "current_status": update.status,
        "current_status_date": today,
        "last_date_updated": today,
        "next_date_to_update": calculate_next_update_date(update.status, today, order.terms),
    }

    if update.cost is not None:
        changes[cost_field_for_status(update.status)] = update.cost

    if update.delivery_date is not None:
        changes["estimated_delivery_date"] = update.delivery_date

    if update.tracking_number:
        changes["tracking_number"] = update.tracking_number

    if update.notes:
        changes["notes"] = update.notes

    entry = StatusHistoryEntry(
        status=update.status,
        status_date=today,
        user=update.user,
        cost=update.cost,
        notes=update.notes,
        delivery_date=update.delivery_date,
    )
    changes["status_history"] = trim_history(order.status_history + [entry])

    return changes


def prepare_new_order(order: RepairOrder, today: Optional[date] = None) -> RepairOrder:
    """
    Fill in the dates a new order starts with.

    Missing creation and status dates default to today, and the first
    follow-up is scheduled from the initial status. Any key on the input is
    dropped; the backend assigns one.

    Raises:
        ValueError: If the order is not ACTIVE
    """
    if order.archive_status is not ArchiveStatus.ACTIVE:
        raise ValueError("New repair orders must be ACTIVE")

    today = today or date.today()
    status_date = order.current_status_date or today
    prepared = order.with_changes({
        "date_made": order.date_made or today,
        "current_status_date": status_date,
        "last_date_updated": today,
        "next_date_to_update": order.next_date_to_update
        or calculate_next_update_date(order.current_status, status_date, order.terms),
    })
    return prepared.model_copy(update={"key": None})


def compute_dashboard_counts(orders: List[RepairOrder], today: Optional[date] = None) -> Dict[str, Any]:
    """
    Dashboard counters computed locally from a list of active orders.

    Used by the document backend, which has no server-side aggregation.
    """
    today = today or date.today()

    def has(order: RepairOrder, text: str) -> bool:
        return text in order.current_status

    closed = ("PAID", "CANCEL", "RAI", "SCRAPPED")

    return {
        "total_active": sum(
            1 for o in orders
            if not any(has(o, c) for c in closed)
            and o.current_status not in ("PAYMENT SENT", "BER")
        ),
        "overdue": sum(1 for o in orders if o.is_overdue(today)),
        "waiting_quote": sum(1 for o in orders if has(o, "WAITING QUOTE")),
        "approved": sum(1 for o in orders if has(o, "APPROVED")),
        "being_repaired": sum(1 for o in orders if has(o, "BEING REPAIRED")),
        "shipping": sum(1 for o in orders if has(o, "SHIPPING")),
        "due_today": sum(1 for o in orders if is_due_today(o.next_date_to_update, today)),
        "overdue_30_plus": sum(1 for o in orders if o.days_overdue(today) > 30),
        "on_track": sum(1 for o in orders if is_on_track(o.next_date_to_update, today)),
        "total_value": sum((o.final_cost or o.estimated_cost or 0) for o in orders),
        "total_estimated_value": sum((o.estimated_cost or 0) for o in orders),
        "total_final_value": sum((o.final_cost or 0) for o in orders),
        "approved_paid": sum(
            1 for o in orders if has(o, "PAID") or o.current_status == "PAYMENT SENT"
        ),
        "approved_net": sum(1 for o in orders if has(o, "NET") or "NET" in o.terms),
        "rai": sum(1 for o in orders if has(o, "RAI")),
        "ber": sum(1 for o in orders if has(o, "BER")),
        "cancel": sum(1 for o in orders if has(o, "CANCEL")),
        "scrapped": sum(1 for o in orders if has(o, "SCRAPPED")),
    }
