"""
Domain types shared by both backends.

RepairOrder is the backend-agnostic record every repository returns;
identifiers are a tagged variant so a relational id can never be
confused with a workbook row position.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .archive import ArchiveStatus


# ===== IDENTIFIERS =====


@dataclass(frozen=True)
class RelationalKey:
    """Primary key of a row in the relational backend."""
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DocumentKey:
    """Zero-based row position inside the workbook table."""
    index: int

    def __str__(self) -> str:
        return f"row-{self.index}"


RepairOrderKey = Union[RelationalKey, DocumentKey]


def parse_key(raw: Union[str, int, RepairOrderKey]) -> RepairOrderKey:
    """
    Parse an identifier as rendered by RepairOrder.id.

    "row-3" and plain ints become DocumentKey, anything else RelationalKey.
    """
    if isinstance(raw, (RelationalKey, DocumentKey)):
        return raw
    if isinstance(raw, int):
        return DocumentKey(raw)
    text = str(raw).strip()
    if text.startswith("row-") and text[4:].isdigit():
        return DocumentKey(int(text[4:]))
    if not text:
        raise ValueError("Repair order id is required")
    return RelationalKey(text)


# ===== MODELS =====


class StatusHistoryEntry(BaseModel):
    """One status change recorded against a repair order."""

    status: str
    status_date: date
    user: str = "System"
    cost: Optional[float] = None
    notes: Optional[str] = None
    delivery_date: Optional[date] = None


class RepairOrder(BaseModel):
    """A repair order, independent of which backend stored it."""

    model_config = ConfigDict(validate_assignment=True)

    order_number: str = Field(..., min_length=1, description="Business key, unique across backends")
    date_made: Optional[date] = None
    shop_name: str = ""
    part_number: str = ""
    serial_number: str = ""
    part_description: str = ""
    required_work: str = ""
    date_dropped_off: Optional[date] = None
    estimated_cost: Optional[float] = Field(default=None, ge=0)
    final_cost: Optional[float] = Field(default=None, ge=0)
    terms: str = ""
    shop_reference_number: str = ""
    estimated_delivery_date: Optional[date] = None
    current_status: str = "TO SEND"
    current_status_date: Optional[date] = None
    internal_status: str = ""
    shop_status: str = ""
    tracking_number: str = ""
    notes: str = ""
    last_date_updated: Optional[date] = None
    next_date_to_update: Optional[date] = None
    archive_status: ArchiveStatus = ArchiveStatus.ACTIVE
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    key: Optional[Union[RelationalKey, DocumentKey]] = Field(default=None, exclude=True)

    @field_validator("order_number")
    @classmethod
    def strip_order_number(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Order number is required")
        return v

    @property
    def id(self) -> Optional[str]:
        """Backend-native identifier rendered as a string."""
        return str(self.key) if self.key is not None else None

    def days_overdue(self, today: Optional[date] = None) -> int:
        """Days past the next update date (0 or negative when not overdue)."""
        if self.next_date_to_update is None:
            return 0
        today = today or date.today()
        return (today - self.next_date_to_update).days

    def is_overdue(self, today: Optional[date] = None) -> bool:
        return self.days_overdue(today) > 0

    def with_changes(self, changes: Dict[str, Any]) -> "RepairOrder":
        """Return a validated copy with `changes` applied, keeping the key."""
        data = self.model_dump()
        data.update(changes)
        data["key"] = self.key
        return RepairOrder.model_validate(data)


# Fields an update may touch. Order number and archive status change only
# through create and archive.
UPDATABLE_FIELDS: FrozenSet[str] = frozenset(
    name for name in RepairOrder.model_fields
    if name not in ("order_number", "archive_status", "key")
)


def validate_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check a partial update against the updatable fields and their types.

    Values are validated by applying them to a placeholder RepairOrder, so
    a bad value is rejected here rather than inside a repository.

    Raises:
        ValueError: If changes is empty, names a field that cannot be
            updated, or carries a value the field does not accept
    """
    if not changes:
        raise ValueError("No changes supplied")
    unknown = sorted(set(changes) - UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(unknown)}")
    try:
        RepairOrder.model_validate({**changes, "order_number": "-"})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ValueError(f"Invalid change(s): {problems}") from e
    return dict(changes)


class StatusUpdate(BaseModel):
    """A status change request, shared by both backends."""

    status: str = Field(..., min_length=1)
    notes: Optional[str] = None
    cost: Optional[float] = Field(default=None, ge=0)
    delivery_date: Optional[date] = None
    tracking_number: Optional[str] = None
    user: str = "System"

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Status is required")
        return v


class DashboardStats(BaseModel):
    """
    Dashboard counters.

    The relational backend computes these server-side and returns them in
    camelCase; the document backend computes them locally.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_active: int = 0
    overdue: int = 0
    waiting_quote: int = 0
    approved: int = 0
    being_repaired: int = 0
    shipping: int = 0
    due_today: int = 0
    overdue_30_plus: int = Field(default=0, alias="overdue30Plus")
    on_track: int = 0
    total_value: float = 0.0
    total_estimated_value: float = 0.0
    total_final_value: float = 0.0
    approved_paid: int = 0
    approved_net: int = 0
    rai: int = 0
    ber: int = 0
    cancel: int = 0
    scrapped: int = 0
