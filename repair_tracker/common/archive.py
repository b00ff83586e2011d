"""
Archive State Machine.

Every repair order lives in exactly one archive state:

    ACTIVE --archive--> PAID | NET | RETURNED

ACTIVE is the initial state, the other three are terminal. There is no
unarchive: an order never returns to ACTIVE.
"""

from enum import Enum
from typing import Dict, Tuple, Union

from .errors import InvalidArchiveTransitionError


class ArchiveStatus(str, Enum):
    """Archive states of a repair order."""
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    NET = "NET"
    RETURNED = "RETURNED"

    @property
    def is_terminal(self) -> bool:
        return self is not ArchiveStatus.ACTIVE

    @classmethod
    def parse(cls, value: Union[str, "ArchiveStatus", None]) -> "ArchiveStatus":
        """
        Parse a stored archive status.

        Blank or missing values read as ACTIVE (rows written before the
        archive column existed). Unknown values raise ValueError.
        """
        if isinstance(value, ArchiveStatus):
            return value
        if value is None or not str(value).strip():
            return cls.ACTIVE
        return cls(str(value).strip().upper())


TERMINAL_STATUSES: Tuple[ArchiveStatus, ...] = (
    ArchiveStatus.PAID,
    ArchiveStatus.NET,
    ArchiveStatus.RETURNED,
)

# Lookup order when an identifier arrives without its archive status
PROBE_ORDER: Tuple[ArchiveStatus, ...] = (ArchiveStatus.ACTIVE,) + TERMINAL_STATUSES

# One relational table per archive status
ARCHIVE_TABLES: Dict[ArchiveStatus, str] = {
    ArchiveStatus.ACTIVE: "active",
    ArchiveStatus.PAID: "paid",
    ArchiveStatus.NET: "net",
    ArchiveStatus.RETURNED: "returns",
}


def can_transition(current: ArchiveStatus, target: ArchiveStatus) -> bool:
    """Check whether an order in `current` may be archived into `target`."""
    return current is ArchiveStatus.ACTIVE and target in TERMINAL_STATUSES


def validate_transition(
    current: Union[str, ArchiveStatus],
    target: Union[str, ArchiveStatus],
) -> ArchiveStatus:
    """
    Validate an archive transition.

    Args:
        current: Archive status the order is in now
        target: Requested archive status

    Returns:
        The parsed target status

    Raises:
        InvalidArchiveTransitionError: Target is ACTIVE, target is unknown,
            or the order is already archived
    """
    try:
        current_status = ArchiveStatus.parse(current)
        target_status = ArchiveStatus.parse(target)
    except ValueError:
        raise InvalidArchiveTransitionError(current, target)

    if not can_transition(current_status, target_status):
        raise InvalidArchiveTransitionError(current_status, target_status)
    return target_status


def table_for(status: Union[str, ArchiveStatus]) -> str:
    """Relational table name holding orders in the given archive status."""
    return ARCHIVE_TABLES[ArchiveStatus.parse(status)]
