"""
Column mappings between backend rows and RepairOrder fields.

Each backend has exactly one mapping table; decoding and encoding both
read from it, so a column can never be mapped one way and not the other.

Cell parsers never raise: a value that cannot be understood becomes None
(dates, money) or an empty string (text).
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from ..types import StatusHistoryEntry

logger = logging.getLogger(__name__)


class ColumnKind(str, Enum):
    """How a cell is parsed and written."""
    TEXT = "text"
    DATE = "date"
    MONEY = "money"
    NOTES = "notes"        # free text with embedded status history
    ARCHIVE = "archive"    # archive status, blank reads as ACTIVE


@dataclass(frozen=True)
class Column:
    """One backend column mapped to one RepairOrder field."""
    key: Any               # positional index (document) or native name (relational)
    field: str
    kind: ColumnKind
    header: str = ""


# ===== DOCUMENT BACKEND (positional workbook columns) =====

DOCUMENT_COLUMNS: Tuple[Column, ...] = (
    Column(0, "order_number", ColumnKind.TEXT, "RO #"),
    Column(1, "date_made", ColumnKind.DATE, "DATE MADE"),
    Column(2, "shop_name", ColumnKind.TEXT, "SHOP NAME"),
    Column(3, "part_number", ColumnKind.TEXT, "PART #"),
    Column(4, "serial_number", ColumnKind.TEXT, "SERIAL #"),
    Column(5, "part_description", ColumnKind.TEXT, "PART DESCRIPTION"),
    Column(6, "required_work", ColumnKind.TEXT, "REQ WORK"),
    Column(7, "date_dropped_off", ColumnKind.DATE, "DATE DROPPED OFF"),
    Column(8, "estimated_cost", ColumnKind.MONEY, "EST COST"),
    Column(9, "final_cost", ColumnKind.MONEY, "FINAL COST"),
    Column(10, "terms", ColumnKind.TEXT, "TERMS"),
    Column(11, "shop_reference_number", ColumnKind.TEXT, "SHOP REF #"),
    Column(12, "estimated_delivery_date", ColumnKind.DATE, "EST DELIVERY"),
    Column(13, "current_status", ColumnKind.TEXT, "CURRENT STATUS"),
    Column(14, "current_status_date", ColumnKind.DATE, "STATUS DATE"),
    Column(15, "internal_status", ColumnKind.TEXT, "INTERNAL STATUS"),
    Column(16, "shop_status", ColumnKind.TEXT, "SHOP STATUS"),
    Column(17, "tracking_number", ColumnKind.TEXT, "TRACKING"),
    Column(18, "notes", ColumnKind.NOTES, "NOTES"),
    Column(19, "last_date_updated", ColumnKind.DATE, "LAST UPDATED"),
    Column(20, "next_date_to_update", ColumnKind.DATE, "NEXT UPDATE"),
    Column(21, "archive_status", ColumnKind.ARCHIVE, "ARCHIVE STATUS"),
)

DOCUMENT_ROW_WIDTH = len(DOCUMENT_COLUMNS)

# ===== RELATIONAL BACKEND (native column names) =====

RELATIONAL_COLUMNS: Tuple[Column, ...] = (
    Column("RO", "order_number", ColumnKind.TEXT),
    Column("DATE_MADE", "date_made", ColumnKind.DATE),
    Column("SHOP_NAME", "shop_name", ColumnKind.TEXT),
    Column("PART", "part_number", ColumnKind.TEXT),
    Column("SERIAL", "serial_number", ColumnKind.TEXT),
    Column("PART_DESCRIPTION", "part_description", ColumnKind.TEXT),
    Column("REQ_WORK", "required_work", ColumnKind.TEXT),
    Column("DATE_DROPPED_OFF", "date_dropped_off", ColumnKind.DATE),
    Column("ESTIMATED_COST", "estimated_cost", ColumnKind.MONEY),
    Column("FINAL_COST", "final_cost", ColumnKind.MONEY),
    Column("TERMS", "terms", ColumnKind.TEXT),
    Column("SHOP_REF", "shop_reference_number", ColumnKind.TEXT),
    Column("ESTIMATED_DELIVERY_DATE", "estimated_delivery_date", ColumnKind.DATE),
    Column("CURENT_STATUS", "current_status", ColumnKind.TEXT),
    Column("CURENT_STATUS_DATE", "current_status_date", ColumnKind.DATE),
    Column("GENTHRUST_STATUS", "internal_status", ColumnKind.TEXT),
    Column("SHOP_STATUS", "shop_status", ColumnKind.TEXT),
    Column("TRACKING_NUMBER_PICKING_UP", "tracking_number", ColumnKind.TEXT),
    Column("NOTES", "notes", ColumnKind.TEXT),
    Column("LAST_DATE_UPDATED", "last_date_updated", ColumnKind.DATE),
    Column("NEXT_DATE_TO_UPDATE", "next_date_to_update", ColumnKind.DATE),
)

RELATIONAL_FIELDS = {column.field: column for column in RELATIONAL_COLUMNS}


# ===== CELL PARSERS =====

# Spreadsheet serial day 0
SERIAL_DATE_EPOCH = date(1899, 12, 30)

_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a date cell.

    Accepts spreadsheet serial numbers, ISO strings (with or without a
    time part) and M/D/YYYY or M/D/YY strings.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_number(value):
        return _from_serial(value)

    text = str(value).strip()
    if not text:
        return None

    try:
        return _from_serial(float(text))
    except ValueError:
        pass

    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    logger.debug(f"Unparseable date cell: {text!r}")
    return None


def _from_serial(serial: float) -> Optional[date]:
    if math.isnan(serial) or math.isinf(serial) or serial <= 0:
        return None
    try:
        return SERIAL_DATE_EPOCH + timedelta(days=int(serial))
    except OverflowError:
        return None


def parse_money(value: Any) -> Optional[float]:
    """Parse a money cell. Strips "$" and ","; negatives and garbage become None."""
    if value is None or isinstance(value, bool):
        return None
    if _is_number(value):
        amount = float(value)
    else:
        text = str(value).replace("$", "").replace(",", "").strip()
        if not text:
            return None
        try:
            amount = float(text)
        except ValueError:
            return None
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        return None
    return amount


def format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


# ===== NOTES WITH EMBEDDED HISTORY =====

HISTORY_PREFIX = "HISTORY:"
NOTES_SEPARATOR = "|NOTES:"


def parse_notes(value: Any) -> Tuple[str, List[StatusHistoryEntry]]:
    """
    Split a notes cell into (notes, status history).

    Cells written as HISTORY:[...]|NOTES:<text> carry history; anything
    else is plain notes. Malformed history is kept as plain notes.
    """
    text = parse_text(value)
    if not text.startswith(HISTORY_PREFIX):
        return text, []

    payload = text[len(HISTORY_PREFIX):]
    try:
        raw_entries, end = json.JSONDecoder().raw_decode(payload)
    except ValueError:
        logger.debug("Malformed status history in notes cell, keeping as plain text")
        return text, []

    if not isinstance(raw_entries, list):
        return text, []

    rest = payload[end:]
    notes = rest[len(NOTES_SEPARATOR):] if rest.startswith(NOTES_SEPARATOR) else rest

    history: List[StatusHistoryEntry] = []
    for raw in raw_entries:
        try:
            history.append(StatusHistoryEntry.model_validate(raw))
        except ValidationError:
            logger.debug(f"Skipping malformed status history entry: {raw!r}")
    return notes, history


def format_notes(notes: str, history: List[StatusHistoryEntry]) -> str:
    if not history:
        return notes or ""
    entries = [entry.model_dump(mode="json", exclude_none=True) for entry in history]
    return f"{HISTORY_PREFIX}{json.dumps(entries)}{NOTES_SEPARATOR}{notes or ''}"
