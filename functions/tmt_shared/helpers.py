"""
Helper utilities for Azure Functions.
Includes trace ids, safe parsing, and spreadsheet date formatting.

Note: Sequence ids (CN-NNN, TI-NNN) live in id_generator.py.
"""

import re
import uuid
import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Any, Union

logger = logging.getLogger(__name__)

SHEET_DATE_FORMAT = "%d/%m/%Y"
SHEET_TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"

_GVIZ_DATE_RE = re.compile(r"^Date\((\d+),(\d+),(\d+)(?:,(\d+),(\d+),(\d+))?\)$")
_SHEET_DATE_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def generate_trace_id() -> str:
    """Generate a unique trace ID for correlation across systems."""
    return f"trace-{uuid.uuid4().hex[:12]}"


def parse_float_safe(value: Any, default: float = 0.0) -> float:
    """Safely parse a value to float."""
    if value is None:
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def parse_int_safe(value: Any, default: int = 0) -> int:
    """Safely parse a value to int."""
    if value is None:
        return default
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return default


def is_blank(value: Any) -> bool:
    """True for None and whitespace-only strings."""
    return value is None or str(value).strip() == ""


def format_fixed(value: float, places: int) -> str:
    """
    Render a number with a fixed number of decimals, as the sheets display it.

    Rounds the exact binary value half-up, so 0.125 renders as "0.13".
    """
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def format_sheet_date(d: Union[date, datetime]) -> str:
    """Format a date as DD/MM/YYYY."""
    return d.strftime(SHEET_DATE_FORMAT)


def format_sheet_timestamp(dt: Optional[datetime] = None) -> str:
    """Format a timestamp as DD/MM/YYYY hh:mm:ss (defaults to now)."""
    return (dt or datetime.now()).strftime(SHEET_TIMESTAMP_FORMAT)


def parse_gviz_datetime(value: Any) -> Optional[datetime]:
    """
    Parse the gviz ``Date(YYYY,MM,DD[,hh,mm,ss])`` literal.

    The month is zero-based. Returns None when the value is not such a literal.
    """
    if not isinstance(value, str):
        return None
    match = _GVIZ_DATE_RE.match(value.strip())
    if not match:
        return None
    year, month, day = int(match.group(1)), int(match.group(2)) + 1, int(match.group(3))
    hour = int(match.group(4) or 0)
    minute = int(match.group(5) or 0)
    second = int(match.group(6) or 0)
    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        logger.warning(f"Invalid gviz date literal: {value}")
        return None


def parse_sheet_date(value: Any) -> Optional[date]:
    """
    Parse any date representation found in the sheets.

    Accepts date/datetime objects, ``Date(...)`` literals, DD/MM/YYYY
    (optionally followed by a time) and ISO YYYY-MM-DD strings.
    Returns None for blanks and unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    gviz = parse_gviz_datetime(text)
    if gviz:
        return gviz.date()

    for fmt in (SHEET_TIMESTAMP_FORMAT, SHEET_DATE_FORMAT, "%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(text[:19] if "T" in text else text, fmt).date()
        except ValueError:
            continue
    return None


def display_date(value: Any) -> str:
    """
    Render a sheet cell as DD/MM/YYYY.

    Values already in DD/MM/YYYY are returned unchanged; unparseable values
    are returned as text; blanks become "".
    """
    if is_blank(value):
        return ""
    if isinstance(value, str) and _SHEET_DATE_RE.match(value.strip()):
        return value.strip()
    parsed = parse_sheet_date(value)
    return format_sheet_date(parsed) if parsed else str(value)


def display_timestamp(value: Any) -> str:
    """Render a sheet cell as DD/MM/YYYY hh:mm:ss when it is a gviz date literal."""
    if is_blank(value):
        return ""
    parsed = parse_gviz_datetime(value)
    return format_sheet_timestamp(parsed) if parsed else str(value)
