"""
Sequence-based ID Generator

Generates human-readable sequential IDs.
Format: PREFIX-NNN (e.g., CN-001, TI-042)

Composition numbers are derived by scanning the existing ids in the
Composition Response sheet and taking max + 1. Task ids continue from the
last task id reported by the Apps Script proxy.

Concurrency:
- Both are read-then-increment with no mutual exclusion. Two concurrent
  submitters can be handed the same number; the spreadsheet is treated as a
  single-writer store.
"""

import re
import logging
from typing import Iterable, Optional

from .sheet_config import (
    SheetName,
    Column,
    COMPOSITION_PREFIX,
    COMPOSITION_PADDING,
    TASK_PREFIX,
    TASK_PADDING,
)

logger = logging.getLogger(__name__)

_COMPOSITION_RE = re.compile(rf"^{COMPOSITION_PREFIX}-(\d+)$")


def format_sequence_id(prefix: str, value: int, padding: int) -> str:
    """Format as PREFIX-NNN with zero padding."""
    return f"{prefix}-{value:0{padding}d}"


def format_task_id(value: int) -> str:
    """TI-NNN."""
    return format_sequence_id(TASK_PREFIX, value, TASK_PADDING)


def format_composition_number(value: int) -> str:
    """CN-NNN."""
    return format_sequence_id(COMPOSITION_PREFIX, value, COMPOSITION_PADDING)


def parse_composition_suffix(value) -> Optional[int]:
    """Numeric suffix of a CN-NNN id, or None for anything else."""
    if value is None:
        return None
    match = _COMPOSITION_RE.match(str(value).strip())
    return int(match.group(1)) if match else None


def next_composition_number(existing_ids: Iterable) -> str:
    """
    Next composition number after the highest existing one.

    Example:
        >>> next_composition_number(["CN-001", "CN-007", "CN-003"])
        'CN-008'
        >>> next_composition_number([])
        'CN-001'
    """
    suffixes = [s for s in (parse_composition_suffix(v) for v in existing_ids) if s is not None]
    highest = max(suffixes) if suffixes else 0
    return format_composition_number(highest + 1)


def allocate_composition_number(gviz_client, trace_id: str = "") -> str:
    """
    Read column A of Composition Response and return the next CN.

    Falls back to CN-001 when the sheet cannot be read.
    """
    try:
        existing = gviz_client.fetch_column_values(
            SheetName.COMPOSITION.value,
            Column.COMPOSITION.COMPOSITION_NO,
            skip_header=True
        )
    except Exception as e:
        logger.warning(f"[{trace_id}] Could not read composition numbers, starting at CN-001: {e}")
        return format_composition_number(1)

    composition_no = next_composition_number(existing)
    logger.info(f"[{trace_id}] Allocated composition number {composition_no}")
    return composition_no
