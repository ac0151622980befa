"""
Row Filtering and Role Scoping
==============================

Every list endpoint applies the same predicate shape:

- **pending**: the status column is non-empty and the completion column is empty
- **completed** (history): both columns are non-empty
- **ownership**: admins (full and limited) see every row; anyone else sees
  only rows whose owner column equals their username, case-insensitively

The owner check doubles as the authorization rule and the data partition
(brand name == username), so it must stay an exact, case-insensitive match.
"""

import logging
from enum import Enum
from typing import Any, Iterable, List, Optional

from .helpers import is_blank
from .models import UserSession

logger = logging.getLogger(__name__)


class FilterMode(str, Enum):
    """Which side of the sentinel split to keep."""
    PENDING = "pending"
    COMPLETED = "completed"
    ALL = "all"


def _cell(row: Any, index: int) -> Any:
    """Positional access for SheetRow objects and plain lists."""
    if hasattr(row, "values"):
        values = row.values
    else:
        values = row
    if values is None or not 0 <= index < len(values):
        return None
    return values[index]


def is_empty(value: Any) -> bool:
    """None, missing, or whitespace-only."""
    return is_blank(value)


def is_pending(row: Any, status_col: int, completion_col: int) -> bool:
    return not is_empty(_cell(row, status_col)) and is_empty(_cell(row, completion_col))


def is_completed(row: Any, status_col: int, completion_col: int) -> bool:
    return not is_empty(_cell(row, status_col)) and not is_empty(_cell(row, completion_col))


def owner_matches(owner: Any, user: UserSession) -> bool:
    """Case-insensitive owner == username, bypassed for admins."""
    if user.is_admin:
        return True
    if is_empty(owner) or not user.username:
        return False
    return str(owner).strip().lower() == user.username.strip().lower()


def filter_rows(
    rows: Iterable[Any],
    user: UserSession,
    status_col: Optional[int],
    completion_col: Optional[int],
    owner_col: Optional[int],
    mode: FilterMode = FilterMode.PENDING,
) -> List[Any]:
    """
    Apply the sentinel split and ownership scoping.

    Args:
        rows: SheetRow objects or positional lists
        user: Session of the caller
        status_col: Status sentinel index (ignored for ``FilterMode.ALL``)
        completion_col: Completion sentinel index (ignored for ``FilterMode.ALL``)
        owner_col: Owner column index, or None to skip ownership scoping
        mode: Pending, completed, or all rows

    Returns:
        Matching rows in their original order
    """
    mode = FilterMode(mode)
    kept = []
    for row in rows:
        if mode == FilterMode.PENDING and not is_pending(row, status_col, completion_col):
            continue
        if mode == FilterMode.COMPLETED and not is_completed(row, status_col, completion_col):
            continue
        if owner_col is not None and not owner_matches(_cell(row, owner_col), user):
            continue
        kept.append(row)
    return kept


def scope_to_owner(rows: Iterable[Any], user: UserSession, owner_col: int) -> List[Any]:
    """Ownership scoping alone."""
    return filter_rows(rows, user, None, None, owner_col, mode=FilterMode.ALL)


def with_value(rows: Iterable[Any], index: int) -> List[Any]:
    """Rows whose cell at ``index`` is non-empty (e.g. rows that have a heat number)."""
    return [row for row in rows if not is_empty(_cell(row, index))]
