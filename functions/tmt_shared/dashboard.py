"""
Dashboard Aggregations
======================

TMT summary
    Quantities and status counts over PRODUCTION rows that have a heat
    number, scoped to the caller's brand unless they are an admin.

Delegation statistics
    Task counters over DELEGATION rows (column B set), scoped to the caller's
    doer column unless they are an admin. Dashboard counters only include
    tasks that are completed or due on or before today; per-staff totals
    include every task.
"""

import logging
from collections import OrderedDict
from datetime import date
from typing import Any, Dict, List, Optional

from .filters import is_empty, is_pending, is_completed, scope_to_owner, with_value
from .gviz_client import SheetRow
from .helpers import parse_int_safe, parse_sheet_date, display_date, format_fixed
from .models import UserSession, TaskStatus
from .row_mapping import size_columns
from .sheet_config import Column

logger = logging.getLogger(__name__)

RECENT_RECORDS_LIMIT = 5
MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


# ============== TMT Summary ==============

def tmt_summary(rows: List[SheetRow], user: UserSession) -> Dict[str, Any]:
    """
    Aggregate PRODUCTION rows for the main dashboard.

    Returns:
        Dict with quantity totals, status counts, brand and size
        distributions and the most recent records
    """
    c = Column.PRODUCTION
    scoped = scope_to_owner(with_value(rows, c.HEAT_NO), user, c.BRAND)

    totals = {
        "total_planning_qty": 0,
        "total_production_qty": 0,
        "total_pending_qty": 0,
        "pending_kitting_records": 0,
        "completed_production_records": 0,
        "pending_planning_count": 0,
        "pending_production_count": 0,
    }
    brand_distribution: Dict[str, int] = {}
    size_distribution: Dict[str, int] = {}
    records = []

    for row in scoped:
        planning_qty = parse_int_safe(row[c.PLANNING_QTY])
        production_qty = parse_int_safe(row[c.PRODUCTION_QTY])
        pending_qty = parse_int_safe(row[c.PENDING_QTY])
        totals["total_planning_qty"] += planning_qty
        totals["total_production_qty"] += production_qty
        totals["total_pending_qty"] += pending_qty

        if is_pending(row, c.KITTING_STATUS, c.KITTING_DONE):
            totals["pending_kitting_records"] += 1

        completed = is_completed(row, c.PRODUCTION_STATUS, c.PRODUCTION_DONE)
        pending_production = is_pending(row, c.PRODUCTION_STATUS, c.PRODUCTION_DONE)
        if completed:
            totals["completed_production_records"] += 1
        if pending_production:
            totals["pending_production_count"] += 1
        # Production started but kitting not yet signed off
        if is_pending(row, c.PRODUCTION_STATUS, c.KITTING_DONE):
            totals["pending_planning_count"] += 1

        brand = row.text(c.BRAND)
        if brand:
            brand_distribution[brand] = brand_distribution.get(brand, 0) + 1

        sizes = [row.text(i) for i in size_columns() if row.text(i)]
        for size in sizes:
            size_distribution[size] = size_distribution.get(size, 0) + 1

        records.append({
            "row_index": row.row_index,
            "heat_no": row.text(c.HEAT_NO),
            "person_name": row.text(c.PERSON),
            "brand_name": brand,
            "supervisor_name": row.text(c.SUPERVISOR),
            "date_of_production": display_date(row[c.DATE_OF_PRODUCTION]),
            "remarks": row.text(c.REMARKS),
            "sizes": sizes,
            "total_qty": planning_qty,
            "production_qty": production_qty,
            "pending_qty": pending_qty,
            "status": "Completed" if completed else "Pending" if pending_production else "In Progress",
        })

    return {
        **totals,
        "record_count": len(scoped),
        "brand_distribution": brand_distribution,
        "size_distribution": size_distribution,
        "recent_records": list(reversed(records))[:RECENT_RECORDS_LIMIT],
    }


# ============== Delegation Statistics ==============

def classify_task(due: Optional[date], completed: bool, today: date) -> TaskStatus:
    """Task list status: completed, overdue or pending."""
    if due and completed:
        return TaskStatus.COMPLETED
    if due and due < today:
        return TaskStatus.OVERDUE
    return TaskStatus.PENDING


def task_statistics(
    rows: List[SheetRow],
    user: UserSession,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Delegation dashboard figures.

    Args:
        rows: DELEGATION rows with the header already skipped
        user: Caller; non-admins only see rows where they are the doer
        today: Reference date (defaults to today)
    """
    c = Column.DELEGATION
    today = today or date.today()

    counters = {"total_tasks": 0, "completed_tasks": 0, "pending_tasks": 0, "overdue_tasks": 0}
    monthly = OrderedDict((m, {"completed": 0, "pending": 0}) for m in MONTHS)
    staff: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    tasks = []

    for row in scope_to_owner(with_value(rows, c.TASK_ID), user, c.DOER):
        assigned_to = row.text(c.DOER) or "Unassigned"
        due = parse_sheet_date(row[c.PLANNED])
        completed_on = parse_sheet_date(row[c.ACTUAL])
        is_done = not is_empty(row[c.ACTUAL])

        status = classify_task(due, is_done, today)
        tasks.append({
            "row_index": row.row_index,
            "task_id": row.text(c.TASK_ID),
            "title": row.text(c.TITLE),
            "assigned_to": assigned_to,
            "due_date": display_date(row[c.PLANNED]),
            "status": status.value,
            "frequency": row.text(c.FREQUENCY) or "one-time",
        })

        member = staff.setdefault(assigned_to, {
            "name": assigned_to,
            "total_tasks": 0,
            "completed_tasks": 0,
            "pending_tasks": 0,
        })
        member["total_tasks"] += 1
        if is_done:
            member["completed_tasks"] += 1
        else:
            member["pending_tasks"] += 1

        if not (is_done or (due and due <= today)):
            continue

        counters["total_tasks"] += 1
        if is_done:
            counters["completed_tasks"] += 1
            if completed_on:
                monthly[MONTHS[completed_on.month - 1]]["completed"] += 1
        elif due < today:
            counters["overdue_tasks"] += 1
        else:
            counters["pending_tasks"] += 1
            monthly[MONTHS[today.month - 1]]["pending"] += 1

    for member in staff.values():
        total = member["total_tasks"]
        member["progress"] = round(member["completed_tasks"] / total * 100) if total else 0

    total = counters["total_tasks"]
    completion_rate = float(format_fixed(counters["completed_tasks"] / total * 100, 1)) if total else 0.0

    logger.debug(f"Task statistics for {user.username}: {counters}")
    return {
        **counters,
        "completion_rate": completion_rate,
        "status_breakdown": {
            "Completed": counters["completed_tasks"],
            "Pending": counters["pending_tasks"],
            "Overdue": counters["overdue_tasks"],
        },
        "monthly": [{"name": m, **v} for m, v in monthly.items()],
        "staff_members": list(staff.values()),
        "tasks": tasks,
    }
