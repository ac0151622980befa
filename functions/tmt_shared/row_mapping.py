"""
Row Mapping
===========

Converts between positional sheet rows and typed records.

Read side: ``to_*`` functions turn a gviz ``SheetRow`` into a pydantic
record using the indices in ``sheet_config.Column``. This is the only place
that knows which cell means what.

Write side: ``*_row`` functions build the positional ``rowData`` arrays the
Apps Script proxy appends; array position is the column.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .gviz_client import SheetRow
from .helpers import (
    display_date,
    display_timestamp,
    format_sheet_date,
    format_sheet_timestamp,
    parse_float_safe,
    parse_gviz_datetime,
    is_blank,
)
from .filters import is_completed
from .models import (
    PlanningRecord,
    SizeQuantity,
    ProductionRecord,
    ProductionItem,
    Material,
    MaterialRow,
    CompositionRecord,
    CompositionTotals,
    DelegationTask,
    DelegationHistoryRecord,
    DelegationCompletionItem,
    DataTaskUpdate,
    AdminDataRecord,
    AdminDataItem,
    TaskOccurrence,
    RecordStatus,
    PlanningRequest,
    ProductionRequest,
    CompositionRequest,
)
from .sheet_config import (
    Column,
    MAX_SIZES,
    MAX_PRODUCTION_ITEMS,
    MAX_MATERIALS,
    ATTACHMENT_REQUIRED,
    DATA_COMPLETED_COLUMN,
    DATA_FILE_URL_COLUMN,
)

logger = logging.getLogger(__name__)


def _text_or_none(row: SheetRow, index: int) -> Optional[str]:
    text = row.text(index)
    return text or None


# ============== Read Side ==============

def size_columns() -> List[int]:
    """Indices of the ten size cells (H, J, L, ... Z)."""
    return [Column.PRODUCTION.FIRST_SIZE + 2 * i for i in range(MAX_SIZES)]


def to_planning_record(row: SheetRow) -> PlanningRecord:
    """PRODUCTION row -> PlanningRecord."""
    c = Column.PRODUCTION
    sizes = []
    for index in size_columns():
        size = row.text(index)
        if size:
            sizes.append(SizeQuantity(size=size, quantity=_text_or_none(row, index + 1)))

    completed = is_completed(row, c.PRODUCTION_STATUS, c.PRODUCTION_DONE)
    return PlanningRecord(
        row_index=row.row_index,
        timestamp=display_timestamp(row[c.TIMESTAMP]) or None,
        heat_no=row.text(c.HEAT_NO),
        person_name=_text_or_none(row, c.PERSON),
        brand_name=_text_or_none(row, c.BRAND),
        supervisor_name=_text_or_none(row, c.SUPERVISOR),
        date_of_production=display_date(row[c.DATE_OF_PRODUCTION]) or None,
        remarks=_text_or_none(row, c.REMARKS),
        sizes=sizes,
        planning_qty=parse_float_safe(row[c.PLANNING_QTY]),
        production_qty=parse_float_safe(row[c.PRODUCTION_QTY]),
        pending_qty=parse_float_safe(row[c.PENDING_QTY]),
        status=RecordStatus.COMPLETED if completed else RecordStatus.PENDING,
    )


def to_production_record(row: SheetRow) -> ProductionRecord:
    """Actual Production row -> ProductionRecord."""
    c = Column.ACTUAL_PRODUCTION
    items = []
    for i in range(MAX_PRODUCTION_ITEMS):
        base = c.FIRST_ITEM + 3 * i
        size = row.text(base)
        if size:
            items.append(ProductionItem(
                size=size,
                piece_qty=_text_or_none(row, base + 1),
                mt_qty=_text_or_none(row, base + 2),
            ))

    return ProductionRecord(
        row_index=row.row_index,
        timestamp=display_timestamp(row[c.TIMESTAMP]) or None,
        heat_no=row.text(c.HEAT_NO),
        brand_name=_text_or_none(row, c.BRAND),
        time_range=_text_or_none(row, c.TIME_RANGE),
        hours=_text_or_none(row, c.HOURS),
        break_down_time=_text_or_none(row, c.BREAKDOWN_TIME),
        break_down_time_gap=_text_or_none(row, c.BREAKDOWN_GAP),
        items=items,
        remarks=_text_or_none(row, c.REMARKS),
    )


def to_material(row: SheetRow) -> Optional[Material]:
    """KYC of stock row -> Material (None for rows without a name)."""
    c = Column.MATERIALS_MASTER
    name = row.text(c.MATERIAL)
    if not name:
        return None
    return Material(
        name=name,
        price=parse_float_safe(row[c.PRICE]),
        yield_pct=parse_float_safe(row[c.YIELD]),
        fem=parse_float_safe(row[c.FEM]),
    )


def to_composition_record(row: SheetRow) -> CompositionRecord:
    """Composition Response row -> CompositionRecord."""
    c = Column.COMPOSITION
    return CompositionRecord(
        row_index=row.row_index,
        composition_no=row.text(c.COMPOSITION_NO),
        timestamp=display_timestamp(row[c.DATE]) or None,
        heat_no=_text_or_none(row, c.HEAT_NO),
        product_name=_text_or_none(row, c.PRODUCT_NAME),
        costing=_text_or_none(row, c.COSTING),
        manufacturing_cost=_text_or_none(row, c.MANUFACTURING_COST),
        interest_days=_text_or_none(row, c.INTEREST_DAYS),
        interest_cost=_text_or_none(row, c.INTEREST_COST),
        transporting=_text_or_none(row, c.TRANSPORTING),
        selling_price=_text_or_none(row, c.SELLING_PRICE),
        variable_cost=_text_or_none(row, c.VARIABLE_COST),
        gp_percentage=_text_or_none(row, c.GP_PERCENTAGE),
        yield_total=_text_or_none(row, c.YIELD_TOTAL),
        fem_total=_text_or_none(row, c.FEM_TOTAL),
        materials=[row.text(c.FIRST_MATERIAL + i) for i in range(MAX_MATERIALS)],
        quantities=[row.text(c.FIRST_PERCENT + i) for i in range(MAX_MATERIALS)],
    )


def to_delegation_task(row: SheetRow) -> DelegationTask:
    """DELEGATION row -> DelegationTask."""
    c = Column.DELEGATION
    return DelegationTask(
        row_index=row.row_index,
        task_id=row.text(c.TASK_ID),
        department=_text_or_none(row, c.DEPARTMENT),
        given_by=_text_or_none(row, c.GIVEN_BY),
        doer=_text_or_none(row, c.DOER),
        title=_text_or_none(row, c.TITLE),
        description=_text_or_none(row, c.DESCRIPTION),
        due_date=display_date(row[c.DUE_DATE]) or None,
        frequency=_text_or_none(row, c.FREQUENCY),
        reminders=_text_or_none(row, c.REMINDERS),
        require_attachment=row.text(c.REQUIRE_ATTACHMENT).upper() == ATTACHMENT_REQUIRED,
        planned=display_date(row[c.PLANNED]) or None,
        actual=display_date(row[c.ACTUAL]) or None,
    )


def to_delegation_history(row: SheetRow) -> DelegationHistoryRecord:
    """DELEGATION DONE row -> DelegationHistoryRecord."""
    c = Column.DELEGATION_DONE
    return DelegationHistoryRecord(
        row_index=row.row_index,
        completed_on=display_date(row[c.COMPLETED_ON]) or None,
        task_id=_text_or_none(row, c.TASK_ID),
        status=_text_or_none(row, c.STATUS),
        next_target_date=display_date(row[c.NEXT_TARGET_DATE]) or None,
        remarks=_text_or_none(row, c.REMARKS),
        image_url=_text_or_none(row, c.IMAGE_URL),
    )


def to_admin_data_record(row: SheetRow) -> AdminDataRecord:
    """SALES / WAREHOUSE row -> AdminDataRecord."""
    c = Column.ADMIN_DATA
    cells = [
        display_date(row[i]) if parse_gviz_datetime(row[i]) else row.text(i)
        for i in range(c.FIRST_VISIBLE, c.LAST_VISIBLE + 1)
    ]
    return AdminDataRecord(
        row_index=row.row_index,
        assigned_to=_text_or_none(row, c.ASSIGNED_TO),
        date=display_date(row[c.DATE]) or None,
        planned=display_date(row[c.PLANNED]) or None,
        require_attachment=row.text(c.REQUIRE_ATTACHMENT).upper() == ATTACHMENT_REQUIRED,
        cells=cells,
    )


# ============== Write Side ==============

def planning_row(request: PlanningRequest, timestamp: Optional[datetime] = None) -> List[Any]:
    """
    PRODUCTION row for a new plan: A..G then ten (size, qty) pairs in H..AA.
    """
    size_cells: List[Any] = []
    for i in range(MAX_SIZES):
        if i < len(request.sizes):
            size_cells.extend([request.sizes[i].size, request.sizes[i].quantity or ""])
        else:
            size_cells.extend(["", ""])

    return [
        format_sheet_timestamp(timestamp),
        request.heat_no,
        request.person_name,
        request.brand_name,
        request.supervisor_name or "",
        display_date(request.date_of_production),
        request.remarks or "",
        *size_cells,
    ]


def production_row(request: ProductionRequest, timestamp: Optional[datetime] = None) -> List[Any]:
    """Actual Production row: A..G, ten (size, piece, MT) triples, remarks at AL."""
    c = Column.ACTUAL_PRODUCTION
    row: List[Any] = [""] * c.WIDTH
    row[c.TIMESTAMP] = format_sheet_timestamp(timestamp)
    row[c.HEAT_NO] = request.heat_no
    row[c.BRAND] = request.brand_name
    row[c.TIME_RANGE] = request.time_range
    row[c.HOURS] = request.hours or ""
    row[c.BREAKDOWN_TIME] = request.break_down_time or ""
    row[c.BREAKDOWN_GAP] = request.break_down_time_gap or ""

    for i, item in enumerate(request.items[:MAX_PRODUCTION_ITEMS]):
        base = c.FIRST_ITEM + 3 * i
        row[base] = item.size
        row[base + 1] = item.piece_qty or ""
        row[base + 2] = item.mt_qty or ""

    row[c.REMARKS] = request.remarks or ""
    return row


def composition_row(
    composition_no: str,
    request: CompositionRequest,
    totals: CompositionTotals,
    materials: List[MaterialRow],
    today: Optional[date] = None,
) -> List[Any]:
    """
    Composition Response row (44 cells).

    ``materials`` must already exclude empty rows. A typed selling price is
    stored as entered; otherwise the computed one is stored.
    """
    c = Column.COMPOSITION
    row: List[Any] = [""] * c.WIDTH
    row[c.COMPOSITION_NO] = composition_no
    row[c.DATE] = format_sheet_date(today or date.today())
    row[c.HEAT_NO] = request.heat_no or ""
    row[c.PRODUCT_NAME] = request.product_name or ""
    row[c.COSTING] = totals.price2_total
    row[c.MANUFACTURING_COST] = request.manufacturing_cost
    row[c.INTEREST_DAYS] = request.interest_days
    row[c.INTEREST_COST] = totals.interest_amount
    row[c.TRANSPORTING] = request.transporting
    row[c.SELLING_PRICE] = request.selling_price if not is_blank(request.selling_price) else totals.selling_price
    row[c.VARIABLE_COST] = totals.variable_cost
    row[c.GP_PERCENTAGE] = f"{totals.gp_percentage}%"
    row[c.YIELD_TOTAL] = totals.yield_total
    row[c.FEM_TOTAL] = totals.fem_total

    for i, material in enumerate(materials[:MAX_MATERIALS]):
        row[c.FIRST_MATERIAL + i] = material.particulars
        row[c.FIRST_PERCENT + i] = material.percent
    return row


def delegation_done_row(item: DelegationCompletionItem, today: Optional[date] = None) -> List[Any]:
    """DELEGATION DONE row: ten blanks, then K..P."""
    c = Column.DELEGATION_DONE
    row: List[Any] = [""] * c.LEADING_BLANKS
    row.extend([
        format_sheet_date(today or date.today()),
        item.task_id,
        item.status.value,
        display_date(item.next_target_date) if item.next_target_date else "",
        item.remarks or "",
        item.image_url or "",
    ])
    return row


def task_row(task: TaskOccurrence, timestamp: Optional[datetime] = None) -> List[Any]:
    """Delegation/Checklist row for one generated task."""
    return [
        format_sheet_timestamp(timestamp),
        task.task_id,
        task.department,
        task.given_by,
        task.doer,
        task.title,
        task.description,
        task.due_date,
        task.frequency.value,
        "Yes" if task.enable_reminders else "No",
        "Yes" if task.require_attachment else "No",
    ]


def sales_data_update(row_index: int, status: str, today: Optional[date] = None) -> Dict[str, Any]:
    """Entry of the ``updateSalesData`` payload marking a source row as handled."""
    return {
        "rowIndex": row_index,
        "todayDate": format_sheet_date(today or date.today()),
        "additionalInfo": f"Completed: {status}",
    }


def data_task_update(item: DataTaskUpdate, file_url: Optional[str] = None, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Entry of the ``updateTasks`` payload closing a DATA row.

    Column M gets today's date as YYYY-MM-DD and column P the uploaded
    file URL, on top of any edits the doer made to B..K.
    """
    updates = dict(item.updates)
    updates[DATA_COMPLETED_COLUMN] = (today or date.today()).isoformat()
    if file_url:
        updates[DATA_FILE_URL_COLUMN] = file_url
    return {"rowIndex": item.row_index, "updates": updates}


def admin_data_update(item: AdminDataItem, folder_id: Optional[str], today: Optional[date] = None) -> Dict[str, Any]:
    """Entry of the ``updateSalesData`` payload for a SALES / WAREHOUSE row."""
    return {
        "taskId": str(item.row_index),
        "rowIndex": item.row_index,
        "additionalInfo": item.additional_info or "",
        "imageData": item.image_data,
        "folderId": folder_id or "",
        "todayDate": format_sheet_date(today or date.today()),
    }
