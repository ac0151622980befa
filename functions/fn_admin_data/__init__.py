"""
fn_admin_data: Sales / Warehouse Follow-up Azure Function
=========================================================

Pending follow-ups on the SALES and WAREHOUSE sheets.

?sheet=sales (default) or ?sheet=warehouse selects the list.

GET
---
Rows with a planned date (L) and no completion (M) that are due today,
tomorrow or earlier; rows whose L cannot be read as a date are kept.
Non-admin users only see rows assigned to them (column E, case-insensitive).
SALES rows are ordered by column H, oldest first, unreadable dates last.

POST
----
{
    "items": [
        {"row_index": 5, "additional_info": "Paid in cash", "image_data": "<base64>"}
    ]
}

Rows whose column K is YES need ``image_data``. All items go to the proxy in
one ``updateSalesData`` call, which stamps today's date and uploads images
into the Drive folder.

Response Codes
--------------
200 OK          - "OK"
400 Bad Request - "ERROR": validation failed / unknown sheet / missing required images
401             - "UNAUTHENTICATED"
502 Bad Gateway - "UPSTREAM_ERROR": sheet read failed or the proxy did not confirm the write
"""

import logging
import json
import azure.functions as func
from datetime import date, timedelta
from typing import Optional

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    # Logical Names
    SheetName,
    Column,
    ADMIN_DATA_SENTINELS,

    # Models
    AdminDataRequest,

    # Clients
    GvizError,
    get_gviz_client,
    get_script_client,

    # Filtering and mapping
    FilterMode,
    filter_rows,
    to_admin_data_record,
    admin_data_update,

    # Auth / helpers
    session_from_headers,
    generate_trace_id,
    parse_sheet_date,
)
from tmt_shared.sheet_config import ATTACHMENT_REQUIRED


logger = logging.getLogger(__name__)

SHEETS = {
    "sales": SheetName.SALES,
    "warehouse": SheetName.WAREHOUSE,
}


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Route GET (pending follow-ups) and POST (mark handled)."""
    trace_id = generate_trace_id()

    user = session_from_headers(req.headers)
    if user is None:
        return _response("UNAUTHENTICATED", trace_id, 401, message="Login required")

    key = (req.params.get("sheet") or "sales").lower()
    sheet = SHEETS.get(key)
    if sheet is None:
        return _response("ERROR", trace_id, 400, message=f"Unknown sheet: {key}")

    try:
        if req.method == "POST":
            return _submit(req, user, sheet, trace_id)

        rows = get_gviz_client().fetch_rows(sheet.value, skip_header=True)
        records = [
            to_admin_data_record(row).model_dump(mode="json")
            for row in pending_follow_ups(rows, user, sheet)
        ]

        logger.info(f"[{trace_id}] {sheet.value} follow-ups for {user.username}: {len(records)}")
        return _response("OK", trace_id, 200, sheet=key, count=len(records), records=records)

    except GvizError as e:
        logger.error(f"[{trace_id}] Sheet read failed: {e}")
        return _response("UPSTREAM_ERROR", trace_id, 502, message=f"Could not read sheet: {str(e)}")
    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error in {sheet.value} follow-ups: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def pending_follow_ups(rows, user, sheet: SheetName, today: Optional[date] = None):
    """Pending rows for ``user`` due by tomorrow; SALES ordered by column H."""
    c = Column.ADMIN_DATA
    cutoff = (today or date.today()) + timedelta(days=1)

    due = []
    for row in filter_rows(rows, user, *ADMIN_DATA_SENTINELS, mode=FilterMode.PENDING):
        planned = parse_sheet_date(row[c.PLANNED])
        if planned is None or planned <= cutoff:
            due.append(row)

    if sheet == SheetName.SALES:
        def by_date(row):
            d = parse_sheet_date(row[c.DATE])
            return (d is None, d or date.min)
        due.sort(key=by_date)
    return due


def _submit(req: func.HttpRequest, user, sheet: SheetName, trace_id: str) -> func.HttpResponse:
    try:
        request = AdminDataRequest(**req.get_json())
    except (ValueError, TypeError) as e:
        logger.error(f"[{trace_id}] Request validation failed: {e}")
        return _response("ERROR", trace_id, 400, message=f"Invalid request: {str(e)}")

    rows = get_gviz_client().fetch_rows(sheet.value, skip_header=True)
    requires_attachment = {
        row.row_index: row.text(Column.ADMIN_DATA.REQUIRE_ATTACHMENT).upper() == ATTACHMENT_REQUIRED
        for row in rows
    }
    missing = [
        item.row_index for item in request.items
        if requires_attachment.get(item.row_index) and not item.image_data
    ]
    if missing:
        return _response(
            "ERROR", trace_id, 400,
            message=f"Please upload images for all required attachments. {len(missing)} item(s) are missing required images.",
            row_indexes=missing,
        )

    script = get_script_client()
    result = script.update_sales_data(
        sheet.value,
        [admin_data_update(item, script.config.drive_folder_id) for item in request.items],
        trace_id
    )
    if not result.success:
        return _response("UPSTREAM_ERROR", trace_id, 502, message=result.error_message)

    logger.info(f"[{trace_id}] {user.username} handled {len(request.items)} {sheet.value} row(s)")
    return _response(
        "OK", trace_id, 200,
        message=f"Successfully submitted {len(request.items)} item(s)",
        count=len(request.items),
    )


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )
