"""
fn_tmt_production: TMT Production Azure Function
================================================

Records actual production against planned heats.

GET
---
?view=pending   PRODUCTION rows with AJ set and AK empty (awaiting production)
?view=history   Actual Production rows that have a heat number

Non-admin users only see their own brand (PRODUCTION column D, Actual
Production column C).

POST
----
{
    "heat_no": "H-101",
    "brand_name": "SUPER",
    "time_range": "08:00-16:00",
    "hours": "8",
    "break_down_time": "",
    "break_down_time_gap": "",
    "items": [{"size": "8mm", "piece_qty": "120", "mt_qty": "1.2"}],
    "remarks": ""
}

Appends the Actual Production row, then stamps the same timestamp into
column AK of the PRODUCTION row with that heat number, which moves the plan
to completed. Both writes are fire-and-forget.

Response Codes
--------------
200 OK          - "OK"
400 Bad Request - "ERROR": validation failed (e.g. missing time range)
401             - "UNAUTHENTICATED"
502 Bad Gateway - "UPSTREAM_ERROR": sheet read or write failed
"""

import logging
import json
import azure.functions as func
from datetime import datetime

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    # Logical Names
    SheetName,
    Column,
    PRODUCTION_SENTINELS,

    # Models
    ProductionRequest,

    # Clients
    GvizError,
    get_gviz_client,
    get_script_client,

    # Filtering and mapping
    FilterMode,
    filter_rows,
    scope_to_owner,
    with_value,
    to_planning_record,
    to_production_record,
    production_row,

    # Auth / helpers
    session_from_headers,
    generate_trace_id,
    format_sheet_timestamp,
)


logger = logging.getLogger(__name__)


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Route GET (pending / history) and POST (record production)."""
    trace_id = generate_trace_id()

    user = session_from_headers(req.headers)
    if user is None:
        return _response("UNAUTHENTICATED", trace_id, 401, message="Login required")

    try:
        if req.method == "POST":
            return _record_production(req, user, trace_id)

        view = (req.params.get("view") or "pending").lower()
        client = get_gviz_client()

        if view == "pending":
            rows = with_value(client.fetch_rows(SheetName.PRODUCTION.value), Column.PRODUCTION.HEAT_NO)
            records = [
                to_planning_record(row).model_dump(mode="json")
                for row in filter_rows(rows, user, *PRODUCTION_SENTINELS, mode=FilterMode.PENDING)
            ]
        elif view == "history":
            c = Column.ACTUAL_PRODUCTION
            rows = with_value(client.fetch_rows(SheetName.ACTUAL_PRODUCTION.value), c.HEAT_NO)
            records = [
                to_production_record(row).model_dump(mode="json")
                for row in scope_to_owner(rows, user, c.BRAND)
            ]
        else:
            return _response("ERROR", trace_id, 400, message=f"Unknown view: {view}")

        logger.info(f"[{trace_id}] Production view={view} user={user.username}: {len(records)} records")
        return _response("OK", trace_id, 200, view=view, count=len(records), records=records)

    except GvizError as e:
        logger.error(f"[{trace_id}] Sheet read failed: {e}")
        return _response("UPSTREAM_ERROR", trace_id, 502, message=f"Could not read sheet: {str(e)}")
    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error in production: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def _record_production(req: func.HttpRequest, user, trace_id: str) -> func.HttpResponse:
    """
    Flow:
    1. Validate request
    2. Insert Actual Production row
    3. Stamp column AK on the matching PRODUCTION row
    """
    try:
        request = ProductionRequest(**req.get_json())
    except (ValueError, TypeError) as e:
        logger.error(f"[{trace_id}] Request validation failed: {e}")
        return _response("ERROR", trace_id, 400, message=f"Invalid request: {str(e)}")

    now = datetime.now()
    script = get_script_client()

    logger.info(f"[{trace_id}] Recording production for {request.heat_no} ({len(request.items)} items)")
    insert = script.insert_row(
        SheetName.ACTUAL_PRODUCTION.value,
        production_row(request, now),
        trace_id,
        fire_and_forget=True
    )
    if not insert.success:
        return _response("UPSTREAM_ERROR", trace_id, 502, message=insert.error_message)

    stamp = script.update_timestamp(
        SheetName.PRODUCTION.value,
        request.heat_no,
        format_sheet_timestamp(now),
        Column.PRODUCTION.PRODUCTION_DONE_LETTER,
        trace_id,
        fire_and_forget=True
    )
    if not stamp.success:
        # Production row exists but the plan was not closed
        logger.error(f"[{trace_id}] Could not close plan {request.heat_no}: {stamp.error_message}")
        return _response(
            "UPSTREAM_ERROR", trace_id, 502,
            message=f"Production saved but plan {request.heat_no} was not marked complete: {stamp.error_message}",
            production_saved=True,
        )

    return _response(
        "OK", trace_id, 200,
        message=f"Production data for {request.heat_no} has been submitted",
        heat_no=request.heat_no,
    )


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )
