"""
fn_tmt_planning: TMT Planning Azure Function
============================================

Lists and creates planning rows on the ``PRODUCTION`` sheet.

GET
---
?view=all | pending | completed   (default: all)
?q=<text>                         optional search on heat no, person, size
?view=brands                      brand dropdown from the Drop-Down sheet

A planning row is ``completed`` once production has been recorded against
it (AJ and AK set) and ``pending`` while AJ is set and AK is empty. Non-admin
users only see rows whose brand (column D) is their username.

POST
----
{
    "heat_no": "H-101",
    "person_name": "Ramesh",
    "brand_name": "SUPER",
    "supervisor_name": "Anil",
    "date_of_production": "2024-06-01",
    "remarks": "",
    "sizes": [{"size": "8mm", "quantity": "12"}]
}

The row is appended fire-and-forget: an unreadable proxy response still
counts as saved.

Response Codes
--------------
200 OK          - "OK"
400 Bad Request - "ERROR": validation failed
401             - "UNAUTHENTICATED": missing, forged or expired session token
502 Bad Gateway - "UPSTREAM_ERROR": sheet read or write failed
"""

import logging
import json
import azure.functions as func
from typing import List

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    # Logical Names
    SheetName,
    Column,
    PRODUCTION_SENTINELS,

    # Models
    PlanningRequest,
    PlanningRecord,

    # Clients
    GvizError,
    get_gviz_client,
    get_script_client,

    # Filtering and mapping
    FilterMode,
    filter_rows,
    with_value,
    to_planning_record,
    planning_row,

    # Auth / helpers
    session_from_headers,
    generate_trace_id,
)


logger = logging.getLogger(__name__)

VIEWS = {
    "all": FilterMode.ALL,
    "pending": FilterMode.PENDING,
    "completed": FilterMode.COMPLETED,
}


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Route GET (list) and POST (create)."""
    trace_id = generate_trace_id()

    user = session_from_headers(req.headers)
    if user is None:
        return _response("UNAUTHENTICATED", trace_id, 401, message="Login required")

    try:
        if req.method == "POST":
            return _create_plan(req, user, trace_id)
        return _list_plans(req, user, trace_id)

    except GvizError as e:
        logger.error(f"[{trace_id}] Sheet read failed: {e}")
        return _response("UPSTREAM_ERROR", trace_id, 502, message=f"Could not read sheet: {str(e)}")
    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error in planning: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def _list_plans(req: func.HttpRequest, user, trace_id: str) -> func.HttpResponse:
    view = (req.params.get("view") or "all").lower()
    client = get_gviz_client()

    if view == "brands":
        brands = client.fetch_column_values(SheetName.DROP_DOWN.value, Column.DROP_DOWN.BRAND)
        return _response("OK", trace_id, 200, brands=list(dict.fromkeys(brands)))

    if view not in VIEWS:
        return _response("ERROR", trace_id, 400, message=f"Unknown view: {view}")

    rows = with_value(client.fetch_rows(SheetName.PRODUCTION.value), Column.PRODUCTION.HEAT_NO)
    rows = filter_rows(rows, user, *PRODUCTION_SENTINELS, mode=VIEWS[view])
    records = [to_planning_record(row) for row in rows]

    term = (req.params.get("q") or "").strip().lower()
    if term:
        records = [r for r in records if _matches(r, term)]

    logger.info(f"[{trace_id}] Planning view={view} user={user.username}: {len(records)} records")
    return _response(
        "OK", trace_id, 200,
        view=view,
        count=len(records),
        records=[r.model_dump(mode="json") for r in records],
    )


def _matches(record: PlanningRecord, term: str) -> bool:
    """Case-insensitive search over heat number, person and sizes."""
    haystack: List[str] = [record.heat_no, record.person_name or ""]
    haystack.extend(s.size for s in record.sizes)
    return any(term in value.lower() for value in haystack)


def _create_plan(req: func.HttpRequest, user, trace_id: str) -> func.HttpResponse:
    try:
        request = PlanningRequest(**req.get_json())
    except (ValueError, TypeError) as e:
        logger.error(f"[{trace_id}] Request validation failed: {e}")
        return _response("ERROR", trace_id, 400, message=f"Invalid request: {str(e)}")

    logger.info(f"[{trace_id}] Creating plan {request.heat_no} ({len(request.sizes)} sizes) for {user.username}")

    result = get_script_client().insert_row(
        SheetName.PRODUCTION.value,
        planning_row(request),
        trace_id,
        fire_and_forget=True
    )
    if not result.success:
        return _response("UPSTREAM_ERROR", trace_id, 502, message=result.error_message)

    return _response(
        "OK", trace_id, 200,
        message="Production plan saved",
        heat_no=request.heat_no,
        assumed=result.assumed,
    )


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )
