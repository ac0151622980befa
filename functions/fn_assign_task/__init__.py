"""
fn_assign_task: Task Assignment Azure Function
==============================================

Expands a delegation request into dated task occurrences over a two-year
horizon, landing every occurrence on a working day.

GET
---
Master data for the form (``master`` sheet: A departments, B given by,
C doers) and the last task id of each target sheet.

POST
----
?action=preview   Generate occurrences only
?action=assign    Generate and append them (batches of 20)

{
    "date": "01/06/2024",
    "department": "Accounts",
    "given_by": "Admin",
    "doer": "Rahul",
    "title": "GST filing",
    "description": "",
    "frequency": "monthly",
    "enable_reminders": true,
    "require_attachment": false
}

One-time tasks go to DELEGATION; recurring ones go to Checklist. Task ids
continue from that sheet's ``getLastTaskId``.

Response Codes
--------------
200 OK          - "OK"
400 Bad Request - "ERROR": invalid body; "MISSING_FIELDS": required fields empty
401             - "UNAUTHENTICATED"
403 Forbidden   - "FORBIDDEN": only the full admin may assign tasks
502 Bad Gateway - "UPSTREAM_ERROR": read failed or a batch was rejected
"""

import logging
import json
import azure.functions as func
from typing import Any, Dict, List

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    # Logical Names
    SheetName,
    Column,

    # Models
    AssignTaskRequest,
    Frequency,

    # Clients
    GvizError,
    get_gviz_client,
    get_script_client,

    # Generator and mapping
    REQUIRED_FIELDS,
    generate_tasks,
    task_row,

    # Auth / helpers
    session_from_headers,
    generate_trace_id,
)


logger = logging.getLogger(__name__)

ASSIGN_REQUIRED_FIELDS = REQUIRED_FIELDS + ("department", "given_by")


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Route GET (form data) and POST (preview / assign)."""
    trace_id = generate_trace_id()

    user = session_from_headers(req.headers)
    if user is None:
        return _response("UNAUTHENTICATED", trace_id, 401, message="Login required")

    try:
        if req.method == "POST":
            return _post(req, user, trace_id)
        return _form_data(trace_id)

    except GvizError as e:
        logger.error(f"[{trace_id}] Sheet read failed: {e}")
        return _response("UPSTREAM_ERROR", trace_id, 502, message=f"Could not read sheet: {str(e)}")
    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error in task assignment: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def target_sheet(frequency: Frequency) -> str:
    """DELEGATION for one-time tasks, Checklist for recurring ones."""
    if frequency == Frequency.ONE_TIME:
        return SheetName.DELEGATION.value
    return SheetName.CHECKLIST.value


def _form_data(trace_id: str) -> func.HttpResponse:
    client = get_gviz_client()
    script = get_script_client()
    c = Column.MASTER

    master = {
        "departments": client.fetch_column_values(SheetName.MASTER.value, c.DEPARTMENT),
        "given_by": client.fetch_column_values(SheetName.MASTER.value, c.GIVEN_BY),
        "doers": client.fetch_column_values(SheetName.MASTER.value, c.DOER),
    }
    last_task_ids = {
        sheet: script.get_last_task_id(sheet, trace_id)
        for sheet in (SheetName.DELEGATION.value, SheetName.CHECKLIST.value)
    }
    return _response(
        "OK", trace_id, 200,
        master={k: list(dict.fromkeys(v)) for k, v in master.items()},
        last_task_ids=last_task_ids,
        frequencies=[f.value for f in Frequency],
    )


def _post(req: func.HttpRequest, user, trace_id: str) -> func.HttpResponse:
    action = (req.params.get("action") or "preview").lower()
    if action not in ("preview", "assign"):
        return _response("ERROR", trace_id, 400, message=f"Unknown action: {action}")

    if not user.is_full_admin:
        logger.warning(f"[{trace_id}] {user.username} is not allowed to assign tasks")
        return _response("FORBIDDEN", trace_id, 403, message="Only the full admin can assign tasks")

    try:
        request = AssignTaskRequest(**req.get_json())
    except (ValueError, TypeError) as e:
        logger.error(f"[{trace_id}] Request validation failed: {e}")
        return _response("ERROR", trace_id, 400, message=f"Invalid request: {str(e)}")

    # Required fields are checked before any sheet read
    missing = [name for name in ASSIGN_REQUIRED_FIELDS if not getattr(request, name)]
    if missing:
        return _response(
            "MISSING_FIELDS", trace_id, 400,
            message="Please fill in all required fields.",
            missing_fields=missing,
        )

    sheet_name = target_sheet(request.frequency)
    working_days = get_gviz_client().fetch_column_values(
        SheetName.WORKING_DAYS.value,
        Column.WORKING_DAYS.DATE
    )
    last_task_id = get_script_client().get_last_task_id(sheet_name, trace_id)

    result = generate_tasks(
        request,
        working_days,
        last_task_id=last_task_id,
        required_fields=ASSIGN_REQUIRED_FIELDS,
    )
    if not result.valid:
        return _response(
            "MISSING_FIELDS", trace_id, 400,
            message=result.error_message,
            missing_fields=result.missing_fields,
        )

    logger.info(
        f"[{trace_id}] {action}: {len(result.tasks)} {request.frequency.value} tasks "
        f"for {request.doer} -> '{sheet_name}'"
    )

    if action == "preview":
        return _response("OK", trace_id, 200, sheet_name=sheet_name, **result.to_dict())

    rows: List[List[Any]] = [task_row(task) for task in result.tasks]
    write = get_script_client().insert_rows(sheet_name, rows, trace_id)
    summary: Dict[str, Any] = {
        "sheet_name": sheet_name,
        "generated": len(rows),
        "rows_written": write.rows_written,
        "last_task_id": result.tasks[-1].task_id if result.tasks else None,
    }
    if not write.success:
        return _response(
            "UPSTREAM_ERROR", trace_id, 502,
            message=f"Saved {write.rows_written} of {len(rows)} tasks: {write.error_message}",
            **summary
        )

    return _response(
        "OK", trace_id, 200,
        message=f"Successfully assigned {len(rows)} tasks",
        tasks=[t.model_dump(mode="json") for t in result.tasks],
        **summary
    )


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )
