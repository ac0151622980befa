"""
fn_delegation: Delegation Azure Function
========================================

Doer-facing task list and completion.

GET
---
?view=pending   DELEGATION rows with a planned date (L) and no actual (M).
                Each task carries ``extension_count``: how many times its id
                already appears in DELEGATION DONE.
?view=history   DELEGATION DONE rows

Non-admin users only see tasks where they are the doer (column E).

POST
----
{
    "items": [
        {
            "task_id": "TI-042",
            "row_index": 17,
            "status": "Done",              // or "Extend"
            "next_target_date": null,      // required for Extend
            "remarks": "",
            "image_data": "<base64>",      // required when column K is YES
            "file_name": "receipt.jpg"
        }
    ]
}

Per item:
1. Append a DELEGATION DONE row
2. Upload the image (if any) against the new row
3. Mark the DELEGATION row handled (``updateSalesData``)

Response Codes
--------------
200 OK          - "OK"
207             - "PARTIAL": some items were written, some failed
400 Bad Request - "ERROR": validation failed (missing date / attachment)
401             - "UNAUTHENTICATED"
502 Bad Gateway - "UPSTREAM_ERROR": sheet read failed, or no item was written
"""

import logging
import json
import time
import azure.functions as func
from collections import Counter
from typing import Any, Dict

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    # Logical Names
    SheetName,
    Column,
    DELEGATION_SENTINELS,

    # Models
    DelegationCompletionRequest,
    DelegationCompletionItem,

    # Clients
    GvizError,
    get_gviz_client,
    get_script_client,
    AppsScriptClient,

    # Filtering and mapping
    FilterMode,
    filter_rows,
    with_value,
    to_delegation_task,
    to_delegation_history,
    delegation_done_row,
    sales_data_update,

    # Auth / helpers
    session_from_headers,
    generate_trace_id,
)
from tmt_shared.sheet_config import ATTACHMENT_REQUIRED


logger = logging.getLogger(__name__)


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Route GET (pending / history) and POST (complete tasks)."""
    trace_id = generate_trace_id()

    user = session_from_headers(req.headers)
    if user is None:
        return _response("UNAUTHENTICATED", trace_id, 401, message="Login required")

    try:
        if req.method == "POST":
            return _complete_tasks(req, user, trace_id)

        view = (req.params.get("view") or "pending").lower()
        client = get_gviz_client()

        if view == "pending":
            rows = client.fetch_rows(SheetName.DELEGATION.value, skip_header=True)
            counts = _extension_counts(client)
            records = []
            for row in filter_rows(rows, user, *DELEGATION_SENTINELS, mode=FilterMode.PENDING):
                task = to_delegation_task(row).model_dump(mode="json")
                task["extension_count"] = counts.get(task["task_id"], 0)
                records.append(task)
        elif view == "history":
            rows = client.fetch_rows(SheetName.DELEGATION_DONE.value, skip_header=True)
            records = [
                to_delegation_history(row).model_dump(mode="json")
                for row in with_value(rows, Column.DELEGATION_DONE.TASK_ID)
            ]
        else:
            return _response("ERROR", trace_id, 400, message=f"Unknown view: {view}")

        logger.info(f"[{trace_id}] Delegation view={view} user={user.username}: {len(records)} records")
        return _response("OK", trace_id, 200, view=view, count=len(records), records=records)

    except GvizError as e:
        logger.error(f"[{trace_id}] Sheet read failed: {e}")
        return _response("UPSTREAM_ERROR", trace_id, 502, message=f"Could not read sheet: {str(e)}")
    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error in delegation: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def _extension_counts(client) -> Dict[str, int]:
    """Occurrences of each task id in DELEGATION DONE."""
    ids = client.fetch_column_values(
        SheetName.DELEGATION_DONE.value,
        Column.DELEGATION_DONE.TASK_ID,
        skip_header=True
    )
    return dict(Counter(ids))


def _complete_tasks(req: func.HttpRequest, user, trace_id: str) -> func.HttpResponse:
    try:
        request = DelegationCompletionRequest(**req.get_json())
    except (ValueError, TypeError) as e:
        logger.error(f"[{trace_id}] Request validation failed: {e}")
        return _response("ERROR", trace_id, 400, message=f"Invalid request: {str(e)}")

    # Attachment requirement lives in column K of the source row
    rows = get_gviz_client().fetch_rows(SheetName.DELEGATION.value, skip_header=True)
    requires_attachment = {
        row.row_index: row.text(Column.DELEGATION.REQUIRE_ATTACHMENT).upper() == ATTACHMENT_REQUIRED
        for row in rows
    }
    missing = [
        item.task_id for item in request.items
        if requires_attachment.get(item.row_index) and not (item.image_data or item.image_url)
    ]
    if missing:
        return _response(
            "ERROR", trace_id, 400,
            message=f"Please upload images for all required attachments. {len(missing)} item(s) are missing required images.",
            task_ids=missing,
        )

    script = get_script_client()
    results = [_complete_one(script, item, trace_id) for item in request.items]
    succeeded = [r for r in results if r["success"]]

    logger.info(f"[{trace_id}] {user.username} completed {len(succeeded)}/{len(results)} tasks")

    if len(succeeded) == len(results):
        return _response(
            "OK", trace_id, 200,
            message=f"Successfully processed {len(results)} task(s)",
            results=results,
        )
    if succeeded:
        return _response("PARTIAL", trace_id, 207, message="Some tasks could not be saved", results=results)
    return _response("UPSTREAM_ERROR", trace_id, 502, message="No task could be saved", results=results)


def _complete_one(script: AppsScriptClient, item: DelegationCompletionItem, trace_id: str) -> Dict[str, Any]:
    outcome: Dict[str, Any] = {"task_id": item.task_id, "success": False, "image_uploaded": False}

    insert = script.insert_row(SheetName.DELEGATION_DONE.value, delegation_done_row(item), trace_id)
    if not insert.success:
        outcome["error"] = insert.error_message
        return outcome

    if item.image_data:
        file_name = item.file_name or f"Task_{item.task_id}_{int(time.time() * 1000)}.jpg"
        new_row = (insert.response_body or {}).get("rowIndex")
        upload = script.upload_image(item.image_data, file_name, new_row, trace_id)
        outcome["image_uploaded"] = upload.success
        if upload.success:
            outcome["image_url"] = (upload.response_body or {}).get("fileUrl")
        else:
            logger.warning(f"[{trace_id}] Image upload failed for {item.task_id}: {upload.error_message}")

    mark = script.update_sales_data(
        SheetName.DELEGATION.value,
        [sales_data_update(item.row_index, item.status.value)],
        trace_id
    )
    if not mark.success:
        outcome["error"] = f"Saved to history but source row not updated: {mark.error_message}"
        return outcome

    outcome["success"] = True
    return outcome


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )
