"""
fn_all_tasks: All Tasks (DATA sheet) Azure Function
===================================================

Doer-facing list of the DATA sheet, closed in one batch.

GET
---
DATA rows with a planned date (L) and no completion (M). Non-admin users
only see rows where they are the doer (column E).

POST
----
{
    "items": [
        {
            "task_id": "TI-042",
            "row_index": 17,
            "file_data": "<base64>",       // optional attachment
            "file_name": "proof.pdf",
            "updates": {"colH": "2024-06-10"}   // optional edits to B..K
        }
    ]
}

1. Upload each attached file (``uploadFile``) into the Drive folder; a failed
   upload is reported per item and does not stop the batch
2. One ``updateTasks`` call stamps column M with today (YYYY-MM-DD) and
   column P with the uploaded file URL

Response Codes
--------------
200 OK          - "OK"
400 Bad Request - "ERROR": validation failed
401             - "UNAUTHENTICATED"
502 Bad Gateway - "UPSTREAM_ERROR": sheet read failed or ``updateTasks`` was not confirmed
"""

import logging
import json
import azure.functions as func
from typing import Any, Dict

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    # Logical Names
    SheetName,
    DATA_SENTINELS,

    # Models
    DataTaskUpdateRequest,
    DataTaskUpdate,

    # Clients
    GvizError,
    get_gviz_client,
    get_script_client,
    AppsScriptClient,

    # Filtering and mapping
    FilterMode,
    filter_rows,
    to_delegation_task,
    data_task_update,

    # Auth / helpers
    session_from_headers,
    generate_trace_id,
)


logger = logging.getLogger(__name__)


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Route GET (pending DATA tasks) and POST (close tasks)."""
    trace_id = generate_trace_id()

    user = session_from_headers(req.headers)
    if user is None:
        return _response("UNAUTHENTICATED", trace_id, 401, message="Login required")

    try:
        if req.method == "POST":
            return _close_tasks(req, user, trace_id)

        rows = get_gviz_client().fetch_rows(SheetName.DATA.value, skip_header=True)
        records = [
            to_delegation_task(row).model_dump(mode="json")
            for row in filter_rows(rows, user, *DATA_SENTINELS, mode=FilterMode.PENDING)
        ]

        logger.info(f"[{trace_id}] All tasks for {user.username}: {len(records)} pending")
        return _response("OK", trace_id, 200, count=len(records), records=records)

    except GvizError as e:
        logger.error(f"[{trace_id}] Sheet read failed: {e}")
        return _response("UPSTREAM_ERROR", trace_id, 502, message=f"Could not read sheet: {str(e)}")
    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error in all tasks: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def _close_tasks(req: func.HttpRequest, user, trace_id: str) -> func.HttpResponse:
    try:
        request = DataTaskUpdateRequest(**req.get_json())
    except (ValueError, TypeError) as e:
        logger.error(f"[{trace_id}] Request validation failed: {e}")
        return _response("ERROR", trace_id, 400, message=f"Invalid request: {str(e)}")

    script = get_script_client()
    uploads = [_upload(script, item, trace_id) for item in request.items]

    tasks = [
        data_task_update(item, upload.get("file_url"))
        for item, upload in zip(request.items, uploads)
    ]
    result = script.update_tasks(SheetName.DATA.value, tasks, trace_id)
    if not result.success:
        return _response("UPSTREAM_ERROR", trace_id, 502, message=result.error_message, results=uploads)

    failed_uploads = [u["task_id"] for u in uploads if u.get("upload_failed")]
    logger.info(
        f"[{trace_id}] {user.username} closed {len(tasks)} DATA task(s), "
        f"{len(failed_uploads)} upload failure(s)"
    )

    message = f"Successfully updated {len(tasks)} task(s)"
    if failed_uploads:
        message += f"; {len(failed_uploads)} file(s) failed to upload"
    return _response("OK", trace_id, 200, message=message, results=uploads)


def _upload(script: AppsScriptClient, item: DataTaskUpdate, trace_id: str) -> Dict[str, Any]:
    outcome: Dict[str, Any] = {"task_id": item.task_id, "row_index": item.row_index}
    if not item.file_data:
        return outcome

    upload = script.upload_file(
        SheetName.DATA.value,
        item.task_id,
        item.file_name or f"Task_{item.task_id}",
        item.file_data,
        item.row_index,
        trace_id,
        folder_url=script.config.drive_folder_url,
    )
    file_url = (upload.response_body or {}).get("fileUrl") if upload.success else None
    if file_url:
        outcome["file_url"] = file_url
    else:
        outcome["upload_failed"] = True
        logger.warning(f"[{trace_id}] File upload failed for {item.task_id}: {upload.error_message}")
    return outcome


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )
