"""
fn_dashboard: Dashboard Azure Function
======================================

GET
---
?view=tmt     TMT summary over PRODUCTION (quantities, status counts,
              brand and size distribution, recent records)
?view=tasks   Delegation statistics over DELEGATION (counters, monthly
              chart, per-staff progress, task list)

Both views are scoped to the caller's own rows unless they are an admin.

Response Codes
--------------
200 OK          - "OK"
400 Bad Request - "ERROR": unknown view
401             - "UNAUTHENTICATED"
502 Bad Gateway - "UPSTREAM_ERROR": sheet read failed
"""

import logging
import json
import azure.functions as func

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    SheetName,
    GvizError,
    get_gviz_client,
    tmt_summary,
    task_statistics,
    session_from_headers,
    generate_trace_id,
)


logger = logging.getLogger(__name__)


def main(req: func.HttpRequest) -> func.HttpResponse:
    trace_id = generate_trace_id()

    user = session_from_headers(req.headers)
    if user is None:
        return _response("UNAUTHENTICATED", trace_id, 401, message="Login required")

    view = (req.params.get("view") or "tmt").lower()

    try:
        client = get_gviz_client()
        if view == "tmt":
            data = tmt_summary(client.fetch_rows(SheetName.PRODUCTION.value), user)
        elif view == "tasks":
            data = task_statistics(client.fetch_rows(SheetName.DELEGATION.value, skip_header=True), user)
        else:
            return _response("ERROR", trace_id, 400, message=f"Unknown view: {view}")

        logger.info(f"[{trace_id}] Dashboard view={view} for {user.username}")
        return _response("OK", trace_id, 200, view=view, user=user.to_public_dict(), data=data)

    except GvizError as e:
        logger.error(f"[{trace_id}] Sheet read failed: {e}")
        return _response("UPSTREAM_ERROR", trace_id, 502, message=f"Could not read sheet: {str(e)}")
    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error in dashboard: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )
