"""
fn_full_kitting: Full Kitting (Composition Costing) Azure Function
==================================================================

Costing worksheet that mixes raw materials into a composition and derives a
selling price and gross margin.

GET
---
?view=pending     PRODUCTION rows with kitting started (AG) and not done (AH)
?view=history     Composition Response rows; non-admins see their product (D)
?view=materials   KYC of stock master (name, price, yield, fem)

POST
----
?action=compute   Run the calculator only, nothing is written
?action=submit    Allocate the next CN-NNN, compute and append the row

yield1, fem1 and price1 of every selected row are re-read from the KYC of
stock master; a material missing from the master is rejected.

{
    "heat_no": "H-101",
    "product_name": "SUPER",
    "rows": [
        {"particulars": "Sponge", "yield1": 90, "fem1": 60, "price1": 1000, "percent": 50}
    ],
    "manufacturing_cost": 500,
    "interest_days": 30,
    "transporting": 100,
    "selling_price": ""          // optional override
}

Response Codes
--------------
200 OK          - "OK"
400 Bad Request - "ERROR": validation failed / unknown action or material
401             - "UNAUTHENTICATED"
502 Bad Gateway - "UPSTREAM_ERROR": sheet read failed or the proxy did not confirm the write
"""

import logging
import json
import azure.functions as func

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    # Logical Names
    SheetName,
    Column,
    KITTING_SENTINELS,

    # Models
    CompositionRequest,

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
    to_composition_record,
    to_material,
    composition_row,

    # Calculators
    compute_composition,
    selected_rows,
    apply_material,
    allocate_composition_number,

    # Auth / helpers
    session_from_headers,
    generate_trace_id,
)


logger = logging.getLogger(__name__)


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Route GET views and POST actions."""
    trace_id = generate_trace_id()

    user = session_from_headers(req.headers)
    if user is None:
        return _response("UNAUTHENTICATED", trace_id, 401, message="Login required")

    try:
        if req.method == "POST":
            return _post(req, user, trace_id)
        return _get(req, user, trace_id)

    except GvizError as e:
        logger.error(f"[{trace_id}] Sheet read failed: {e}")
        return _response("UPSTREAM_ERROR", trace_id, 502, message=f"Could not read sheet: {str(e)}")
    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error in full kitting: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def _get(req: func.HttpRequest, user, trace_id: str) -> func.HttpResponse:
    view = (req.params.get("view") or "pending").lower()
    client = get_gviz_client()

    if view == "pending":
        rows = with_value(client.fetch_rows(SheetName.PRODUCTION.value), Column.PRODUCTION.HEAT_NO)
        records = [
            to_planning_record(row).model_dump(mode="json")
            for row in filter_rows(rows, user, *KITTING_SENTINELS, mode=FilterMode.PENDING)
        ]
    elif view == "history":
        c = Column.COMPOSITION
        rows = with_value(client.fetch_rows(SheetName.COMPOSITION.value), c.COMPOSITION_NO)
        records = [
            to_composition_record(row).model_dump(mode="json")
            for row in scope_to_owner(rows, user, c.PRODUCT_NAME)
        ]
    elif view == "materials":
        rows = client.fetch_rows(SheetName.MATERIALS_MASTER.value)
        materials = [m for m in (to_material(row) for row in rows) if m is not None]
        records = [m.model_dump(mode="json") for m in materials]
    else:
        return _response("ERROR", trace_id, 400, message=f"Unknown view: {view}")

    logger.info(f"[{trace_id}] Kitting view={view} user={user.username}: {len(records)} records")
    return _response("OK", trace_id, 200, view=view, count=len(records), records=records)


def _post(req: func.HttpRequest, user, trace_id: str) -> func.HttpResponse:
    action = (req.params.get("action") or "compute").lower()
    if action not in ("compute", "submit"):
        return _response("ERROR", trace_id, 400, message=f"Unknown action: {action}")

    try:
        request = CompositionRequest(**req.get_json())
    except (ValueError, TypeError) as e:
        logger.error(f"[{trace_id}] Request validation failed: {e}")
        return _response("ERROR", trace_id, 400, message=f"Invalid request: {str(e)}")

    rows = selected_rows(request.rows)
    if rows:
        materials = _materials_by_name(get_gviz_client())
        unknown = [r.particulars.strip() for r in rows if r.particulars.strip() not in materials]
        if unknown:
            return _response("ERROR", trace_id, 400, message=f"Unknown material: {', '.join(unknown)}")
        rows = [apply_material(r, materials[r.particulars.strip()]) for r in rows]

    totals = compute_composition(
        rows,
        manufacturing_cost=request.manufacturing_cost,
        interest_days=request.interest_days,
        transporting=request.transporting,
        selling_price_override=request.selling_price,
    )
    computed = {
        "rows": [r.model_dump(mode="json") for r in rows],
        "totals": totals.model_dump(mode="json"),
    }

    if action == "compute":
        return _response("OK", trace_id, 200, **computed)

    if not rows:
        return _response("ERROR", trace_id, 400, message="Select at least one material")

    composition_no = allocate_composition_number(get_gviz_client(), trace_id)
    logger.info(
        f"[{trace_id}] Submitting {composition_no} for heat {request.heat_no} "
        f"({len(rows)} materials) by {user.username}"
    )

    result = get_script_client().insert_row(
        SheetName.COMPOSITION.value,
        composition_row(composition_no, request, totals, rows),
        trace_id
    )
    if not result.success:
        return _response("UPSTREAM_ERROR", trace_id, 502, message=result.error_message)

    return _response(
        "OK", trace_id, 200,
        message="Composition saved",
        composition_no=composition_no,
        **computed
    )


def _materials_by_name(client) -> dict:
    """KYC of stock master keyed by material name."""
    rows = client.fetch_rows(SheetName.MATERIALS_MASTER.value)
    return {m.name: m for m in (to_material(row) for row in rows) if m is not None}


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )
