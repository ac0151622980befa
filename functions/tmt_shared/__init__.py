"""
Shared Library for Azure Functions
==================================

This module provides shared utilities, models, and clients for all Azure Functions
in the TMT Production Tracker.

Modules
-------
sheet_config
    Sheet names, column indices, and business constants
models
    Pydantic models for request/response validation
gviz_client
    Read client for the Google Sheets gviz export, with retry logic
apps_script
    Write client for the Apps Script proxy (fire-and-forget capable)
filters
    Pending/completed split and owner scoping
row_mapping
    Positional rows <-> typed records
costing
    Composition cost calculator
task_generator
    Working-day task generator
id_generator
    Sequence-based IDs (CN-001, TI-001)
auth
    Login sheet lookup and signed session tokens
dashboard
    TMT summary and delegation statistics
helpers
    Trace ids, safe parsing, date formatting

Quick Start
-----------
>>> from tmt_shared import (
...     get_gviz_client,
...     filter_rows,
...     generate_trace_id,
...     SheetName,
...     KITTING_SENTINELS,
... )
>>>
>>> client = get_gviz_client()
>>> trace_id = generate_trace_id()
>>> rows = client.fetch_rows(SheetName.PRODUCTION.value)
>>> pending = filter_rows(rows, user, *KITTING_SENTINELS)

Costing
-------
>>> from tmt_shared import MaterialRow, compute_composition
>>> totals = compute_composition(
...     [MaterialRow(particulars="Sponge", yield1=90, fem1=60, price1=1000, percent=50)],
...     manufacturing_cost=0, interest_days=30, transporting=0,
... )
>>> totals.price2_total
'500.00'
"""

# Sheet configuration
from .sheet_config import (
    SheetName,
    Column,
    KITTING_SENTINELS,
    PRODUCTION_SENTINELS,
    DELEGATION_SENTINELS,
    DATA_SENTINELS,
    ADMIN_DATA_SENTINELS,
    INTEREST_RATE,
    SELLING_PRICE_DIVISOR,
    MAX_SIZES,
    MAX_MATERIALS,
    TASK_BATCH_SIZE,
)

# Data models
from .models import (
    UserType,
    RecordStatus,
    Frequency,
    CompletionStatus,
    TaskStatus,
    UserSession,
    SizeQuantity,
    PlanningRecord,
    ProductionItem,
    ProductionRecord,
    Material,
    MaterialRow,
    CompositionTotals,
    CompositionRecord,
    DelegationTask,
    DelegationHistoryRecord,
    AdminDataRecord,
    TaskOccurrence,
    LoginRequest,
    PlanningRequest,
    ProductionRequest,
    CompositionRequest,
    DelegationCompletionItem,
    DelegationCompletionRequest,
    DataTaskUpdate,
    DataTaskUpdateRequest,
    AdminDataItem,
    AdminDataRequest,
    AssignTaskRequest,
)

# Read client and exceptions
from .gviz_client import (
    GvizClient,
    GvizClientConfig,
    SheetRow,
    get_gviz_client,
    reset_gviz_client,
    parse_gviz_payload,
    GvizError,
    GvizRateLimitError,
    GvizNotFoundError,
    GvizParseError,
)

# Write client
from .apps_script import (
    AppsScriptClient,
    ScriptClientConfig,
    ScriptAction,
    ScriptCallResult,
    get_script_client,
    reset_script_client,
)

# Filtering
from .filters import (
    FilterMode,
    is_empty,
    is_pending,
    is_completed,
    owner_matches,
    filter_rows,
    scope_to_owner,
    with_value,
)

# Row mapping
from .row_mapping import (
    to_planning_record,
    to_production_record,
    to_material,
    to_composition_record,
    to_delegation_task,
    to_delegation_history,
    to_admin_data_record,
    planning_row,
    production_row,
    composition_row,
    delegation_done_row,
    task_row,
    sales_data_update,
    data_task_update,
    admin_data_update,
)

# Calculators
from .costing import (
    apply_material,
    compute_material_row,
    compute_composition,
    selected_rows,
)

from .task_generator import (
    TaskGenerationResult,
    REQUIRED_FIELDS,
    generate_due_dates,
    generate_tasks,
)

# ID generation
from .id_generator import (
    next_composition_number,
    allocate_composition_number,
    format_task_id,
)

# Auth
from .auth import (
    SessionConfig,
    SessionConfigError,
    authenticate,
    issue_session_token,
    verify_session_token,
    session_from_headers,
)

# Dashboards
from .dashboard import (
    tmt_summary,
    task_statistics,
)

# Helpers
from .helpers import (
    generate_trace_id,
    parse_float_safe,
    parse_int_safe,
    format_fixed,
    format_sheet_date,
    format_sheet_timestamp,
    parse_sheet_date,
    display_date,
)


__all__ = [
    # Sheet config
    "SheetName",
    "Column",
    "KITTING_SENTINELS",
    "PRODUCTION_SENTINELS",
    "DELEGATION_SENTINELS",
    "DATA_SENTINELS",
    "ADMIN_DATA_SENTINELS",
    "INTEREST_RATE",
    "SELLING_PRICE_DIVISOR",
    "MAX_SIZES",
    "MAX_MATERIALS",
    "TASK_BATCH_SIZE",
    # Models
    "UserType",
    "RecordStatus",
    "Frequency",
    "CompletionStatus",
    "TaskStatus",
    "UserSession",
    "SizeQuantity",
    "PlanningRecord",
    "ProductionItem",
    "ProductionRecord",
    "Material",
    "MaterialRow",
    "CompositionTotals",
    "CompositionRecord",
    "DelegationTask",
    "DelegationHistoryRecord",
    "AdminDataRecord",
    "TaskOccurrence",
    "LoginRequest",
    "PlanningRequest",
    "ProductionRequest",
    "CompositionRequest",
    "DelegationCompletionItem",
    "DelegationCompletionRequest",
    "DataTaskUpdate",
    "DataTaskUpdateRequest",
    "AdminDataItem",
    "AdminDataRequest",
    "AssignTaskRequest",
    # Read client
    "GvizClient",
    "GvizClientConfig",
    "SheetRow",
    "get_gviz_client",
    "reset_gviz_client",
    "parse_gviz_payload",
    "GvizError",
    "GvizRateLimitError",
    "GvizNotFoundError",
    "GvizParseError",
    # Write client
    "AppsScriptClient",
    "ScriptClientConfig",
    "ScriptAction",
    "ScriptCallResult",
    "get_script_client",
    "reset_script_client",
    # Filters
    "FilterMode",
    "is_empty",
    "is_pending",
    "is_completed",
    "owner_matches",
    "filter_rows",
    "scope_to_owner",
    "with_value",
    # Row mapping
    "to_planning_record",
    "to_production_record",
    "to_material",
    "to_composition_record",
    "to_delegation_task",
    "to_delegation_history",
    "to_admin_data_record",
    "planning_row",
    "production_row",
    "composition_row",
    "delegation_done_row",
    "task_row",
    "sales_data_update",
    "data_task_update",
    "admin_data_update",
    # Calculators
    "apply_material",
    "compute_material_row",
    "compute_composition",
    "selected_rows",
    "TaskGenerationResult",
    "REQUIRED_FIELDS",
    "generate_due_dates",
    "generate_tasks",
    # IDs
    "next_composition_number",
    "allocate_composition_number",
    "format_task_id",
    # Auth
    "SessionConfig",
    "SessionConfigError",
    "authenticate",
    "issue_session_token",
    "verify_session_token",
    "session_from_headers",
    # Dashboards
    "tmt_summary",
    "task_statistics",
    # Helpers
    "generate_trace_id",
    "parse_float_safe",
    "parse_int_safe",
    "format_fixed",
    "format_sheet_date",
    "format_sheet_timestamp",
    "parse_sheet_date",
    "display_date",
]
