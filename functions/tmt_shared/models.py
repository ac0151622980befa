"""
Shared Data Models for Azure Functions
======================================

This module defines all Pydantic models used for request/response validation
and data transfer across the TMT Production Tracker.

Design Principles
-----------------
- **Pydantic v2** for validation and serialization
- **Enums** for constrained values (user type, frequency, status)
- **One typed record per sheet**, populated from ``sheet_config.Column``
  indices by ``row_mapping`` at the read boundary
- **Strings for sheet-formatted values** (dates as DD/MM/YYYY, money as
  fixed-decimal strings) so what we write is what the sheet displays

Model Categories
----------------
Enumerations
    UserType, RecordStatus, Frequency, CompletionStatus, TaskStatus

Session
    UserSession

Entity Models
    PlanningRecord, ProductionRecord, MaterialRow, CompositionTotals,
    CompositionRecord, DelegationTask, AdminDataRecord, TaskOccurrence

Request Models
    LoginRequest, PlanningRequest, ProductionRequest, CompositionRequest,
    DelegationCompletionRequest, DataTaskUpdateRequest, AdminDataRequest,
    AssignTaskRequest

Usage Examples
--------------
Validating a request:
    >>> try:
    ...     request = PlanningRequest(**body)
    ... except ValidationError as e:
    ...     print(e.errors())

Serializing to JSON:
    >>> record.model_dump(mode="json")
"""

import math
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum

from .sheet_config import (
    FULL_ADMIN_USERNAME,
    ALL_DEPARTMENTS,
    MAX_SIZES,
    MAX_PRODUCTION_ITEMS,
    MAX_MATERIALS,
    DATA_EDITABLE_COLUMNS,
)


class UserType(str, Enum):
    """Login sheet user types (column C, compared lower-cased)."""
    ADMIN = "admin"
    USER = "user"


class RecordStatus(str, Enum):
    """Planning record status derived from the AJ/AK sentinels."""
    PENDING = "pending"
    COMPLETED = "completed"


class Frequency(str, Enum):
    """Delegation task recurrence."""
    ONE_TIME = "one-time"
    DAILY = "daily"
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    # Label-only variants; they step monthly
    END_OF_1ST_WEEK = "end-of-1st-week"
    END_OF_2ND_WEEK = "end-of-2nd-week"
    END_OF_3RD_WEEK = "end-of-3rd-week"
    END_OF_4TH_WEEK = "end-of-4th-week"
    END_OF_LAST_WEEK = "end-of-last-week"


class CompletionStatus(str, Enum):
    """Delegation completion outcome written to DELEGATION DONE column M."""
    DONE = "Done"
    EXTEND = "Extend"


class TaskStatus(str, Enum):
    """Admin dashboard task classification."""
    COMPLETED = "completed"
    OVERDUE = "overdue"
    PENDING = "pending"


# ============== Session ==============

class UserSession(BaseModel):
    """
    Authenticated identity passed explicitly to every operation.

    Built at login from the Login sheet, and from the signed session
    token on every subsequent call.
    """
    username: str
    display_name: Optional[str] = None
    user_type: UserType = UserType.USER

    @field_validator("user_type", mode="before")
    @classmethod
    def normalize_user_type(cls, v):
        if v is None or str(v).strip() == "":
            return UserType.USER
        v = str(v).strip().lower()
        return UserType.ADMIN if v == UserType.ADMIN.value else UserType.USER

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN

    @property
    def is_full_admin(self) -> bool:
        return self.is_admin and self.username.lower() == FULL_ADMIN_USERNAME

    @property
    def is_limited_admin(self) -> bool:
        return self.is_admin and not self.is_full_admin

    @property
    def department(self) -> str:
        """Admin-module scope: "all" for admins, otherwise the username."""
        return ALL_DEPARTMENTS if self.is_admin else self.username

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "display_name": self.display_name or self.username,
            "user_type": self.user_type.value,
            "is_admin": self.is_admin,
            "is_full_admin": self.is_full_admin,
            "is_limited_admin": self.is_limited_admin,
            "department": self.department,
        }


# ============== Entity Models ==============

class SizeQuantity(BaseModel):
    """One (size, quantity) pair of a planning row."""
    size: str
    quantity: Optional[str] = None


class PlanningRecord(BaseModel):
    """PRODUCTION sheet row."""
    row_index: int
    timestamp: Optional[str] = None
    heat_no: str
    person_name: Optional[str] = None
    brand_name: Optional[str] = None
    supervisor_name: Optional[str] = None
    date_of_production: Optional[str] = None
    remarks: Optional[str] = None
    sizes: List[SizeQuantity] = Field(default_factory=list)
    planning_qty: float = 0
    production_qty: float = 0
    pending_qty: float = 0
    status: RecordStatus = RecordStatus.PENDING
    synced_to_sheet: bool = True


class ProductionItem(BaseModel):
    """One (size, piece qty, MT qty) triple of an Actual Production row."""
    size: str
    piece_qty: Optional[str] = None
    mt_qty: Optional[str] = None


class ProductionRecord(BaseModel):
    """Actual Production sheet row."""
    row_index: int
    timestamp: Optional[str] = None
    heat_no: str
    brand_name: Optional[str] = None
    time_range: Optional[str] = None
    hours: Optional[str] = None
    break_down_time: Optional[str] = None
    break_down_time_gap: Optional[str] = None
    items: List[ProductionItem] = Field(default_factory=list)
    remarks: Optional[str] = None


class Material(BaseModel):
    """KYC of stock master row."""
    name: str
    price: float = 0
    yield_pct: float = 0
    fem: float = 0


class MaterialRow(BaseModel):
    """
    One composition line. ``yield1/fem1/price1`` come from the materials
    master; ``percent`` is user input; the ``*2`` fields are derived.
    """
    model_config = ConfigDict(allow_inf_nan=False)

    particulars: str = ""
    yield1: float = 0
    fem1: float = 0
    price1: float = 0
    percent: float = 0
    yield2: str = "0.0000"
    fem2: str = "0.0000"
    price2: str = "0.00"

    @field_validator("yield1", "fem1", "price1", "percent", mode="before")
    @classmethod
    def blank_as_zero(cls, v):
        if v is None or (isinstance(v, str) and v.strip() == ""):
            return 0
        return v

    @property
    def is_selected(self) -> bool:
        return bool(self.particulars and self.particulars.strip())


class CompositionTotals(BaseModel):
    """Calculator output; every figure is a fixed-decimal string."""
    percent_total: str
    yield_total: str
    fem_total: str
    price2_total: str
    interest_amount: str
    total_price: str
    selling_price: str
    variable_cost: str
    gp_percentage: str


class CompositionRecord(BaseModel):
    """Composition Response sheet row."""
    row_index: int
    composition_no: str
    timestamp: Optional[str] = None
    heat_no: Optional[str] = None
    product_name: Optional[str] = None
    costing: Optional[str] = None
    manufacturing_cost: Optional[str] = None
    interest_days: Optional[str] = None
    interest_cost: Optional[str] = None
    transporting: Optional[str] = None
    selling_price: Optional[str] = None
    variable_cost: Optional[str] = None
    gp_percentage: Optional[str] = None
    yield_total: Optional[str] = None
    fem_total: Optional[str] = None
    materials: List[str] = Field(default_factory=list)
    quantities: List[str] = Field(default_factory=list)


class DelegationTask(BaseModel):
    """DELEGATION sheet row."""
    row_index: int
    task_id: str
    department: Optional[str] = None
    given_by: Optional[str] = None
    doer: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    frequency: Optional[str] = None
    reminders: Optional[str] = None
    require_attachment: bool = False
    planned: Optional[str] = None
    actual: Optional[str] = None


class DelegationHistoryRecord(BaseModel):
    """DELEGATION DONE sheet row."""
    row_index: int
    completed_on: Optional[str] = None
    task_id: Optional[str] = None
    status: Optional[str] = None
    next_target_date: Optional[str] = None
    remarks: Optional[str] = None
    image_url: Optional[str] = None


class AdminDataRecord(BaseModel):
    """SALES / WAREHOUSE row awaiting follow-up."""
    row_index: int
    assigned_to: Optional[str] = None
    date: Optional[str] = None
    planned: Optional[str] = None
    require_attachment: bool = False
    cells: List[str] = Field(default_factory=list)  # B..K as displayed


class TaskOccurrence(BaseModel):
    """One generated delegation task."""
    task_id: str
    department: str
    given_by: str
    doer: str
    title: str
    description: str = ""
    due_date: str  # DD/MM/YYYY
    frequency: Frequency
    enable_reminders: bool = True
    require_attachment: bool = False


# ============== Request Models ==============

class LoginRequest(BaseModel):
    """Request payload for login."""
    username: str
    password: str


class PlanningRequest(BaseModel):
    """Request payload for a new planning row."""
    heat_no: str
    person_name: str
    brand_name: str
    supervisor_name: Optional[str] = ""
    date_of_production: str  # DD/MM/YYYY or YYYY-MM-DD
    remarks: Optional[str] = ""
    sizes: List[SizeQuantity] = Field(default_factory=list)

    @field_validator("sizes")
    @classmethod
    def require_sizes(cls, v):
        v = [s for s in v if s.size and s.size.strip()]
        if not v:
            raise ValueError("at least one size is required")
        if len(v) > MAX_SIZES:
            raise ValueError(f"at most {MAX_SIZES} sizes are allowed")
        return v


class ProductionRequest(BaseModel):
    """Request payload for recording actual production."""
    heat_no: str
    brand_name: str
    time_range: str
    hours: Optional[str] = ""
    break_down_time: Optional[str] = ""
    break_down_time_gap: Optional[str] = ""
    items: List[ProductionItem] = Field(default_factory=list)
    remarks: Optional[str] = ""

    @field_validator("time_range")
    @classmethod
    def require_time_range(cls, v):
        if not v or not v.strip():
            raise ValueError("time range is required")
        return v

    @field_validator("items")
    @classmethod
    def limit_items(cls, v):
        if len(v) > MAX_PRODUCTION_ITEMS:
            raise ValueError(f"at most {MAX_PRODUCTION_ITEMS} items are allowed")
        return v


class CompositionRequest(BaseModel):
    """Request payload for the kitting calculator and composition submit."""
    model_config = ConfigDict(allow_inf_nan=False)

    heat_no: Optional[str] = ""
    product_name: Optional[str] = ""
    rows: List[MaterialRow] = Field(default_factory=list)
    manufacturing_cost: float = 0
    interest_days: float = 0
    transporting: float = 0
    selling_price: Optional[str] = None

    @field_validator("manufacturing_cost", "interest_days", "transporting", mode="before")
    @classmethod
    def blank_as_zero(cls, v):
        if v is None or (isinstance(v, str) and v.strip() == ""):
            return 0
        return v

    @field_validator("selling_price", mode="before")
    @classmethod
    def blank_as_none(cls, v):
        if v is None or str(v).strip() == "":
            return None
        v = str(v).strip()
        try:
            price = float(v)
        except ValueError:
            raise ValueError(f"selling price must be a number, got '{v}'")
        if not math.isfinite(price):
            raise ValueError("selling price must be a finite number")
        return v

    @field_validator("rows")
    @classmethod
    def limit_rows(cls, v):
        if len(v) > MAX_MATERIALS:
            raise ValueError(f"at most {MAX_MATERIALS} materials are allowed")
        return v


class DelegationCompletionItem(BaseModel):
    """One task being closed or extended."""
    task_id: str
    row_index: int
    status: CompletionStatus
    next_target_date: Optional[str] = None
    remarks: Optional[str] = ""
    image_data: Optional[str] = None  # base64
    file_name: Optional[str] = None
    image_url: Optional[str] = None

    @model_validator(mode="after")
    def check_extension(self):
        if self.status == CompletionStatus.EXTEND and not (self.next_target_date or "").strip():
            raise ValueError(f"next target date is required to extend {self.task_id}")
        return self


class DelegationCompletionRequest(BaseModel):
    """Request payload for completing delegation tasks."""
    items: List[DelegationCompletionItem]

    @field_validator("items")
    @classmethod
    def require_items(cls, v):
        if not v:
            raise ValueError("select at least one task")
        return v

class DataTaskUpdate(BaseModel):
    """One DATA task being closed, with optional edits and attachment."""
    task_id: str
    row_index: int
    file_data: Optional[str] = None  # base64
    file_name: Optional[str] = None
    updates: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("updates")
    @classmethod
    def editable_columns_only(cls, v):
        unknown = sorted(k for k in v if k not in DATA_EDITABLE_COLUMNS)
        if unknown:
            raise ValueError(f"columns cannot be edited: {', '.join(unknown)}")
        return v


class DataTaskUpdateRequest(BaseModel):
    """Request payload for closing DATA tasks."""
    items: List[DataTaskUpdate]

    @field_validator("items")
    @classmethod
    def require_items(cls, v):
        if not v:
            raise ValueError("select at least one task")
        return v


class AdminDataItem(BaseModel):
    """One SALES / WAREHOUSE row being marked handled."""
    row_index: int
    additional_info: Optional[str] = ""
    image_data: Optional[str] = None  # base64


class AdminDataRequest(BaseModel):
    """Request payload for the SALES / WAREHOUSE lists."""
    items: List[AdminDataItem]

    @field_validator("items")
    @classmethod
    def require_items(cls, v):
        if not v:
            raise ValueError("select at least one item")
        return v



class AssignTaskRequest(BaseModel):
    """
    Request payload for generating/assigning delegation tasks.

    Required fields are checked by the generator, which reports missing
    ones instead of raising.
    """
    date: Optional[str] = None
    department: Optional[str] = None
    given_by: Optional[str] = None
    doer: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = ""
    frequency: Optional[Frequency] = None
    enable_reminders: bool = True
    require_attachment: bool = False

    @field_validator("frequency", mode="before")
    @classmethod
    def blank_frequency(cls, v):
        if v is None or (isinstance(v, str) and v.strip() == ""):
            return None
        return v
