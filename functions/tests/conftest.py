"""
Pytest Configuration and Fixtures for TMT Production Tracker Tests

This file provides:
- Fake gviz client backed by in-memory positional rows
- Fake Apps Script client that records every write
- Row factories for the sheets the app reads
- HTTP request factory carrying signed session tokens
- Singleton reset between tests
"""

import pytest
import importlib
import json
from contextlib import ExitStack
from datetime import datetime
from typing import Dict, Any, List, Optional
from unittest.mock import patch

import azure.functions as func

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared.gviz_client import SheetRow, GvizError, reset_gviz_client
from tmt_shared.apps_script import ScriptAction, ScriptCallResult, ScriptClientConfig, reset_script_client
from tmt_shared.sheet_config import SheetName, Column, TASK_BATCH_SIZE
from tmt_shared.auth import SessionConfig, issue_session_token
from tmt_shared.models import UserSession


# ============== Custom Pytest Markers ==============

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual modules")
    config.addinivalue_line("markers", "integration: Handler tests through main(req)")
    config.addinivalue_line("markers", "slow: Slow running tests")


# ============== Fake gviz Client ==============

class FakeGvizClient:
    """In-memory stand-in for GvizClient. Sheets are lists of positional rows."""

    def __init__(self, sheets: Optional[Dict[str, List[List[Any]]]] = None):
        self.sheets: Dict[str, List[List[Any]]] = {}
        for name, rows in (sheets or {}).items():
            self.sheets[getattr(name, "value", name)] = rows
        self.failing: set = set()
        self.reads: List[str] = []

    def fail(self, sheet_name) -> "FakeGvizClient":
        self.failing.add(getattr(sheet_name, "value", sheet_name))
        return self

    def fetch_rows(self, sheet_name, skip_header: bool = False) -> List[SheetRow]:
        sheet_name = getattr(sheet_name, "value", sheet_name)
        self.reads.append(sheet_name)
        if sheet_name in self.failing:
            raise GvizError(f"gviz error for {sheet_name}")
        rows = [
            SheetRow(row_index=i + 2, values=list(values))
            for i, values in enumerate(self.sheets.get(sheet_name, []))
        ]
        return rows[1:] if skip_header else rows

    def fetch_column_values(self, sheet_name, index: int, skip_header: bool = True) -> List[str]:
        return [
            row.text(index)
            for row in self.fetch_rows(sheet_name, skip_header=skip_header)
            if row.text(index)
        ]


# ============== Fake Apps Script Client ==============

class FakeScriptClient:
    """Records every write; actions listed in ``failing`` report failure."""

    def __init__(self, last_task_ids: Optional[Dict[str, int]] = None):
        self.calls: List[Dict[str, Any]] = []
        self.failing: set = set()
        self.fail_after_batches: Optional[int] = None
        self.last_task_ids = last_task_ids or {}
        self.config = ScriptClientConfig(drive_folder_id="folder-1")
        self._next_row = 100

    def fail(self, action: ScriptAction) -> "FakeScriptClient":
        self.failing.add(action)
        return self

    def calls_for(self, action: ScriptAction) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["action"] == action]

    def _result(self, action, sheet_name, correlation_id, body=None, **kwargs) -> ScriptCallResult:
        if action in self.failing:
            return ScriptCallResult(
                success=False, action=action, correlation_id=correlation_id,
                sheet_name=sheet_name, error_message=f"{action.value} rejected"
            )
        return ScriptCallResult(
            success=True, action=action, correlation_id=correlation_id,
            sheet_name=sheet_name, response_body=body or {"success": True}, **kwargs
        )

    def insert_row(self, sheet_name, row_data, correlation_id, fire_and_forget=False):
        self.calls.append({"action": ScriptAction.INSERT, "sheet_name": sheet_name,
                           "row_data": row_data, "fire_and_forget": fire_and_forget})
        self._next_row += 1
        return self._result(ScriptAction.INSERT, sheet_name, correlation_id,
                            body={"success": True, "rowIndex": self._next_row}, rows_written=1)

    def insert_rows(self, sheet_name, rows, correlation_id, batch_size=TASK_BATCH_SIZE):
        written = 0
        for batch_no, start in enumerate(range(0, len(rows), batch_size)):
            batch = rows[start:start + batch_size]
            self.calls.append({"action": ScriptAction.INSERT_MULTIPLE, "sheet_name": sheet_name,
                               "rows": batch})
            if self.fail_after_batches is not None and batch_no >= self.fail_after_batches:
                return ScriptCallResult(
                    success=False, action=ScriptAction.INSERT_MULTIPLE, correlation_id=correlation_id,
                    sheet_name=sheet_name, error_message="batch rejected", rows_written=written
                )
            written += len(batch)
        return self._result(ScriptAction.INSERT_MULTIPLE, sheet_name, correlation_id, rows_written=written)

    def update_timestamp(self, sheet_name, heat_no, timestamp, column_letter, correlation_id, fire_and_forget=True):
        self.calls.append({"action": ScriptAction.UPDATE_TIMESTAMP, "sheet_name": sheet_name,
                           "heat_no": heat_no, "timestamp": timestamp, "column": column_letter})
        return self._result(ScriptAction.UPDATE_TIMESTAMP, sheet_name, correlation_id)

    def upload_image(self, image_data, file_name, row_index, correlation_id, sheet_name=SheetName.DELEGATION_DONE.value):
        self.calls.append({"action": ScriptAction.UPLOAD_IMAGE, "sheet_name": sheet_name,
                           "file_name": file_name, "row_index": row_index})
        return self._result(ScriptAction.UPLOAD_IMAGE, sheet_name, correlation_id,
                            body={"success": True, "fileUrl": f"https://drive.example/{file_name}"})

    def update_sales_data(self, sheet_name, row_data, correlation_id):
        self.calls.append({"action": ScriptAction.UPDATE_SALES_DATA, "sheet_name": sheet_name,
                           "row_data": row_data})
        return self._result(ScriptAction.UPDATE_SALES_DATA, sheet_name, correlation_id)

    def update_tasks(self, sheet_name, tasks, correlation_id):
        self.calls.append({"action": ScriptAction.UPDATE_TASKS, "sheet_name": sheet_name, "tasks": tasks})
        return self._result(ScriptAction.UPDATE_TASKS, sheet_name, correlation_id)

    def upload_file(self, sheet_name, task_id, file_name, file_data, row_index, correlation_id, folder_url=None):
        self.calls.append({"action": ScriptAction.UPLOAD_FILE, "sheet_name": sheet_name, "task_id": task_id,
                           "file_name": file_name, "row_index": row_index, "folder_url": folder_url})
        return self._result(ScriptAction.UPLOAD_FILE, sheet_name, correlation_id,
                            body={"success": True, "fileUrl": f"https://drive.example/{file_name}"})

    def get_last_task_id(self, sheet_name, correlation_id) -> int:
        self.calls.append({"action": ScriptAction.GET_LAST_TASK_ID, "sheet_name": sheet_name})
        return self.last_task_ids.get(sheet_name, 0)


# ============== Row Factories ==============

class RowFactory:
    """Positional rows laid out exactly as the sheets store them."""

    @staticmethod
    def production(
        heat_no: str = "H-101",
        brand: str = "SUPER",
        person: str = "Ramesh",
        sizes: Optional[List[tuple]] = None,
        kitting: tuple = ("", ""),
        production: tuple = ("", ""),
        planning_qty: Any = 0,
        production_qty: Any = 0,
        pending_qty: Any = 0,
    ) -> List[Any]:
        c = Column.PRODUCTION
        row: List[Any] = [None] * (c.PRODUCTION_DONE + 1)
        row[c.TIMESTAMP] = "01/06/2024 10:00:00"
        row[c.HEAT_NO] = heat_no
        row[c.PERSON] = person
        row[c.BRAND] = brand
        row[c.SUPERVISOR] = "Anil"
        row[c.DATE_OF_PRODUCTION] = "Date(2024,5,1)"
        row[c.REMARKS] = ""
        for i, (size, qty) in enumerate(sizes or [("8mm", 10)]):
            row[c.FIRST_SIZE + 2 * i] = size
            row[c.FIRST_SIZE + 2 * i + 1] = qty
        row[c.PLANNING_QTY] = planning_qty
        row[c.PRODUCTION_QTY] = production_qty
        row[c.PENDING_QTY] = pending_qty
        row[c.KITTING_STATUS], row[c.KITTING_DONE] = kitting
        row[c.PRODUCTION_STATUS], row[c.PRODUCTION_DONE] = production
        return row

    @staticmethod
    def actual_production(heat_no: str = "H-101", brand: str = "SUPER") -> List[Any]:
        c = Column.ACTUAL_PRODUCTION
        row: List[Any] = [""] * c.WIDTH
        row[c.TIMESTAMP] = "02/06/2024 16:00:00"
        row[c.HEAT_NO] = heat_no
        row[c.BRAND] = brand
        row[c.TIME_RANGE] = "08:00-16:00"
        row[c.FIRST_ITEM:c.FIRST_ITEM + 3] = ["8mm", "120", "1.2"]
        return row

    @staticmethod
    def composition(composition_no: str = "CN-001", product: str = "SUPER") -> List[Any]:
        c = Column.COMPOSITION
        row: List[Any] = [""] * c.WIDTH
        row[c.COMPOSITION_NO] = composition_no
        row[c.DATE] = "01/06/2024"
        row[c.PRODUCT_NAME] = product
        row[c.COSTING] = "500.00"
        row[c.FIRST_MATERIAL] = "Sponge"
        row[c.FIRST_PERCENT] = 50
        return row

    @staticmethod
    def delegation(
        task_id: str = "TI-001",
        doer: str = "rahul",
        planned: Any = "Date(2024,5,1)",
        actual: Any = None,
        attachment: str = "No",
        title: str = "GST filing",
        frequency: str = "monthly",
    ) -> List[Any]:
        return [
            "01/06/2024 09:00:00", task_id, "Accounts", "admin", doer, title,
            "", "Date(2024,5,1)", frequency, "Yes", attachment, planned, actual,
        ]

    @staticmethod
    def delegation_done(task_id: str = "TI-001", status: str = "Extend") -> List[Any]:
        return [""] * Column.DELEGATION_DONE.LEADING_BLANKS + [
            "01/06/2024", task_id, status, "08/06/2024", "", "",
        ]

    @staticmethod
    def admin_data(
        assigned_to: str = "rahul",
        entry_date: Any = "Date(2024,5,1)",
        planned: Any = "Date(2024,5,1)",
        actual: Any = None,
        attachment: str = "No",
        party: str = "Shree Steels",
    ) -> List[Any]:
        return [
            "01/06/2024 09:00:00", party, "Invoice 118", "12.5 MT", assigned_to, "Collect payment",
            "", entry_date, "", "", attachment, planned, actual,
        ]

    @staticmethod
    def header(width: int = 13) -> List[Any]:
        return [f"Header {i}" for i in range(width)]


# ============== HTTP Request Factory ==============

TEST_SESSION_SECRET = "test-session-secret"


def bearer_token(username: str, user_type: str = "user", secret: str = TEST_SESSION_SECRET, now: Optional[float] = None) -> str:
    """Signed session token as fn_auth_login would issue it."""
    token, _ = issue_session_token(
        UserSession(username=username, user_type=user_type),
        SessionConfig(secret=secret),
        now=now,
    )
    return token


def make_request(
    method: str = "GET",
    body: Optional[Any] = None,
    params: Optional[Dict[str, str]] = None,
    username: Optional[str] = "rahul",
    user_type: str = "user",
    url: str = "/api/test",
    headers: Optional[Dict[str, str]] = None,
) -> func.HttpRequest:
    """Build a real func.HttpRequest carrying a bearer session token for ``username``."""
    all_headers = {"Content-Type": "application/json"}
    if username:
        all_headers["Authorization"] = f"Bearer {bearer_token(username, user_type)}"
    all_headers.update(headers or {})
    raw = b"" if body is None else (body if isinstance(body, bytes) else json.dumps(body).encode())
    return func.HttpRequest(method=method, url=url, headers=all_headers, params=params or {}, body=raw)


def body_of(response: func.HttpResponse) -> Dict[str, Any]:
    return json.loads(response.get_body())


# ============== Fixtures ==============

@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop cached clients so no test sees another test's configuration."""
    reset_gviz_client()
    reset_script_client()
    yield
    reset_gviz_client()
    reset_script_client()


@pytest.fixture(autouse=True)
def session_secret(monkeypatch):
    """Sign and verify test tokens with a fixed secret."""
    monkeypatch.setenv("SESSION_SECRET", TEST_SESSION_SECRET)
    monkeypatch.delenv("SESSION_TTL_SECONDS", raising=False)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the clients read."""
    for name in (
        "GOOGLE_SHEET_ID", "DELEGATION_SHEET_ID", "GVIZ_BASE_URL", "GVIZ_TIMEOUT",
        "GVIZ_MAX_RETRIES", "APPS_SCRIPT_URL", "DELEGATION_SCRIPT_URL", "DRIVE_FOLDER_ID",
        "SCRIPT_CONNECT_RETRIES", "SCRIPT_CONNECT_TIMEOUT", "SCRIPT_READ_TIMEOUT",
        "SESSION_SECRET", "SESSION_TTL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def rows():
    return RowFactory()


@pytest.fixture
def fake_gviz():
    return FakeGvizClient()


@pytest.fixture
def fake_script():
    return FakeScriptClient()


@pytest.fixture
def wire(fake_gviz, fake_script):
    """
    Point a handler module at the fakes.

    Usage:
        with wire("fn_tmt_planning"):
            response = main(make_request(...))
    """
    def _wire(module: str):
        handler = importlib.import_module(module)
        stack = ExitStack()
        stack.enter_context(patch.object(handler, "get_gviz_client", return_value=fake_gviz))
        if hasattr(handler, "get_script_client"):
            stack.enter_context(patch.object(handler, "get_script_client", return_value=fake_script))
        return stack
    return _wire


@pytest.fixture
def now():
    return datetime(2024, 6, 1, 10, 30, 0)
