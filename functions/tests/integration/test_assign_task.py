"""
Integration Tests for the Task Assignment Function

Drives fn_assign_task.main with fake clients to verify:
- Form data from the master sheet and last task ids
- Full-admin gate and required-field reporting
- Preview vs assign, sheet routing by frequency
- Batched writes and partial batch failure
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from tmt_shared.apps_script import ScriptAction
from tmt_shared.sheet_config import SheetName

from tests.conftest import make_request, body_of


ADMIN = {"username": "admin", "user_type": "admin"}


@pytest.fixture
def assign_sheets(fake_gviz, fake_script):
    fake_gviz.sheets[SheetName.MASTER.value] = [
        ["Department", "Given By", "Doer"],
        ["Accounts", "admin", "rahul"],
        ["Sales", "admin", "priya"],
        ["Accounts", "", ""],
    ]
    fake_gviz.sheets[SheetName.WORKING_DAYS.value] = [
        ["Working Date"],
        ["03/06/2024"],
        ["04/06/2024"],
    ]
    fake_script.last_task_ids = {SheetName.DELEGATION.value: 41, SheetName.CHECKLIST.value: 10}
    return fake_gviz


@pytest.fixture
def task_body():
    return {
        "date": "01/06/2024",
        "department": "Accounts",
        "given_by": "admin",
        "doer": "rahul",
        "title": "GST filing",
        "description": "",
        "frequency": "one-time",
        "enable_reminders": True,
        "require_attachment": False,
    }


@pytest.mark.integration
class TestFormData:
    """GET /delegation/assign"""

    def test_master_lists_and_last_ids(self, wire, assign_sheets):
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request(**ADMIN))

        body = body_of(response)
        assert body["master"] == {
            "departments": ["Accounts", "Sales"],
            "given_by": ["admin"],
            "doers": ["rahul", "priya"],
        }
        assert body["last_task_ids"] == {"DELEGATION": 41, "Checklist": 10}
        assert "one-time" in body["frequencies"]


@pytest.mark.integration
class TestAccess:
    """Only the full admin may generate tasks."""

    def test_regular_user_forbidden(self, wire, assign_sheets, task_body):
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, username="rahul"))
        assert response.status_code == 403
        assert body_of(response)["status"] == "FORBIDDEN"

    def test_limited_admin_forbidden(self, wire, assign_sheets, task_body):
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, username="plant", user_type="admin"))
        assert response.status_code == 403

    def test_unknown_action(self, wire, assign_sheets, task_body):
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, params={"action": "publish"}, **ADMIN))
        assert response.status_code == 400


@pytest.mark.integration
class TestPreview:
    """POST /delegation/assign?action=preview"""

    def test_one_time_preview(self, wire, fake_script, assign_sheets, task_body):
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, **ADMIN))

        assert response.status_code == 200
        body = body_of(response)
        assert body["sheet_name"] == "DELEGATION"
        assert body["count"] == 1
        assert body["tasks"][0]["task_id"] == "TI-042"
        assert body["tasks"][0]["due_date"] == "03/06/2024"
        assert fake_script.calls_for(ScriptAction.INSERT_MULTIPLE) == []

    def test_missing_fields_checked_before_reads(self, wire, fake_gviz, fake_script, assign_sheets, task_body):
        task_body["doer"] = ""
        del task_body["department"]
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, **ADMIN))

        assert response.status_code == 400
        body = body_of(response)
        assert body["status"] == "MISSING_FIELDS"
        assert body["missing_fields"] == ["doer", "department"]
        assert fake_gviz.reads == []
        assert fake_script.calls == []

    def test_unparseable_date(self, wire, assign_sheets, task_body):
        task_body["date"] = "someday"
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, **ADMIN))

        assert response.status_code == 400
        assert body_of(response)["missing_fields"] == ["date"]

    def test_invalid_frequency(self, wire, assign_sheets, task_body):
        task_body["frequency"] = "hourly"
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, **ADMIN))

        assert response.status_code == 400
        assert body_of(response)["status"] == "ERROR"


@pytest.mark.integration
class TestAssign:
    """POST /delegation/assign?action=assign"""

    def test_recurring_tasks_written_in_batches(self, wire, fake_gviz, fake_script, assign_sheets, task_body):
        fake_gviz.sheets[SheetName.WORKING_DAYS.value] = []
        task_body["frequency"] = "weekly"
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, params={"action": "assign"}, **ADMIN))

        assert response.status_code == 200
        body = body_of(response)
        assert body["sheet_name"] == "Checklist"
        assert body["generated"] == 105
        assert body["rows_written"] == 105
        assert body["last_task_id"] == "TI-115"

        batches = fake_script.calls_for(ScriptAction.INSERT_MULTIPLE)
        assert [len(b["rows"]) for b in batches] == [20, 20, 20, 20, 20, 5]
        assert all(b["sheet_name"] == "Checklist" for b in batches)
        first = batches[0]["rows"][0]
        assert first[1:] == [
            "TI-011", "Accounts", "admin", "rahul", "GST filing", "",
            "01/06/2024", "weekly", "Yes", "No",
        ]

    def test_one_time_goes_to_delegation(self, wire, fake_script, assign_sheets, task_body):
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, params={"action": "assign"}, **ADMIN))

        assert body_of(response)["sheet_name"] == "DELEGATION"
        batch = fake_script.calls_for(ScriptAction.INSERT_MULTIPLE)[0]
        assert batch["sheet_name"] == "DELEGATION"
        assert batch["rows"][0][1] == "TI-042"

    def test_rejected_batch_reports_rows_written(self, wire, fake_gviz, fake_script, assign_sheets, task_body):
        fake_gviz.sheets[SheetName.WORKING_DAYS.value] = []
        fake_script.fail_after_batches = 2
        task_body["frequency"] = "weekly"
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, params={"action": "assign"}, **ADMIN))

        assert response.status_code == 502
        body = body_of(response)
        assert body["rows_written"] == 40
        assert body["generated"] == 105

    def test_calendar_unavailable(self, wire, fake_gviz, assign_sheets, task_body):
        fake_gviz.fail(SheetName.WORKING_DAYS)
        from fn_assign_task import main
        with wire("fn_assign_task"):
            response = main(make_request("POST", task_body, **ADMIN))
        assert response.status_code == 502
