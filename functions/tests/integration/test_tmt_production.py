"""
Integration Tests for the TMT Production Function

Drives fn_tmt_production.main with fake clients to verify:
- Pending plans and production history views
- Insert + AK stamp sequence sharing one timestamp
- Partial failure when the plan cannot be closed
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from tmt_shared.apps_script import ScriptAction
from tmt_shared.sheet_config import SheetName, Column

from tests.conftest import RowFactory, make_request, body_of


@pytest.fixture
def production_sheets(fake_gviz):
    fake_gviz.sheets[SheetName.PRODUCTION.value] = [
        RowFactory.production(heat_no="H-1", production=("Planned", "")),
        RowFactory.production(heat_no="H-2", production=("Planned", "02/06/2024 16:00:00")),
        RowFactory.production(heat_no="H-3", production=("", "")),
    ]
    fake_gviz.sheets[SheetName.ACTUAL_PRODUCTION.value] = [
        RowFactory.actual_production(heat_no="H-2"),
        RowFactory.actual_production(heat_no="H-8", brand="OTHER"),
        RowFactory.actual_production(heat_no=""),
    ]
    return fake_gviz


@pytest.fixture
def production_body():
    return {
        "heat_no": "H-1",
        "brand_name": "SUPER",
        "time_range": "08:00-16:00",
        "hours": "8",
        "items": [{"size": "8mm", "piece_qty": "120", "mt_qty": "1.2"}],
        "remarks": "",
    }


@pytest.mark.integration
class TestProductionViews:
    """GET /tmt/production"""

    def test_pending_plans(self, wire, production_sheets):
        from fn_tmt_production import main
        with wire("fn_tmt_production"):
            response = main(make_request(username="super"))

        body = body_of(response)
        assert body["view"] == "pending"
        assert [r["heat_no"] for r in body["records"]] == ["H-1"]

    def test_history_scoped_by_brand(self, wire, production_sheets):
        from fn_tmt_production import main
        with wire("fn_tmt_production"):
            response = main(make_request(params={"view": "history"}, username="super"))

        records = body_of(response)["records"]
        assert [r["heat_no"] for r in records] == ["H-2"]
        assert records[0]["items"][0]["piece_qty"] == "120"

    def test_history_for_admin(self, wire, production_sheets):
        from fn_tmt_production import main
        with wire("fn_tmt_production"):
            response = main(make_request(params={"view": "history"}, username="admin", user_type="admin"))

        assert body_of(response)["count"] == 2

    def test_unknown_view(self, wire, production_sheets):
        from fn_tmt_production import main
        with wire("fn_tmt_production"):
            response = main(make_request(params={"view": "all"}))
        assert response.status_code == 400


@pytest.mark.integration
class TestRecordProduction:
    """POST /tmt/production"""

    def test_insert_then_stamp(self, wire, fake_script, production_body):
        from fn_tmt_production import main
        with wire("fn_tmt_production"):
            response = main(make_request("POST", production_body))

        assert response.status_code == 200
        assert body_of(response)["heat_no"] == "H-1"

        actions = [c["action"] for c in fake_script.calls]
        assert actions == [ScriptAction.INSERT, ScriptAction.UPDATE_TIMESTAMP]

        insert, stamp = fake_script.calls
        assert insert["sheet_name"] == SheetName.ACTUAL_PRODUCTION.value
        assert insert["fire_and_forget"] is True
        assert insert["row_data"][Column.ACTUAL_PRODUCTION.HEAT_NO] == "H-1"

        assert stamp["sheet_name"] == SheetName.PRODUCTION.value
        assert stamp["heat_no"] == "H-1"
        assert stamp["column"] == "AK"
        assert stamp["timestamp"] == insert["row_data"][Column.ACTUAL_PRODUCTION.TIMESTAMP]

    def test_time_range_required(self, wire, fake_script, production_body):
        production_body["time_range"] = ""
        from fn_tmt_production import main
        with wire("fn_tmt_production"):
            response = main(make_request("POST", production_body))

        assert response.status_code == 400
        assert fake_script.calls == []

    def test_insert_failure_skips_stamp(self, wire, fake_script, production_body):
        fake_script.fail(ScriptAction.INSERT)
        from fn_tmt_production import main
        with wire("fn_tmt_production"):
            response = main(make_request("POST", production_body))

        assert response.status_code == 502
        assert fake_script.calls_for(ScriptAction.UPDATE_TIMESTAMP) == []

    def test_stamp_failure_reports_saved_production(self, wire, fake_script, production_body):
        fake_script.fail(ScriptAction.UPDATE_TIMESTAMP)
        from fn_tmt_production import main
        with wire("fn_tmt_production"):
            response = main(make_request("POST", production_body))

        assert response.status_code == 502
        body = body_of(response)
        assert body["production_saved"] is True
        assert "H-1" in body["message"]
