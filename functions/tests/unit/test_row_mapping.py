"""
Unit Tests for Row Mapping

Read side: positional gviz rows -> typed records.
Write side: requests -> positional rowData arrays.
"""

import pytest
from datetime import date, datetime

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from tmt_shared.gviz_client import SheetRow
from tmt_shared.models import (
    PlanningRequest,
    ProductionRequest,
    CompositionRequest,
    DelegationCompletionItem,
    DataTaskUpdate,
    AdminDataItem,
    MaterialRow,
    RecordStatus,
    TaskOccurrence,
)
from tmt_shared.costing import compute_composition, selected_rows
from tmt_shared.sheet_config import Column
from tmt_shared.row_mapping import (
    size_columns,
    to_planning_record,
    to_production_record,
    to_material,
    to_composition_record,
    to_delegation_task,
    to_delegation_history,
    planning_row,
    production_row,
    composition_row,
    delegation_done_row,
    task_row,
    sales_data_update,
    data_task_update,
    admin_data_update,
    to_admin_data_record,
)

from tests.conftest import RowFactory


def as_row(values, row_index=2):
    return SheetRow(row_index=row_index, values=values)


@pytest.mark.unit
class TestReadSide:
    """Sheet rows to records."""

    def test_size_columns_are_every_other_cell(self):
        assert size_columns()[:3] == [7, 9, 11]
        assert size_columns()[-1] == 25

    def test_planning_record(self):
        values = RowFactory.production(
            heat_no="H-7", sizes=[("8mm", 10.0), ("10mm", 5)],
            production=("Planned", ""), planning_qty=15, pending_qty="15"
        )
        record = to_planning_record(as_row(values, row_index=9))
        assert record.row_index == 9
        assert record.heat_no == "H-7"
        assert record.date_of_production == "01/06/2024"
        assert [(s.size, s.quantity) for s in record.sizes] == [("8mm", "10"), ("10mm", "5")]
        assert record.planning_qty == 15
        assert record.pending_qty == 15
        assert record.status == RecordStatus.PENDING

    def test_planning_record_completed(self):
        values = RowFactory.production(production=("Planned", "Date(2024,5,2,9,0,0)"))
        assert to_planning_record(as_row(values)).status == RecordStatus.COMPLETED

    def test_production_record(self):
        record = to_production_record(as_row(RowFactory.actual_production(heat_no="H-9")))
        assert record.heat_no == "H-9"
        assert record.time_range == "08:00-16:00"
        assert len(record.items) == 1
        assert record.items[0].mt_qty == "1.2"

    def test_material(self):
        material = to_material(as_row(["Sponge", 30000.0, "80", None]))
        assert material.name == "Sponge"
        assert material.price == 30000
        assert material.yield_pct == 80
        assert material.fem == 0

    def test_material_without_name(self):
        assert to_material(as_row(["", 1, 2, 3])) is None

    def test_composition_record(self):
        record = to_composition_record(as_row(RowFactory.composition("CN-004")))
        assert record.composition_no == "CN-004"
        assert record.costing == "500.00"
        assert record.materials[0] == "Sponge"
        assert record.quantities[0] == "50"
        assert len(record.materials) == 15

    def test_delegation_task(self):
        record = to_delegation_task(as_row(RowFactory.delegation(attachment="yes", planned="Date(2024,5,3)")))
        assert record.task_id == "TI-001"
        assert record.doer == "rahul"
        assert record.require_attachment is True
        assert record.planned == "03/06/2024"
        assert record.actual is None

    def test_delegation_history(self):
        record = to_delegation_history(as_row(RowFactory.delegation_done("TI-002", "Done")))
        assert record.task_id == "TI-002"
        assert record.status == "Done"
        assert record.completed_on == "01/06/2024"
        assert record.image_url is None


@pytest.mark.unit
class TestWriteSide:
    """Requests to positional rows."""

    def test_planning_row_layout(self):
        request = PlanningRequest(
            heat_no="H-1", person_name="Ramesh", brand_name="SUPER",
            date_of_production="2024-06-01",
            sizes=[{"size": "8mm", "quantity": "10"}],
        )
        row = planning_row(request, datetime(2024, 6, 1, 10, 30))
        assert row[:7] == ["01/06/2024 10:30:00", "H-1", "Ramesh", "SUPER", "", "01/06/2024", ""]
        assert row[Column.PRODUCTION.FIRST_SIZE:Column.PRODUCTION.FIRST_SIZE + 2] == ["8mm", "10"]
        assert len(row) == 7 + 20
        assert row[-1] == ""

    def test_production_row_layout(self):
        request = ProductionRequest(
            heat_no="H-1", brand_name="SUPER", time_range="08:00-16:00",
            items=[{"size": "8mm", "piece_qty": "120", "mt_qty": "1.2"}],
            remarks="ok",
        )
        row = production_row(request, datetime(2024, 6, 1, 16, 0))
        c = Column.ACTUAL_PRODUCTION
        assert len(row) == c.WIDTH
        assert row[c.FIRST_ITEM:c.FIRST_ITEM + 3] == ["8mm", "120", "1.2"]
        assert row[c.REMARKS] == "ok"
        assert row[c.FIRST_ITEM + 3] == ""

    def test_composition_row(self):
        rows = [MaterialRow(particulars="Sponge", price1=1000, percent=50), MaterialRow()]
        request = CompositionRequest(heat_no="H-1", product_name="SUPER", rows=rows, manufacturing_cost=100)
        totals = compute_composition(request.rows, manufacturing_cost=100)
        row = composition_row("CN-003", request, totals, selected_rows(request.rows), today=date(2024, 6, 1))

        c = Column.COMPOSITION
        assert len(row) == 44
        assert row[c.COMPOSITION_NO] == "CN-003"
        assert row[c.DATE] == "01/06/2024"
        assert row[c.COSTING] == "500.00"
        assert row[c.SELLING_PRICE] == totals.selling_price
        assert row[c.GP_PERCENTAGE].endswith("%")
        assert row[c.FIRST_MATERIAL] == "Sponge"
        assert row[c.FIRST_PERCENT] == 50
        assert row[c.FIRST_MATERIAL + 1] == ""

    def test_composition_row_keeps_typed_selling_price(self):
        request = CompositionRequest(rows=[MaterialRow(particulars="Sponge", price1=1000, percent=50)],
                                     selling_price="999.999")
        totals = compute_composition(request.rows, selling_price_override=request.selling_price)
        row = composition_row("CN-001", request, totals, selected_rows(request.rows), today=date(2024, 6, 1))
        assert row[Column.COMPOSITION.SELLING_PRICE] == "999.999"
        assert totals.selling_price == "1000.00"

    def test_delegation_done_row(self):
        item = DelegationCompletionItem(
            task_id="TI-001", row_index=5, status="Extend",
            next_target_date="2024-06-10", remarks="waiting",
        )
        row = delegation_done_row(item, today=date(2024, 6, 1))
        assert row[:10] == [""] * 10
        assert row[10:] == ["01/06/2024", "TI-001", "Extend", "10/06/2024", "waiting", ""]

    def test_task_row(self):
        task = TaskOccurrence(
            task_id="TI-005", department="Accounts", given_by="admin", doer="rahul",
            title="GST", due_date="03/06/2024", frequency="monthly", require_attachment=True,
        )
        row = task_row(task, datetime(2024, 6, 1, 9, 0))
        assert row == [
            "01/06/2024 09:00:00", "TI-005", "Accounts", "admin", "rahul", "GST", "",
            "03/06/2024", "monthly", "Yes", "Yes",
        ]

    def test_sales_data_update(self):
        assert sales_data_update(7, "Done", today=date(2024, 6, 1)) == {
            "rowIndex": 7,
            "todayDate": "01/06/2024",
            "additionalInfo": "Completed: Done",
        }

    def test_data_task_update(self):
        item = DataTaskUpdate(task_id="TI-001", row_index=4, updates={"colF": "GST return"})
        assert data_task_update(item, "https://drive.example/f", today=date(2024, 6, 1)) == {
            "rowIndex": 4,
            "updates": {"colF": "GST return", "colM": "2024-06-01", "colP": "https://drive.example/f"},
        }

    def test_data_task_update_without_file(self):
        item = DataTaskUpdate(task_id="TI-001", row_index=4)
        assert data_task_update(item, today=date(2024, 6, 1))["updates"] == {"colM": "2024-06-01"}

    def test_admin_data_update(self):
        item = AdminDataItem(row_index=9, additional_info="paid", image_data="aGVsbG8=")
        assert admin_data_update(item, "folder-1", today=date(2024, 6, 1)) == {
            "taskId": "9",
            "rowIndex": 9,
            "additionalInfo": "paid",
            "imageData": "aGVsbG8=",
            "folderId": "folder-1",
            "todayDate": "01/06/2024",
        }


@pytest.mark.unit
class TestAdminDataRecord:
    """SALES / WAREHOUSE rows."""

    def test_visible_cells_and_dates(self):
        values = RowFactory.admin_data(entry_date="Date(2024,4,20)", planned="Date(2024,5,2)", attachment="yes")
        record = to_admin_data_record(as_row(values, row_index=6))
        assert record.row_index == 6
        assert record.assigned_to == "rahul"
        assert record.date == "20/05/2024"
        assert record.planned == "02/06/2024"
        assert record.require_attachment is True
        assert len(record.cells) == 10
        assert record.cells[0] == "Shree Steels"
        assert record.cells[6] == "20/05/2024"
