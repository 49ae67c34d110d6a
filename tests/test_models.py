from datetime import date

import pytest
from pydantic import ValidationError

from expense_desk.models.employee import Employee
from expense_desk.models.expense import LabourSpecific, ZakatSpecific, ExpenseRecord
from expense_desk.models.form import FormState, WorkflowState
from expense_desk.models.stats import Statistic, StatsOverview
from expense_desk.services.categories import get_category
from expense_desk.services.money import format_amount, parse_amount, round2

LABOUR_WIRE = {
    "_id": "abc123",
    "expenseCategory": "labour",
    "title": "March salary",
    "amount": 30000,
    "amountPaid": 30000,
    "paymentStatus": "advance-pending",
    "expenseDate": "2024-03-15T00:00:00.000Z",
    "vendor": "",
    "categorySpecific": {
        "employeeId": "emp-1",
        "employeeName": "Ali Khan",
        "advanceAmount": 10000,
        "remainingAmount": 20000,
        "legacyField": "dropped",
    },
    "outstandingAmount": None,
    "createdAt": "2024-03-15T08:00:00.000Z",
}


def test_record_parses_wire_shape():
    record = ExpenseRecord.model_validate(LABOUR_WIRE)
    assert record.id == "abc123"
    assert record.category == "labour"
    assert record.expense_date == date(2024, 3, 15)
    assert record.payment_status == "advance"
    assert record.outstanding_amount == 0.0
    assert isinstance(record.category_specific, LabourSpecific)
    assert record.category_specific.advance_amount == 10000.0


def test_record_specific_bag_is_camel_case_without_tag():
    bag = ExpenseRecord.model_validate(LABOUR_WIRE).specific_bag()
    assert bag["employeeId"] == "emp-1"
    assert bag["remainingAmount"] == 20000.0
    assert "kind" not in bag
    assert "legacyField" not in bag


def test_record_category_selects_union_member():
    record = ExpenseRecord.model_validate(
        {
            "_id": "z1",
            "expenseCategory": "zakat",
            "amount": 100,
            "expenseDate": "2023-01-10",
            "categorySpecific": {"zakatType": "money", "zakatYear": 2023},
        }
    )
    assert isinstance(record.category_specific, ZakatSpecific)
    assert record.category_specific.zakat_year == 2023


def test_record_outside_closed_category_set_is_rejected():
    with pytest.raises(ValidationError):
        ExpenseRecord.model_validate(
            {"_id": "x", "expenseCategory": "travel", "amount": 1, "expenseDate": "2024-01-01"}
        )


def test_form_from_record_stringifies_numbers_and_filters_keys():
    record = ExpenseRecord.model_validate(LABOUR_WIRE)
    form = FormState.from_record(record, get_category("labour"))
    assert form.amount == "30000"
    assert form.expense_date == "2024-03-15"
    assert form.category_specific["advanceAmount"] == "10000"
    assert form.category_specific["employeeName"] == "Ali Khan"
    assert form.description == ""


def test_form_key_addressing():
    form = FormState().with_value("categorySpecific.homeType", "other").with_value("amountPaid", 5)
    assert form.get("categorySpecific.homeType") == "other"
    assert form.get("amountPaid") == "5"
    assert form.without_value("categorySpecific.homeType").category_specific == {}
    with pytest.raises(KeyError):
        form.get("colour")


def test_workflow_state_in_form():
    assert WorkflowState.FORM_VIEW.in_form
    assert not WorkflowState.CATEGORY_LISTING.in_form


def test_employee_display_name():
    employee = Employee.model_validate({"_id": "e9", "firstName": "Sara", "lastName": ""})
    assert employee.id == "e9"
    assert employee.display_name == "Sara"


def test_stats_overview_sums_categories():
    overview = StatsOverview.from_stats(
        [
            Statistic(category="home", count=2, total_amount=300, pending_amount=0),
            Statistic.model_validate(
                {"category": "labour", "count": 1, "totalAmount": 30000, "pendingAmount": 20000}
            ),
        ]
    )
    assert overview.total_count == 3
    assert overview.total_amount == 30300
    assert overview.pending_amount == 20000


def test_negative_statistic_count_rejected():
    with pytest.raises(ValidationError):
        Statistic(category="home", count=-1)


@pytest.mark.parametrize(
    "raw,expected",
    [("12", 12.0), (" 1,000.5 ", 1000.5), ("", None), ("abc", None), (None, None), (True, None), ("nan", None), (7, 7.0)],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_format_and_round():
    assert format_amount(20000.0) == "20000"
    assert format_amount(12.5) == "12.5"
    assert round2(0.125) == 0.13
