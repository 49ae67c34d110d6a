from datetime import date

from expense_desk.models.expense import ExpenseRecord
from expense_desk.services.pagination import paginate
from expense_desk.services.reports import build_labour_report, build_receipt


def labour(rid, employee_id, name, amount, advance=None, remaining=None, day="2024-03-10"):
    bag = {}
    if employee_id:
        bag.update(employeeId=employee_id, employeeName=name, employeeDepartment="Production")
    if advance is not None:
        bag["advanceAmount"] = advance
    if remaining is not None:
        bag["remainingAmount"] = remaining
    return ExpenseRecord.model_validate(
        {
            "_id": rid,
            "expenseCategory": "labour",
            "title": f"Salary {rid}",
            "amount": amount,
            "amountPaid": amount,
            "expenseDate": day,
            "categorySpecific": bag,
        }
    )


def test_receipt_derives_remaining_from_advance():
    receipt = build_receipt(labour("a", "emp-1", "Ali Khan", 30000, advance="10000"))
    assert receipt.advance_amount == 10000.0
    assert receipt.remaining_amount == 20000.0


def test_receipt_without_advance_uses_outstanding():
    record = ExpenseRecord.model_validate(
        {
            "_id": "h",
            "expenseCategory": "home",
            "amount": 500,
            "amountPaid": 300,
            "outstandingAmount": 200,
            "paymentStatus": "pending",
            "expenseDate": "2024-03-01",
            "categorySpecific": {"homeType": "other"},
        }
    )
    receipt = build_receipt(record)
    assert receipt.advance_amount == 0.0
    assert receipt.remaining_amount == 200.0
    assert receipt.payment_status == "pending"


def test_labour_report_groups_and_totals():
    records = [
        labour("1", "emp-2", "Sara Ahmed", 20000, advance=5000, remaining=15000),
        labour("2", "emp-1", "Ali Khan", 30000, advance=10000, remaining=20000),
        labour("3", "emp-1", "Ali Khan", 1000.25),
        labour("4", None, None, 700),
        labour("5", "emp-1", "Ali Khan", 9999, day="2024-05-01"),
    ]
    groups = build_labour_report(records, start=date(2024, 3, 1), end=date(2024, 3, 31))

    assert [g.employee_name for g in groups] == ["Ali Khan", "Sara Ahmed", "unassigned"]
    ali = groups[0]
    assert [e.record_id for e in ali.entries] == ["2", "3"]
    assert ali.total_amount == 31000.25
    assert ali.total_advance == 10000.0
    assert ali.department == "Production"
    assert groups[2].employee_id == "unassigned"


def test_labour_report_ignores_other_categories():
    home = ExpenseRecord.model_validate(
        {"_id": "h", "expenseCategory": "home", "amount": 5, "expenseDate": "2024-03-01"}
    )
    assert build_labour_report([home]) == []


def test_paginate_empty_listing_is_one_empty_page():
    page = paginate([], 4, 15)
    assert (page.page, page.total_pages, page.items) == (1, 1, [])
