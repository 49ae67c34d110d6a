"""Read-only snapshots handed to document renderers.

Receipts and labour reports are rendered outside this package; the only
contract here is that every figure (amount, advance, remaining) is already a
number, so renderers never coerce form text.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from expense_desk.models.expense import ExpenseRecord
from expense_desk.services.money import parse_amount, round2

UNASSIGNED = "unassigned"


class ReceiptSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_id: Optional[str]
    category: str
    title: str
    description: Optional[str] = None
    vendor: Optional[str] = None
    notes: Optional[str] = None
    expense_date: date
    payment_status: str
    amount: float
    amount_paid: float
    outstanding_amount: float
    advance_amount: float
    remaining_amount: float
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None
    employee_department: Optional[str] = None
    employee_position: Optional[str] = None
    salary_month: Optional[str] = None


class EmployeeReportGroup(BaseModel):
    employee_id: str
    employee_name: str
    department: Optional[str] = None
    position: Optional[str] = None
    entries: List[ReceiptSnapshot]
    total_amount: float
    total_advance: float
    total_remaining: float


def build_receipt(record: ExpenseRecord) -> ReceiptSnapshot:
    bag = record.specific_bag()
    advance = parse_amount(bag.get("advanceAmount"))
    remaining = parse_amount(bag.get("remainingAmount"))
    if remaining is None:
        if advance is None:
            # No advance bookkeeping: the store's outstanding figure is authoritative
            remaining = record.outstanding_amount
        else:
            remaining = max(record.amount - advance, 0.0)
    return ReceiptSnapshot(
        record_id=record.id,
        category=record.category,
        title=record.title,
        description=record.description,
        vendor=record.vendor,
        notes=record.notes,
        expense_date=record.expense_date,
        payment_status=record.payment_status,
        amount=record.amount,
        amount_paid=record.amount_paid,
        outstanding_amount=record.outstanding_amount,
        advance_amount=advance or 0.0,
        remaining_amount=remaining,
        employee_id=bag.get("employeeId"),
        employee_name=bag.get("employeeName"),
        employee_department=bag.get("employeeDepartment"),
        employee_position=bag.get("employeePosition"),
        salary_month=bag.get("salaryMonth"),
    )


def build_labour_report(
    records: Iterable[ExpenseRecord],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[EmployeeReportGroup]:
    """Group labour records by employee; other categories are ignored.

    ``start`` and ``end`` are inclusive bounds on the expense date.
    """
    buckets: Dict[str, List[ReceiptSnapshot]] = {}
    for record in records:
        if record.category != "labour":
            continue
        if start and record.expense_date < start:
            continue
        if end and record.expense_date > end:
            continue
        receipt = build_receipt(record)
        buckets.setdefault(receipt.employee_id or UNASSIGNED, []).append(receipt)

    groups: List[EmployeeReportGroup] = []
    for employee_id, entries in buckets.items():
        first = entries[0]
        groups.append(
            EmployeeReportGroup(
                employee_id=employee_id,
                employee_name=first.employee_name or employee_id,
                department=first.employee_department,
                position=first.employee_position,
                entries=entries,
                total_amount=round2(sum(e.amount for e in entries)),
                total_advance=round2(sum(e.advance_amount for e in entries)),
                total_remaining=round2(sum(e.remaining_amount for e in entries)),
            )
        )
    groups.sort(key=lambda g: (g.employee_name.lower(), g.employee_id))
    return groups


__all__ = [
    "ReceiptSnapshot",
    "EmployeeReportGroup",
    "build_receipt",
    "build_labour_report",
]
