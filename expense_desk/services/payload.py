"""Outbound payload shaping.

``build_payload`` is a pure function of (category, form, employees). Every
per-category difference comes from the category definition (visibility
flags, title inputs) or from the shaper table below, so the submit path in
the workflow controller never branches on category ids.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Callable, Dict, Optional, Sequence

from pydantic import TypeAdapter

from expense_desk.core.errors import ValidationFailure
from expense_desk.models.category import CategoryDefinition
from expense_desk.models.employee import Employee
from expense_desk.models.expense import CategorySpecific, ExpensePayload, tag_specific
from expense_desk.models.form import FormState
from expense_desk.services.categories import ZAKAT_DEFAULT_TYPE
from expense_desk.services.field_schema import AMOUNT_REQUIRED
from expense_desk.services.money import parse_amount

DATE_REQUIRED = "Valid expense date is required"

_specific_adapter: TypeAdapter = TypeAdapter(CategorySpecific)

Shaper = Callable[[Dict[str, Any], date, Sequence[Employee]], Dict[str, Any]]


def humanize(value: str) -> str:
    """'raw-materials' -> 'Raw Materials'."""
    spaced = value.replace("-", " ")
    return re.sub(r"\b\w", lambda m: m.group().upper(), spaced)


def parse_expense_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip().split("T")[0])
    except ValueError:
        raise ValidationFailure([DATE_REQUIRED]) from None


def synthesize_title(category: CategoryDefinition, form: FormState) -> str:
    """Title sent to the store; generated when the category hides the input."""
    if not category.title_hidden:
        return form.title.strip()
    if category.title_literal:
        year = parse_expense_date(form.expense_date).year
        return f"{category.title_literal} - {year}"
    if category.subtype_key:
        subtype = form.category_specific.get(category.subtype_key)
        if isinstance(subtype, str) and subtype.strip():
            return f"{humanize(subtype.strip())} {category.title_noun}"
        return f"{category.id.capitalize()} {category.title_noun}"
    return category.name


# Category-fixed shaping ------------------------------------------


def _shape_zakat(
    bag: Dict[str, Any], expense_date: date, employees: Sequence[Employee]
) -> Dict[str, Any]:
    # User input is discarded: sub-type is fixed and the year follows the date
    return {"zakatType": ZAKAT_DEFAULT_TYPE, "zakatYear": expense_date.year}


def find_employee(employees: Sequence[Employee], employee_ref: Any) -> Optional[Employee]:
    for employee in employees:
        if employee.id == employee_ref:
            return employee
    return None


def _shape_labour(
    bag: Dict[str, Any], expense_date: date, employees: Sequence[Employee]
) -> Dict[str, Any]:
    employee_ref = bag.get("employeeId")
    if not employee_ref:
        return bag
    employee = find_employee(employees, employee_ref)
    if employee is None:
        return bag
    shaped = dict(bag)
    shaped.update(
        employeeName=employee.display_name,
        employeeType=employee.employee_type,
        employeeDepartment=employee.department,
        employeePosition=employee.position,
        advanceAmount=parse_amount(bag.get("advanceAmount")),
        remainingAmount=parse_amount(bag.get("remainingAmount")),
    )
    return shaped


_SHAPERS: Dict[str, Shaper] = {
    "zakat": _shape_zakat,
    "labour": _shape_labour,
}


def shape_category_specific(
    category: CategoryDefinition,
    form: FormState,
    expense_date: date,
    employees: Sequence[Employee] = (),
) -> CategorySpecific:
    bag = dict(form.category_specific)
    shaper = _SHAPERS.get(category.id)
    if shaper is not None:
        bag = shaper(bag, expense_date, employees)
    return _specific_adapter.validate_python(tag_specific(category.id, bag))


def _visible(flag: Optional[bool], value: str) -> Optional[str]:
    return None if flag is False else value


def build_payload(
    category: CategoryDefinition,
    form: FormState,
    employees: Sequence[Employee] = (),
) -> ExpensePayload:
    """Shape the full-replace body for create/update.

    ``amountPaid`` always equals ``amount``: a submitted expense is treated
    as fully paid, and pending/advance states come from the advance
    bookkeeping on the server side.
    """
    amount = parse_amount(form.amount)
    if amount is None or amount <= 0:
        raise ValidationFailure([AMOUNT_REQUIRED])
    expense_date = parse_expense_date(form.expense_date)
    return ExpensePayload(
        category=category.id,
        title=synthesize_title(category, form),
        description=_visible(category.show_description, form.description),
        amount=amount,
        amount_paid=amount,
        expense_date=expense_date,
        vendor=_visible(category.show_vendor, form.vendor),
        notes=_visible(category.show_notes, form.notes),
        category_specific=shape_category_specific(category, form, expense_date, employees),
    )


__all__ = [
    "humanize",
    "parse_expense_date",
    "synthesize_title",
    "find_employee",
    "shape_category_specific",
    "build_payload",
]
