"""Field schema interpreter.

Pure functions from (category definition, form values) to typed values and
violation lists. Validation is data-driven: rules read the category's
visibility flags and FieldSpecs, so no category has hand-written checks.

Rules run in order and every rule runs; each rule reports at most its first
violation:

1. title is required unless the category explicitly hides it
2. amount must parse as a number greater than zero
3. every required category-specific field must be present and non-empty
4. present values must match their kind (select option, numeric bounds,
   YYYY-MM month, known employee when the employee list is loaded)
"""

from __future__ import annotations

import re
from typing import Any, Collection, List, Mapping, Optional

from expense_desk.core.errors import ValidationFailure
from expense_desk.models.category import CategoryDefinition, FieldSpec
from expense_desk.services.money import format_amount, parse_amount

MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

TITLE_REQUIRED = "Expense title is required"
AMOUNT_REQUIRED = "Valid expense amount is required"


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def extract_value(field: FieldSpec, bag: Mapping[str, Any]) -> Any:
    """Return the typed value of ``field`` from ``bag`` or ``None`` when absent.

    Numeric fields yield floats (``None`` if the text does not parse); every
    other kind yields the stripped string.
    """
    raw = bag.get(field.key)
    if _is_blank(raw):
        return None
    if field.kind == "number":
        return parse_amount(raw)
    return str(raw).strip()


def _kind_violation(
    field: FieldSpec, raw: Any, employee_ids: Optional[Collection[str]]
) -> Optional[str]:
    value = extract_value(field, {field.key: raw})
    if field.kind == "select":
        if value not in field.options:
            return f"{field.label} must be one of: {', '.join(field.options)}"
    elif field.kind == "number":
        if value is None:
            return f"{field.label} must be a number"
        if field.min is not None and value < field.min:
            return f"{field.label} must be at least {format_amount(field.min)}"
        if field.max is not None and value > field.max:
            return f"{field.label} must be at most {format_amount(field.max)}"
    elif field.kind == "month":
        if not MONTH_RE.match(value):
            return f"{field.label} must be in YYYY-MM format"
    elif field.kind == "employee":
        if employee_ids is not None and value not in employee_ids:
            return f"{field.label} must reference a known employee"
    return None


def validate(
    category: CategoryDefinition,
    core: Mapping[str, Any],
    bag: Mapping[str, Any],
    employee_ids: Optional[Collection[str]] = None,
) -> List[str]:
    """Return the ordered list of violations; empty means the form is valid.

    ``employee_ids`` is the set of known employee identifiers; pass ``None``
    when the reference list could not be loaded to skip that check.
    """
    violations: List[str] = []

    if not category.title_hidden and _is_blank(core.get("title")):
        violations.append(TITLE_REQUIRED)

    amount = parse_amount(core.get("amount"))
    if amount is None or amount <= 0:
        violations.append(AMOUNT_REQUIRED)

    for field in category.fields:
        if field.required and _is_blank(bag.get(field.key)):
            violations.append(f"{field.label} is required")
            break

    for field in category.fields:
        raw = bag.get(field.key)
        if _is_blank(raw):
            continue
        problem = _kind_violation(field, raw, employee_ids)
        if problem:
            violations.append(problem)
            break

    return violations


def ensure_valid(
    category: CategoryDefinition,
    core: Mapping[str, Any],
    bag: Mapping[str, Any],
    employee_ids: Optional[Collection[str]] = None,
) -> None:
    violations = validate(category, core, bag, employee_ids)
    if violations:
        raise ValidationFailure(violations)


__all__ = ["extract_value", "validate", "ensure_valid", "TITLE_REQUIRED", "AMOUNT_REQUIRED"]
