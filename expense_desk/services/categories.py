"""Category registry.

Static, closed table of the five expense categories. Everything downstream
(validation, derived fields, title synthesis, payload shaping) is driven by
these definitions, so adding a category means adding data here rather than
new branching code.
"""

from __future__ import annotations

from typing import Dict, List

from expense_desk.core.errors import CategoryNotFound
from expense_desk.models.category import CategoryDefinition, FieldSpec

_CATEGORIES: List[CategoryDefinition] = [
    CategoryDefinition(
        id="home",
        name="Home Expenses",
        description="Household and domestic expenses",
        show_title=False,
        show_vendor=False,
        show_notes=False,
        show_amount_paid=False,
        subtype_key="homeType",
        fields=(
            FieldSpec(
                key="homeType",
                label="Expense Type",
                kind="select",
                options=(
                    "groceries",
                    "utilities",
                    "maintenance",
                    "furniture",
                    "electronics",
                    "other",
                ),
                required=True,
            ),
        ),
    ),
    CategoryDefinition(
        id="labour",
        name="Labour Expenses",
        description="Employee salaries and advances",
        show_title=True,
        show_vendor=True,
        show_notes=True,
        show_amount_paid=False,
        fields=(
            FieldSpec(
                key="employeeId", label="Select Employee", kind="employee", required=True
            ),
            FieldSpec(key="salaryMonth", label="Salary Month (YYYY-MM)", kind="month"),
            FieldSpec(key="advanceReason", label="Advance Reason", kind="text"),
            FieldSpec(key="advanceAmount", label="Advance Amount", kind="number", min=0),
            FieldSpec(
                key="remainingAmount",
                label="Remaining Amount",
                kind="number",
                min=0,
                read_only=True,
            ),
        ),
        fixed_extras=frozenset(
            {"employeeName", "employeeType", "employeeDepartment", "employeePosition"}
        ),
    ),
    CategoryDefinition(
        id="factory",
        name="Factory Expenses",
        description="Factory operations and maintenance",
        show_title=False,
        show_vendor=False,
        show_notes=False,
        show_amount_paid=False,
        subtype_key="factoryType",
        fields=(
            FieldSpec(
                key="factoryType",
                label="Expense Type",
                kind="select",
                options=(
                    "rent",
                    "electricity",
                    "maintenance",
                    "equipment",
                    "raw-materials",
                    "transportation",
                    "chai",
                    "other",
                ),
                required=True,
            ),
        ),
    ),
    CategoryDefinition(
        id="zakat",
        name="Zakat",
        description="Zakat and charitable expenses",
        show_title=False,
        show_vendor=False,
        show_notes=False,
        show_description=False,
        show_amount_paid=False,
        title_literal="Zakat",
        fixed_extras=frozenset({"zakatType", "zakatYear"}),
    ),
    CategoryDefinition(
        id="personal",
        name="Personal Expenses",
        description="Personal and miscellaneous expenses",
        show_title=False,
        show_vendor=False,
        show_notes=False,
        show_amount_paid=False,
        subtype_key="personalType",
        fields=(
            FieldSpec(
                key="personalType",
                label="Expense Type",
                kind="select",
                options=(
                    "medical",
                    "education",
                    "transportation",
                    "entertainment",
                    "clothing",
                    "other",
                ),
                required=True,
            ),
        ),
    ),
]

_BY_ID: Dict[str, CategoryDefinition] = {c.id: c for c in _CATEGORIES}

ZAKAT_DEFAULT_TYPE = "money"


def list_categories() -> List[CategoryDefinition]:
    return list(_CATEGORIES)


def get_category(category_id: str) -> CategoryDefinition:
    try:
        return _BY_ID[category_id]
    except KeyError:
        raise CategoryNotFound(category_id) from None


__all__ = ["list_categories", "get_category", "ZAKAT_DEFAULT_TYPE"]
