"""Transient form state owned by one workflow session."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from expense_desk.services.money import format_amount

from .category import CategoryDefinition
from .constants import SPECIFIC_PREFIX
from .expense import ExpenseRecord


class WorkflowState(str, Enum):
    BROWSING = "browsing"
    CATEGORY_LISTING = "category_listing"
    FORM_ADD = "form_add"
    FORM_VIEW = "form_view"
    FORM_EDIT = "form_edit"

    @property
    def in_form(self) -> bool:
        return self in (
            WorkflowState.FORM_ADD,
            WorkflowState.FORM_VIEW,
            WorkflowState.FORM_EDIT,
        )


class FormState(BaseModel):
    """Core inputs plus the category-specific bag, all held as form text."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    description: str = ""
    amount: str = ""
    amount_paid: str = ""
    expense_date: str = ""
    vendor: str = ""
    notes: str = ""
    category_specific: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def defaults(cls, today: date) -> "FormState":
        return cls(expense_date=today.isoformat())

    @classmethod
    def from_record(cls, record: ExpenseRecord, category: CategoryDefinition) -> "FormState":
        allowed = category.allowed_specific_keys
        bag: Dict[str, Any] = {}
        for key, value in record.specific_bag().items():
            if key not in allowed:
                continue
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = format_amount(value)
            bag[key] = value
        return cls(
            title=record.title or "",
            description=record.description or "",
            amount=format_amount(record.amount),
            amount_paid=format_amount(record.amount_paid),
            expense_date=record.expense_date.isoformat(),
            vendor=record.vendor or "",
            notes=record.notes or "",
            category_specific=bag,
        )

    def get(self, key: str) -> Any:
        """Read a value by form key ("amount" or "categorySpecific.<key>")."""
        if key.startswith(SPECIFIC_PREFIX):
            return self.category_specific.get(key[len(SPECIFIC_PREFIX):])
        return getattr(self, _core_attr(key))

    def with_value(self, key: str, value: Any) -> "FormState":
        if key.startswith(SPECIFIC_PREFIX):
            bag = dict(self.category_specific)
            bag[key[len(SPECIFIC_PREFIX):]] = value
            return self.model_copy(update={"category_specific": bag})
        return self.model_copy(update={_core_attr(key): "" if value is None else str(value)})

    def without_value(self, key: str) -> "FormState":
        """Drop a category-specific value (core fields reset to empty text)."""
        if key.startswith(SPECIFIC_PREFIX):
            name = key[len(SPECIFIC_PREFIX):]
            bag = {k: v for k, v in self.category_specific.items() if k != name}
            return self.model_copy(update={"category_specific": bag})
        return self.model_copy(update={_core_attr(key): ""})

    def core_fields(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True, exclude={"category_specific"})


_CORE_ATTRS = {
    "title": "title",
    "description": "description",
    "amount": "amount",
    "amountPaid": "amount_paid",
    "expenseDate": "expense_date",
    "vendor": "vendor",
    "notes": "notes",
}


def _core_attr(key: str) -> str:
    try:
        return _CORE_ATTRS[key]
    except KeyError:
        raise KeyError(f"unknown form field '{key}'") from None
