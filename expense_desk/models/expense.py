"""Expense record and outbound payload models.

The category-specific attribute bag is a tagged union keyed by category id.
On the wire the bag is an untagged camelCase object; the tag is taken from
the record's ``expenseCategory`` when parsing and stripped again when
serializing.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .constants import CategoryId, PaymentStatus


def _date_only(value: Any) -> Any:
    # "2024-03-15T00:00:00.000Z" -> "2024-03-15"
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        return value.split("T")[0]
    return value


class _SpecificBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(
            by_alias=True, exclude_none=True, exclude={"kind"}, mode="json"
        )


class HomeSpecific(_SpecificBase):
    kind: Literal["home"] = "home"
    home_type: Optional[str] = None


class LabourSpecific(_SpecificBase):
    kind: Literal["labour"] = "labour"
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None
    employee_type: Optional[str] = None
    employee_department: Optional[str] = None
    employee_position: Optional[str] = None
    salary_month: Optional[str] = None
    advance_reason: Optional[str] = None
    advance_amount: Optional[float] = None
    remaining_amount: Optional[float] = None

    @field_validator("advance_amount", "remaining_amount", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class FactorySpecific(_SpecificBase):
    kind: Literal["factory"] = "factory"
    factory_type: Optional[str] = None


class ZakatSpecific(_SpecificBase):
    kind: Literal["zakat"] = "zakat"
    zakat_type: Optional[str] = None
    zakat_year: Optional[int] = None


class PersonalSpecific(_SpecificBase):
    kind: Literal["personal"] = "personal"
    personal_type: Optional[str] = None


CategorySpecific = Annotated[
    Union[HomeSpecific, LabourSpecific, FactorySpecific, ZakatSpecific, PersonalSpecific],
    Field(discriminator="kind"),
]


def tag_specific(category_id: str, bag: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Attach the union tag to an untagged wire bag."""
    tagged = dict(bag or {})
    tagged.pop("kind", None)
    tagged["kind"] = category_id
    return tagged


class ExpenseRecord(BaseModel):
    """Read-mostly snapshot of a persisted expense as returned by the store."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    id: Optional[str] = Field(
        None, validation_alias=AliasChoices("_id", "id"), serialization_alias="_id"
    )
    category: CategoryId = Field(
        validation_alias=AliasChoices("expenseCategory", "category"),
        serialization_alias="expenseCategory",
    )
    title: str = ""
    description: Optional[str] = None
    amount: float
    amount_paid: float = 0.0
    payment_status: PaymentStatus = "paid"
    expense_date: date
    due_date: Optional[date] = None
    vendor: Optional[str] = None
    notes: Optional[str] = None
    category_specific: CategorySpecific
    outstanding_amount: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def tag_category_specific(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        category = data.get("expenseCategory", data.get("category"))
        key = "categorySpecific" if "categorySpecific" in data else "category_specific"
        bag = data.get(key)
        if isinstance(bag, BaseModel):
            return data
        data[key] = tag_specific(category, bag)
        return data

    @field_validator("expense_date", "due_date", mode="before")
    @classmethod
    def strip_time(cls, v: Any) -> Any:
        return _date_only(v)

    @field_validator("payment_status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        if v == "advance-pending":
            return "advance"
        return v

    @field_validator("amount_paid", "outstanding_amount", mode="before")
    @classmethod
    def missing_is_zero(cls, v: Any) -> Any:
        return 0.0 if v is None else v

    def specific_bag(self) -> Dict[str, Any]:
        return self.category_specific.to_wire()


class ExpensePayload(BaseModel):
    """Full-replace body sent on create and update."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    category: CategoryId = Field(serialization_alias="expenseCategory")
    title: str
    description: Optional[str] = None
    amount: float
    amount_paid: float
    expense_date: date
    vendor: Optional[str] = None
    notes: Optional[str] = None
    category_specific: CategorySpecific

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude={"category_specific": {"kind"}},
            mode="json",
        )
