from __future__ import annotations

from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import CategoryId, FieldKind


class FieldSpec(BaseModel):
    """One category-specific input."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    kind: FieldKind
    options: Tuple[str, ...] = ()
    required: bool = False
    min: Optional[float] = None
    max: Optional[float] = None
    read_only: bool = False  # derived fields are displayed, never typed

    @model_validator(mode="after")
    def options_match_kind(self) -> "FieldSpec":
        if self.kind == "select" and not self.options:
            raise ValueError(f"select field '{self.key}' needs at least one option")
        if self.kind != "select" and self.options:
            raise ValueError(f"only select fields take options ('{self.key}')")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"field '{self.key}' has min > max")
        return self


class CategoryDefinition(BaseModel):
    """Immutable description of one expense category.

    Visibility flags are tri-state: ``None`` means "not specified" and is
    treated as shown. Only an explicit ``False`` hides a section.
    """

    model_config = ConfigDict(frozen=True)

    id: CategoryId
    name: str
    description: str
    fields: Tuple[FieldSpec, ...] = ()
    show_title: Optional[bool] = None
    show_vendor: Optional[bool] = None
    show_notes: Optional[bool] = None
    show_description: Optional[bool] = None
    show_amount_paid: Optional[bool] = None

    # Title synthesis inputs
    title_noun: str = "Expense"
    subtype_key: Optional[str] = None
    title_literal: Optional[str] = None  # zakat: "Zakat - <year>"

    # Keys written by payload shaping rather than typed by the user
    fixed_extras: FrozenSet[str] = Field(default_factory=frozenset)

    @model_validator(mode="after")
    def keys_are_unique(self) -> "CategoryDefinition":
        keys = [f.key for f in self.fields]
        if len(keys) != len(set(keys)):
            raise ValueError(f"duplicate field keys in category '{self.id}'")
        if self.subtype_key is not None and self.subtype_key not in keys:
            raise ValueError(
                f"subtype_key '{self.subtype_key}' is not a field of '{self.id}'"
            )
        return self

    @property
    def title_hidden(self) -> bool:
        return self.show_title is False

    @property
    def field_keys(self) -> Tuple[str, ...]:
        return tuple(f.key for f in self.fields)

    @property
    def allowed_specific_keys(self) -> FrozenSet[str]:
        return frozenset(self.field_keys) | self.fixed_extras

    def get_field(self, key: str) -> Optional[FieldSpec]:
        for f in self.fields:
            if f.key == key:
                return f
        return None
