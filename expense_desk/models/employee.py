from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Employee(BaseModel):
    """Entry of the employee reference list used by labour expenses."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    employee_id: str = ""
    first_name: str = ""
    last_name: str = ""
    department: str = ""
    position: str = ""
    employee_type: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
