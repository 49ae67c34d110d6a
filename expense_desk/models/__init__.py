"""Pydantic domain models for the expense workflow engine."""

from .constants import (
    CATEGORY_IDS,
    CORE_FIELDS,
    SPECIFIC_PREFIX,
)  # re-export
from .category import CategoryDefinition, FieldSpec
from .employee import Employee
from .expense import (
    CategorySpecific,
    ExpensePayload,
    ExpenseRecord,
    FactorySpecific,
    HomeSpecific,
    LabourSpecific,
    PersonalSpecific,
    ZakatSpecific,
)
from .form import FormState, WorkflowState
from .stats import Statistic, StatsOverview

__all__ = [
    "CATEGORY_IDS",
    "CORE_FIELDS",
    "SPECIFIC_PREFIX",
    "CategoryDefinition",
    "FieldSpec",
    "Employee",
    "CategorySpecific",
    "ExpensePayload",
    "ExpenseRecord",
    "FactorySpecific",
    "HomeSpecific",
    "LabourSpecific",
    "PersonalSpecific",
    "ZakatSpecific",
    "FormState",
    "WorkflowState",
    "Statistic",
    "StatsOverview",
]
