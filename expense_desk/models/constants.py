"""Closed enumerations shared by the registry, models and services."""

from typing import Literal, Tuple

CategoryId = Literal["home", "labour", "factory", "zakat", "personal"]
FieldKind = Literal["text", "select", "number", "month", "employee"]
PaymentStatus = Literal["paid", "pending", "advance"]

# Display order of the category grid
CATEGORY_IDS: Tuple[str, ...] = ("home", "labour", "factory", "zakat", "personal")

# Prefix addressing a category-specific input, e.g. "categorySpecific.homeType"
SPECIFIC_PREFIX = "categorySpecific."

CORE_FIELDS: Tuple[str, ...] = (
    "title",
    "description",
    "amount",
    "amountPaid",
    "expenseDate",
    "vendor",
    "notes",
)
