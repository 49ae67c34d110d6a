"""Derived value calculator.

A derived rule says "when any of these form keys change in this category,
recompute that key". Only labour registers one today (remaining balance after
an advance), but other categories can add rules with ``register_rule``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from expense_desk.models.category import CategoryDefinition
from expense_desk.models.constants import SPECIFIC_PREFIX
from expense_desk.models.form import FormState
from expense_desk.services.money import format_amount, parse_amount

logger = logging.getLogger("expense_desk.derived")


@dataclass(frozen=True)
class DerivedRule:
    category_id: str
    sources: Tuple[str, ...]
    target: str
    # Returns the new form text for ``target`` or None to clear it
    compute: Callable[[FormState], Optional[str]]


_RULES: List[DerivedRule] = []


def register_rule(rule: DerivedRule) -> None:
    _RULES.append(rule)


def rules_for(category_id: str) -> List[DerivedRule]:
    return [r for r in _RULES if r.category_id == category_id]


def remaining_after_advance(form: FormState) -> Optional[str]:
    """remaining = max(amount - advance, 0); cleared while amount is not a number."""
    amount = parse_amount(form.amount)
    if amount is None:
        return None
    advance = parse_amount(form.category_specific.get("advanceAmount")) or 0.0
    return format_amount(max(amount - advance, 0.0))


register_rule(
    DerivedRule(
        category_id="labour",
        sources=("amount", SPECIFIC_PREFIX + "advanceAmount"),
        target=SPECIFIC_PREFIX + "remainingAmount",
        compute=remaining_after_advance,
    )
)


def on_field_change(
    category: CategoryDefinition, changed_key: str, form: FormState
) -> FormState:
    """Return ``form`` with every rule triggered by ``changed_key`` re-applied."""
    for rule in rules_for(category.id):
        if changed_key not in rule.sources:
            continue
        value = rule.compute(form)
        if value is None:
            form = form.without_value(rule.target)
        else:
            form = form.with_value(rule.target, value)
        logger.debug("derived %s=%r from %s", rule.target, value, changed_key)
    return form


__all__ = [
    "DerivedRule",
    "register_rule",
    "rules_for",
    "remaining_after_advance",
    "on_field_change",
]
