"""Money / rounding helpers.

Centralized so derived fields, payload shaping and report snapshots use
identical parsing and rounding semantics.
"""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional


def round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def parse_amount(value: Any) -> Optional[float]:
    """Parse a form or wire value into a float; ``None`` when absent or invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_amount(value: float) -> str:
    """Render a number the way a form input holds it ("20000", "12.5")."""
    rounded = round2(value)
    if rounded == int(rounded):
        return str(int(rounded))
    return str(rounded)
