"""Utility functions for campaign metric calculations and number coercion."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Optional


def round2(value: float) -> float:
    """
    Round to 2 decimal places, halves rounded up.

    The built-in round() uses banker's rounding, which would make the stored
    budgets and percentages drift from the dashboard figures by a cent.
    """
    return math.floor(float(value) * 100 + 0.5) / 100


def calculate_budget_utilization(spend: float, budget: float) -> float:
    """Spend as a percentage of the daily budget (0 when budget <= 0)."""
    if budget <= 0:
        return 0.0
    return spend / budget * 100


def calculate_acos(spend: float, sales: float) -> float:
    """Advertising cost of sale as a percentage (0 when sales <= 0)."""
    if sales <= 0:
        return 0.0
    return spend / sales * 100


def to_finite_float(value: Any) -> Optional[float]:
    """
    Coerce a raw value to a finite float.

    Returns None for missing, boolean, empty, non-numeric or non-finite
    input so callers can decide on their own fallback.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (int, float, Decimal)):
        return None

    try:
        parsed = float(value)
    except (ValueError, OverflowError):
        return None

    return parsed if math.isfinite(parsed) else None


def to_number(value: Any, fallback: float) -> float:
    """Coerce to a finite float, substituting ``fallback`` on failure."""
    parsed = to_finite_float(value)
    return fallback if parsed is None else parsed
