"""
Numeric helpers for the analytics boundaries.

All ratios go through safe_divide so no NaN or Infinity reaches a public
result.
"""

import math


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two floats, returning default if denominator is zero.

    A non-finite quotient (e.g. from a denormal denominator) also yields default.
    """
    if denominator == 0:
        return default
    result = numerator / denominator
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value to [lower, upper]. NaN collapses to lower."""
    if math.isnan(value):
        return lower
    return max(lower, min(value, upper))


def weighted_average_price(pairs) -> float:
    """
    Amount-weighted average price over (price, amount) pairs.

    Returns 0.0 when the total amount is zero.
    """
    total_amount = 0.0
    total_cost = 0.0
    for price, amount in pairs:
        total_amount += amount
        total_cost += price * amount
    return safe_divide(total_cost, total_amount)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3), unlike round()."""
    return int(math.floor(value + 0.5))
