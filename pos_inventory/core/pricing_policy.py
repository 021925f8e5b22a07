"""Demand-based price movement.

Prices step up on every sale and step down when a product sits idle while its
organization keeps selling. Both directions stop at their bound, and a call at
the bound returns the current price unchanged so callers can skip recording
a no-op.
"""

from decimal import Decimal
from typing import Optional

from pos_inventory.core.money import ZERO, to_decimal


def increase(current, step, max_bound=None) -> Decimal:
    current = to_decimal(current)
    step = to_decimal(step)
    if step < 0:
        raise ValueError("price step must be non-negative")
    if max_bound is None:
        return current + step

    max_bound = to_decimal(max_bound)
    if current >= max_bound:
        return current
    return min(current + step, max_bound)


def effective_floor(step, min_bound=None) -> Decimal:
    if min_bound is None:
        return to_decimal(step)
    return to_decimal(min_bound)


def decay(current, step, min_bound: Optional[Decimal] = None) -> Decimal:
    current = to_decimal(current)
    step = to_decimal(step)
    if step < 0:
        raise ValueError("price step must be non-negative")

    floor = max(effective_floor(step, min_bound), ZERO)
    if current <= floor:
        return current
    return max(current - step, floor)


def is_noop(before, after) -> bool:
    return to_decimal(before) == to_decimal(after)


__all__ = ["decay", "effective_floor", "increase", "is_noop"]
