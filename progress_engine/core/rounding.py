"""Percentage rounding shared by grading and progress metrics.

Percentages round half-up (50.5 -> 51), the same as the web client.
The built-in round() rounds half to even and is not used here.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_ONE = Decimal(1)


def round_half_up(value: float | int | Decimal) -> int:
    return int(Decimal(str(value)).quantize(_ONE, rounding=ROUND_HALF_UP))


def percent(numerator: int | float, denominator: int | float) -> int:
    """Return round_half_up(numerator / denominator * 100), 0 when denominator <= 0."""
    if denominator <= 0:
        return 0
    ratio = Decimal(str(numerator)) * 100 / Decimal(str(denominator))
    return int(ratio.quantize(_ONE, rounding=ROUND_HALF_UP))


def clamp_pct(value: int | float) -> float:
    return max(0.0, min(100.0, float(value)))
