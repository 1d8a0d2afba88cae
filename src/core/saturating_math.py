"""
Saturating arithmetic.

These helpers clamp to `MAX_UINT256` instead of raising. They are used only
where losing precision at the top of the range is preferable to making a
market impossible to exit (interest accrual, dex-unit scaling). Everything
else uses the checked helpers in `fixed_point.py`.
"""

from __future__ import annotations

from .fixed_point import MAX_UINT256


def saturating_mul_div(x: int, y: int, d: int) -> int:
    """floor(x*y/d) clamped to MAX_UINT256; a zero divisor saturates."""
    if d == 0:
        return MAX_UINT256
    return min((x * y) // d, MAX_UINT256)


def saturating_mul_div_up(x: int, y: int, d: int) -> int:
    if d == 0:
        return MAX_UINT256
    q, r = divmod(x * y, d)
    if r:
        q += 1
    return min(q, MAX_UINT256)


def saturating_mul_shift(x: int, y: int, shift: int) -> int:
    """floor(x*y / 2**shift) clamped to MAX_UINT256."""
    if shift < 0:
        raise ValueError("shift must be >= 0")
    return min((x * y) >> shift, MAX_UINT256)


def saturating_add(x: int, y: int) -> int:
    return min(x + y, MAX_UINT256)


def saturating_sub(x: int, y: int) -> int:
    """x - y floored at zero."""
    return x - y if x > y else 0
