"""
512-bit helpers over two 256-bit limbs.

Values are `(hi, lo)` pairs with `0 <= hi, lo < 2**256`. Python ints could hold
the full value directly; the limb form is kept so the comparison, the wrapping
subtraction and the square root have the same contracts as their fixed-width
counterparts:

- `lt512` is lexicographic (high limbs first, low limbs only on equal highs).
- `sub512x512` wraps modulo 2**512 instead of raising; callers prove `a >= b`
  with `lt512` before subtracting.
- `sqrt512` is a floor square root with an exact correction step.
"""

from __future__ import annotations

import math
from typing import Tuple

MASK256 = (1 << 256) - 1
_MASK128 = (1 << 128) - 1
_MOD512 = 1 << 512

Uint512 = Tuple[int, int]


def to_limbs(value: int) -> Uint512:
    if value < 0 or value >= _MOD512:
        raise ValueError(f"value does not fit in 512 bits: {value}")
    return value >> 256, value & MASK256


def from_limbs(hi: int, lo: int) -> int:
    return (hi << 256) | lo


def mul256x256(a: int, b: int) -> Uint512:
    """Full 512-bit product of two 256-bit values."""
    p = a * b
    return p >> 256, p & MASK256


def add512x512(a_hi: int, a_lo: int, b_hi: int, b_lo: int) -> Uint512:
    """Wrapping 512-bit addition."""
    lo = a_lo + b_lo
    carry = lo >> 256
    return (a_hi + b_hi + carry) & MASK256, lo & MASK256


def lt512(a_hi: int, a_lo: int, b_hi: int, b_lo: int) -> bool:
    """True when a < b, comparing the high limbs first."""
    return a_hi < b_hi or (a_hi == b_hi and a_lo < b_lo)


def sub512x512(a_hi: int, a_lo: int, b_hi: int, b_lo: int) -> Uint512:
    """Wrapping 512-bit subtraction (borrow propagates from the low limb)."""
    borrow = 1 if a_lo < b_lo else 0
    lo = (a_lo - b_lo) & MASK256
    hi = (a_hi - b_hi - borrow) & MASK256
    return hi, lo


def sqrt512(a_hi: int, a_lo: int) -> int:
    """
    Floor square root of a 512-bit value, returned as a 256-bit int.

    Karatsuba square root (Zimmermann): the input is shifted left by an even
    amount until the high limb has one of its top two bits set, the high limb's
    root is taken directly, and one division over 128-bit halves refines it.
    The candidate is then corrected by comparing its square against the
    remainder.
    """
    if a_hi == 0:
        return math.isqrt(a_lo)

    shift = (256 - a_hi.bit_length()) & ~1
    if shift:
        hi = ((a_hi << shift) | (a_lo >> (256 - shift))) & MASK256
        lo = (a_lo << shift) & MASK256
    else:
        hi, lo = a_hi, a_lo

    a1 = lo >> 128
    a0 = lo & _MASK128

    s_hi = math.isqrt(hi)
    r_hi = hi - s_hi * s_hi

    q, u = divmod((r_hi << 128) | a1, s_hi << 1)
    s = (s_hi << 128) + q

    # remainder = u*2^128 + a0 - q^2; a negative remainder means s is one too large
    rem_hi, rem_lo = to_limbs((u << 128) | a0)
    sq_hi, sq_lo = mul256x256(q, q)
    if lt512(rem_hi, rem_lo, sq_hi, sq_lo):
        s -= 1

    return s >> (shift >> 1)


def sqrt512_rounding_up(a_hi: int, a_lo: int) -> int:
    s = sqrt512(a_hi, a_lo)
    sq_hi, sq_lo = mul256x256(s, s)
    if sq_hi == a_hi and sq_lo == a_lo:
        return s
    return s + 1
