"""
Interest and decay math.

All exponentials use the truncated Taylor series `T(x) = 1 + x + x^2/2 + x^3/6`
evaluated in RAY, which underestimates `exp(x)` for `x >= 0`. Growth multiplies
by `T(x)` with saturating arithmetic; decay divides by it. Nothing here raises
for rate*time products in the practical domain; large inputs clamp instead.

Rates are natural-log rates in signed WAD per `duration` seconds.
"""

from __future__ import annotations

from .errors import LexArithmeticError
from .fixed_point import RAY, WAD
from .saturating_math import saturating_mul_div

SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# ln() is evaluated at 1e36 and truncated to WAD
_LN_PRECISION = 10**36
_WAD_TO_LN = _LN_PRECISION // WAD
_WAD_TO_RAY = RAY // WAD


def _atanh_series(y: int) -> int:
    """sum(y^(2k+1) / (2k+1)) for 0 <= y < 1 at `_LN_PRECISION`."""
    y2 = y * y // _LN_PRECISION
    term = y
    total = 0
    k = 1
    while term:
        total += term // k
        term = term * y2 // _LN_PRECISION
        k += 2
    return total


_LN2 = 2 * _atanh_series(_LN_PRECISION // 3)
LN2_WAD = _LN2 // _WAD_TO_LN


def _ln_at_least_one(x: int) -> int:
    # x = 2^k * m with 1 <= m < 2, ln(m) = 2 * atanh((m - 1) / (m + 1))
    k = (x // _LN_PRECISION).bit_length() - 1
    m = x >> k
    y = (m - _LN_PRECISION) * _LN_PRECISION // (m + _LN_PRECISION)
    return k * _LN2 + 2 * _atanh_series(y)


def ln_wad(x: int) -> int:
    """Natural log of a WAD value as signed WAD, truncated toward zero."""
    if x <= 0:
        raise LexArithmeticError("ln of non-positive value")
    scaled = x * _WAD_TO_LN
    if scaled >= _LN_PRECISION:
        return _ln_at_least_one(scaled) // _WAD_TO_LN
    return -(_ln_at_least_one(_LN_PRECISION * _LN_PRECISION // scaled) // _WAD_TO_LN)


def taylor_exp_ray(x: int) -> int:
    """`T(x)` for a non-negative RAY exponent."""
    x2 = x * x // RAY
    x3 = x2 * x // RAY
    return RAY + x + x2 // 2 + x3 // 6


def accrue_interest_ln_rate(amount: int, ln_rate: int, elapsed: int, duration: int) -> int:
    """
    Apply `exp(ln_rate * elapsed / duration)` to `amount`.

    A positive rate saturates at `MAX_UINT256`. A negative rate divides and
    never decays a positive amount to zero: the smallest result is 1.
    """
    if amount == 0 or ln_rate == 0 or elapsed == 0:
        return amount
    magnitude = -ln_rate if ln_rate < 0 else ln_rate
    x = saturating_mul_div(magnitude * _WAD_TO_RAY, elapsed, duration)
    factor = taylor_exp_ray(x)
    if ln_rate > 0:
        return saturating_mul_div(amount, factor, RAY)
    return max(amount * RAY // factor, 1)


def accrue_interest(
    amount: int,
    duration: int,
    discount_price: int,
    elapsed: int,
    rate_bias: int,
) -> int:
    """Accrue `amount` at `rate_bias - ln(discount_price)` for `elapsed` seconds."""
    rate = rate_bias - ln_wad(discount_price)
    return accrue_interest_ln_rate(amount, rate, elapsed, duration)


def calculate_approx_exponential_update(current: int, target: int, elapsed: int, period: int) -> int:
    """Move `current` toward `target` by `exp(-elapsed / period)` (signed values)."""
    if elapsed == 0 or current == target:
        return current
    factor = taylor_exp_ray(saturating_mul_div(elapsed, RAY, period))
    if current > target:
        return target + (current - target) * RAY // factor
    return target - (target - current) * RAY // factor


def calculate_linear_accrual(value: int, rate_per_year: int, elapsed: int) -> tuple[int, int, int]:
    """
    Flat accrual of `value * rate_per_year * elapsed / (WAD * year)`.

    Returns `(whole, remainder, denominator)` so callers can decide how to
    treat the fractional part.
    """
    denominator = WAD * SECONDS_PER_YEAR
    whole, remainder = divmod(value * rate_per_year * elapsed, denominator)
    return whole, remainder, denominator
