"""
Sqrt-price math over the active range (Q64.96 prices).

Asset 0 is the yield-side virtual reserve (`L / sqrt(P)`), asset 1 the
leverage-side virtual reserve (`L * sqrt(P)`). Every function takes its
rounding direction explicitly; none of them clamps. A next price that would
leave `(0, MAX_UINT160]` raises `PriceOutOfRange` and callers decide how to
bound it to the market's edges.
"""

from __future__ import annotations

from .errors import PriceOutOfRange, ZeroLiquidity
from .fixed_point import MAX_UINT160, Q96, RESOLUTION, div_rounding


def _check_price(price: int) -> int:
    if price <= 0 or price > MAX_UINT160:
        raise PriceOutOfRange(f"sqrt price out of range: {price}")
    return price


def get_next_sqrt_price_from_amount0(
    sqrt_price: int, liquidity: int, amount: int, *, add: bool, round_up: bool
) -> int:
    """`L * P / (L +- amount * P)`; adding asset 0 lowers the price."""
    _check_price(sqrt_price)
    if liquidity <= 0:
        raise ZeroLiquidity("liquidity must be > 0")
    if amount == 0:
        return sqrt_price

    numerator = liquidity << RESOLUTION
    product = amount * sqrt_price
    if add:
        denominator = numerator + product
    else:
        if product >= numerator:
            raise PriceOutOfRange("amount0 removal exhausts the virtual reserve")
        denominator = numerator - product
    return _check_price(div_rounding(numerator * sqrt_price, denominator, round_up))


def get_next_sqrt_price_from_amount1(
    sqrt_price: int, liquidity: int, amount: int, *, add: bool, round_up: bool
) -> int:
    """`P +- amount / L`; adding asset 1 raises the price."""
    _check_price(sqrt_price)
    if liquidity <= 0:
        raise ZeroLiquidity("liquidity must be > 0")
    if amount == 0:
        return sqrt_price

    if add:
        return _check_price(sqrt_price + div_rounding(amount << RESOLUTION, liquidity, round_up))
    # a smaller quotient leaves a higher price
    quotient = div_rounding(amount << RESOLUTION, liquidity, not round_up)
    if quotient >= sqrt_price:
        raise PriceOutOfRange("amount1 removal exhausts the virtual reserve")
    return sqrt_price - quotient


def get_amount0_delta(sqrt_price_a: int, sqrt_price_b: int, liquidity: int, *, round_up: bool) -> int:
    """`L * (b - a) / (a * b)` for the two prices in either order."""
    if sqrt_price_a > sqrt_price_b:
        sqrt_price_a, sqrt_price_b = sqrt_price_b, sqrt_price_a
    if sqrt_price_a <= 0:
        raise PriceOutOfRange("sqrt price must be > 0")

    numerator1 = liquidity << RESOLUTION
    numerator2 = sqrt_price_b - sqrt_price_a
    return div_rounding(div_rounding(numerator1 * numerator2, sqrt_price_b, round_up), sqrt_price_a, round_up)


def get_amount1_delta(sqrt_price_a: int, sqrt_price_b: int, liquidity: int, *, round_up: bool) -> int:
    """`L * (b - a)` for the two prices in either order."""
    if sqrt_price_a > sqrt_price_b:
        sqrt_price_a, sqrt_price_b = sqrt_price_b, sqrt_price_a
    return div_rounding(liquidity * (sqrt_price_b - sqrt_price_a), Q96, round_up)
