"""
Fixed-point bases and the rounding-division helpers every kernel shares.

Binary bases (Q96/Q128/Q192) carry sqrt prices; decimal bases (WAD/RAY) carry
rates, notional prices and oracle values.

`div_rounding` is the single rounding primitive. It is full width: the sqrt
price and invariant math use it where the caller range-checks the result
itself. `mul_div`, `mul_div_rounding_up` and `div_rounding_up` are the
*checked* flavour: a result that does not fit in 256 bits raises
`LexArithmeticError`. A zero divisor raises `LexArithmeticError` everywhere.
Operations that are allowed to clamp instead live in `saturating_math.py`.
"""

from __future__ import annotations

from .errors import LexArithmeticError

RESOLUTION = 96
Q96 = 1 << 96
Q128 = 1 << 128
Q192 = 1 << 192

WAD = 10**18
RAY = 10**27
BPS = 10_000

MAX_UINT128 = (1 << 128) - 1
MAX_UINT160 = (1 << 160) - 1
MAX_UINT256 = (1 << 256) - 1


def require_uint256(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0 or value > MAX_UINT256:
        raise LexArithmeticError(f"{name} out of uint256 range: {value}")
    return value


def _checked(result: int) -> int:
    if result > MAX_UINT256:
        raise LexArithmeticError("result exceeds uint256")
    return result


def div_rounding(x: int, d: int, round_up: bool) -> int:
    """x/d rounded in the requested direction, full width (unchecked result)."""
    if d == 0:
        raise LexArithmeticError("division by zero")
    q, r = divmod(x, d)
    if round_up and r:
        q += 1
    return q


def mul_div(x: int, y: int, d: int, *, round_up: bool = False) -> int:
    """x*y/d with a full-width intermediate product; floor unless `round_up`."""
    return _checked(div_rounding(x * y, d, round_up))


def mul_div_rounding_up(x: int, y: int, d: int) -> int:
    return mul_div(x, y, d, round_up=True)


def div_rounding_up(x: int, d: int) -> int:
    return _checked(div_rounding(x, d, True))
