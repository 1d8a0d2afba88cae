"""
The latent-exchange invariant.

A market of liquidity `L` over the sqrt-price range `[sa, sb]` carries two
notional balances:

    y = L * (1/sqrt(Pa) - 1/sqrt(P))     (yield side, asset 0)
    l = L * (sqrt(Pb) - sqrt(P))         (leverage side, asset 1)

which satisfy `(L/sqrt(Pa) - y) * (L*sqrt(Pb) - l) = L^2`. The virtual reserves
are `L/sqrt(P)` and `L*sqrt(P)`, so minting claims removes from the virtual
pool and burning them adds back.

The collateral value backing `L` is `C = L * target / Q96` where `target` is
`X_y + X_l` at price 1. At price 1 the two notionals add up to `C` exactly.
"""

from __future__ import annotations

from enum import Enum, unique

from .errors import InvalidAsset, LexArithmeticError, PriceOutOfRange, ZeroLiquidity
from .fixed_point import BPS, MAX_UINT256, Q96, Q192, WAD, div_rounding
from .sqrt_price_math import (
    get_amount0_delta,
    get_amount1_delta,
    get_next_sqrt_price_from_amount0,
    get_next_sqrt_price_from_amount1,
)
from .uint512 import lt512, mul256x256, sqrt512, sqrt512_rounding_up, sub512x512, to_limbs


@unique
class AssetType(Enum):
    BASE = "base"
    LEVERAGE = "leverage"
    YIELD = "yield"


# ---------------------------------------------------------------------------
# Marginal ratios
# ---------------------------------------------------------------------------

def get_x_vs_l(sqrt_price: int, edge_low: int, edge_high: int, asset: AssetType, *, round_up: bool = False) -> int:
    """Balance of `asset` per unit of liquidity at `sqrt_price` (Q96)."""
    if asset is AssetType.YIELD:
        return div_rounding(Q192 * (sqrt_price - edge_low), sqrt_price * edge_low, round_up)
    if asset is AssetType.LEVERAGE:
        return edge_high - sqrt_price
    raise InvalidAsset(f"no liquidity ratio for {asset}")


def compute_target_x_vs_l(edge_low: int, edge_high: int) -> int:
    return (
        get_x_vs_l(Q96, edge_low, edge_high, AssetType.YIELD)
        + get_x_vs_l(Q96, edge_low, edge_high, AssetType.LEVERAGE)
    )


def liquidity_from_collateral(collateral: int, target_x_vs_l: int) -> int:
    return collateral * Q96 // target_x_vs_l


def collateral_from_liquidity(liquidity: int, target_x_vs_l: int) -> int:
    return liquidity * target_x_vs_l // Q96


def compute_ltv(edge_low: int, edge_high: int, sqrt_price: int) -> int:
    """LTV in bps: 0 at the low edge, 10000 at the high edge."""
    x_y = get_x_vs_l(sqrt_price, edge_low, edge_high, AssetType.YIELD)
    x_l = get_x_vs_l(sqrt_price, edge_low, edge_high, AssetType.LEVERAGE)
    total = x_y + x_l
    if total == 0:
        return 0
    return x_y * BPS // total


def sqrt_price_for_ltv(edge_low: int, edge_high: int, ltv_bps: int) -> int:
    """Smallest sqrt price whose LTV is at least `ltv_bps`."""
    if not 0 <= ltv_bps <= BPS:
        raise ValueError("ltv_bps must be in [0, 10000]")
    lo, hi = edge_low, edge_high
    while lo < hi:
        mid = (lo + hi) // 2
        if compute_ltv(edge_low, edge_high, mid) >= ltv_bps:
            hi = mid
        else:
            lo = mid + 1
    return lo


def get_debt_discount(sqrt_price: int, edge_low: int, edge_high: int, target_x_vs_l: int) -> int:
    """
    Market value of one unit of yield notional, in WAD.

    With `P = sqrt_price^2`, one yield unit trades for `P` leverage units, and
    the two notionals valued this way add up to the collateral. That gives
    `d = target * P / (X_y * P + X_l)`, exactly WAD at price 1.
    """
    x_y = get_x_vs_l(sqrt_price, edge_low, edge_high, AssetType.YIELD)
    x_l = get_x_vs_l(sqrt_price, edge_low, edge_high, AssetType.LEVERAGE)
    price_sq = sqrt_price * sqrt_price
    return WAD * target_x_vs_l * price_sq // (x_y * price_sq + x_l * Q192)


def get_leverage_unit_price(sqrt_price: int, edge_low: int, edge_high: int, target_x_vs_l: int) -> int:
    """Market value of one unit of leverage notional, in WAD."""
    x_y = get_x_vs_l(sqrt_price, edge_low, edge_high, AssetType.YIELD)
    x_l = get_x_vs_l(sqrt_price, edge_low, edge_high, AssetType.LEVERAGE)
    price_sq = sqrt_price * sqrt_price
    return WAD * target_x_vs_l * Q192 // (x_y * price_sq + x_l * Q192)


# ---------------------------------------------------------------------------
# Liquidity
# ---------------------------------------------------------------------------

def compute_liquidity(edge_low: int, edge_high: int, yield_value: int, leverage_value: int, *, round_up: bool) -> int:
    """
    Solve the invariant for `L` given both notional balances.

    In Q96 integers the invariant is

        L^2 (sb - sa) Q96 - L (l Q192 + y sa sb) + y l sa Q96 = 0

    and `L` is the larger root `beta + sqrt(beta^2 - q)`. Rounding `beta^2` and
    `q` apart can leave `beta^2 < q` for dust balances; the root term is then
    zero.
    """
    if yield_value == 0 and leverage_value == 0:
        return 0

    a = (edge_high - edge_low) * Q96
    b = leverage_value * Q192 + yield_value * edge_low * edge_high
    c = yield_value * leverage_value * edge_low * Q96

    beta = div_rounding(b, 2 * a, round_up)
    q = div_rounding(c, a, not round_up)
    if beta > MAX_UINT256:
        raise LexArithmeticError("liquidity solver overflow")

    beta_sq = mul256x256(beta, beta)
    q_limbs = to_limbs(q)
    if lt512(*beta_sq, *q_limbs):
        return beta

    diff = sub512x512(*beta_sq, *q_limbs)
    root = sqrt512_rounding_up(*diff) if round_up else sqrt512(*diff)
    return beta + root


def compute_mint(sqrt_price: int, edge_low: int, edge_high: int, liquidity_in: int) -> tuple[int, int]:
    """`(yield_out, leverage_out)` for `liquidity_in`, rounded down."""
    yield_out = get_amount0_delta(edge_low, sqrt_price, liquidity_in, round_up=False)
    leverage_out = get_amount1_delta(sqrt_price, edge_high, liquidity_in, round_up=False)
    return yield_out, leverage_out


def compute_max_debt(edge_low: int, edge_high: int, liquidity: int) -> int:
    """Yield notional carried by `liquidity` with the price at the high edge."""
    return get_amount0_delta(edge_low, edge_high, liquidity, round_up=False)


def get_market_state_from_liquidity_and_debt(
    edge_low: int, edge_high: int, liquidity: int, debt_value: int
) -> tuple[int, int]:
    """
    Price and leverage notional implied by `liquidity` and the yield notional.

    The price is rounded up (toward a higher debt valuation) and bounded by the
    high edge; the leverage value is rounded down.
    """
    if liquidity == 0:
        raise ZeroLiquidity("market has no liquidity")

    scaled = liquidity * Q96
    denominator = scaled - debt_value * edge_low
    if denominator <= 0:
        sqrt_price = edge_high
    else:
        sqrt_price = min(div_rounding(scaled * edge_low, denominator, True), edge_high)
    leverage_value = get_amount1_delta(sqrt_price, edge_high, liquidity, round_up=False)
    return sqrt_price, leverage_value


# ---------------------------------------------------------------------------
# Redeem / swap
# ---------------------------------------------------------------------------

def compute_redeem(
    liquidity: int,
    sqrt_price: int,
    edge_low: int,
    edge_high: int,
    yield_in: int,
    leverage_in: int,
) -> tuple[int, int]:
    """
    Liquidity released by burning `yield_in` and `leverage_in`.

    Returns `(liquidity_out, next_sqrt_price)`. Burning at least both current
    balances releases everything and resets the price to 1. Otherwise the
    remaining balances are re-solved rounding up, so the released liquidity is
    never overstated.
    """
    yield_balance = get_amount0_delta(edge_low, sqrt_price, liquidity, round_up=True)
    leverage_balance = get_amount1_delta(sqrt_price, edge_high, liquidity, round_up=True)
    if yield_in >= yield_balance and leverage_in >= leverage_balance:
        return liquidity, Q96

    yield_left = max(yield_balance - yield_in, 0)
    leverage_left = max(leverage_balance - leverage_in, 0)
    liquidity_left = compute_liquidity(edge_low, edge_high, yield_left, leverage_left, round_up=True)
    if liquidity_left == 0:
        return liquidity, Q96

    next_price, _ = get_market_state_from_liquidity_and_debt(edge_low, edge_high, liquidity_left, yield_left)
    next_price = max(next_price, edge_low)
    return max(liquidity - liquidity_left, 0), next_price


def compute_swap(
    liquidity: int,
    sqrt_price: int,
    edge_low: int,
    edge_high: int,
    fixed_asset: AssetType,
    amount: int,
    is_exact_in: bool,
) -> tuple[int, int]:
    """
    Swap between the yield and leverage notionals at constant liquidity.

    `fixed_asset` is the input for exact-in swaps and the output for exact-out
    swaps. Returns `(amount_calculated, next_sqrt_price)`; rounding always
    favours the market.
    """
    if liquidity == 0:
        raise ZeroLiquidity("market has no liquidity")

    if fixed_asset is AssetType.YIELD:
        if is_exact_in:
            next_price = get_next_sqrt_price_from_amount0(sqrt_price, liquidity, amount, add=True, round_up=True)
            if next_price < edge_low:
                raise PriceOutOfRange("swap moves price below the low edge")
            out = get_amount1_delta(next_price, sqrt_price, liquidity, round_up=False)
            return out, next_price
        next_price = get_next_sqrt_price_from_amount0(sqrt_price, liquidity, amount, add=False, round_up=True)
        if next_price > edge_high:
            raise PriceOutOfRange("swap moves price above the high edge")
        needed = get_amount1_delta(sqrt_price, next_price, liquidity, round_up=True)
        return needed, next_price

    if fixed_asset is AssetType.LEVERAGE:
        if is_exact_in:
            next_price = get_next_sqrt_price_from_amount1(sqrt_price, liquidity, amount, add=True, round_up=False)
            if next_price > edge_high:
                raise PriceOutOfRange("swap moves price above the high edge")
            out = get_amount0_delta(sqrt_price, next_price, liquidity, round_up=False)
            return out, next_price
        next_price = get_next_sqrt_price_from_amount1(sqrt_price, liquidity, amount, add=False, round_up=False)
        if next_price < edge_low:
            raise PriceOutOfRange("swap moves price below the low edge")
        needed = get_amount0_delta(next_price, sqrt_price, liquidity, round_up=True)
        return needed, next_price

    raise InvalidAsset(f"cannot swap {fixed_asset} on the curve")
