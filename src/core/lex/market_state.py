"""Valuation: from supplies and the oracle price to a full `MarketState`.

Everything is recomputed from scratch on every touch. Notionals are kept in
"dex units": raw synthetic-token amounts divided by a scale factor chosen so
the market liquidity stays below 2**152 however large the market grows.
"""

from __future__ import annotations

from dataclasses import replace

from ..errors import ZeroLiquidity
from ..fixed_point import Q96, WAD, div_rounding, div_rounding_up, mul_div, mul_div_rounding_up
from ..latent_math import (
    compute_max_debt,
    get_market_state_from_liquidity_and_debt,
    liquidity_from_collateral,
)
from ..saturating_math import saturating_mul_div, saturating_mul_div_up
from .accrual import accrue
from .types import LexConfig, LexParams, LexState, MarketState, MarketSupplies

MAX_LIQUIDITY = (1 << 152) - 1


def collateral_value(base_amount: int, base_token_price: int, synth_decimals_offset: int) -> int:
    """Value of `base_amount` in 18-decimal synthetic units."""
    return saturating_mul_div(base_amount, base_token_price, 10 ** (18 - synth_decimals_offset))


def dex_scale(collateral: int, target_x_vs_l: int) -> int:
    raw_liquidity = liquidity_from_collateral(collateral, target_x_vs_l)
    if raw_liquidity <= MAX_LIQUIDITY:
        return 1
    return div_rounding_up(raw_liquidity, MAX_LIQUIDITY)


def compute_market_state(
    params: LexParams,
    config: LexConfig,
    state: LexState,
    supplies: MarketSupplies,
    base_token_price: int,
    now: int,
    market_id: str,
) -> MarketState:
    accrued = accrue(params, config, state, supplies.base_supply, base_token_price, now, market_id)
    new_state = accrued.state
    base_supply = accrued.base_supply

    collateral_raw = collateral_value(base_supply, base_token_price, config.synth_decimals_offset)
    scale = dex_scale(collateral_raw, params.target_x_vs_l)
    collateral = collateral_raw // scale
    liquidity = liquidity_from_collateral(collateral, params.target_x_vs_l)
    debt_value = saturating_mul_div_up(supplies.yield_supply, new_state.last_debt_notional_price, WAD * scale)

    low, high = params.edge_sqrt_price_low, params.edge_sqrt_price_high
    has_claims = supplies.yield_supply > 0 or supplies.leverage_supply > 0

    if liquidity == 0:
        under_collateralized = debt_value > 0
    else:
        under_collateralized = debt_value > compute_max_debt(low, high, liquidity)

    if not has_claims:
        sqrt_price = new_state.last_sqrt_price
        leverage_value = 0
    elif under_collateralized:
        sqrt_price = high
        leverage_value = 0
    elif liquidity == 0:
        sqrt_price = new_state.last_sqrt_price
        leverage_value = 0
    else:
        sqrt_price, leverage_value = get_market_state_from_liquidity_and_debt(low, high, liquidity, debt_value)
        sqrt_price = max(sqrt_price, low)

    return MarketState(
        state=replace(new_state, last_sqrt_price=sqrt_price),
        base_supply=base_supply,
        leverage_supply=supplies.leverage_supply,
        yield_supply=supplies.yield_supply,
        protocol_fee=accrued.protocol_fee,
        scale=scale,
        collateral=collateral,
        liquidity=liquidity,
        debt_value=debt_value,
        leverage_value=leverage_value,
        under_collateralized=under_collateralized,
    )


# ---------------------------------------------------------------------------
# Token <-> dex unit conversions
# ---------------------------------------------------------------------------

def yield_tokens_to_dex(ms: MarketState, tokens: int, *, round_up: bool) -> int:
    return mul_div(tokens, ms.debt_notional_price, WAD * ms.scale, round_up=round_up)


def yield_dex_to_tokens(ms: MarketState, value: int, *, round_up: bool) -> int:
    return mul_div(value * ms.scale, WAD, ms.debt_notional_price, round_up=round_up)


def leverage_tokens_to_dex(ms: MarketState, tokens: int, *, round_up: bool) -> int:
    """Leverage tokens are shares of the leverage notional."""
    if ms.leverage_supply == 0:
        return div_rounding(tokens, ms.scale, round_up)
    return mul_div(tokens, ms.leverage_value, ms.leverage_supply, round_up=round_up)


def leverage_dex_to_tokens(ms: MarketState, value: int, *, round_up: bool) -> int:
    if ms.leverage_supply == 0 or ms.leverage_value == 0:
        return value * ms.scale
    return mul_div(value, ms.leverage_supply, ms.leverage_value, round_up=round_up)


def base_to_liquidity(ms: MarketState, params: LexParams, config: LexConfig, base_amount: int, *, round_up: bool) -> int:
    """Liquidity bought by `base_amount` of collateral."""
    if ms.base_supply > 0 and ms.liquidity > 0:
        return mul_div(base_amount, ms.liquidity, ms.base_supply, round_up=round_up)
    value = collateral_value(base_amount, ms.state.last_base_token_price, config.synth_decimals_offset) // ms.scale
    return liquidity_from_collateral(value, params.target_x_vs_l)


def liquidity_to_base(ms: MarketState, liquidity: int, *, round_up: bool) -> int:
    """Collateral released by `liquidity`."""
    if ms.liquidity == 0:
        return 0
    return mul_div(liquidity, ms.base_supply, ms.liquidity, round_up=round_up)


def base_needed_for_liquidity(ms: MarketState, params: LexParams, config: LexConfig, liquidity: int) -> int:
    """Collateral a buyer must add for `liquidity`, rounded up."""
    if ms.base_supply > 0 and ms.liquidity > 0:
        return mul_div_rounding_up(liquidity, ms.base_supply, ms.liquidity)
    price = ms.state.last_base_token_price
    if price == 0:
        raise ZeroLiquidity("base token has no price")
    value = mul_div_rounding_up(liquidity, params.target_x_vs_l, Q96) * ms.scale
    return mul_div_rounding_up(value, 10 ** (18 - config.synth_decimals_offset), price)
