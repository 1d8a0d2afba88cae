"""Mint, redeem and swap against a valued `MarketState`.

Each function is pure: it takes the market view produced by
`compute_market_state` and returns an `ActionOutcome` describing every token
movement and the new `LexState`. Quotes and mutating calls share these
functions, so a quote taken immediately before an action returns the same
amounts.

Rounding always favours the market: outputs round down, required inputs round
up, and the swap fee is taken on the input side.
"""

from __future__ import annotations

from dataclasses import replace

from ..errors import InvalidAmount, InvalidAsset, PriceOutOfRange, UnderCollateralizedAction, ZeroLiquidity
from ..fixed_point import Q96, mul_div_rounding_up
from ..latent_math import (
    AssetType,
    compute_liquidity,
    compute_max_debt,
    compute_mint,
    compute_redeem,
    compute_swap,
    get_market_state_from_liquidity_and_debt,
)
from ..sqrt_price_math import get_amount0_delta
from .guards import (
    guard_burn_within_supply,
    guard_leverage_purchase,
    guard_ltv_increase,
    guard_max_in,
    guard_min_out,
    guard_mint_cap,
    guard_not_under_collateralized,
    guard_redeem_cap,
    guard_supply_ceiling,
    gross_up_for_fee,
    swap_fee_amount,
)
from .market_state import (
    base_needed_for_liquidity,
    base_to_liquidity,
    leverage_dex_to_tokens,
    leverage_tokens_to_dex,
    liquidity_to_base,
    yield_dex_to_tokens,
    yield_tokens_to_dex,
)
from .types import ActionOutcome, LexConfig, LexParams, MarketState


def _to_dex(ms: MarketState, asset: AssetType, tokens: int, *, round_up: bool) -> int:
    if asset is AssetType.YIELD:
        return yield_tokens_to_dex(ms, tokens, round_up=round_up)
    return leverage_tokens_to_dex(ms, tokens, round_up=round_up)


def _to_tokens(ms: MarketState, asset: AssetType, value: int, *, round_up: bool) -> int:
    if asset is AssetType.YIELD:
        return yield_dex_to_tokens(ms, value, round_up=round_up)
    return leverage_dex_to_tokens(ms, value, round_up=round_up)


def _supply(ms: MarketState, asset: AssetType) -> int:
    return ms.yield_supply if asset is AssetType.YIELD else ms.leverage_supply


def _claims(asset: AssetType, amount_in: int = 0, amount_out: int = 0) -> dict[str, int]:
    prefix = "yield" if asset is AssetType.YIELD else "leverage"
    moved = {}
    if amount_in:
        moved[f"{prefix}_in"] = amount_in
    if amount_out:
        moved[f"{prefix}_out"] = amount_out
    return moved


def _check_minted(ms: MarketState, leverage_out: int, yield_out: int) -> None:
    guard_supply_ceiling("leverage", ms.leverage_supply + leverage_out)
    guard_supply_ceiling("yield", ms.yield_supply + yield_out)


def _price_from_yield_side(params: LexParams, liquidity: int, leverage_value: int) -> int:
    """Price that leaves `leverage_value` on the leverage side, rounded down."""
    low, high = params.edge_sqrt_price_low, params.edge_sqrt_price_high
    price = high - mul_div_rounding_up(leverage_value, Q96, liquidity)
    if price < low:
        raise PriceOutOfRange("leverage side exceeds the remaining liquidity")
    return price


# ---------------------------------------------------------------------------
# Mint
# ---------------------------------------------------------------------------

def mint(
    params: LexParams,
    config: LexConfig,
    ms: MarketState,
    base_in: int,
    *,
    min_leverage_out: int = 0,
    min_yield_out: int = 0,
) -> ActionOutcome:
    """Deposit collateral for both claims at the current price."""
    if base_in <= 0:
        raise InvalidAmount("base_in must be > 0")
    guard_not_under_collateralized(ms)

    net = base_in - swap_fee_amount(base_in, params.swap_fee)
    liquidity_in = base_to_liquidity(ms, params, config, net, round_up=False)
    if liquidity_in == 0:
        raise ZeroLiquidity("mint amount buys no liquidity")

    yield_dex, leverage_dex = compute_mint(
        ms.sqrt_price, params.edge_sqrt_price_low, params.edge_sqrt_price_high, liquidity_in
    )
    yield_out = yield_dex_to_tokens(ms, yield_dex, round_up=False)
    leverage_out = leverage_dex_to_tokens(ms, leverage_dex, round_up=False)

    base_after = ms.base_supply + base_in
    guard_mint_cap(config, ms, base_after)
    _check_minted(ms, leverage_out, yield_out)
    guard_min_out(leverage_out, min_leverage_out)
    guard_min_out(yield_out, min_yield_out)

    return ActionOutcome(
        state=ms.state,
        base_supply=base_after,
        protocol_fee=ms.protocol_fee,
        base_in=base_in,
        leverage_out=leverage_out,
        yield_out=yield_out,
    )


# ---------------------------------------------------------------------------
# Redeem
# ---------------------------------------------------------------------------

def is_full_redeem(ms: MarketState, leverage_in: int, yield_in: int) -> bool:
    return leverage_in == ms.leverage_supply and yield_in == ms.yield_supply


def _full_redeem(ms: MarketState, leverage_in: int, yield_in: int) -> ActionOutcome:
    return ActionOutcome(
        state=replace(ms.state, last_sqrt_price=Q96),
        base_supply=0,
        protocol_fee=ms.protocol_fee,
        base_out=ms.base_supply,
        leverage_in=leverage_in,
        yield_in=yield_in,
        amount_calculated=ms.base_supply,
    )


def _pro_rata_base_out(ms: MarketState, leverage_in: int, yield_in: int) -> int:
    """Unwind of a broken market: yield holders share the collateral pro rata."""
    if ms.yield_supply > 0:
        return ms.base_supply * yield_in // ms.yield_supply
    if ms.leverage_supply > 0:
        return ms.base_supply * leverage_in // ms.leverage_supply
    return 0


def _redeem_on_curve(params: LexParams, ms: MarketState, leverage_in: int, yield_in: int) -> tuple[int, int]:
    """`(gross_base_out, next_sqrt_price)` for burning claims at the current price."""
    yield_dex = yield_tokens_to_dex(ms, yield_in, round_up=False)
    leverage_dex = leverage_tokens_to_dex(ms, leverage_in, round_up=False)
    liquidity_out, next_price = compute_redeem(
        ms.liquidity,
        ms.sqrt_price,
        params.edge_sqrt_price_low,
        params.edge_sqrt_price_high,
        yield_dex,
        leverage_dex,
    )
    return liquidity_to_base(ms, liquidity_out, round_up=False), next_price


def redeem(
    params: LexParams,
    config: LexConfig,
    ms: MarketState,
    leverage_in: int,
    yield_in: int,
    *,
    min_base_out: int = 0,
) -> ActionOutcome:
    """Burn claims for collateral."""
    if leverage_in < 0 or yield_in < 0 or (leverage_in == 0 and yield_in == 0):
        raise InvalidAmount("redeem needs a positive amount")
    guard_burn_within_supply("leverage", leverage_in, ms.leverage_supply)
    guard_burn_within_supply("yield", yield_in, ms.yield_supply)

    if is_full_redeem(ms, leverage_in, yield_in):
        outcome = _full_redeem(ms, leverage_in, yield_in)
        guard_min_out(outcome.base_out, min_base_out)
        return outcome

    if ms.under_collateralized or ms.liquidity == 0:
        base_out = _pro_rata_base_out(ms, leverage_in, yield_in)
        next_price = ms.sqrt_price
    else:
        gross, next_price = _redeem_on_curve(params, ms, leverage_in, yield_in)
        base_out = gross - swap_fee_amount(gross, params.swap_fee)
        guard_ltv_increase(params, ms.sqrt_price, next_price)

    base_after = ms.base_supply - base_out
    guard_redeem_cap(config, ms, base_after)
    guard_min_out(base_out, min_base_out)

    return ActionOutcome(
        state=replace(ms.state, last_sqrt_price=next_price),
        base_supply=base_after,
        protocol_fee=ms.protocol_fee,
        base_out=base_out,
        leverage_in=leverage_in,
        yield_in=yield_in,
        amount_calculated=base_out,
    )


# ---------------------------------------------------------------------------
# Swap
# ---------------------------------------------------------------------------

def _swap_claims(
    params: LexParams, ms: MarketState, asset_in: AssetType, asset_out: AssetType, amount: int, is_exact_in: bool
) -> ActionOutcome:
    """Yield <-> leverage along the curve at constant liquidity."""
    if ms.liquidity == 0:
        raise ZeroLiquidity("market has no liquidity")
    low, high = params.edge_sqrt_price_low, params.edge_sqrt_price_high

    if is_exact_in:
        guard_burn_within_supply(asset_in.value, amount, _supply(ms, asset_in))
        net = amount - swap_fee_amount(amount, params.swap_fee)
        value_in = _to_dex(ms, asset_in, net, round_up=False)
        value_out, next_price = compute_swap(ms.liquidity, ms.sqrt_price, low, high, asset_in, value_in, True)
        amount_in = amount
        amount_out = _to_tokens(ms, asset_out, value_out, round_up=False)
        calculated = amount_out
    else:
        value_out = _to_dex(ms, asset_out, amount, round_up=True)
        value_in, next_price = compute_swap(ms.liquidity, ms.sqrt_price, low, high, asset_out, value_out, False)
        amount_in = gross_up_for_fee(_to_tokens(ms, asset_in, value_in, round_up=True), params.swap_fee)
        amount_out = amount
        calculated = amount_in
        guard_burn_within_supply(asset_in.value, amount_in, _supply(ms, asset_in))

    _check_minted(
        ms,
        amount_out if asset_out is AssetType.LEVERAGE else 0,
        amount_out if asset_out is AssetType.YIELD else 0,
    )
    moved = {**_claims(asset_in, amount_in=amount_in), **_claims(asset_out, amount_out=amount_out)}
    return ActionOutcome(
        state=replace(ms.state, last_sqrt_price=next_price),
        base_supply=ms.base_supply,
        protocol_fee=ms.protocol_fee,
        amount_calculated=calculated,
        **moved,
    )


def _swap_from_base(
    params: LexParams,
    config: LexConfig,
    ms: MarketState,
    asset_out: AssetType,
    amount: int,
    is_exact_in: bool,
) -> ActionOutcome:
    """
    Buy one claim with collateral.

    Buying leverage adds liquidity and keeps the debt; buying yield adds
    liquidity and keeps the leverage side.
    """
    low, high = params.edge_sqrt_price_low, params.edge_sqrt_price_high
    debt, leverage = ms.debt_value, ms.leverage_value

    if is_exact_in:
        net = amount - swap_fee_amount(amount, params.swap_fee)
        liquidity_after = ms.liquidity + base_to_liquidity(ms, params, config, net, round_up=False)
        if liquidity_after == 0:
            raise ZeroLiquidity("swap amount buys no liquidity")
        if asset_out is AssetType.LEVERAGE:
            next_price, leverage_after = get_market_state_from_liquidity_and_debt(low, high, liquidity_after, debt)
            next_price = max(next_price, low)
            value_out = max(leverage_after - leverage, 0)
        else:
            next_price = _price_from_yield_side(params, liquidity_after, leverage)
            debt_after = get_amount0_delta(low, next_price, liquidity_after, round_up=False)
            value_out = max(debt_after - debt, 0)
        base_in = amount
        amount_out = _to_tokens(ms, asset_out, value_out, round_up=False)
        calculated = amount_out
    else:
        value_out = _to_dex(ms, asset_out, amount, round_up=True)
        if asset_out is AssetType.LEVERAGE:
            liquidity_after = compute_liquidity(low, high, debt, leverage + value_out, round_up=True)
            next_price, _ = get_market_state_from_liquidity_and_debt(low, high, liquidity_after, debt)
            next_price = max(next_price, low)
        else:
            liquidity_after = compute_liquidity(low, high, debt + value_out, leverage, round_up=True)
            next_price, _ = get_market_state_from_liquidity_and_debt(low, high, liquidity_after, debt + value_out)
        added = max(liquidity_after - ms.liquidity, 0)
        base_in = gross_up_for_fee(base_needed_for_liquidity(ms, params, config, added), params.swap_fee)
        amount_out = amount
        calculated = base_in

    _check_minted(
        ms,
        amount_out if asset_out is AssetType.LEVERAGE else 0,
        amount_out if asset_out is AssetType.YIELD else 0,
    )
    guard_mint_cap(config, ms, ms.base_supply + base_in)

    return ActionOutcome(
        state=replace(ms.state, last_sqrt_price=next_price),
        base_supply=ms.base_supply + base_in,
        protocol_fee=ms.protocol_fee,
        base_in=base_in,
        amount_calculated=calculated,
        **_claims(asset_out, amount_out=amount_out),
    )


def _swap_to_base(
    params: LexParams,
    config: LexConfig,
    ms: MarketState,
    asset_in: AssetType,
    amount: int,
    is_exact_in: bool,
) -> ActionOutcome:
    """Sell one claim for collateral through the redeem path."""
    low, high = params.edge_sqrt_price_low, params.edge_sqrt_price_high
    supply_in = _supply(ms, asset_in)
    other_supply = ms.leverage_supply if asset_in is AssetType.YIELD else ms.yield_supply

    if is_exact_in:
        guard_burn_within_supply(asset_in.value, amount, supply_in)
        leverage_in = amount if asset_in is AssetType.LEVERAGE else 0
        yield_in = amount if asset_in is AssetType.YIELD else 0
        if amount == supply_in and other_supply == 0:
            return _full_redeem(ms, leverage_in, yield_in)

        net = amount - swap_fee_amount(amount, params.swap_fee)
        base_out, next_price = _redeem_on_curve(
            params,
            ms,
            net if asset_in is AssetType.LEVERAGE else 0,
            net if asset_in is AssetType.YIELD else 0,
        )
        amount_in = amount
        calculated = base_out
    else:
        base_out = amount
        if base_out > ms.base_supply:
            raise InvalidAmount(f"requested {base_out} exceeds base supply {ms.base_supply}")
        if ms.liquidity == 0 or ms.base_supply == 0:
            raise ZeroLiquidity("market has no liquidity")
        liquidity_out = mul_div_rounding_up(base_out, ms.liquidity, ms.base_supply)
        if liquidity_out >= ms.liquidity:
            raise InvalidAmount("exact-out swap would drain the market; redeem instead")
        liquidity_after = ms.liquidity - liquidity_out

        if asset_in is AssetType.YIELD:
            next_price = _price_from_yield_side(params, liquidity_after, ms.leverage_value)
            debt_after = get_amount0_delta(low, next_price, liquidity_after, round_up=False)
            value_in = max(ms.debt_value - debt_after, 0)
        else:
            if ms.debt_value > compute_max_debt(low, high, liquidity_after):
                raise PriceOutOfRange("swap moves price above the high edge")
            next_price, leverage_after = get_market_state_from_liquidity_and_debt(
                low, high, liquidity_after, ms.debt_value
            )
            next_price = max(next_price, low)
            value_in = max(ms.leverage_value - leverage_after, 0)

        amount_in = gross_up_for_fee(_to_tokens(ms, asset_in, value_in, round_up=True), params.swap_fee)
        guard_burn_within_supply(asset_in.value, amount_in, supply_in)
        calculated = amount_in

    guard_redeem_cap(config, ms, ms.base_supply - base_out)
    return ActionOutcome(
        state=replace(ms.state, last_sqrt_price=next_price),
        base_supply=ms.base_supply - base_out,
        protocol_fee=ms.protocol_fee,
        base_out=base_out,
        amount_calculated=calculated,
        **_claims(asset_in, amount_in=amount_in),
    )


def _swap_unwind(
    config: LexConfig, ms: MarketState, asset_in: AssetType, amount: int, is_exact_in: bool
) -> ActionOutcome:
    """Claim -> base while under-collateralized: pro rata to yield, no fee."""
    supply_in = _supply(ms, asset_in)
    if is_exact_in:
        guard_burn_within_supply(asset_in.value, amount, supply_in)
        leverage_in = amount if asset_in is AssetType.LEVERAGE else 0
        yield_in = amount if asset_in is AssetType.YIELD else 0
        base_out = _pro_rata_base_out(ms, leverage_in, yield_in)
        amount_in = amount
        calculated = base_out
    else:
        if asset_in is AssetType.LEVERAGE and ms.yield_supply > 0:
            raise UnderCollateralizedAction("leverage has no collateral claim while under-collateralized")
        if amount > ms.base_supply or ms.base_supply == 0:
            raise InvalidAmount(f"requested {amount} exceeds base supply {ms.base_supply}")
        base_out = amount
        amount_in = mul_div_rounding_up(amount, supply_in, ms.base_supply)
        guard_burn_within_supply(asset_in.value, amount_in, supply_in)
        calculated = amount_in

    guard_redeem_cap(config, ms, ms.base_supply - base_out)
    return ActionOutcome(
        state=ms.state,
        base_supply=ms.base_supply - base_out,
        protocol_fee=ms.protocol_fee,
        base_out=base_out,
        amount_calculated=calculated,
        **_claims(asset_in, amount_in=amount_in),
    )


def swap(
    params: LexParams,
    config: LexConfig,
    ms: MarketState,
    asset_in: AssetType,
    asset_out: AssetType,
    amount: int,
    is_exact_in: bool,
    *,
    limit: int = 0,
) -> ActionOutcome:
    """
    Swap between any two of base, leverage and yield.

    `limit` is the minimum output for exact-in swaps and the maximum input for
    exact-out swaps (0 disables it).
    """
    if amount <= 0:
        raise InvalidAmount("swap amount must be > 0")
    if asset_in is asset_out:
        raise InvalidAsset("swap assets must differ")

    if ms.under_collateralized:
        if asset_out is not AssetType.BASE:
            raise UnderCollateralizedAction("only claim -> base swaps are allowed while under-collateralized")
        outcome = _swap_unwind(config, ms, asset_in, amount, is_exact_in)
    else:
        if asset_out is AssetType.LEVERAGE:
            guard_leverage_purchase(params, ms)
        if asset_in is AssetType.BASE:
            outcome = _swap_from_base(params, config, ms, asset_out, amount, is_exact_in)
        elif asset_out is AssetType.BASE:
            if ms.liquidity == 0:
                outcome = _swap_unwind(config, ms, asset_in, amount, is_exact_in)
            else:
                outcome = _swap_to_base(params, config, ms, asset_in, amount, is_exact_in)
        else:
            outcome = _swap_claims(params, ms, asset_in, asset_out, amount, is_exact_in)
        guard_ltv_increase(params, ms.sqrt_price, outcome.state.last_sqrt_price)

    if is_exact_in:
        guard_min_out(outcome.amount_calculated, limit)
    else:
        guard_max_in(outcome.amount_calculated, limit)
    return outcome
