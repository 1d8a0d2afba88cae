"""Guard rails checked by every action.

Unlike pure predicates, each guard raises the matching `LexLimitError`
subclass so the failing rail is visible to the caller.
"""

from __future__ import annotations

from ..errors import (
    InvalidAmount,
    LtvExceeded,
    MintCapExceeded,
    RedeemCapExceeded,
    SlippageExceeded,
    SupplyCeilingExceeded,
    UnderCollateralizedAction,
)
from ..fixed_point import WAD, mul_div_rounding_up
from .types import LexConfig, LexParams, MarketState

MAX_CLAIM_SUPPLY = 1 << 242
MINT_CAP_MULTIPLIER = 2
REDEEM_CAP_DIVISOR = 2


def guard_not_under_collateralized(ms: MarketState) -> None:
    if ms.under_collateralized:
        raise UnderCollateralizedAction("action not allowed while the market is under-collateralized")


def guard_leverage_purchase(params: LexParams, ms: MarketState) -> None:
    if ms.sqrt_price > params.limit_max_sqrt_price:
        raise LtvExceeded("leverage purchases are disabled above the max-LTV price")


def guard_ltv_increase(params: LexParams, pre_sqrt_price: int, post_sqrt_price: int) -> None:
    """An action may not raise the price past the high-LTV limit; lowering it is always allowed."""
    if post_sqrt_price > pre_sqrt_price and post_sqrt_price > params.limit_high_sqrt_price:
        raise LtvExceeded(f"post-action price {post_sqrt_price} above high-LTV limit")


def caps_enabled(config: LexConfig, etwap_base_supply: int, base_after: int) -> bool:
    return not (etwap_base_supply < config.no_cap_limit or base_after < config.no_cap_limit)


def guard_mint_cap(config: LexConfig, ms: MarketState, base_after: int) -> None:
    etwap = ms.state.last_etwap_base_supply
    if caps_enabled(config, etwap, base_after) and base_after > etwap * MINT_CAP_MULTIPLIER:
        raise MintCapExceeded(f"base supply {base_after} above mint cap {etwap * MINT_CAP_MULTIPLIER}")


def guard_redeem_cap(config: LexConfig, ms: MarketState, base_after: int) -> None:
    etwap = ms.state.last_etwap_base_supply
    if caps_enabled(config, etwap, base_after) and base_after < etwap // REDEEM_CAP_DIVISOR:
        raise RedeemCapExceeded(f"base supply {base_after} below redeem cap {etwap // REDEEM_CAP_DIVISOR}")


def guard_supply_ceiling(name: str, supply_after: int) -> None:
    if supply_after > MAX_CLAIM_SUPPLY:
        raise SupplyCeilingExceeded(f"{name} supply {supply_after} above 2**242")


def guard_burn_within_supply(name: str, amount: int, supply: int) -> None:
    if amount > supply:
        raise InvalidAmount(f"{name} amount {amount} exceeds outstanding supply {supply}")


def guard_min_out(actual: int, minimum: int) -> None:
    if actual < minimum:
        raise SlippageExceeded(f"output {actual} below minimum {minimum}")


def guard_max_in(actual: int, maximum: int) -> None:
    """`maximum == 0` disables the check."""
    if maximum and actual > maximum:
        raise SlippageExceeded(f"input {actual} above maximum {maximum}")


# -- swap fee ------------------------------------------------------------------

def swap_fee_amount(amount: int, swap_fee: int) -> int:
    """Fee taken from `amount`, rounded up."""
    return mul_div_rounding_up(amount, swap_fee, WAD)


def gross_up_for_fee(net_amount: int, swap_fee: int) -> int:
    """Input whose post-fee amount covers `net_amount`, rounded up."""
    if net_amount == 0 or swap_fee == 0:
        return net_amount
    return mul_div_rounding_up(net_amount, WAD, WAD - swap_fee)
