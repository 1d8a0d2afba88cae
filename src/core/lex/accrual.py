"""Time-based accrual applied at the start of every market touch.

For `elapsed = now - last_update_timestamp > 0`:

- the debt notional price accrues at `bias - ln(discount)`, with the discount
  taken at the *stored* price so a same-block price move cannot steer it;
- the protocol fee accrues linearly on base supply; a fee that truncates to
  zero is rounded up to 1 with probability `remainder / denominator`, drawn
  from a hash of the market id and state;
- the base-supply ETWAP decays toward the current base supply (half-life
  30 minutes);
- adaptive markets drift the rate bias toward the initial bias, or toward the
  workout bias while the stored price sits at the high edge.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace

from ..debt_math import (
    LN2_WAD,
    accrue_interest,
    calculate_approx_exponential_update,
    calculate_linear_accrual,
)
from ..fixed_point import WAD
from ..latent_math import get_debt_discount
from .types import LexConfig, LexParams, LexState

ETWAP_HALF_LIFE = 1800
# time constant of exp(-t / period) with a 1800s half-life
ETWAP_PERIOD = ETWAP_HALF_LIFE * WAD // LN2_WAD
WORKOUT_LN_RATE_BIAS = -WAD


@dataclass(frozen=True)
class AccrualResult:
    state: LexState
    base_supply: int
    protocol_fee: int


def fee_round_up_seed(market_id: str, state: LexState, base_supply: int, now: int) -> int:
    data = (
        b"LexProtocolFee"
        + market_id.encode("utf-8")
        + str(int(base_supply)).encode("utf-8")
        + str(int(state.last_debt_notional_price)).encode("utf-8")
        + str(int(state.last_sqrt_price)).encode("utf-8")
        + str(int(state.last_update_timestamp)).encode("utf-8")
        + str(int(now)).encode("utf-8")
    )
    return int.from_bytes(hashlib.sha256(data).digest(), "big")


def accrue_protocol_fee(
    config: LexConfig, state: LexState, base_supply: int, elapsed: int, now: int, market_id: str
) -> int:
    whole, remainder, denominator = calculate_linear_accrual(base_supply, config.protocol_fee_rate, elapsed)
    if whole == 0 and remainder > 0:
        if fee_round_up_seed(market_id, state, base_supply, now) % denominator < remainder:
            whole = 1
    return min(whole, base_supply)


def accrue(
    params: LexParams,
    config: LexConfig,
    state: LexState,
    base_supply: int,
    base_token_price: int,
    now: int,
    market_id: str,
) -> AccrualResult:
    if now <= state.last_update_timestamp:
        return AccrualResult(
            state=replace(state, last_base_token_price=base_token_price),
            base_supply=base_supply,
            protocol_fee=0,
        )

    elapsed = now - state.last_update_timestamp
    discount = get_debt_discount(
        state.last_sqrt_price,
        params.edge_sqrt_price_low,
        params.edge_sqrt_price_high,
        params.target_x_vs_l,
    )
    notional_price = accrue_interest(
        state.last_debt_notional_price,
        params.debt_duration,
        discount,
        elapsed,
        state.last_ln_rate_bias,
    )

    fee = accrue_protocol_fee(config, state, base_supply, elapsed, now, market_id)
    base_after = base_supply - fee

    etwap = calculate_approx_exponential_update(state.last_etwap_base_supply, base_after, elapsed, ETWAP_PERIOD)

    bias = state.last_ln_rate_bias
    if config.adaptive:
        if state.last_sqrt_price >= params.edge_sqrt_price_high:
            bias_target = WORKOUT_LN_RATE_BIAS
        else:
            bias_target = params.initial_ln_rate_bias
        bias = calculate_approx_exponential_update(bias, bias_target, elapsed, params.debt_duration)

    new_state = replace(
        state,
        last_debt_notional_price=notional_price,
        last_base_token_price=base_token_price,
        last_etwap_base_supply=etwap,
        last_update_timestamp=now,
        last_ln_rate_bias=bias,
    )
    return AccrualResult(state=new_state, base_supply=base_after, protocol_fee=fee)
