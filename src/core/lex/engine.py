"""Dispatch-table engine for LEX market actions.

``execute(params, config, ms, request)`` is the single entry point for
mutating actions and their quotes. It:

1. Dispatches the request to the matching action in `actions.py`.
2. Builds the post-action supplies from the outcome's token movements.
3. Checks every invariant on the post-state.
4. Returns the ``ActionOutcome`` or raises.
"""

from __future__ import annotations

from typing import Callable, Union

from ..errors import LexInvariantError
from . import actions
from .invariants import check_all
from .types import (
    ActionOutcome,
    LexConfig,
    LexParams,
    MarketState,
    MarketSupplies,
    MintRequest,
    RedeemRequest,
    SwapRequest,
)

Request = Union[MintRequest, RedeemRequest, SwapRequest]
ActionFn = Callable[[LexParams, LexConfig, MarketState, Request], ActionOutcome]


def _run_mint(params: LexParams, config: LexConfig, ms: MarketState, req: MintRequest) -> ActionOutcome:
    return actions.mint(
        params, config, ms, req.base_in,
        min_leverage_out=req.min_leverage_out, min_yield_out=req.min_yield_out,
    )


def _run_redeem(params: LexParams, config: LexConfig, ms: MarketState, req: RedeemRequest) -> ActionOutcome:
    return actions.redeem(params, config, ms, req.leverage_in, req.yield_in, min_base_out=req.min_base_out)


def _run_swap(params: LexParams, config: LexConfig, ms: MarketState, req: SwapRequest) -> ActionOutcome:
    return actions.swap(
        params, config, ms, req.asset_in, req.asset_out, req.amount, req.is_exact_in, limit=req.limit,
    )


_DISPATCH: dict[type, ActionFn] = {
    MintRequest: _run_mint,
    RedeemRequest: _run_redeem,
    SwapRequest: _run_swap,
}


def supplies_after(ms: MarketState, outcome: ActionOutcome) -> MarketSupplies:
    return MarketSupplies(
        base_supply=outcome.base_supply,
        leverage_supply=ms.leverage_supply + outcome.leverage_out - outcome.leverage_in,
        yield_supply=ms.yield_supply + outcome.yield_out - outcome.yield_in,
    )


def execute(params: LexParams, config: LexConfig, ms: MarketState, request: Request) -> ActionOutcome:
    """Run one action against a valued market.

    Raises:
        LexError subclasses from the action's guards.
        LexInvariantError: the post-state violates one or more invariants.
    """
    fn = _DISPATCH.get(type(request))
    if fn is None:
        raise TypeError(f"unknown request type: {type(request).__name__}")

    outcome = fn(params, config, ms, request)

    violations = check_all(params, outcome.state, supplies_after(ms, outcome))
    if violations:
        raise LexInvariantError(violations)
    return outcome
