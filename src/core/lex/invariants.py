"""Post-state invariant checkers for LEX markets.

Each function returns True when the invariant holds; `check_all()` returns
the names of violated invariants (empty = all pass). They run on the state an
action is about to commit, with the claim supplies it will leave behind.
"""

from __future__ import annotations

from typing import Callable

from .guards import MAX_CLAIM_SUPPLY
from .types import LexParams, LexState, MarketSupplies

InvariantFn = Callable[[LexParams, LexState, MarketSupplies], bool]


def inv_price_within_edges(p: LexParams, s: LexState, m: MarketSupplies) -> bool:
    return p.edge_sqrt_price_low <= s.last_sqrt_price <= p.edge_sqrt_price_high


def inv_notional_price_positive(p: LexParams, s: LexState, m: MarketSupplies) -> bool:
    return s.last_debt_notional_price >= 1


def inv_etwap_non_negative(p: LexParams, s: LexState, m: MarketSupplies) -> bool:
    return s.last_etwap_base_supply >= 0


def inv_claims_within_ceiling(p: LexParams, s: LexState, m: MarketSupplies) -> bool:
    return m.leverage_supply <= MAX_CLAIM_SUPPLY and m.yield_supply <= MAX_CLAIM_SUPPLY


def inv_no_orphan_collateral(p: LexParams, s: LexState, m: MarketSupplies) -> bool:
    if m.leverage_supply or m.yield_supply:
        return True
    return m.base_supply == 0


INVARIANT_REGISTRY: dict[str, InvariantFn] = {
    "price_within_edges": inv_price_within_edges,
    "notional_price_positive": inv_notional_price_positive,
    "etwap_non_negative": inv_etwap_non_negative,
    "claims_within_ceiling": inv_claims_within_ceiling,
    "no_orphan_collateral": inv_no_orphan_collateral,
}


def check_all(params: LexParams, state: LexState, supplies: MarketSupplies) -> list[str]:
    return [name for name, fn in INVARIANT_REGISTRY.items() if not fn(params, state, supplies)]
