"""
Market identity and the per-market record kept by the market shell.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..core.lex.types import LexConfig, LexParams, LexState

if TYPE_CHECKING:
    from ..integration.interfaces import ClaimTokenLike, PriceOracle

MARKET_ID_DOMAIN = b"LatentLexMarket"


def compute_market_id(base_asset: str, quote_asset: str, oracle_id: str, engine_id: str) -> str:
    """
    Deterministically compute a market id.

    The id commits to the collateral, the unit of account, the oracle router
    and the pricing-engine instance, so the same pair can be listed once per
    oracle/engine combination.
    """
    for name, value in (
        ("base_asset", base_asset),
        ("quote_asset", quote_asset),
        ("oracle_id", oracle_id),
        ("engine_id", engine_id),
    ):
        if not isinstance(value, str) or not value:
            raise ValueError(f"{name} must be a non-empty string")
    if base_asset == quote_asset:
        raise ValueError("base and quote assets must differ")

    data = (
        MARKET_ID_DOMAIN
        + base_asset.encode("utf-8")
        + b"\x00"
        + quote_asset.encode("utf-8")
        + b"\x00"
        + oracle_id.encode("utf-8")
        + b"\x00"
        + engine_id.encode("utf-8")
    )
    return "0x" + hashlib.sha256(data).hexdigest()


@dataclass
class MarketRecord:
    """
    Persistent state of one market.

    Attributes:
        market_id: Deterministic id (see `compute_market_id`)
        base_asset: Collateral asset id
        quote_asset: Unit-of-account asset id
        params: Pricing-engine parameters (shared, immutable)
        config: Market configuration
        state: Engine-owned state, replaced on every touch
        base_supply: Collateral held for claim holders
        protocol_fees: Collected protocol fees not yet withdrawn
        governor: Account allowed to change `no_cap_limit` and withdraw fees
        oracle: Price oracle used by this market
        leverage_token / yield_token: Claim-token objects owned by the market
    """

    market_id: str
    base_asset: str
    quote_asset: str
    params: LexParams
    config: LexConfig
    state: LexState
    governor: str
    oracle: PriceOracle
    leverage_token: ClaimTokenLike
    yield_token: ClaimTokenLike
    base_supply: int = 0
    protocol_fees: int = 0
