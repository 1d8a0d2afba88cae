"""
LEX market logic.

Pure functions over frozen dataclasses: `compute_market_state` values a market
after accrual, `engine.execute` runs one mint/redeem/swap against that view.
The stateful shell lives in `src.integration.market_engine`.
"""

from ..latent_math import AssetType
from .engine import execute
from .market_state import compute_market_state
from .params import load_params_yaml, load_preset, make_lex_params, params_from_mapping
from .state import initial_state
from .types import (
    ActionOutcome,
    LexConfig,
    LexParams,
    LexState,
    MarketState,
    MarketSupplies,
    MarketView,
    MintRequest,
    MintResult,
    RedeemRequest,
    RedeemResult,
    SwapRequest,
    SwapResult,
)

__all__ = [
    "ActionOutcome",
    "AssetType",
    "LexConfig",
    "LexParams",
    "LexState",
    "MarketState",
    "MarketSupplies",
    "MarketView",
    "MintRequest",
    "MintResult",
    "RedeemRequest",
    "RedeemResult",
    "SwapRequest",
    "SwapResult",
    "compute_market_state",
    "execute",
    "initial_state",
    "load_params_yaml",
    "load_preset",
    "make_lex_params",
    "params_from_mapping",
]
