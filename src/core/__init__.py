"""
Core LEX math: fixed point, 512-bit helpers, the latent invariant and debt accrual.
"""

from .debt_math import (
    accrue_interest,
    accrue_interest_ln_rate,
    calculate_approx_exponential_update,
    calculate_linear_accrual,
    ln_wad,
)
from .errors import LexError
from .fixed_point import Q96, Q128, Q192, RAY, WAD, MAX_UINT160, MAX_UINT256
from .latent_math import (
    AssetType,
    compute_liquidity,
    compute_ltv,
    compute_max_debt,
    compute_mint,
    compute_redeem,
    compute_swap,
    compute_target_x_vs_l,
    get_market_state_from_liquidity_and_debt,
    get_x_vs_l,
)
from .saturating_math import saturating_mul_div
from .uint512 import sqrt512

__all__ = [
    "AssetType",
    "LexError",
    "MAX_UINT160",
    "MAX_UINT256",
    "Q96",
    "Q128",
    "Q192",
    "RAY",
    "WAD",
    "accrue_interest",
    "accrue_interest_ln_rate",
    "calculate_approx_exponential_update",
    "calculate_linear_accrual",
    "compute_liquidity",
    "compute_ltv",
    "compute_max_debt",
    "compute_mint",
    "compute_redeem",
    "compute_swap",
    "compute_target_x_vs_l",
    "get_market_state_from_liquidity_and_debt",
    "get_x_vs_l",
    "ln_wad",
    "saturating_mul_div",
    "sqrt512",
]
