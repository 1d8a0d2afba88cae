"""Exception types for the LEX market engine.

Every failure aborts the whole request. The hierarchy mirrors the four
failure families a caller has to tell apart:

- ``LexInputError``: malformed requests (zero amounts, unknown assets, ids).
- ``LexLimitError``: economic guard rails (LTV, caps, supply ceilings, slippage).
- ``LexMarketError``: market readiness (not initialized, locked, empty).
- ``LexArithmeticError``: unrecoverable arithmetic (checked overflow, zero divisor).

Each class carries a stable ``code`` string for logs and API responses.
"""

from __future__ import annotations


class LexError(Exception):
    """Base class for all engine errors."""

    code = "lex_error"


# -- (a) input validation ------------------------------------------------------

class LexInputError(LexError, ValueError):
    code = "invalid_input"


class InvalidAmount(LexInputError):
    code = "invalid_amount"


class InvalidAsset(LexInputError):
    code = "invalid_asset"


class MarketIdMismatch(LexInputError):
    code = "market_id_mismatch"


class InvalidParams(LexInputError):
    code = "invalid_params"


# -- (b) economic limits ---------------------------------------------------------

class LexLimitError(LexError):
    code = "limit"


class LtvExceeded(LexLimitError):
    code = "ltv_exceeded"


class UnderCollateralizedAction(LexLimitError):
    code = "under_collateralized"


class MintCapExceeded(LexLimitError):
    code = "mint_cap_exceeded"


class RedeemCapExceeded(LexLimitError):
    code = "redeem_cap_exceeded"


class SupplyCeilingExceeded(LexLimitError):
    code = "supply_ceiling_exceeded"


class SlippageExceeded(LexLimitError):
    code = "slippage_exceeded"


class PriceOutOfRange(LexLimitError):
    code = "price_out_of_range"


# -- (c) market readiness --------------------------------------------------------

class LexMarketError(LexError):
    code = "market"


class ZeroLiquidity(LexMarketError):
    code = "zero_liquidity"


class MarketNotInitialized(LexMarketError):
    code = "market_not_initialized"


class MarketAlreadyInitialized(LexMarketError):
    code = "market_already_initialized"


class MarketLocked(LexMarketError):
    code = "market_locked"


class Unauthorized(LexMarketError):
    code = "unauthorized"


# -- (d) arithmetic --------------------------------------------------------------

class LexArithmeticError(LexError, ArithmeticError):
    code = "arithmetic"


class LexInvariantError(LexError):
    """Raised when a committed post-state violates one or more invariants."""

    code = "invariant_violation"

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")
