"""Data types for the LEX market engine.

All types are frozen dataclasses. Units/conventions:
- `*_sqrt_price` values are Q64.96 square roots of the market price.
- `*_notional_price`, `swap_fee`, `protocol_fee_rate` and rate biases are WAD.
- `last_base_token_price` is the oracle value of 10**18 base units in quote units.
- token amounts (`*_supply`, `*_in`, `*_out`) are integer claim/base units.
- `dex` values are notionals divided by the market's scale factor.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import InvalidAmount, InvalidAsset, InvalidParams
from ..fixed_point import MAX_UINT256, Q96, WAD
from ..latent_math import AssetType, compute_ltv, compute_target_x_vs_l

MIN_EDGE_SQRT_PRICE = Q96 // 256
MAX_EDGE_SQRT_PRICE = Q96 * 256
MIN_TARGET_LTV_BPS = 5_000
MAX_TARGET_LTV_BPS = 9_999
MAX_SYNTH_DECIMALS_OFFSET = 18


def _require_int(name: str, value: object) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidParams(f"{name} must be an int")
    return value


@dataclass(frozen=True)
class LexParams:
    """Pricing-engine parameters, shared by every market the engine governs."""

    edge_sqrt_price_low: int
    edge_sqrt_price_high: int
    limit_high_sqrt_price: int
    limit_max_sqrt_price: int
    debt_duration: int
    swap_fee: int
    initial_ln_rate_bias: int = 0
    target_x_vs_l: int = field(init=False)

    def __post_init__(self) -> None:
        for name in (
            "edge_sqrt_price_low",
            "edge_sqrt_price_high",
            "limit_high_sqrt_price",
            "limit_max_sqrt_price",
            "debt_duration",
            "swap_fee",
            "initial_ln_rate_bias",
        ):
            _require_int(name, getattr(self, name))

        low, high = self.edge_sqrt_price_low, self.edge_sqrt_price_high
        if not (MIN_EDGE_SQRT_PRICE <= low < Q96 < high <= MAX_EDGE_SQRT_PRICE):
            raise InvalidParams("edge prices must satisfy Q96/256 <= low < Q96 < high <= 256*Q96")
        if not (Q96 < self.limit_high_sqrt_price <= self.limit_max_sqrt_price <= high):
            raise InvalidParams("limit prices must satisfy Q96 < limit_high <= limit_max <= high edge")
        if self.debt_duration <= 0:
            raise InvalidParams("debt_duration must be > 0")
        if not 0 <= self.swap_fee < WAD:
            raise InvalidParams("swap_fee must be in [0, WAD)")

        target_ltv = compute_ltv(low, high, Q96)
        if not MIN_TARGET_LTV_BPS <= target_ltv <= MAX_TARGET_LTV_BPS:
            raise InvalidParams(f"target LTV {target_ltv} bps outside [{MIN_TARGET_LTV_BPS}, {MAX_TARGET_LTV_BPS}]")

        object.__setattr__(self, "target_x_vs_l", compute_target_x_vs_l(low, high))

    @property
    def target_ltv_bps(self) -> int:
        return compute_ltv(self.edge_sqrt_price_low, self.edge_sqrt_price_high, Q96)


@dataclass(frozen=True)
class LexConfig:
    """Per-market configuration, fixed at creation except `no_cap_limit`."""

    leverage_token: str
    yield_token: str
    protocol_fee_rate: int = 0
    no_cap_limit: int = 1
    synth_decimals_offset: int = 0
    adaptive: bool = False

    def __post_init__(self) -> None:
        if not self.leverage_token or not self.yield_token:
            raise InvalidParams("claim token ids must be non-empty")
        if self.leverage_token == self.yield_token:
            raise InvalidParams("claim tokens must differ")
        if not 0 <= _require_int("protocol_fee_rate", self.protocol_fee_rate) <= WAD:
            raise InvalidParams("protocol_fee_rate must be in [0, WAD]")
        if _require_int("no_cap_limit", self.no_cap_limit) < 1:
            raise InvalidParams("no_cap_limit must be >= 1")
        if not 0 <= _require_int("synth_decimals_offset", self.synth_decimals_offset) <= MAX_SYNTH_DECIMALS_OFFSET:
            raise InvalidParams("synth_decimals_offset must be in [0, 18]")


@dataclass(frozen=True)
class LexState:
    """Engine-owned per-market state, replaced on every touch."""

    last_sqrt_price: int = Q96
    last_debt_notional_price: int = WAD
    last_base_token_price: int = 0
    last_etwap_base_supply: int = 0
    last_update_timestamp: int = 0
    last_ln_rate_bias: int = 0


@dataclass(frozen=True)
class MarketSupplies:
    """External balances read at the start of a touch."""

    base_supply: int
    leverage_supply: int
    yield_supply: int

    def __post_init__(self) -> None:
        for name in ("base_supply", "leverage_supply", "yield_supply"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0 or value > MAX_UINT256:
                raise InvalidAmount(f"{name} must be a uint256")


@dataclass(frozen=True)
class MarketState:
    """Full market view after accrual and valuation."""

    state: LexState
    base_supply: int
    leverage_supply: int
    yield_supply: int
    protocol_fee: int
    scale: int
    collateral: int
    liquidity: int
    debt_value: int
    leverage_value: int
    under_collateralized: bool

    @property
    def sqrt_price(self) -> int:
        return self.state.last_sqrt_price

    @property
    def debt_notional_price(self) -> int:
        return self.state.last_debt_notional_price

    @property
    def has_claims(self) -> bool:
        return self.leverage_supply > 0 or self.yield_supply > 0


# ---------------------------------------------------------------------------
# Requests / results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MintRequest:
    market_id: str
    base_in: int
    recipient: str
    min_leverage_out: int = 0
    min_yield_out: int = 0

    def __post_init__(self) -> None:
        if self.base_in <= 0:
            raise InvalidAmount("base_in must be > 0")
        if not self.recipient:
            raise InvalidAmount("recipient must be non-empty")


@dataclass(frozen=True)
class RedeemRequest:
    market_id: str
    leverage_in: int
    yield_in: int
    recipient: str
    min_base_out: int = 0

    def __post_init__(self) -> None:
        if self.leverage_in < 0 or self.yield_in < 0:
            raise InvalidAmount("redeem amounts must be >= 0")
        if self.leverage_in == 0 and self.yield_in == 0:
            raise InvalidAmount("redeem needs a non-zero amount")
        if not self.recipient:
            raise InvalidAmount("recipient must be non-empty")


@dataclass(frozen=True)
class SwapRequest:
    """`limit` is the minimum output (exact in) or maximum input (exact out); 0 disables it."""

    market_id: str
    asset_in: AssetType
    asset_out: AssetType
    amount: int
    is_exact_in: bool
    recipient: str
    limit: int = 0

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise InvalidAmount("swap amount must be > 0")
        if not isinstance(self.asset_in, AssetType) or not isinstance(self.asset_out, AssetType):
            raise InvalidAsset("swap assets must be AssetType members")
        if self.asset_in is self.asset_out:
            raise InvalidAsset("swap assets must differ")
        if not self.recipient:
            raise InvalidAmount("recipient must be non-empty")


@dataclass(frozen=True)
class MintResult:
    leverage_out: int
    yield_out: int
    protocol_fee: int


@dataclass(frozen=True)
class RedeemResult:
    base_out: int
    protocol_fee: int


@dataclass(frozen=True)
class SwapResult:
    amount_calculated: int
    protocol_fee: int


@dataclass(frozen=True)
class ActionOutcome:
    """Everything an action changes; applied atomically by the market shell."""

    state: LexState
    base_supply: int
    protocol_fee: int
    base_in: int = 0
    base_out: int = 0
    leverage_in: int = 0
    leverage_out: int = 0
    yield_in: int = 0
    yield_out: int = 0
    amount_calculated: int = 0


@dataclass(frozen=True)
class MarketView:
    """Read-only snapshot for callers that display a market."""

    market_id: str
    base_supply: int
    leverage_supply: int
    yield_supply: int
    sqrt_price: int
    ltv_bps: int
    debt_notional_price: int
    base_token_price: int
    etwap_base_supply: int
    ln_rate_bias: int
    under_collateralized: bool
    protocol_fees: int
    no_cap_limit: int


