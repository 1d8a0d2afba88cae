"""
Stateful shell around the LEX market logic.

`LexMarkets` owns the market records of one pricing-engine instance and wires
the pure logic in `src.core.lex` to its external collaborators:

- the price oracle, read once per touch;
- the two claim tokens, minted and burned on behalf of holders;
- base-asset custody, held in a `BalanceTable`.

Every externally callable method that touches a market holds that market's
lock for its whole duration, oracle and token calls included. A nested or
concurrent entry into the same market raises `MarketLocked`; other markets are
unaffected. Mutating calls are atomic: the record, custody and token balances
are journalled and restored if any step fails.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, Optional, Union

from ..core.errors import (
    InvalidAmount,
    LexInvariantError,
    MarketAlreadyInitialized,
    MarketIdMismatch,
    MarketLocked,
    MarketNotInitialized,
    Unauthorized,
)
from ..core.fixed_point import require_uint256
from ..core.lex import engine
from ..core.lex.invariants import check_all
from ..core.lex.market_state import compute_market_state
from ..core.lex.state import initial_state
from ..core.lex.types import (
    ActionOutcome,
    LexConfig,
    LexParams,
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
from ..core.latent_math import compute_ltv
from ..state.balances import BalanceTable
from ..state.markets import MarketRecord, compute_market_id
from .claim_token import ClaimToken
from .interfaces import PriceOracle

logger = logging.getLogger(__name__)

BASE_PRICE_PROBE = 10**18

Request = Union[MintRequest, RedeemRequest, SwapRequest]


class LexMarkets:
    """All markets governed by one set of `LexParams`."""

    def __init__(
        self,
        params: LexParams,
        *,
        engine_id: str = "lex-engine",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.params = params
        self.engine_id = engine_id
        self.custody = BalanceTable()
        self._clock = clock
        self._markets: Dict[str, MarketRecord] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # -- helpers -------------------------------------------------------------

    def _now(self) -> int:
        return int(self._clock())

    def _record(self, market_id: str) -> MarketRecord:
        record = self._markets.get(market_id)
        if record is None:
            raise MarketNotInitialized(f"unknown market {market_id}")
        return record

    @contextmanager
    def _market_lock(self, market_id: str) -> Iterator[MarketRecord]:
        record = self._record(market_id)
        lock = self._locks[market_id]
        if not lock.acquire(blocking=False):
            raise MarketLocked(f"market {market_id} is busy")
        try:
            yield record
        finally:
            lock.release()

    @contextmanager
    def _atomic(self, record: MarketRecord) -> Iterator[None]:
        saved = replace(record)
        custody = self.custody.snapshot()
        leverage = record.leverage_token.snapshot()
        yield_ = record.yield_token.snapshot()
        try:
            yield
        except Exception:
            record.state = saved.state
            record.config = saved.config
            record.base_supply = saved.base_supply
            record.protocol_fees = saved.protocol_fees
            self.custody.restore(custody)
            record.leverage_token.restore(leverage)
            record.yield_token.restore(yield_)
            logger.debug("rolled back market %s", record.market_id)
            raise

    def _base_price(self, record: MarketRecord, *, preview: bool) -> int:
        if preview:
            price = record.oracle.preview_get_quote(BASE_PRICE_PROBE, record.base_asset, record.quote_asset)
        else:
            price = record.oracle.get_quote(BASE_PRICE_PROBE, record.base_asset, record.quote_asset)
        return require_uint256("base token price", price)

    def _supplies(self, record: MarketRecord) -> MarketSupplies:
        return MarketSupplies(
            base_supply=record.base_supply,
            leverage_supply=record.leverage_token.total_supply(),
            yield_supply=record.yield_token.total_supply(),
        )

    def _load(self, record: MarketRecord, *, preview: bool) -> MarketState:
        ms = compute_market_state(
            record.params,
            record.config,
            record.state,
            self._supplies(record),
            self._base_price(record, preview=preview),
            self._now(),
            record.market_id,
        )
        if ms.under_collateralized:
            log = logger.debug if preview else logger.warning
            log("market %s is under-collateralized", record.market_id)
        return ms

    def _commit(self, record: MarketRecord, outcome: ActionOutcome, account: str, recipient: str) -> None:
        record.state = outcome.state
        record.base_supply = outcome.base_supply
        record.protocol_fees += outcome.protocol_fee

        if outcome.base_in:
            try:
                self.custody.debit(account, record.base_asset, outcome.base_in)
            except ValueError as exc:
                raise InvalidAmount(str(exc)) from exc
        if outcome.leverage_in:
            record.leverage_token.burn(account, outcome.leverage_in, caller=record.market_id)
        if outcome.yield_in:
            record.yield_token.burn(account, outcome.yield_in, caller=record.market_id)

        if outcome.leverage_out:
            record.leverage_token.mint(recipient, outcome.leverage_out, caller=record.market_id)
        if outcome.yield_out:
            record.yield_token.mint(recipient, outcome.yield_out, caller=record.market_id)
        if outcome.base_out:
            self.custody.credit(recipient, record.base_asset, outcome.base_out)

    def _run(self, request: Request, account: Optional[str], *, preview: bool) -> ActionOutcome:
        with self._market_lock(request.market_id) as record:
            if preview:
                ms = self._load(record, preview=True)
                return engine.execute(record.params, record.config, ms, request)
            with self._atomic(record):
                ms = self._load(record, preview=False)
                outcome = engine.execute(record.params, record.config, ms, request)
                self._commit(record, outcome, account or request.recipient, request.recipient)
            logger.debug(
                "%s on %s: base_in=%d base_out=%d fee=%d",
                type(request).__name__,
                record.market_id,
                outcome.base_in,
                outcome.base_out,
                outcome.protocol_fee,
            )
            return outcome

    # -- market lifecycle ----------------------------------------------------

    def create_market(
        self,
        base_asset: str,
        quote_asset: str,
        oracle: PriceOracle,
        *,
        governor: str,
        protocol_fee_rate: int = 0,
        no_cap_limit: int = 1,
        synth_decimals_offset: int = 0,
        adaptive: bool = False,
        expected_market_id: Optional[str] = None,
    ) -> str:
        market_id = compute_market_id(base_asset, quote_asset, oracle.oracle_id, self.engine_id)
        if expected_market_id is not None and expected_market_id != market_id:
            raise MarketIdMismatch(f"expected {expected_market_id}, computed {market_id}")
        if not governor:
            raise InvalidAmount("governor must be non-empty")
        if market_id in self._markets:
            raise MarketAlreadyInitialized(f"market {market_id} already exists")

        config = LexConfig(
            leverage_token=f"{market_id}:leverage",
            yield_token=f"{market_id}:yield",
            protocol_fee_rate=protocol_fee_rate,
            no_cap_limit=no_cap_limit,
            synth_decimals_offset=synth_decimals_offset,
            adaptive=adaptive,
        )
        # The oracle is read outside the registry lock; it may call back in.
        price = require_uint256(
            "base token price", oracle.get_quote(BASE_PRICE_PROBE, base_asset, quote_asset)
        )
        now = self._now()
        record = MarketRecord(
            market_id=market_id,
            base_asset=base_asset,
            quote_asset=quote_asset,
            params=self.params,
            config=config,
            state=initial_state(self.params, base_token_price=price, now=now),
            governor=governor,
            oracle=oracle,
            leverage_token=ClaimToken(config.leverage_token, market_id),
            yield_token=ClaimToken(config.yield_token, market_id),
        )

        with self._registry_lock:
            if market_id in self._markets:
                raise MarketAlreadyInitialized(f"market {market_id} already exists")
            self._locks[market_id] = threading.Lock()
            self._markets[market_id] = record

        logger.info("created market %s (%s/%s)", market_id, base_asset, quote_asset)
        return market_id

    def market_ids(self) -> list[str]:
        return sorted(self._markets)

    def leverage_token(self, market_id: str) -> ClaimToken:
        return self._record(market_id).leverage_token

    def yield_token(self, market_id: str) -> ClaimToken:
        return self._record(market_id).yield_token

    # -- base custody ----------------------------------------------------------

    def deposit_base(self, account: str, asset: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount("deposit must be > 0")
        self.custody.credit(account, asset, amount)

    def withdraw_base(self, account: str, asset: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount("withdrawal must be > 0")
        try:
            self.custody.debit(account, asset, amount)
        except ValueError as exc:
            raise InvalidAmount(str(exc)) from exc

    # -- actions ---------------------------------------------------------------

    def mint(self, request: MintRequest, *, account: str) -> MintResult:
        outcome = self._run(request, account, preview=False)
        return MintResult(outcome.leverage_out, outcome.yield_out, outcome.protocol_fee)

    def redeem(self, request: RedeemRequest, *, account: str) -> RedeemResult:
        outcome = self._run(request, account, preview=False)
        return RedeemResult(outcome.base_out, outcome.protocol_fee)

    def swap(self, request: SwapRequest, *, account: str) -> SwapResult:
        outcome = self._run(request, account, preview=False)
        return SwapResult(outcome.amount_calculated, outcome.protocol_fee)

    def update_state(self, market_id: str) -> int:
        """Accrue and persist the market state; returns the protocol fee collected."""
        with self._market_lock(market_id) as record:
            with self._atomic(record):
                ms = self._load(record, preview=False)
                violations = check_all(record.params, ms.state, MarketSupplies(
                    ms.base_supply, ms.leverage_supply, ms.yield_supply,
                ))
                if violations:
                    raise LexInvariantError(violations)
                record.state = ms.state
                record.base_supply = ms.base_supply
                record.protocol_fees += ms.protocol_fee
            return ms.protocol_fee

    # -- quotes ----------------------------------------------------------------

    def quote_mint(self, request: MintRequest) -> MintResult:
        outcome = self._run(request, None, preview=True)
        return MintResult(outcome.leverage_out, outcome.yield_out, outcome.protocol_fee)

    def quote_redeem(self, request: RedeemRequest) -> RedeemResult:
        outcome = self._run(request, None, preview=True)
        return RedeemResult(outcome.base_out, outcome.protocol_fee)

    def quote_swap(self, request: SwapRequest) -> SwapResult:
        outcome = self._run(request, None, preview=True)
        return SwapResult(outcome.amount_calculated, outcome.protocol_fee)

    def quote_update_state(self, market_id: str) -> int:
        with self._market_lock(market_id) as record:
            return self._load(record, preview=True).protocol_fee

    def market_view(self, market_id: str) -> MarketView:
        with self._market_lock(market_id) as record:
            ms = self._load(record, preview=True)
            return MarketView(
                market_id=market_id,
                base_supply=ms.base_supply,
                leverage_supply=ms.leverage_supply,
                yield_supply=ms.yield_supply,
                sqrt_price=ms.sqrt_price,
                ltv_bps=compute_ltv(
                    record.params.edge_sqrt_price_low, record.params.edge_sqrt_price_high, ms.sqrt_price
                ),
                debt_notional_price=ms.debt_notional_price,
                base_token_price=ms.state.last_base_token_price,
                etwap_base_supply=ms.state.last_etwap_base_supply,
                ln_rate_bias=ms.state.last_ln_rate_bias,
                under_collateralized=ms.under_collateralized,
                protocol_fees=record.protocol_fees + ms.protocol_fee,
                no_cap_limit=record.config.no_cap_limit,
            )

    def market_state(self, market_id: str) -> MarketState:
        """Full valuation as of now, without committing it."""
        with self._market_lock(market_id) as record:
            return self._load(record, preview=True)

    # -- oracle pass-through -----------------------------------------------------

    def get_update_fee(self, market_id: str, data: Any) -> int:
        with self._market_lock(market_id) as record:
            return record.oracle.get_update_fee(record.base_asset, record.quote_asset, data)

    def update_price_feeds(self, market_id: str, data: Any, value: int) -> None:
        with self._market_lock(market_id) as record:
            record.oracle.update_price_feeds(record.base_asset, record.quote_asset, data, value)

    # -- governance ------------------------------------------------------------

    def set_no_cap_limit(self, market_id: str, no_cap_limit: int, *, caller: str) -> None:
        with self._market_lock(market_id) as record:
            if caller != record.governor:
                raise Unauthorized(f"{caller!r} is not the governor of {market_id}")
            record.config = replace(record.config, no_cap_limit=no_cap_limit)
        logger.info("market %s no_cap_limit set to %d", market_id, no_cap_limit)

    def withdraw_protocol_fees(self, market_id: str, recipient: str, *, caller: str) -> int:
        with self._market_lock(market_id) as record:
            if caller != record.governor:
                raise Unauthorized(f"{caller!r} is not the governor of {market_id}")
            amount, record.protocol_fees = record.protocol_fees, 0
            if amount:
                self.custody.credit(recipient, record.base_asset, amount)
            return amount
