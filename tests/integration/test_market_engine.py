"""End-to-end tests for src/integration/market_engine.py (LexMarkets)."""

from __future__ import annotations

import logging
import threading

import hypothesis.strategies as st
import pytest
from hypothesis import HealthCheck, assume, given, settings

from src.core.debt_math import SECONDS_PER_YEAR
from src.core.errors import (
    InvalidAmount,
    LexError,
    MarketAlreadyInitialized,
    MarketIdMismatch,
    MarketLocked,
    MarketNotInitialized,
    MintCapExceeded,
    Unauthorized,
    UnderCollateralizedAction,
)
from src.core.fixed_point import Q96, WAD
from src.core.lex import AssetType, MintRequest, RedeemRequest, SwapRequest, load_preset
from src.integration import LexMarkets, StaticPriceOracle
from src.state.markets import compute_market_id

MINTED = 498_500_000_000_000_000
START = 1_700_000_000


class _Clock:
    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class _HookOracle(StaticPriceOracle):
    """Oracle that runs `hook` on every quote, like a hostile external contract."""

    def __init__(self, oracle_id: str) -> None:
        super().__init__(oracle_id)
        self.hook = None
        self.hook_results = []

    def get_quote(self, amount_in, base, quote):
        if self.hook is not None:
            hook, self.hook = self.hook, None
            self.hook_results.append(hook())
        return super().get_quote(amount_in, base, quote)


def _setup(**market_kwargs):
    clock = _Clock()
    markets = LexMarkets(load_preset(), clock=clock)
    oracle = StaticPriceOracle("oracle")
    oracle.set_price("ETH", "USD", WAD)
    market_id = markets.create_market("ETH", "USD", oracle, governor="gov", **market_kwargs)
    return markets, oracle, clock, market_id


def _fund_and_mint(markets, market_id, account="alice", amount=10**18):
    markets.deposit_base(account, "ETH", amount)
    return markets.mint(MintRequest(market_id, amount, account), account=account)


# ---------------------------------------------------------------------------
# market creation
# ---------------------------------------------------------------------------

class TestCreateMarket:
    def test_id_and_tokens(self):
        markets, _, _, market_id = _setup()
        assert market_id == compute_market_id("ETH", "USD", "oracle", "lex-engine")
        assert markets.market_ids() == [market_id]
        assert markets.leverage_token(market_id).token_id == f"{market_id}:leverage"
        assert markets.yield_token(market_id).token_id == f"{market_id}:yield"

    def test_initial_view(self):
        markets, _, _, market_id = _setup()
        view = markets.market_view(market_id)
        assert view.sqrt_price == Q96
        assert view.ltv_bps == 5_000
        assert view.debt_notional_price == WAD
        assert view.base_token_price == WAD
        assert view.base_supply == 0
        assert not view.under_collateralized

    def test_duplicate_rejected(self):
        markets, oracle, _, _ = _setup()
        with pytest.raises(MarketAlreadyInitialized):
            markets.create_market("ETH", "USD", oracle, governor="gov")

    def test_expected_id_mismatch(self):
        markets, oracle, _, _ = _setup()
        oracle.set_price("WBTC", "USD", WAD)
        with pytest.raises(MarketIdMismatch):
            markets.create_market("WBTC", "USD", oracle, governor="gov", expected_market_id="0xdead")
        assert len(markets.market_ids()) == 1

    def test_unknown_market(self):
        markets, _, _, _ = _setup()
        with pytest.raises(MarketNotInitialized):
            markets.market_view("0xmissing")


# ---------------------------------------------------------------------------
# mint / redeem
# ---------------------------------------------------------------------------

class TestMintRedeem:
    def test_quote_matches_mint(self):
        markets, _, _, market_id = _setup()
        req = MintRequest(market_id, 10**18, "alice")
        quoted = markets.quote_mint(req)
        markets.deposit_base("alice", "ETH", 10**18)
        minted = markets.mint(req, account="alice")
        assert quoted == minted
        assert minted.leverage_out == minted.yield_out == MINTED

    def test_mint_moves_balances(self):
        markets, _, _, market_id = _setup()
        _fund_and_mint(markets, market_id)
        assert markets.custody.get("alice", "ETH") == 0
        assert markets.leverage_token(market_id).balance_of("alice") == MINTED
        assert markets.yield_token(market_id).balance_of("alice") == MINTED
        assert markets.market_view(market_id).base_supply == 10**18

    def test_mint_to_recipient(self):
        markets, _, _, market_id = _setup()
        markets.deposit_base("alice", "ETH", 10**18)
        markets.mint(MintRequest(market_id, 10**18, "bob"), account="alice")
        assert markets.yield_token(market_id).balance_of("bob") == MINTED
        assert markets.yield_token(market_id).balance_of("alice") == 0

    def test_unfunded_mint_rolls_back(self):
        markets, _, _, market_id = _setup()
        with pytest.raises(InvalidAmount):
            markets.mint(MintRequest(market_id, 10**18, "alice"), account="alice")
        assert markets.leverage_token(market_id).total_supply() == 0
        assert markets.yield_token(market_id).total_supply() == 0
        assert markets.market_view(market_id).base_supply == 0

    def test_full_redeem_returns_all_collateral(self):
        markets, _, _, market_id = _setup()
        _fund_and_mint(markets, market_id)
        req = RedeemRequest(market_id, MINTED, MINTED, "alice")
        assert markets.quote_redeem(req).base_out == 10**18
        assert markets.redeem(req, account="alice").base_out == 10**18
        assert markets.custody.get("alice", "ETH") == 10**18
        view = markets.market_view(market_id)
        assert view.base_supply == 0
        assert view.sqrt_price == Q96

    def test_round_trip_is_not_profitable(self):
        markets, _, _, market_id = _setup()
        _fund_and_mint(markets, market_id, "alice")
        _fund_and_mint(markets, market_id, "bob")
        lev = markets.leverage_token(market_id).balance_of("bob")
        yld = markets.yield_token(market_id).balance_of("bob")
        out = markets.redeem(RedeemRequest(market_id, lev, yld, "bob"), account="bob")
        assert 0 < out.base_out <= 10**18

    def test_redeem_someone_elses_claims_rejected(self):
        markets, _, _, market_id = _setup()
        _fund_and_mint(markets, market_id, "alice")
        _fund_and_mint(markets, market_id, "bob")
        with pytest.raises(InvalidAmount):
            markets.redeem(RedeemRequest(market_id, MINTED * 3, 0, "mallory"), account="mallory")
        assert markets.leverage_token(market_id).balance_of("alice") == MINTED


# ---------------------------------------------------------------------------
# swaps
# ---------------------------------------------------------------------------

class TestSwap:
    def test_quote_matches_swap(self):
        markets, _, _, market_id = _setup()
        _fund_and_mint(markets, market_id)
        req = SwapRequest(market_id, AssetType.YIELD, AssetType.LEVERAGE, MINTED // 10, True, "alice")
        quoted = markets.quote_swap(req)
        done = markets.swap(req, account="alice")
        assert quoted == done
        assert markets.yield_token(market_id).balance_of("alice") == MINTED - MINTED // 10
        assert markets.leverage_token(market_id).balance_of("alice") == MINTED + done.amount_calculated

    def test_buy_leverage_with_base(self):
        markets, _, _, market_id = _setup()
        _fund_and_mint(markets, market_id)
        markets.deposit_base("bob", "ETH", 10**17)
        req = SwapRequest(market_id, AssetType.BASE, AssetType.LEVERAGE, 10**17, True, "bob")
        out = markets.swap(req, account="bob")
        assert markets.leverage_token(market_id).balance_of("bob") == out.amount_calculated > 0
        assert markets.custody.get("bob", "ETH") == 0
        assert markets.market_view(market_id).base_supply == 11 * 10**17

    def test_sell_yield_for_base(self):
        markets, _, _, market_id = _setup()
        _fund_and_mint(markets, market_id)
        req = SwapRequest(market_id, AssetType.YIELD, AssetType.BASE, 10**16, False, "alice")
        out = markets.swap(req, account="alice")
        assert markets.custody.get("alice", "ETH") == 10**16
        assert markets.yield_token(market_id).balance_of("alice") == MINTED - out.amount_calculated


# ---------------------------------------------------------------------------
# round trips never pay out more than they take in
# ---------------------------------------------------------------------------

PRESETS = st.sampled_from(["default", "high_ltv"])
PRICES = st.integers(min_value=10**15, max_value=10**21)
CLAIMS = st.sampled_from([AssetType.LEVERAGE, AssetType.YIELD])
AMOUNTS = st.integers(min_value=1, max_value=10**24)
ROUND_TRIP_SETTINGS = settings(
    max_examples=100, deadline=None, suppress_health_check=[HealthCheck.filter_too_much]
)


def _seeded(preset, price, seed=10**25):
    markets = LexMarkets(load_preset(preset), clock=_Clock())
    oracle = StaticPriceOracle("oracle")
    oracle.set_price("ETH", "USD", price)
    market_id = markets.create_market("ETH", "USD", oracle, governor="gov")
    _fund_and_mint(markets, market_id, "lp", seed)
    return markets, market_id


def _slack(amount):
    return 1 if amount > 10**20 else 0


class TestNoArbitrage:
    @ROUND_TRIP_SETTINGS
    @given(preset=PRESETS, price=PRICES, claim=CLAIMS, amount=AMOUNTS)
    def test_buy_exact_in_then_sell(self, preset, price, claim, amount):
        markets, market_id = _seeded(preset, price)
        markets.deposit_base("trader", "ETH", amount)
        try:
            bought = markets.swap(
                SwapRequest(market_id, AssetType.BASE, claim, amount, True, "trader"), account="trader"
            )
            sold = markets.swap(
                SwapRequest(market_id, claim, AssetType.BASE, bought.amount_calculated, True, "trader"),
                account="trader",
            )
        except LexError:
            assume(False)
        assert sold.amount_calculated <= amount + _slack(amount)

    @ROUND_TRIP_SETTINGS
    @given(preset=PRESETS, price=PRICES, claim=CLAIMS, amount=AMOUNTS)
    def test_buy_exact_out_then_sell(self, preset, price, claim, amount):
        markets, market_id = _seeded(preset, price)
        markets.deposit_base("trader", "ETH", 10**27)
        try:
            bought = markets.swap(
                SwapRequest(market_id, AssetType.BASE, claim, amount, False, "trader"), account="trader"
            )
            sold = markets.swap(
                SwapRequest(market_id, claim, AssetType.BASE, amount, True, "trader"), account="trader"
            )
        except LexError:
            assume(False)
        spent = bought.amount_calculated
        assert sold.amount_calculated <= spent + _slack(spent)
        assert markets.custody.get("trader", "ETH") <= 10**27 + _slack(spent)

    @ROUND_TRIP_SETTINGS
    @given(preset=PRESETS, price=PRICES, amount=AMOUNTS)
    def test_mint_swap_there_and_back_then_redeem(self, preset, price, amount):
        markets, market_id = _seeded(preset, price)
        leverage = markets.leverage_token(market_id)
        yield_ = markets.yield_token(market_id)
        markets.deposit_base("trader", "ETH", amount)
        try:
            markets.mint(MintRequest(market_id, amount, "trader"), account="trader")
            there = markets.swap(
                SwapRequest(market_id, AssetType.YIELD, AssetType.LEVERAGE, yield_.balance_of("trader") // 2, True, "trader"),
                account="trader",
            )
            markets.swap(
                SwapRequest(market_id, AssetType.LEVERAGE, AssetType.YIELD, there.amount_calculated, True, "trader"),
                account="trader",
            )
            out = markets.redeem(
                RedeemRequest(market_id, leverage.balance_of("trader"), yield_.balance_of("trader"), "trader"),
                account="trader",
            )
        except LexError:
            assume(False)
        assert out.base_out <= amount + _slack(amount)


# ---------------------------------------------------------------------------
# accrual, fees and governance
# ---------------------------------------------------------------------------

class TestAccrualAndGovernance:
    def test_protocol_fee_accrues_and_withdraws(self):
        markets, _, clock, market_id = _setup(protocol_fee_rate=WAD // 10)
        _fund_and_mint(markets, market_id)
        clock.now += SECONDS_PER_YEAR
        assert markets.quote_update_state(market_id) == 10**17
        assert markets.update_state(market_id) == 10**17
        # accrued once
        assert markets.update_state(market_id) == 0
        assert markets.market_view(market_id).protocol_fees == 10**17
        with pytest.raises(Unauthorized):
            markets.withdraw_protocol_fees(market_id, "mallory", caller="mallory")
        assert markets.withdraw_protocol_fees(market_id, "treasury", caller="gov") == 10**17
        assert markets.custody.get("treasury", "ETH") == 10**17
        assert markets.market_view(market_id).protocol_fees == 0

    def test_update_state_moves_etwap(self):
        markets, _, clock, market_id = _setup()
        _fund_and_mint(markets, market_id)
        clock.now += 3_600
        markets.update_state(market_id)
        view = markets.market_view(market_id)
        assert 0 < view.etwap_base_supply < 10**18

    def test_no_cap_limit_governance(self):
        markets, _, _, market_id = _setup()
        with pytest.raises(Unauthorized):
            markets.set_no_cap_limit(market_id, 10**30, caller="mallory")
        markets.set_no_cap_limit(market_id, 10**30, caller="gov")
        assert markets.market_view(market_id).no_cap_limit == 10**30

    def test_mint_cap_after_etwap_warms_up(self):
        markets, _, clock, market_id = _setup()
        _fund_and_mint(markets, market_id)
        clock.now += 3_600
        markets.update_state(market_id)
        markets.deposit_base("bob", "ETH", 10 * 10**18)
        with pytest.raises(MintCapExceeded):
            markets.mint(MintRequest(market_id, 10 * 10**18, "bob"), account="bob")
        # rolled back: bob still holds his deposit
        assert markets.custody.get("bob", "ETH") == 10 * 10**18
        markets.set_no_cap_limit(market_id, 10**30, caller="gov")
        markets.mint(MintRequest(market_id, 10 * 10**18, "bob"), account="bob")


# ---------------------------------------------------------------------------
# under-collateralization
# ---------------------------------------------------------------------------

class TestUnderCollateralized:
    def test_price_crash_unwinds_pro_rata(self):
        markets, oracle, _, market_id = _setup()
        _fund_and_mint(markets, market_id)
        oracle.set_price("ETH", "USD", WAD // 10)
        assert markets.market_view(market_id).under_collateralized
        markets.deposit_base("bob", "ETH", 10**18)
        with pytest.raises(UnderCollateralizedAction):
            markets.mint(MintRequest(market_id, 10**18, "bob"), account="bob")
        out = markets.redeem(RedeemRequest(market_id, 0, MINTED // 2, "alice"), account="alice")
        assert out.base_out == 10**18 // 2

    def test_warning_only_on_committing_calls(self, caplog):
        markets, oracle, _, market_id = _setup()
        _fund_and_mint(markets, market_id)
        oracle.set_price("ETH", "USD", WAD // 10)
        logger_name = "src.integration.market_engine"

        with caplog.at_level(logging.DEBUG, logger=logger_name):
            markets.market_view(market_id)
            markets.market_state(market_id)
            markets.quote_redeem(RedeemRequest(market_id, 0, MINTED // 2, "alice"))
        flagged = [r for r in caplog.records if "under-collateralized" in r.getMessage()]
        assert len(flagged) == 3
        assert all(r.levelno == logging.DEBUG for r in flagged)

        caplog.clear()
        with caplog.at_level(logging.DEBUG, logger=logger_name):
            markets.update_state(market_id)
        flagged = [r for r in caplog.records if "under-collateralized" in r.getMessage()]
        assert [r.levelno for r in flagged] == [logging.WARNING]


# ---------------------------------------------------------------------------
# locking / oracle
# ---------------------------------------------------------------------------

class TestLocking:
    def test_reentry_through_oracle_rejected(self):
        clock = _Clock()
        markets = LexMarkets(load_preset(), clock=clock)
        oracle = _HookOracle("hostile")
        oracle.set_price("ETH", "USD", WAD)
        market_id = markets.create_market("ETH", "USD", oracle, governor="gov")
        markets.deposit_base("alice", "ETH", 2 * 10**18)

        oracle.hook = lambda: markets.mint(MintRequest(market_id, 10**18, "alice"), account="alice")
        with pytest.raises(MarketLocked):
            markets.mint(MintRequest(market_id, 10**18, "alice"), account="alice")
        assert markets.yield_token(market_id).total_supply() == 0
        assert markets.custody.get("alice", "ETH") == 2 * 10**18

        # the lock is released afterwards
        markets.mint(MintRequest(market_id, 10**18, "alice"), account="alice")

    def test_other_markets_stay_available(self):
        clock = _Clock()
        markets = LexMarkets(load_preset(), clock=clock)
        hostile = _HookOracle("hostile")
        hostile.set_price("ETH", "USD", WAD)
        plain = StaticPriceOracle("plain")
        plain.set_price("WBTC", "USD", WAD)
        first = markets.create_market("ETH", "USD", hostile, governor="gov")
        second = markets.create_market("WBTC", "USD", plain, governor="gov")

        hostile.hook = lambda: markets.market_view(second)
        markets.market_view(first)
        assert hostile.hook_results[0].market_id == second

    def test_create_market_reentry_through_oracle(self):
        clock = _Clock()
        markets = LexMarkets(load_preset(), clock=clock)
        hostile = _HookOracle("hostile")
        hostile.set_price("ETH", "USD", WAD)
        plain = StaticPriceOracle("plain")
        plain.set_price("WBTC", "USD", WAD)
        hostile.hook = lambda: markets.create_market("WBTC", "USD", plain, governor="g")

        created = []
        worker = threading.Thread(
            target=lambda: created.append(markets.create_market("ETH", "USD", hostile, governor="gov")),
            daemon=True,
        )
        worker.start()
        worker.join(timeout=5)
        assert not worker.is_alive()

        inner = hostile.hook_results[0]
        assert sorted(markets.market_ids()) == sorted(created + [inner])
        # registry stays usable afterwards
        other = StaticPriceOracle("other")
        other.set_price("ETH", "USD", WAD)
        markets.create_market("ETH", "USD", other, governor="gov")
        assert len(markets.market_ids()) == 3

    def test_create_same_market_from_oracle_callback(self):
        clock = _Clock()
        markets = LexMarkets(load_preset(), clock=clock)
        hostile = _HookOracle("hostile")
        hostile.set_price("ETH", "USD", WAD)
        hostile.hook = lambda: markets.create_market("ETH", "USD", hostile, governor="mallory")

        with pytest.raises(MarketAlreadyInitialized):
            markets.create_market("ETH", "USD", hostile, governor="gov")
        market_id = hostile.hook_results[0]
        assert markets.market_ids() == [market_id]
        with pytest.raises(Unauthorized):
            markets.set_no_cap_limit(market_id, 10**30, caller="gov")

    def test_oracle_fee_passthrough(self):
        clock = _Clock()
        markets = LexMarkets(load_preset(), clock=clock)
        oracle = StaticPriceOracle("paid", update_fee=5)
        oracle.set_price("ETH", "USD", WAD)
        market_id = markets.create_market("ETH", "USD", oracle, governor="gov")
        assert markets.get_update_fee(market_id, {"price": 2 * WAD}) == 5
        with pytest.raises(InvalidAmount):
            markets.update_price_feeds(market_id, {"price": 2 * WAD}, 4)
        markets.update_price_feeds(market_id, {"price": 2 * WAD}, 5)
        assert markets.market_view(market_id).base_token_price == 2 * WAD
