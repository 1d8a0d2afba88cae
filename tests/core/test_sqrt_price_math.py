"""Tests for src/core/sqrt_price_math.py."""

from __future__ import annotations

import pytest

from src.core.errors import PriceOutOfRange, ZeroLiquidity
from src.core.fixed_point import MAX_UINT160, Q96
from src.core.sqrt_price_math import (
    get_amount0_delta,
    get_amount1_delta,
    get_next_sqrt_price_from_amount0,
    get_next_sqrt_price_from_amount1,
)

L = 10**18


# ---------------------------------------------------------------------------
# next price
# ---------------------------------------------------------------------------

class TestNextPriceFromAmount0:
    def test_add_lowers_price(self):
        assert get_next_sqrt_price_from_amount0(Q96, L, L, add=True, round_up=True) == Q96 // 2

    def test_remove_raises_price(self):
        assert get_next_sqrt_price_from_amount0(Q96, L, L // 2, add=False, round_up=True) == 2 * Q96

    def test_remove_whole_reserve_rejected(self):
        with pytest.raises(PriceOutOfRange):
            get_next_sqrt_price_from_amount0(Q96, L, L, add=False, round_up=True)

    def test_zero_amount_is_identity(self):
        assert get_next_sqrt_price_from_amount0(Q96, L, 0, add=True, round_up=False) == Q96

    def test_rounding_direction(self):
        up = get_next_sqrt_price_from_amount0(Q96 + 1, 3, 1, add=True, round_up=True)
        down = get_next_sqrt_price_from_amount0(Q96 + 1, 3, 1, add=True, round_up=False)
        assert up - down in (0, 1)
        assert up >= down

    def test_zero_liquidity(self):
        with pytest.raises(ZeroLiquidity):
            get_next_sqrt_price_from_amount0(Q96, 0, 1, add=True, round_up=True)

    def test_price_bounds(self):
        with pytest.raises(PriceOutOfRange):
            get_next_sqrt_price_from_amount0(0, L, 1, add=True, round_up=True)
        with pytest.raises(PriceOutOfRange):
            get_next_sqrt_price_from_amount0(MAX_UINT160 + 1, L, 1, add=True, round_up=True)


class TestNextPriceFromAmount1:
    def test_add_raises_price(self):
        assert get_next_sqrt_price_from_amount1(Q96, L, L, add=True, round_up=False) == 2 * Q96

    def test_remove_lowers_price(self):
        assert get_next_sqrt_price_from_amount1(Q96, L, L // 2, add=False, round_up=False) == Q96 // 2

    def test_remove_whole_reserve_rejected(self):
        with pytest.raises(PriceOutOfRange):
            get_next_sqrt_price_from_amount1(Q96, L, L, add=False, round_up=False)

    def test_remove_round_up_keeps_higher_price(self):
        up = get_next_sqrt_price_from_amount1(Q96, 3, 1, add=False, round_up=True)
        down = get_next_sqrt_price_from_amount1(Q96, 3, 1, add=False, round_up=False)
        assert up == down + 1

    def test_add_past_uint160_rejected(self):
        with pytest.raises(PriceOutOfRange):
            get_next_sqrt_price_from_amount1(MAX_UINT160, 1, 1, add=True, round_up=False)


# ---------------------------------------------------------------------------
# deltas
# ---------------------------------------------------------------------------

class TestDeltas:
    def test_amount0_delta(self):
        assert get_amount0_delta(Q96 // 2, Q96, L, round_up=False) == L
        assert get_amount0_delta(Q96, Q96 // 2, L, round_up=True) == L

    def test_amount1_delta(self):
        assert get_amount1_delta(Q96, 2 * Q96, L, round_up=False) == L
        assert get_amount1_delta(2 * Q96, Q96, L, round_up=True) == L

    def test_amount1_rounding(self):
        assert get_amount1_delta(Q96, Q96 + 1, 1, round_up=False) == 0
        assert get_amount1_delta(Q96, Q96 + 1, 1, round_up=True) == 1

    def test_amount0_rounding(self):
        down = get_amount0_delta(Q96, Q96 + 1, 10**6, round_up=False)
        up = get_amount0_delta(Q96, Q96 + 1, 10**6, round_up=True)
        assert down == 0
        assert up == 1

    def test_amount0_zero_price_rejected(self):
        with pytest.raises(PriceOutOfRange):
            get_amount0_delta(0, Q96, L, round_up=False)

    def test_equal_prices_give_zero(self):
        assert get_amount0_delta(Q96, Q96, L, round_up=True) == 0
        assert get_amount1_delta(Q96, Q96, L, round_up=True) == 0
