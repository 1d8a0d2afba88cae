from __future__ import annotations

import hashlib
from dataclasses import fields

import pytest

from src.state.markets import MarketRecord, compute_market_id


def test_deterministic() -> None:
    a = compute_market_id("ETH", "USD", "oracle", "engine")
    assert a == compute_market_id("ETH", "USD", "oracle", "engine")
    assert a.startswith("0x") and len(a) == 66


def test_matches_domain_hash() -> None:
    expected = "0x" + hashlib.sha256(b"LatentLexMarketETH\x00USD\x00oracle\x00engine").hexdigest()
    assert compute_market_id("ETH", "USD", "oracle", "engine") == expected


@pytest.mark.parametrize(
    "args",
    [
        ("WBTC", "USD", "oracle", "engine"),
        ("ETH", "EUR", "oracle", "engine"),
        ("ETH", "USD", "oracle2", "engine"),
        ("ETH", "USD", "oracle", "engine2"),
    ],
)
def test_every_field_committed(args) -> None:
    assert compute_market_id(*args) != compute_market_id("ETH", "USD", "oracle", "engine")


def test_field_boundaries_are_unambiguous() -> None:
    assert compute_market_id("ET", "HUSD", "o", "e") != compute_market_id("ETH", "USD", "o", "e")


def test_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        compute_market_id("ETH", "ETH", "oracle", "engine")
    with pytest.raises(ValueError):
        compute_market_id("", "USD", "oracle", "engine")


def test_record_holds_only_market_state() -> None:
    assert {f.name for f in fields(MarketRecord)} == {
        "market_id",
        "base_asset",
        "quote_asset",
        "params",
        "config",
        "state",
        "governor",
        "oracle",
        "leverage_token",
        "yield_token",
        "base_supply",
        "protocol_fees",
    }
