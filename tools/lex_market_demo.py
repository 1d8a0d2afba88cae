#!/usr/bin/env python3
"""Offline walk-through of one LEX market: mint, accrue, swap, redeem.

Parameters come from `--params`, else `LEX_PARAMS_PATH`, else the packaged
default preset.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.core.errors import LexError
from src.core.latent_math import AssetType
from src.core.lex.params import load_params_yaml, load_preset
from src.core.lex.types import MintRequest, RedeemRequest, SwapRequest
from src.integration.market_engine import LexMarkets
from src.integration.static_oracle import StaticPriceOracle

logger = logging.getLogger("lex_market_demo")

WAD = 10**18


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    return min(max(v, lo), hi)


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


class _Clock:
    def __init__(self, start: int) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now


def run(params_path: str, *, deposit: int, elapsed: int, price: int) -> dict:
    params = load_params_yaml(params_path) if params_path else load_preset("default")
    clock = _Clock(1_700_000_000)
    markets = LexMarkets(params, clock=clock)

    oracle = StaticPriceOracle("demo-oracle")
    oracle.set_price("ETH", "USD", price)
    market_id = markets.create_market("ETH", "USD", oracle, governor="gov", protocol_fee_rate=WAD // 100)

    alice = "alice"
    markets.deposit_base(alice, "ETH", deposit)
    minted = markets.mint(MintRequest(market_id, deposit, alice), account=alice)
    logger.info("minted leverage=%d yield=%d", minted.leverage_out, minted.yield_out)

    clock.now += elapsed
    fee = markets.update_state(market_id)
    after_accrual = markets.market_view(market_id)

    swapped = markets.swap(
        SwapRequest(market_id, AssetType.YIELD, AssetType.LEVERAGE, minted.yield_out // 10, True, alice),
        account=alice,
    )

    leverage = markets.leverage_token(market_id).balance_of(alice)
    yield_balance = markets.yield_token(market_id).balance_of(alice)
    redeemed = markets.redeem(RedeemRequest(market_id, leverage, yield_balance, alice), account=alice)

    return {
        "market_id": market_id,
        "minted": {"leverage": minted.leverage_out, "yield": minted.yield_out},
        "after_accrual": {
            "protocol_fee": fee,
            "ltv_bps": after_accrual.ltv_bps,
            "debt_notional_price": after_accrual.debt_notional_price,
            "etwap_base_supply": after_accrual.etwap_base_supply,
        },
        "swap_leverage_out": swapped.amount_calculated,
        "redeemed_base": redeemed.base_out,
        "final": markets.market_view(market_id).__dict__,
    }


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Run an offline LEX market scenario and print a JSON summary.")
    p.add_argument("--params", default=_env_str("LEX_PARAMS_PATH", ""), help="YAML parameter file (default: preset)")
    p.add_argument("--deposit", type=int, default=_env_int("LEX_DEMO_DEPOSIT", 10 * WAD, lo=1, hi=10**40))
    p.add_argument("--elapsed", type=int, default=_env_int("LEX_DEMO_ELAPSED", 86_400, lo=0, hi=10**9))
    p.add_argument("--price", type=int, default=2_000 * WAD, help="Quote value of 1e18 base units")
    p.add_argument("-v", "--verbose", action="store_true")
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    try:
        summary = run(args.params, deposit=args.deposit, elapsed=args.elapsed, price=args.price)
    except (OSError, LexError) as exc:
        print(f"lex_market_demo error: {exc}", file=sys.stderr)
        return 2

    print(json.dumps(summary, indent=2, sort_keys=True, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
