"""
In-memory price oracle.

Prices are the quote-unit value of 10**18 base units. A pushed update must pay
at least `update_fee`; the fee is accumulated so callers can check it.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

from ..core.errors import InvalidAmount, LexInputError

PRICE_UNIT = 10**18


class StaticPriceOracle:
    def __init__(self, oracle_id: str = "static-oracle", *, update_fee: int = 0) -> None:
        self.oracle_id = oracle_id
        self.update_fee = update_fee
        self.fees_collected = 0
        self._prices: Dict[Tuple[str, str], int] = {}

    def set_price(self, base: str, quote: str, price: int) -> None:
        if not isinstance(price, int) or isinstance(price, bool) or price < 0:
            raise InvalidAmount("price must be a non-negative int")
        self._prices[(base, quote)] = price

    def _price(self, base: str, quote: str) -> int:
        try:
            return self._prices[(base, quote)]
        except KeyError:
            raise LexInputError(f"no price for {base}/{quote}") from None

    def get_quote(self, amount_in: int, base: str, quote: str) -> int:
        return amount_in * self._price(base, quote) // PRICE_UNIT

    def preview_get_quote(self, amount_in: int, base: str, quote: str) -> int:
        return self.get_quote(amount_in, base, quote)

    def get_update_fee(self, base: str, quote: str, data: Any) -> int:
        return self.update_fee

    def update_price_feeds(self, base: str, quote: str, data: Any, value: int) -> None:
        """`data` is a mapping with an integer `price`."""
        if value < self.update_fee:
            raise InvalidAmount(f"update fee {self.update_fee} not covered by {value}")
        if not isinstance(data, Mapping) or "price" not in data:
            raise LexInputError("price update must be a mapping with 'price'")
        self.set_price(base, quote, data["price"])
        self.fees_collected += value
