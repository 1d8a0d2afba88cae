"""
Interfaces of the collaborators a LEX market calls out to.

Both are untrusted: any exception they raise aborts the caller's action, and
the market shell holds the per-market lock across every call so they cannot
re-enter the same market.
"""

from __future__ import annotations

from typing import Any, Protocol


class PriceOracle(Protocol):
    oracle_id: str

    def get_quote(self, amount_in: int, base: str, quote: str) -> int:
        """Value of `amount_in` base units in quote units."""
        ...

    def preview_get_quote(self, amount_in: int, base: str, quote: str) -> int:
        """Same as `get_quote` with looser staleness rules, for read-only previews."""
        ...

    def update_price_feeds(self, base: str, quote: str, data: Any, value: int) -> None:
        ...

    def get_update_fee(self, base: str, quote: str, data: Any) -> int:
        ...


class ClaimTokenLike(Protocol):
    token_id: str

    def mint(self, account: str, amount: int, *, caller: str) -> None:
        ...

    def burn(self, account: str, amount: int, *, caller: str) -> None:
        ...

    def total_supply(self) -> int:
        ...

    def balance_of(self, account: str) -> int:
        ...

    def snapshot(self) -> Any:
        """Opaque balance snapshot for rollback."""
        ...

    def restore(self, snapshot: Any) -> None:
        ...
