"""
Mint/burn-gated claim token.

Only the owning market may mint or burn. Balances live in a `BalanceTable`
keyed by the token id, so several tokens can share one table.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from ..core.errors import InvalidAmount, Unauthorized
from ..state.balances import BalanceTable


class ClaimToken:
    def __init__(self, token_id: str, owner: str, *, balances: Optional[BalanceTable] = None) -> None:
        if not token_id or not owner:
            raise ValueError("token_id and owner must be non-empty")
        self.token_id = token_id
        self.owner = owner
        self._balances = balances if balances is not None else BalanceTable()

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized(f"{caller!r} may not mint or burn {self.token_id}")

    def mint(self, account: str, amount: int, *, caller: str) -> None:
        self._require_owner(caller)
        if amount <= 0:
            raise InvalidAmount("mint amount must be > 0")
        self._balances.credit(account, self.token_id, amount)

    def burn(self, account: str, amount: int, *, caller: str) -> None:
        self._require_owner(caller)
        if amount <= 0:
            raise InvalidAmount("burn amount must be > 0")
        try:
            self._balances.debit(account, self.token_id, amount)
        except ValueError as exc:
            raise InvalidAmount(str(exc)) from exc

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        try:
            self._balances.transfer(sender, recipient, self.token_id, amount)
        except ValueError as exc:
            raise InvalidAmount(str(exc)) from exc

    def total_supply(self) -> int:
        return self._balances.total(self.token_id)

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, self.token_id)

    def holders(self) -> Dict[str, int]:
        return self._balances.balances_for_asset(self.token_id)

    def snapshot(self) -> Dict[Tuple[str, str], int]:
        return self._balances.snapshot()

    def restore(self, snapshot: Dict[Tuple[str, str], int]) -> None:
        self._balances.restore(snapshot)

    def __repr__(self) -> str:
        return f"ClaimToken({self.token_id!r}, supply={self.total_supply()})"
