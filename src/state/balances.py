"""
Holder balances for base collateral and claim tokens.

A `BalanceTable` maps `(account, asset) -> amount`. Zero balances are dropped so
the table stays sparse; callers that hash or serialize it sort the keys.
"""

from __future__ import annotations

from typing import Dict, Tuple

AccountId = str
AssetId = str
Amount = int


class BalanceTable:
    """Non-negative balances keyed by `(account, asset)`."""

    def __init__(self) -> None:
        self._balances: Dict[Tuple[AccountId, AssetId], Amount] = {}
        self._totals: Dict[AssetId, Amount] = {}

    def get(self, account: AccountId, asset: AssetId) -> Amount:
        return self._balances.get((account, asset), 0)

    def total(self, asset: AssetId) -> Amount:
        return self._totals.get(asset, 0)

    def set(self, account: AccountId, asset: AssetId, amount: Amount) -> None:
        """
        Set the balance of `account` in `asset`.

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        previous = self.get(account, asset)
        if amount == 0:
            self._balances.pop((account, asset), None)
        else:
            self._balances[(account, asset)] = amount
        total = self.total(asset) + amount - previous
        if total:
            self._totals[asset] = total
        else:
            self._totals.pop(asset, None)

    def credit(self, account: AccountId, asset: AssetId, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Credit must be non-negative: {amount}")
        self.set(account, asset, self.get(account, asset) + amount)

    def debit(self, account: AccountId, asset: AssetId, amount: Amount) -> None:
        """
        Remove `amount` from the balance.

        Raises:
            ValueError: If amount is negative or exceeds the balance
        """
        if amount < 0:
            raise ValueError(f"Debit must be non-negative: {amount}")
        current = self.get(account, asset)
        if amount > current:
            raise ValueError(f"Insufficient balance: {current} < {amount}")
        self.set(account, asset, current - amount)

    def transfer(self, sender: AccountId, recipient: AccountId, asset: AssetId, amount: Amount) -> None:
        self.debit(sender, asset, amount)
        self.credit(recipient, asset, amount)

    def balances_for_asset(self, asset: AssetId) -> Dict[AccountId, Amount]:
        return {acct: amount for (acct, a), amount in sorted(self._balances.items()) if a == asset}

    def snapshot(self) -> Dict[Tuple[AccountId, AssetId], Amount]:
        return dict(self._balances)

    def restore(self, snapshot: Dict[Tuple[AccountId, AssetId], Amount]) -> None:
        self._balances = dict(snapshot)
        totals: Dict[AssetId, Amount] = {}
        for (_, asset), amount in self._balances.items():
            totals[asset] = totals.get(asset, 0) + amount
        self._totals = totals

    def __repr__(self) -> str:
        return f"BalanceTable({len(self._balances)} entries)"
