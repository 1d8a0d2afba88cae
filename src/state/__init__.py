"""
Market records and holder balances for LEX markets.
"""

from .balances import BalanceTable
from .markets import MarketRecord, compute_market_id

__all__ = [
    "BalanceTable",
    "MarketRecord",
    "compute_market_id",
]
