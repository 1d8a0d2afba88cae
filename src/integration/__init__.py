"""
Stateful LEX market shell and its external collaborators.
"""

from .claim_token import ClaimToken
from .market_engine import LexMarkets
from .static_oracle import StaticPriceOracle

__all__ = [
    "ClaimToken",
    "LexMarkets",
    "StaticPriceOracle",
]
