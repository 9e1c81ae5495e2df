"""Canonical schema (Pydantic) - Market, Bet, Position, oracle records."""

from predledger.models.bet import Bet
from predledger.models.market import (
    CategoryTag,
    Market,
    MarketMetadata,
    MarketStats,
    MarketStatus,
    OracleLink,
    UnknownExtension,
)
from predledger.models.oracle import OracleAssertion, OracleEvent
from predledger.models.position import BetReceipt, ClaimResult, Position

__all__ = [
    "Market",
    "MarketStatus",
    "MarketStats",
    "MarketMetadata",
    "CategoryTag",
    "OracleLink",
    "UnknownExtension",
    "Bet",
    "Position",
    "BetReceipt",
    "ClaimResult",
    "OracleEvent",
    "OracleAssertion",
]
