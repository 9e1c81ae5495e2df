"""Market ledger."""

from predledger.ledger.engine import MarketLedger, create_ledger

__all__ = ["MarketLedger", "create_ledger"]
