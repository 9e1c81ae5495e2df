"""Pari-mutuel pricing engine."""

from predledger.pricing.engine import (
    Settlement,
    implied_probabilities,
    implied_probabilities_bps,
    odds,
    payout,
    position_value,
    quote,
    settle,
)

__all__ = [
    "Settlement",
    "implied_probabilities",
    "implied_probabilities_bps",
    "odds",
    "payout",
    "position_value",
    "quote",
    "settle",
]
