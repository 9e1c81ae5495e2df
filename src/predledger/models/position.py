"""Position - derived per (user, market) view over Bet and Market pool state."""

from __future__ import annotations

from pydantic import BaseModel

from predledger.models.bet import Bet
from predledger.models.market import Market
from predledger.models.types import Address


class Position(BaseModel):
    """Aggregate of a user's stake on a market, marked to the current pools."""

    market: Address
    user: Address
    yes_amount: int = 0
    no_amount: int = 0
    total_invested: int = 0
    current_value: int = 0  # potential payout while open, actual payout once resolved
    unrealized_pnl: int = 0
    claimed: bool = False


class BetReceipt(BaseModel):
    """Result of an accepted place_bet."""

    market: Market
    bet: Bet
    position: Position


class ClaimResult(BaseModel):
    """Result of an accepted claim_winnings. The transfer itself is external."""

    bet: Bet
    payout: int
