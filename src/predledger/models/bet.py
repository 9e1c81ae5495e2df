"""Bet - one bettor's stake on one side of one market."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from predledger.models.types import U8, U64, Address, U64_MAX


class Bet(BaseModel):
    """Bet account. One per (market, bettor); amount accumulates on top-ups."""

    model_config = ConfigDict(frozen=True)

    address: Address
    market: Address
    bettor: Address
    amount: int = Field(..., gt=0, le=U64_MAX)
    prediction: bool  # True = yes
    claimed: bool = False
    created_at: U64 = 0
    nonce: U8 = 0
