"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from pydantic import BaseModel, Field

from predledger.models import Bet, Market, MarketStatus, Position
from predledger.pricing.engine import implied_probabilities, odds


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. market_not_active, not_found")


# --- Markets ---
class MarketView(BaseModel):
    address: str
    creator: str
    question: str
    description: str
    category: str | None = None
    oracle_event_id: str | None = None
    end_time: int
    resolution_time: int
    created_at: int
    status: MarketStatus
    total_yes_amount: int
    total_no_amount: int
    resolved: bool
    outcome: bool | None = None
    yes_odds: float
    no_odds: float
    yes_probability: float
    no_probability: float

    @classmethod
    def from_market(cls, market: Market, status: MarketStatus) -> MarketView:
        yes, no = market.total_yes_amount, market.total_no_amount
        yes_odds, no_odds = odds(yes, no)
        yes_prob, no_prob = implied_probabilities(yes, no)
        return cls(
            address=market.address,
            creator=market.creator,
            question=market.question,
            description=market.description,
            category=market.category,
            oracle_event_id=market.oracle_event_id,
            end_time=market.end_time,
            resolution_time=market.resolution_time,
            created_at=market.created_at,
            status=status,
            total_yes_amount=yes,
            total_no_amount=no,
            resolved=market.resolved,
            outcome=market.outcome,
            yes_odds=yes_odds,
            no_odds=no_odds,
            yes_probability=yes_prob,
            no_probability=no_prob,
        )


class MarketsListResponse(BaseModel):
    markets: list[MarketView]
    total: int


class CreateMarketRequest(BaseModel):
    creator: str
    question: str
    description: str = ""
    end_time: int = Field(..., ge=0, description="Unix seconds")
    resolution_time: int = Field(..., ge=0, description="Unix seconds")
    category: str | None = None
    oracle_event_id: str | None = None


class ResolveMarketRequest(BaseModel):
    resolver: str
    outcome: bool


class QuoteResponse(BaseModel):
    market: str
    amount: int
    prediction: bool
    potential_payout: int


# --- Bets ---
class PlaceBetRequest(BaseModel):
    bettor: str
    amount: int = Field(..., description="Stake in smallest currency units")
    prediction: bool


class BetReceiptResponse(BaseModel):
    market: MarketView
    bet: Bet
    position: Position


class ClaimResponse(BaseModel):
    bet: Bet
    payout: int
