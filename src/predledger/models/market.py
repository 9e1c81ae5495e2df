"""Market, MarketStatus, metadata variants - canonical market entities."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from predledger.models.oracle import check_event_id
from predledger.models.types import U8, U64, Address

QUESTION_MAX_LEN = 200
DESCRIPTION_MAX_LEN = 500
CATEGORY_MAX_LEN = 50


class MarketStatus(str, Enum):
    """Lifecycle state. ENDED is derived from the clock, never stored."""

    ACTIVE = "active"
    ENDED = "ended"
    RESOLVED = "resolved"


class CategoryTag(BaseModel):
    """Market category label (e.g. Crypto, Politics)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["category"] = "category"
    category: str = Field(..., min_length=1, max_length=CATEGORY_MAX_LEN)


class OracleLink(BaseModel):
    """Oracle event whose assertion must agree with the resolved outcome."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["oracle"] = "oracle"
    event_id: str = Field(..., min_length=1)

    @field_validator("event_id")
    @classmethod
    def validate_event_id(cls, v: str) -> str:
        return check_event_id(v)


class UnknownExtension(BaseModel):
    """Metadata entry with a tag this version does not understand, kept verbatim."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    kind: Literal["unknown"] = "unknown"
    tag: U8
    data: bytes = b""


MarketMetadata = Annotated[Union[CategoryTag, OracleLink, UnknownExtension], Field(discriminator="kind")]


class Market(BaseModel):
    """Binary-outcome pari-mutuel market account."""

    model_config = ConfigDict(frozen=True)

    address: Address
    creator: Address
    question: str = Field(..., max_length=QUESTION_MAX_LEN)
    description: str = Field("", max_length=DESCRIPTION_MAX_LEN)
    end_time: U64  # unix seconds
    resolution_time: U64
    created_at: U64 = 0
    total_yes_amount: U64 = 0
    total_no_amount: U64 = 0
    resolved: bool = False
    outcome: bool | None = None
    nonce: U8 = 0
    metadata: list[MarketMetadata] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_invariants(self) -> Market:
        if self.resolved != (self.outcome is not None):
            raise ValueError("outcome must be set iff the market is resolved")
        if self.end_time > self.resolution_time:
            raise ValueError("end_time must not be after resolution_time")
        return self

    @property
    def total_pool(self) -> int:
        return self.total_yes_amount + self.total_no_amount

    def pool_for(self, prediction: bool) -> int:
        return self.total_yes_amount if prediction else self.total_no_amount

    @property
    def category(self) -> str | None:
        for entry in self.metadata:
            if isinstance(entry, CategoryTag):
                return entry.category
        return None

    @property
    def oracle_event_id(self) -> str | None:
        for entry in self.metadata:
            if isinstance(entry, OracleLink):
                return entry.event_id
        return None

    def status_at(self, now: int) -> MarketStatus:
        """Lifecycle state at unix time ``now``."""
        if self.resolved:
            return MarketStatus.RESOLVED
        if now >= self.end_time:
            return MarketStatus.ENDED
        return MarketStatus.ACTIVE


class MarketStats(BaseModel):
    """Aggregate counters over all known markets."""

    total_markets: int = 0
    active_markets: int = 0
    ended_markets: int = 0
    resolved_markets: int = 0
    total_volume: int = 0
    total_bettors: int = 0
