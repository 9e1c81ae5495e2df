"""OracleEvent, OracleAssertion - externally sourced outcome records."""

from __future__ import annotations

import struct

from pydantic import BaseModel, ConfigDict, Field, field_validator

from predledger.models.types import I32_MAX, U32, U64

EVENT_ID_LEN = 32


def check_event_id(value: str) -> str:
    raw = value.encode("utf-8")
    if not raw or len(raw) > EVENT_ID_LEN:
        raise ValueError(f"event_id must be 1..{EVENT_ID_LEN} UTF-8 bytes")
    if "\x00" in value:
        raise ValueError("event_id must not contain NUL")
    return value


class OracleEvent(BaseModel):
    """Event account: the question an oracle reports on."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    title: str = ""
    description: str = ""
    category: str = ""
    end_time: U64 = 0
    resolved: bool = False
    outcome: int | None = Field(None, ge=0, le=I32_MAX)
    total_volume: U64 = 0
    participants: U32 = 0

    @field_validator("event_id")
    @classmethod
    def validate_event_id(cls, v: str) -> str:
        return check_event_id(v)


class OracleAssertion(BaseModel):
    """Oracle account: an outcome assertion for an event."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    outcome: int | None = Field(None, ge=0, le=I32_MAX)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    timestamp: U64 = 0
    source: str = ""
    verified: bool = False

    @field_validator("event_id")
    @classmethod
    def validate_event_id(cls, v: str) -> str:
        return check_event_id(v)

    @field_validator("confidence")
    @classmethod
    def as_float32(cls, v: float) -> float:
        # Stored as f32; normalize so decode(encode(x)) == x.
        return struct.unpack("<f", struct.pack("<f", v))[0]
