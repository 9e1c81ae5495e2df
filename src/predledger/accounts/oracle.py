"""OracleEvent and OracleAssertion account codecs."""

from __future__ import annotations

from predledger.accounts.layout import (
    DISCRIMINATOR_LEN,
    F32_SIZE,
    I32_SIZE,
    U8_SIZE,
    U32_SIZE,
    U64_SIZE,
    AccountKind,
    AccountReader,
    AccountWriter,
    build_record,
)
from predledger.errors import MalformedAccount
from predledger.models.oracle import EVENT_ID_LEN, OracleAssertion, OracleEvent

OUTCOME_NONE = -1

ORACLE_EVENT_MIN_SIZE = (
    DISCRIMINATOR_LEN
    + EVENT_ID_LEN
    + U32_SIZE * 3  # title, description, category lengths
    + U64_SIZE  # end_time
    + U8_SIZE  # resolved
    + I32_SIZE  # outcome
    + U64_SIZE  # total_volume
    + U32_SIZE  # participants
)

ORACLE_ASSERTION_MIN_SIZE = (
    DISCRIMINATOR_LEN
    + EVENT_ID_LEN
    + I32_SIZE  # outcome
    + F32_SIZE  # confidence
    + U64_SIZE  # timestamp
    + U32_SIZE  # source length
    + U8_SIZE  # verified
)


def _write_event_id(w: AccountWriter, event_id: str) -> None:
    raw = event_id.encode("utf-8")
    w.fixed(raw.ljust(EVENT_ID_LEN, b"\x00"), EVENT_ID_LEN, "event_id")


def _read_event_id(r: AccountReader) -> str:
    raw = r.fixed(EVENT_ID_LEN, "event_id").rstrip(b"\x00")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedAccount(f"{r.kind.label}.event_id: invalid UTF-8") from None


def _read_outcome(r: AccountReader) -> int | None:
    value = r.i32("outcome")
    if value == OUTCOME_NONE:
        return None
    if value < 0:
        raise MalformedAccount(f"{r.kind.label}.outcome: {value} is negative and not the null sentinel")
    return value


def _outcome_value(outcome: int | None) -> int:
    return OUTCOME_NONE if outcome is None else outcome


def encode_oracle_event(event: OracleEvent) -> bytes:
    w = AccountWriter(AccountKind.ORACLE_EVENT)
    _write_event_id(w, event.event_id)
    w.string(event.title, "title")
    w.string(event.description, "description")
    w.string(event.category, "category")
    w.u64(event.end_time, "end_time")
    w.flag(event.resolved)
    w.i32(_outcome_value(event.outcome), "outcome")
    w.u64(event.total_volume, "total_volume")
    w.u32(event.participants, "participants")
    return w.getvalue()


def decode_oracle_event(data: bytes, address: str | None = None) -> OracleEvent:
    r = AccountReader(data, AccountKind.ORACLE_EVENT, ORACLE_EVENT_MIN_SIZE)
    values = {
        "event_id": _read_event_id(r),
        "title": r.string("title"),
        "description": r.string("description"),
        "category": r.string("category"),
        "end_time": r.u64("end_time"),
        "resolved": r.flag("resolved"),
        "outcome": _read_outcome(r),
        "total_volume": r.u64("total_volume"),
        "participants": r.u32("participants"),
    }
    r.finish()
    return build_record(OracleEvent, AccountKind.ORACLE_EVENT, values)


def encode_oracle_assertion(assertion: OracleAssertion) -> bytes:
    w = AccountWriter(AccountKind.ORACLE_ASSERTION)
    _write_event_id(w, assertion.event_id)
    w.i32(_outcome_value(assertion.outcome), "outcome")
    w.f32(assertion.confidence, "confidence")
    w.u64(assertion.timestamp, "timestamp")
    w.string(assertion.source, "source")
    w.flag(assertion.verified)
    return w.getvalue()


def decode_oracle_assertion(data: bytes, address: str | None = None) -> OracleAssertion:
    r = AccountReader(data, AccountKind.ORACLE_ASSERTION, ORACLE_ASSERTION_MIN_SIZE)
    values = {
        "event_id": _read_event_id(r),
        "outcome": _read_outcome(r),
        "confidence": r.f32("confidence"),
        "timestamp": r.u64("timestamp"),
        "source": r.string("source"),
        "verified": r.flag("verified"),
    }
    r.finish()
    return build_record(OracleAssertion, AccountKind.ORACLE_ASSERTION, values)
