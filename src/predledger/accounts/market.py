"""Market account codec."""

from __future__ import annotations

from predledger.accounts.layout import (
    DISCRIMINATOR_LEN,
    PUBKEY_LEN,
    U8_SIZE,
    U32_SIZE,
    U64_SIZE,
    AccountKind,
    AccountReader,
    AccountWriter,
    build_record,
)
from predledger.errors import MalformedAccount
from predledger.models.market import CategoryTag, Market, MarketMetadata, OracleLink, UnknownExtension

OUTCOME_NONE = 255

METADATA_TAG_CATEGORY = 1
METADATA_TAG_ORACLE = 2
RESERVED_METADATA_TAGS = frozenset({METADATA_TAG_CATEGORY, METADATA_TAG_ORACLE})

MARKET_MIN_SIZE = (
    DISCRIMINATOR_LEN
    + PUBKEY_LEN  # creator
    + U32_SIZE  # question length
    + U32_SIZE  # description length
    + U64_SIZE * 5  # end_time, resolution_time, created_at, total_yes, total_no
    + U8_SIZE * 3  # resolved, outcome, nonce
    + U32_SIZE  # metadata count
)


def _encode_metadata(writer: AccountWriter, entries: list[MarketMetadata]) -> None:
    writer.u32(len(entries), "metadata.count")
    for i, entry in enumerate(entries):
        if isinstance(entry, CategoryTag):
            writer.u8(METADATA_TAG_CATEGORY, f"metadata[{i}].tag")
            writer.string(entry.category, f"metadata[{i}]")
        elif isinstance(entry, OracleLink):
            writer.u8(METADATA_TAG_ORACLE, f"metadata[{i}].tag")
            writer.string(entry.event_id, f"metadata[{i}]")
        else:
            if entry.tag in RESERVED_METADATA_TAGS:
                raise MalformedAccount(f"market.metadata[{i}]: tag {entry.tag} is reserved")
            writer.u8(entry.tag, f"metadata[{i}].tag")
            writer.blob(entry.data, f"metadata[{i}]")


def _decode_metadata(reader: AccountReader) -> list[dict]:
    count = reader.u32("metadata.count")
    entries = []
    for i in range(count):
        tag = reader.u8(f"metadata[{i}].tag")
        if tag == METADATA_TAG_CATEGORY:
            entries.append({"kind": "category", "category": reader.string(f"metadata[{i}]")})
        elif tag == METADATA_TAG_ORACLE:
            entries.append({"kind": "oracle", "event_id": reader.string(f"metadata[{i}]")})
        else:
            entries.append({"kind": "unknown", "tag": tag, "data": reader.blob(f"metadata[{i}]")})
    return entries


def encode_market(market: Market) -> bytes:
    w = AccountWriter(AccountKind.MARKET)
    w.pubkey(market.creator, "creator")
    w.string(market.question, "question")
    w.string(market.description, "description")
    w.u64(market.end_time, "end_time")
    w.u64(market.resolution_time, "resolution_time")
    w.u64(market.created_at, "created_at")
    w.u64(market.total_yes_amount, "total_yes_amount")
    w.u64(market.total_no_amount, "total_no_amount")
    w.flag(market.resolved)
    w.u8(OUTCOME_NONE if market.outcome is None else int(market.outcome), "outcome")
    w.u8(market.nonce, "nonce")
    _encode_metadata(w, market.metadata)
    return w.getvalue()


def decode_market(data: bytes, address: str) -> Market:
    r = AccountReader(data, AccountKind.MARKET, MARKET_MIN_SIZE)
    creator = r.pubkey("creator")
    question = r.string("question")
    description = r.string("description")
    end_time = r.u64("end_time")
    resolution_time = r.u64("resolution_time")
    created_at = r.u64("created_at")
    total_yes = r.u64("total_yes_amount")
    total_no = r.u64("total_no_amount")
    resolved = r.flag("resolved")
    outcome_byte = r.u8("outcome")
    if outcome_byte == OUTCOME_NONE:
        outcome = None
    elif outcome_byte in (0, 1):
        outcome = outcome_byte == 1
    else:
        raise MalformedAccount(f"market.outcome: byte must be 0, 1 or {OUTCOME_NONE}, got {outcome_byte}")
    nonce = r.u8("nonce")
    metadata = _decode_metadata(r)
    r.finish()
    return build_record(
        Market,
        AccountKind.MARKET,
        {
            "address": address,
            "creator": creator,
            "question": question,
            "description": description,
            "end_time": end_time,
            "resolution_time": resolution_time,
            "created_at": created_at,
            "total_yes_amount": total_yes,
            "total_no_amount": total_no,
            "resolved": resolved,
            "outcome": outcome,
            "nonce": nonce,
            "metadata": metadata,
        },
    )
