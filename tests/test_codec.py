"""Account codec: layouts, sentinels, and rejection of malformed bytes."""

import hashlib
import struct

import pytest

from predledger.accounts import (
    AccountKind,
    decode_account,
    decode_bet,
    decode_market,
    decode_oracle_assertion,
    decode_oracle_event,
    encode_account,
    encode_bet,
    encode_market,
    encode_oracle_assertion,
    encode_oracle_event,
)
from predledger.accounts.bet import BET_MIN_SIZE
from predledger.accounts.market import MARKET_MIN_SIZE, OUTCOME_NONE
from predledger.errors import MalformedAccount, UnknownDiscriminator
from predledger.models import Bet, CategoryTag, Market, OracleAssertion, OracleEvent, OracleLink, UnknownExtension

from conftest import ALICE, CREATOR

MARKET_ADDR = "aa" * 32
BET_ADDR = "bb" * 32

# Offsets for a market with question "q" and empty description.
RESOLVED_OFFSET = 8 + 32 + 4 + 1 + 4 + 8 * 5
OUTCOME_OFFSET = RESOLVED_OFFSET + 1


def _market(**kw) -> Market:
    values = dict(
        address=MARKET_ADDR,
        creator=CREATOR,
        question="q",
        description="",
        end_time=1000,
        resolution_time=2000,
        created_at=10,
    )
    values.update(kw)
    return Market(**values)


def _bet(**kw) -> Bet:
    values = dict(
        address=BET_ADDR,
        market=MARKET_ADDR,
        bettor=ALICE,
        amount=250,
        prediction=True,
        created_at=20,
        nonce=3,
    )
    values.update(kw)
    return Bet(**values)


def test_discriminators_are_sha256_prefixes():
    for kind, name in [
        (AccountKind.MARKET, "Market"),
        (AccountKind.BET, "Bet"),
        (AccountKind.ORACLE_EVENT, "OracleEvent"),
        (AccountKind.ORACLE_ASSERTION, "OracleAssertion"),
    ]:
        assert kind.value == hashlib.sha256(f"account:{name}".encode()).digest()[:8]
    assert encode_bet(_bet())[:8] == AccountKind.BET.value


def test_market_round_trip_with_metadata():
    market = _market(
        question="Will BTC close above 100k?",
        description="Resolves on the daily close.",
        total_yes_amount=300,
        total_no_amount=100,
        resolved=True,
        outcome=False,
        nonce=254,
        metadata=[
            CategoryTag(category="Crypto"),
            OracleLink(event_id="btc-100k"),
            UnknownExtension(tag=9, data=b"\x01\x02\x03"),
        ],
    )
    decoded = decode_market(encode_market(market), MARKET_ADDR)
    assert decoded == market
    assert decoded.category == "Crypto"
    assert decoded.oracle_event_id == "btc-100k"


def test_unresolved_market_uses_outcome_sentinel():
    data = encode_market(_market())
    assert len(data) == MARKET_MIN_SIZE + 1  # one question byte
    assert data[RESOLVED_OFFSET] == 0
    assert data[OUTCOME_OFFSET] == OUTCOME_NONE
    assert decode_market(data, MARKET_ADDR).outcome is None


def test_bet_layout_is_fixed_size():
    data = encode_bet(_bet())
    assert len(data) == BET_MIN_SIZE
    assert decode_bet(data, BET_ADDR) == _bet()


def test_short_buffer_is_malformed():
    data = encode_bet(_bet())
    for n in (0, 7, 8, BET_MIN_SIZE - 1):
        with pytest.raises(MalformedAccount):
            decode_bet(data[:n], BET_ADDR)
    with pytest.raises(MalformedAccount):
        decode_market(AccountKind.MARKET.value + b"\x00" * 10, MARKET_ADDR)


def test_flag_byte_must_be_zero_or_one():
    data = bytearray(encode_bet(_bet()))
    data[8 + 32 + 32 + 8] = 2  # prediction
    with pytest.raises(MalformedAccount, match="flag"):
        decode_bet(bytes(data), BET_ADDR)


def test_invalid_outcome_byte_and_inconsistent_resolution():
    data = bytearray(encode_market(_market()))
    data[OUTCOME_OFFSET] = 7
    with pytest.raises(MalformedAccount):
        decode_market(bytes(data), MARKET_ADDR)

    data = bytearray(encode_market(_market()))
    data[RESOLVED_OFFSET] = 1  # resolved but outcome still the sentinel
    with pytest.raises(MalformedAccount):
        decode_market(bytes(data), MARKET_ADDR)


def test_string_length_past_end_is_malformed():
    data = bytearray(encode_market(_market()))
    struct.pack_into("<I", data, 8 + 32, 10_000)
    with pytest.raises(MalformedAccount, match="question"):
        decode_market(bytes(data), MARKET_ADDR)


def test_trailing_bytes_rejected():
    with pytest.raises(MalformedAccount, match="trailing"):
        decode_bet(encode_bet(_bet()) + b"\x00", BET_ADDR)


def test_zero_amount_bet_bytes_rejected():
    data = bytearray(encode_bet(_bet()))
    struct.pack_into("<Q", data, 8 + 64, 0)
    with pytest.raises(MalformedAccount):
        decode_bet(bytes(data), BET_ADDR)


def test_wrong_kind_and_unknown_discriminator():
    bet_bytes = encode_bet(_bet())
    with pytest.raises(MalformedAccount):
        decode_market(bet_bytes + b"\x00" * 64, MARKET_ADDR)
    with pytest.raises(UnknownDiscriminator):
        decode_account(b"\xde\xad\xbe\xef" * 2 + bet_bytes[8:], BET_ADDR)


def test_dispatch_by_discriminator():
    bet = _bet()
    assert decode_account(encode_account(bet), BET_ADDR) == bet
    assert isinstance(decode_account(encode_market(_market()), MARKET_ADDR), Market)


def test_oracle_event_round_trip_and_padding():
    event = OracleEvent(
        event_id="election-2024",
        title="Election",
        description="Who wins?",
        category="Politics",
        end_time=5000,
        resolved=True,
        outcome=1,
        total_volume=12345,
        participants=42,
    )
    data = encode_oracle_event(event)
    assert data[8:40] == b"election-2024".ljust(32, b"\x00")
    assert decode_oracle_event(data) == event


def test_oracle_assertion_sentinel_and_confidence():
    assertion = OracleAssertion(event_id="e1", outcome=None, confidence=0.1, timestamp=99, source="feed")
    data = encode_oracle_assertion(assertion)
    assert struct.unpack_from("<i", data, 40)[0] == -1
    decoded = decode_oracle_assertion(data)
    assert decoded == assertion
    assert decoded.outcome is None
    assert abs(decoded.confidence - 0.1) < 1e-6

    bad = bytearray(data)
    struct.pack_into("<i", bad, 40, -5)
    with pytest.raises(MalformedAccount):
        decode_oracle_assertion(bytes(bad))


def test_encode_rejects_out_of_range_values():
    # Pydantic bypassed via model_construct to reach the writer checks.
    market = Market.model_construct(**{**_market().model_dump(), "total_yes_amount": 2**64})
    with pytest.raises(MalformedAccount):
        encode_market(market)
    with pytest.raises(MalformedAccount):
        encode_market(_market(metadata=[UnknownExtension(tag=1, data=b"x")]))
