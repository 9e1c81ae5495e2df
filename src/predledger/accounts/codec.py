"""Discriminator dispatch over the per-kind account codecs."""

from __future__ import annotations

from typing import Union

from predledger.accounts.bet import decode_bet, encode_bet
from predledger.accounts.layout import AccountKind
from predledger.accounts.market import decode_market, encode_market
from predledger.accounts.oracle import (
    decode_oracle_assertion,
    decode_oracle_event,
    encode_oracle_assertion,
    encode_oracle_event,
)
from predledger.models import Bet, Market, OracleAssertion, OracleEvent

AccountRecord = Union[Market, Bet, OracleEvent, OracleAssertion]

_DECODERS = {
    AccountKind.MARKET: decode_market,
    AccountKind.BET: decode_bet,
    AccountKind.ORACLE_EVENT: decode_oracle_event,
    AccountKind.ORACLE_ASSERTION: decode_oracle_assertion,
}


def kind_of(record: AccountRecord) -> AccountKind:
    if isinstance(record, Market):
        return AccountKind.MARKET
    if isinstance(record, Bet):
        return AccountKind.BET
    if isinstance(record, OracleEvent):
        return AccountKind.ORACLE_EVENT
    if isinstance(record, OracleAssertion):
        return AccountKind.ORACLE_ASSERTION
    raise TypeError(f"not an account record: {type(record).__name__}")


def encode_account(record: AccountRecord) -> bytes:
    kind = kind_of(record)
    if kind is AccountKind.MARKET:
        return encode_market(record)
    if kind is AccountKind.BET:
        return encode_bet(record)
    if kind is AccountKind.ORACLE_EVENT:
        return encode_oracle_event(record)
    return encode_oracle_assertion(record)


def decode_account(data: bytes, address: str) -> AccountRecord:
    """Check the discriminator, then decode with the matching codec."""
    kind = AccountKind.from_bytes(data)
    return _DECODERS[kind](data, address)
