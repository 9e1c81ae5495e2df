"""Account layer: address derivation and fixed-layout binary codecs."""

from predledger.accounts.address import AddressDeriver, default_deriver, derive
from predledger.accounts.bet import decode_bet, encode_bet
from predledger.accounts.codec import AccountRecord, decode_account, encode_account
from predledger.accounts.layout import AccountKind
from predledger.accounts.market import decode_market, encode_market
from predledger.accounts.oracle import (
    decode_oracle_assertion,
    decode_oracle_event,
    encode_oracle_assertion,
    encode_oracle_event,
)

__all__ = [
    "AccountKind",
    "AccountRecord",
    "AddressDeriver",
    "default_deriver",
    "derive",
    "decode_account",
    "encode_account",
    "decode_market",
    "encode_market",
    "decode_bet",
    "encode_bet",
    "decode_oracle_event",
    "encode_oracle_event",
    "decode_oracle_assertion",
    "encode_oracle_assertion",
]
