"""Bet account codec."""

from __future__ import annotations

from predledger.accounts.layout import (
    DISCRIMINATOR_LEN,
    PUBKEY_LEN,
    U8_SIZE,
    U64_SIZE,
    AccountKind,
    AccountReader,
    AccountWriter,
    build_record,
)
from predledger.models.bet import Bet

BET_MIN_SIZE = (
    DISCRIMINATOR_LEN
    + PUBKEY_LEN * 2  # market, bettor
    + U64_SIZE  # amount
    + U8_SIZE * 2  # prediction, claimed
    + U64_SIZE  # created_at
    + U8_SIZE  # nonce
)


def encode_bet(bet: Bet) -> bytes:
    w = AccountWriter(AccountKind.BET)
    w.pubkey(bet.market, "market")
    w.pubkey(bet.bettor, "bettor")
    w.u64(bet.amount, "amount")
    w.flag(bet.prediction)
    w.flag(bet.claimed)
    w.u64(bet.created_at, "created_at")
    w.u8(bet.nonce, "nonce")
    return w.getvalue()


def decode_bet(data: bytes, address: str) -> Bet:
    r = AccountReader(data, AccountKind.BET, BET_MIN_SIZE)
    values = {
        "address": address,
        "market": r.pubkey("market"),
        "bettor": r.pubkey("bettor"),
        "amount": r.u64("amount"),
        "prediction": r.flag("prediction"),
        "claimed": r.flag("claimed"),
        "created_at": r.u64("created_at"),
        "nonce": r.u8("nonce"),
    }
    r.finish()
    return build_record(Bet, AccountKind.BET, values)
