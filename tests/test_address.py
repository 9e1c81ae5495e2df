"""Address derivation: determinism, nonce search, reserved space."""

import pytest

from predledger.accounts.address import (
    DEFAULT_PROGRAM_ID,
    NAMESPACE_BET,
    NAMESPACE_MARKET,
    AddressDeriver,
    derive,
    is_reserved_address,
)
from predledger.errors import AddressSpaceExhausted

from conftest import ALICE, CREATOR


def test_derive_is_deterministic():
    seeds = [bytes.fromhex(CREATOR), b"Will it rain?"]
    assert derive(NAMESPACE_MARKET, seeds) == derive(NAMESPACE_MARKET, seeds)
    address, nonce = derive(NAMESPACE_MARKET, seeds)
    assert len(address) == 64
    assert 0 <= nonce <= 255
    assert not is_reserved_address(bytes.fromhex(address))


def test_different_inputs_give_different_addresses():
    d = AddressDeriver()
    a, _ = d.market_address(CREATOR, "Will it rain?")
    b, _ = d.market_address(CREATOR, "Will it snow?")
    c, _ = d.market_address(ALICE, "Will it rain?")
    assert len({a, b, c}) == 3
    other_program = AddressDeriver(bytes(range(32)))
    assert other_program.market_address(CREATOR, "Will it rain?")[0] != a


def test_market_address_uses_question_prefix():
    d = AddressDeriver()
    prefix = "x" * 32
    assert d.market_address(CREATOR, prefix + " first")[0] == d.market_address(CREATOR, prefix + " second")[0]


def test_nonce_skips_reserved_addresses():
    d = AddressDeriver()
    seeds = [bytes.fromhex(CREATOR), bytes.fromhex(ALICE)]
    first = d.derive_with_nonce(NAMESPACE_BET, seeds, 0)
    second = d.derive_with_nonce(NAMESPACE_BET, seeds, 1)

    picky = AddressDeriver(reserved=lambda raw: raw.hex() == first)
    assert picky.derive(NAMESPACE_BET, seeds) == (second, 1)


def test_address_space_exhausted():
    d = AddressDeriver(max_attempts=4, reserved=lambda raw: True)
    with pytest.raises(AddressSpaceExhausted):
        d.derive(NAMESPACE_MARKET, [b"seed"])


def test_seed_and_program_id_limits():
    d = AddressDeriver()
    with pytest.raises(ValueError):
        d.derive(NAMESPACE_MARKET, [b"x" * 33])
    with pytest.raises(ValueError):
        d.derive_with_nonce(NAMESPACE_MARKET, [b"x"], 256)
    with pytest.raises(ValueError):
        AddressDeriver(b"short")
    assert len(DEFAULT_PROGRAM_ID) == 32


def test_reserved_space_is_leading_zero_byte():
    assert is_reserved_address(bytes(32))
    assert is_reserved_address(b"\x00" + b"\xff" * 31)
    assert not is_reserved_address(b"\x01" + bytes(31))
