"""Deterministic account address derivation (PDA-style).

An address is ``sha256(namespace || seeds... || nonce || program_id || marker)``.
The nonce is a single byte searched upward from 0 until the digest falls
outside the reserved address space, so callers can always recompute an
address from its seeds without a storage lookup.
"""

from __future__ import annotations

import hashlib
from typing import Callable, Sequence

from predledger.errors import AddressSpaceExhausted
from predledger.models.types import address_bytes

DEFAULT_PROGRAM_ID = hashlib.sha256(b"predledger").digest()
ADDRESS_MARKER = b"PredLedgerDerivedAddress"
MAX_SEED_LEN = 32
MAX_SEEDS = 16
MAX_NONCE_ATTEMPTS = 256

NAMESPACE_MARKET = b"market"
NAMESPACE_BET = b"bet"
NAMESPACE_EVENT = b"event"
NAMESPACE_ORACLE = b"oracle"


def is_reserved_address(address: bytes) -> bool:
    """Reserved space: every address with a leading zero byte (includes the all-zero system address)."""
    return address[0] == 0


class AddressDeriver:
    """Derives account addresses for one program id."""

    def __init__(
        self,
        program_id: bytes = DEFAULT_PROGRAM_ID,
        max_attempts: int = MAX_NONCE_ATTEMPTS,
        reserved: Callable[[bytes], bool] | None = None,
    ) -> None:
        if len(program_id) != 32:
            raise ValueError(f"program_id must be 32 bytes, got {len(program_id)}")
        if not 1 <= max_attempts <= MAX_NONCE_ATTEMPTS:
            raise ValueError(f"max_attempts must be in 1..{MAX_NONCE_ATTEMPTS}")
        self.program_id = program_id
        self.max_attempts = max_attempts
        self.reserved = reserved or is_reserved_address

    @staticmethod
    def _check_seeds(namespace: bytes, seeds: Sequence[bytes]) -> None:
        if len(seeds) + 1 > MAX_SEEDS:
            raise ValueError(f"at most {MAX_SEEDS - 1} seeds allowed")
        for seed in (namespace, *seeds):
            if len(seed) > MAX_SEED_LEN:
                raise ValueError(f"seed longer than {MAX_SEED_LEN} bytes: {len(seed)}")

    def derive_with_nonce(self, namespace: bytes, seeds: Sequence[bytes], nonce: int) -> str:
        """Address for an explicit nonce (no reserved-space check)."""
        if not 0 <= nonce <= 255:
            raise ValueError(f"nonce must fit in one byte, got {nonce}")
        self._check_seeds(namespace, seeds)
        h = hashlib.sha256()
        h.update(namespace)
        for seed in seeds:
            h.update(seed)
        h.update(bytes([nonce]))
        h.update(self.program_id)
        h.update(ADDRESS_MARKER)
        return h.hexdigest()

    def derive(self, namespace: bytes, seeds: Sequence[bytes]) -> tuple[str, int]:
        """Return (address, nonce) for the first nonce outside the reserved space."""
        for nonce in range(self.max_attempts):
            address = self.derive_with_nonce(namespace, seeds, nonce)
            if not self.reserved(bytes.fromhex(address)):
                return address, nonce
        raise AddressSpaceExhausted(
            f"no usable address for namespace {namespace!r} within {self.max_attempts} nonces"
        )

    def market_address(self, creator: str, question: str) -> tuple[str, int]:
        return self.derive(NAMESPACE_MARKET, [address_bytes(creator), question.encode("utf-8")[:MAX_SEED_LEN]])

    def bet_address(self, market: str, bettor: str) -> tuple[str, int]:
        return self.derive(NAMESPACE_BET, [address_bytes(market), address_bytes(bettor)])

    def event_address(self, event_id: str) -> tuple[str, int]:
        return self.derive(NAMESPACE_EVENT, [event_id.encode("utf-8")])

    def oracle_address(self, event_id: str) -> tuple[str, int]:
        return self.derive(NAMESPACE_ORACLE, [event_id.encode("utf-8")])


default_deriver = AddressDeriver()


def derive(namespace: bytes, seeds: Sequence[bytes]) -> tuple[str, int]:
    """Derive with the default program id."""
    return default_deriver.derive(namespace, seeds)
