"""Shared fixtures: fake clock, in-memory store, ledger."""

import pytest

from predledger.ledger.engine import MarketLedger
from predledger.oracle.reader import OracleReader
from predledger.storage.memory import InMemoryAccountStore

CREATOR = "11" * 32
ALICE = "a1" * 32
BOB = "b2" * 32
CAROL = "c3" * 32

NOW = 1_700_000_000


class FakeClock:
    """Settable clock; call returns the current value."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryAccountStore()


@pytest.fixture
def oracle(store):
    return OracleReader(store, cache_ttl=30.0, clock=FakeClock(0.0))


@pytest.fixture
def ledger(store, clock, oracle):
    return MarketLedger(store, clock=clock, rpc_timeout=1.0, oracle=oracle)
