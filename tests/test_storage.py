"""Account stores: DuckDB persistence, atomic writes, scans, listeners."""

import shutil
import tempfile
import time
from pathlib import Path

import pytest

from predledger.accounts.bet import decode_bet
from predledger.accounts.layout import AccountKind
from predledger.errors import LedgerUnavailable
from predledger.ledger.engine import MarketLedger
from predledger.storage import accounts as accounts_module
from predledger.storage.accounts import DuckDBAccountStore, WriteGuard, get_account, put_accounts
from predledger.storage.base import ListenerRegistry
from predledger.storage.db import get_connection, init_schema

from conftest import ALICE, BOB, CREATOR, NOW, FakeClock


@pytest.fixture
def temp_db_path():
    tmp = tempfile.mkdtemp()
    path = Path(tmp) / "test.duckdb"
    yield path
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def duck_store(temp_db_path):
    store = DuckDBAccountStore(temp_db_path)
    yield store
    store.close()


def test_put_accounts_is_all_or_nothing():
    conn = get_connection(":memory:")
    init_schema(conn)
    put_accounts(conn, {"aa": AccountKind.BET.value + b"x"})
    with pytest.raises(TypeError):
        # Second entry has no bytes; the first must roll back with it.
        put_accounts(conn, {"bb": AccountKind.BET.value, "cc": None})
    assert get_account(conn, "bb") is None
    assert get_account(conn, "aa") == AccountKind.BET.value + b"x"
    conn.close()


@pytest.mark.asyncio
async def test_duckdb_store_get_write_scan(duck_store):
    market_bytes = AccountKind.MARKET.value + b"m"
    bet_bytes = AccountKind.BET.value + b"b"
    await duck_store.write({"01" * 32: market_bytes, "02" * 32: bet_bytes})
    assert await duck_store.get("01" * 32) == market_bytes
    assert await duck_store.get("03" * 32) is None
    assert await duck_store.scan(AccountKind.BET.value) == [("02" * 32, bet_bytes)]
    assert len(await duck_store.scan()) == 2
    stats = duck_store.stats()
    assert stats["total_accounts"] == 2


@pytest.mark.asyncio
async def test_duckdb_store_notifies_listeners(duck_store):
    seen = []
    handle = duck_store.subscribe("01" * 32, seen.append)
    await duck_store.write({"01" * 32: b"one", "02" * 32: b"two"})
    duck_store.unsubscribe(handle)
    await duck_store.write({"01" * 32: b"three"})
    assert seen == [b"one"]


@pytest.mark.asyncio
async def test_closed_store_is_unavailable(temp_db_path):
    store = DuckDBAccountStore(temp_db_path)
    store.close()
    with pytest.raises(LedgerUnavailable):
        await store.get("01" * 32)


@pytest.mark.asyncio
async def test_ledger_state_survives_reopen(temp_db_path):
    clock = FakeClock()
    store = DuckDBAccountStore(temp_db_path)
    ledger = MarketLedger(store, clock=clock)
    market = await ledger.create_market(CREATOR, "Persisted?", "", NOW + 100, NOW + 200)
    await ledger.place_bet(market.address, ALICE, 75, False)
    store.close()

    store = DuckDBAccountStore(temp_db_path)
    reopened = MarketLedger(store, clock=clock)
    loaded = await reopened.get_market(market.address)
    assert loaded.total_no_amount == 75
    position = await reopened.get_position(market.address, ALICE)
    assert position.no_amount == 75
    store.close()

    store = DuckDBAccountStore(temp_db_path)
    restarted = MarketLedger(store, clock=clock)
    held = await restarted.positions_for_user(ALICE)
    assert [(p.market, p.no_amount) for p in held] == [(market.address, 75)]
    assert [p.user for p in await restarted.positions_for_market(market.address)] == [ALICE]
    store.close()


def test_listener_errors_do_not_stop_delivery():
    registry = ListenerRegistry()
    seen = []

    def boom(data):
        raise RuntimeError("listener failed")

    registry.add("a", boom)
    registry.add("a", seen.append)
    registry.notify({"a": b"x"})
    assert seen == [b"x"]
    assert len(registry) == 2


def test_cancelled_guard_rolls_back():
    conn = get_connection(":memory:")
    init_schema(conn)
    guard = WriteGuard()
    assert guard.cancel() is True
    with pytest.raises(LedgerUnavailable):
        put_accounts(conn, {"aa": AccountKind.BET.value}, guard)
    assert get_account(conn, "aa") is None

    landed = WriteGuard()
    put_accounts(conn, {"bb": AccountKind.BET.value}, landed)
    assert landed.cancel() is False
    assert get_account(conn, "bb") == AccountKind.BET.value
    conn.close()


@pytest.mark.asyncio
async def test_timed_out_duckdb_bet_is_not_committed(temp_db_path, monkeypatch):
    clock = FakeClock()
    store = DuckDBAccountStore(temp_db_path)
    ledger = MarketLedger(store, clock=clock)
    market = await ledger.create_market(CREATOR, "Slow disk?", "", NOW + 100, NOW + 200)

    fast_put = accounts_module.put_accounts

    def slow_put(conn, entries, guard=None):
        time.sleep(0.3)
        fast_put(conn, entries, guard)

    monkeypatch.setattr(accounts_module, "put_accounts", slow_put)
    with pytest.raises(LedgerUnavailable):
        await ledger.place_bet(market.address, ALICE, 100, True, timeout=0.05)
    monkeypatch.setattr(accounts_module, "put_accounts", fast_put)

    await ledger.place_bet(market.address, BOB, 10, True)
    assert await store.get(ledger.bet_address(market.address, ALICE)) is None

    reloaded = await MarketLedger(store, clock=clock).get_market(market.address)
    bets = [decode_bet(data, address) for address, data in await store.scan(AccountKind.BET.value)]
    assert reloaded.total_yes_amount == sum(b.amount for b in bets) == 10

    # Retrying after the transient error stakes exactly once.
    await ledger.place_bet(market.address, ALICE, 100, True)
    assert (await ledger.get_market(market.address)).total_yes_amount == 110
    store.close()
