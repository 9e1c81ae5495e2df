"""Oracle reader: TTL cache, missing accounts, subscriptions."""

import pytest

from predledger.accounts.address import default_deriver
from predledger.accounts.oracle import encode_oracle_assertion, encode_oracle_event
from predledger.errors import LedgerUnavailable, MalformedAccount, NotFound
from predledger.models import OracleAssertion, OracleEvent
from predledger.oracle.reader import OracleReader
from predledger.storage.memory import InMemoryAccountStore

from conftest import FakeClock


def _event(event_id="e1", end_time=100, **kw) -> OracleEvent:
    return OracleEvent(event_id=event_id, title=f"Event {event_id}", end_time=end_time, **kw)


def _assertion(outcome=1, **kw) -> OracleAssertion:
    return OracleAssertion(event_id="e1", outcome=outcome, confidence=0.75, timestamp=50, source="feed", **kw)


async def _put_event(store, event):
    address, _ = default_deriver.event_address(event.event_id)
    await store.write({address: encode_oracle_event(event)})
    return address


async def _put_assertion(store, assertion):
    address, _ = default_deriver.oracle_address(assertion.event_id)
    await store.write({address: encode_oracle_assertion(assertion)})
    return address


@pytest.mark.asyncio
async def test_cache_serves_until_ttl_expires():
    store = InMemoryAccountStore()
    clock = FakeClock(0.0)
    reader = OracleReader(store, cache_ttl=30.0, clock=clock)
    await _put_assertion(store, _assertion(outcome=1))

    first = await reader.get_oracle_assertion("e1")
    assert first.outcome == 1
    assert reader.cache_size == 1

    await _put_assertion(store, _assertion(outcome=0))
    clock.advance(29)
    assert (await reader.get_oracle_assertion("e1")).outcome == 1  # stale but within TTL

    clock.advance(2)
    assert (await reader.get_oracle_assertion("e1")).outcome == 0


@pytest.mark.asyncio
async def test_missing_account_is_not_found():
    reader = OracleReader(InMemoryAccountStore())
    with pytest.raises(NotFound):
        await reader.get_event("nope")
    with pytest.raises(NotFound):
        await reader.get_oracle_assertion("nope")
    assert reader.cache_size == 0


@pytest.mark.asyncio
async def test_direct_read_propagates_decode_error():
    store = InMemoryAccountStore()
    address, _ = default_deriver.event_address("bad")
    await store.write({address: b"garbage"})
    with pytest.raises(MalformedAccount):
        await OracleReader(store).get_event("bad")


@pytest.mark.asyncio
async def test_list_events_skips_corrupt_accounts():
    store = InMemoryAccountStore()
    await _put_event(store, _event("early", end_time=100))
    await _put_event(store, _event("late", end_time=900))
    address = await _put_event(store, _event("broken", end_time=500))
    await store.write({address: encode_oracle_event(_event("broken"))[:-3]})

    events = await OracleReader(store).list_events()
    assert [e.event_id for e in events] == ["late", "early"]


@pytest.mark.asyncio
async def test_subscription_delivers_and_drops_bad_payloads():
    store = InMemoryAccountStore()
    clock = FakeClock(0.0)
    reader = OracleReader(store, clock=clock)
    seen = []
    handle = reader.subscribe_assertion("e1", seen.append)

    address = await _put_assertion(store, _assertion(outcome=1))
    await store.write({address: b"\x00" * 4})  # undecodable, dropped
    await _put_assertion(store, _assertion(outcome=0, verified=True))
    assert [a.outcome for a in seen] == [1, 0]
    assert (await reader.get_oracle_assertion("e1")).verified is True  # refreshed by notification

    reader.unsubscribe(handle)
    await _put_assertion(store, _assertion(outcome=1))
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_event_subscription():
    store = InMemoryAccountStore()
    reader = OracleReader(store)
    seen = []
    reader.subscribe_event("e1", seen.append)
    await _put_event(store, _event("e1", resolved=True, outcome=2))
    assert seen[0].outcome == 2
    reader.clear_cache()
    assert reader.cache_size == 0


class BrokenStore(InMemoryAccountStore):
    async def get(self, address):
        raise ConnectionResetError("rpc connection reset")

    async def scan(self, prefix=b""):
        raise ConnectionResetError("rpc connection reset")


@pytest.mark.asyncio
async def test_backend_os_errors_are_transient():
    reader = OracleReader(BrokenStore())
    with pytest.raises(LedgerUnavailable):
        await reader.get_oracle_assertion("e1")
    with pytest.raises(LedgerUnavailable):
        await reader.list_events()
