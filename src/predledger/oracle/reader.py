"""Oracle reader - TTL-cached event and assertion accounts, plus change subscriptions."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import structlog

from predledger.accounts.address import AddressDeriver, default_deriver
from predledger.accounts.layout import AccountKind
from predledger.accounts.oracle import decode_oracle_assertion, decode_oracle_event
from predledger.errors import LedgerUnavailable, MalformedAccount, NotFound
from predledger.models.oracle import OracleAssertion, OracleEvent
from predledger.storage.base import AccountStore

log = structlog.get_logger(__name__)

DEFAULT_CACHE_TTL_SEC = 30.0


@dataclass
class _CacheEntry:
    record: Any
    expiry: float


class OracleReader:
    """Reads oracle-owned accounts through an AccountStore.

    Direct reads propagate decode errors. Subscription callbacks log and drop
    undecodable notifications so one bad payload does not end the stream.
    """

    def __init__(
        self,
        store: AccountStore,
        deriver: AddressDeriver | None = None,
        cache_ttl: float = DEFAULT_CACHE_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
        timeout: float | None = None,
    ) -> None:
        self.store = store
        self.deriver = deriver or default_deriver
        self.cache_ttl = cache_ttl
        self.clock = clock
        self.timeout = timeout
        self._cache: dict[str, _CacheEntry] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def _put(self, key: str, record: Any) -> None:
        self._cache[key] = _CacheEntry(record=record, expiry=self.clock() + self.cache_ttl)

    async def _call(self, op: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            log.warning("oracle_store_timeout", op=op, timeout=self.timeout)
            raise LedgerUnavailable(f"oracle {op} timed out after {self.timeout}s") from None
        except OSError as e:
            log.warning("oracle_store_error", op=op, error=str(e))
            raise LedgerUnavailable(f"oracle {op} failed: {e}") from e

    async def _fetch(self, address: str) -> bytes | None:
        return await self._call("fetch", self.store.get(address))

    async def _get(self, key: str, address: str, decoder: Callable[[bytes, str], Any]) -> Any:
        cached = self._cache.get(key)
        if cached is not None and cached.expiry > self.clock():
            return cached.record
        data = await self._fetch(address)
        if data is None:
            raise NotFound(f"no account for {key} at {address}")
        record = decoder(data, address)
        self._put(key, record)
        log.debug("oracle_cache_refresh", key=key, address=address)
        return record

    async def get_event(self, event_id: str) -> OracleEvent:
        address, _ = self.deriver.event_address(event_id)
        return await self._get(f"event_{event_id}", address, decode_oracle_event)

    async def get_oracle_assertion(self, event_id: str) -> OracleAssertion:
        address, _ = self.deriver.oracle_address(event_id)
        return await self._get(f"oracle_{event_id}", address, decode_oracle_assertion)

    async def list_events(self) -> list[OracleEvent]:
        """All decodable event accounts, latest end_time first."""
        rows = await self._call("scan_events", self.store.scan(AccountKind.ORACLE_EVENT.value))
        events = []
        for address, data in rows:
            try:
                events.append(decode_oracle_event(data, address))
            except MalformedAccount as e:
                log.warning("oracle_event_skipped", address=address, error=str(e))
        return sorted(events, key=lambda e: e.end_time, reverse=True)

    def _subscribe(
        self,
        key: str,
        address: str,
        decoder: Callable[[bytes, str], Any],
        on_change: Callable[[Any], None],
    ) -> int:
        def _on_bytes(data: bytes) -> None:
            try:
                record = decoder(data, address)
            except MalformedAccount as e:
                log.warning("oracle_subscription_decode_failed", key=key, address=address, error=str(e))
                return
            self._put(key, record)
            on_change(record)

        handle = self.store.subscribe(address, _on_bytes)
        log.info("oracle_subscribed", key=key, handle=handle)
        return handle

    def subscribe_event(self, event_id: str, on_change: Callable[[OracleEvent], None]) -> int:
        address, _ = self.deriver.event_address(event_id)
        return self._subscribe(f"event_{event_id}", address, decode_oracle_event, on_change)

    def subscribe_assertion(self, event_id: str, on_change: Callable[[OracleAssertion], None]) -> int:
        address, _ = self.deriver.oracle_address(event_id)
        return self._subscribe(f"oracle_{event_id}", address, decode_oracle_assertion, on_change)

    def unsubscribe(self, handle: int) -> None:
        self.store.unsubscribe(handle)
        log.info("oracle_unsubscribed", handle=handle)
