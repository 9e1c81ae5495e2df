"""In-process account store (tests, embedding, single-process tools)."""

from __future__ import annotations

import asyncio

from predledger.errors import LedgerUnavailable
from predledger.storage.base import AccountListener, ListenerRegistry


class InMemoryAccountStore:
    """Dict-backed AccountStore. ``latency`` simulates a slow RPC round trip."""

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.available = True
        self.write_count = 0
        self._accounts: dict[str, bytes] = {}
        self._listeners = ListenerRegistry()

    async def _round_trip(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if not self.available:
            raise LedgerUnavailable("in-memory store marked unavailable")

    async def get(self, address: str) -> bytes | None:
        await self._round_trip()
        return self._accounts.get(address)

    async def write(self, entries: dict[str, bytes]) -> None:
        await self._round_trip()
        # Nothing awaits past this point, so the commit is atomic for other tasks.
        self._accounts.update(entries)
        self.write_count += 1
        self._listeners.notify(entries)

    async def scan(self, prefix: bytes = b"") -> list[tuple[str, bytes]]:
        await self._round_trip()
        return [(addr, data) for addr, data in self._accounts.items() if data.startswith(prefix)]

    def subscribe(self, address: str, listener: AccountListener) -> int:
        return self._listeners.add(address, listener)

    def unsubscribe(self, handle: int) -> None:
        self._listeners.remove(handle)

    def raw(self) -> dict[str, bytes]:
        """Snapshot of committed accounts."""
        return dict(self._accounts)
