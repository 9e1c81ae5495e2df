"""Account store protocol - the ledger/RPC collaborator the core reads and writes through."""

from __future__ import annotations

import itertools
from typing import Callable, Protocol

import structlog

log = structlog.get_logger(__name__)

AccountListener = Callable[[bytes], None]


class AccountStore(Protocol):
    """Raw account bytes keyed by hex address.

    ``write`` commits every entry or none of them. Listeners registered with
    ``subscribe`` receive the new bytes after each committed write.
    """

    async def get(self, address: str) -> bytes | None: ...
    async def write(self, entries: dict[str, bytes]) -> None: ...
    async def scan(self, prefix: bytes = b"") -> list[tuple[str, bytes]]: ...
    def subscribe(self, address: str, listener: AccountListener) -> int: ...
    def unsubscribe(self, handle: int) -> None: ...


class ListenerRegistry:
    """Per-address change listeners with integer handles."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._listeners: dict[int, tuple[str, AccountListener]] = {}

    def add(self, address: str, listener: AccountListener) -> int:
        handle = next(self._ids)
        self._listeners[handle] = (address, listener)
        return handle

    def remove(self, handle: int) -> None:
        self._listeners.pop(handle, None)

    def __len__(self) -> int:
        return len(self._listeners)

    def notify(self, entries: dict[str, bytes]) -> None:
        """Deliver committed entries. A failing listener does not stop delivery to others."""
        for handle, (address, listener) in list(self._listeners.items()):
            data = entries.get(address)
            if data is None:
                continue
            try:
                listener(data)
            except Exception as e:
                log.warning("account_listener_error", handle=handle, address=address, error=str(e))
