"""Account stores: protocol, in-memory, DuckDB."""

from predledger.storage.accounts import DuckDBAccountStore
from predledger.storage.base import AccountListener, AccountStore, ListenerRegistry
from predledger.storage.memory import InMemoryAccountStore

__all__ = [
    "AccountListener",
    "AccountStore",
    "DuckDBAccountStore",
    "InMemoryAccountStore",
    "ListenerRegistry",
]
