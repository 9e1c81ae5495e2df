"""Account persistence in DuckDB and the DuckDB-backed AccountStore."""

from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import duckdb
import structlog

from predledger.errors import LedgerUnavailable
from predledger.storage.base import AccountListener, ListenerRegistry
from predledger.storage.db import get_connection, init_schema

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)

DISCRIMINATOR_HEX_LEN = 16


def get_account(conn: DuckDBPyConnection, address: str) -> bytes | None:
    """Return raw bytes for an address, or None."""
    row = conn.execute("SELECT data FROM accounts WHERE address = ?", [address]).fetchone()
    return bytes(row[0]) if row else None


class WriteGuard:
    """Commit gate shared between an async caller and the worker thread doing the write.

    Once ``cancel`` wins, the transaction is rolled back instead of committed.
    ``cancel`` returns False when the commit already happened.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.cancelled = False
        self.committed = False

    def cancel(self) -> bool:
        with self._lock:
            if not self.committed:
                self.cancelled = True
            return not self.committed

    def commit(self, conn: DuckDBPyConnection) -> None:
        with self._lock:
            if self.cancelled:
                conn.rollback()
                raise LedgerUnavailable("write cancelled before commit")
            conn.commit()
            self.committed = True


def put_accounts(
    conn: DuckDBPyConnection, entries: dict[str, bytes], guard: WriteGuard | None = None
) -> None:
    """Upsert every entry in one transaction; on failure or cancellation nothing is written."""
    now_ms = int(time.time() * 1000)
    conn.begin()
    try:
        for address, data in entries.items():
            conn.execute(
                """
                INSERT INTO accounts (address, discriminator, data, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (address) DO UPDATE SET
                    discriminator = excluded.discriminator,
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                [address, data[:8].hex(), data, now_ms],
            )
    except Exception:
        conn.rollback()
        raise
    if guard is None:
        conn.commit()
    else:
        guard.commit(conn)


def scan_accounts(conn: DuckDBPyConnection, prefix: bytes = b"") -> list[tuple[str, bytes]]:
    """All accounts whose bytes start with prefix, ordered by address."""
    hex_prefix = prefix[:8].hex()
    rows = conn.execute(
        "SELECT address, data FROM accounts WHERE discriminator LIKE ? ORDER BY address",
        [hex_prefix + "%"],
    ).fetchall()
    out = [(r[0], bytes(r[1])) for r in rows]
    if len(prefix) > 8:
        out = [(a, d) for a, d in out if d.startswith(prefix)]
    return out


def account_stats(conn: DuckDBPyConnection) -> dict[str, Any]:
    """Return account counts per discriminator and the last update time."""
    total = conn.execute("SELECT COUNT(*) FROM accounts").fetchone()[0]
    last = conn.execute("SELECT MAX(updated_at) FROM accounts").fetchone()[0]
    by_kind = conn.execute(
        "SELECT discriminator, COUNT(*) AS cnt FROM accounts GROUP BY discriminator ORDER BY cnt DESC"
    ).fetchall()
    return {
        "total_accounts": total,
        "last_updated": last,
        "by_discriminator": [{"discriminator": r[0], "count": r[1]} for r in by_kind],
    }


class DuckDBAccountStore:
    """AccountStore over a DuckDB file. Calls run in a worker thread, one at a time."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        self._conn = get_connection(db_path)
        init_schema(self._conn)
        self._lock = threading.Lock()
        self._listeners = ListenerRegistry()

    def _run(self, fn, *args):
        with self._lock:
            if self._conn is None:
                raise LedgerUnavailable("account store is closed")
            try:
                return fn(self._conn, *args)
            except duckdb.Error as e:
                log.error("account_store_error", db_path=self.db_path, error=str(e))
                raise LedgerUnavailable(f"account store error: {e}") from e

    async def get(self, address: str) -> bytes | None:
        return await asyncio.to_thread(self._run, get_account, address)

    async def write(self, entries: dict[str, bytes]) -> None:
        guard = WriteGuard()
        try:
            await asyncio.to_thread(self._run, put_accounts, entries, guard)
        except asyncio.CancelledError:
            if not guard.cancel():
                log.warning("account_write_landed_after_cancel", addresses=list(entries))
                self._listeners.notify(entries)
            raise
        self._listeners.notify(entries)

    async def scan(self, prefix: bytes = b"") -> list[tuple[str, bytes]]:
        return await asyncio.to_thread(self._run, scan_accounts, prefix)

    def subscribe(self, address: str, listener: AccountListener) -> int:
        return self._listeners.add(address, listener)

    def unsubscribe(self, handle: int) -> None:
        self._listeners.remove(handle)

    def stats(self) -> dict[str, Any]:
        return self._run(account_stats)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
