"""Shared CLI plumbing: open a ledger over the configured DuckDB file, report errors."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Coroutine, Iterator, TypeVar

import typer

from predledger.errors import LedgerError
from predledger.ledger.engine import MarketLedger, create_ledger
from predledger.storage.accounts import DuckDBAccountStore

T = TypeVar("T")


@contextmanager
def open_ledger(ctx: typer.Context) -> Iterator[MarketLedger]:
    settings = ctx.obj["settings"]
    store = DuckDBAccountStore(ctx.obj.get("db_path") or settings.db_path)
    try:
        yield create_ledger(settings, store)
    finally:
        store.close()


def run_ledger_call(coro: Coroutine[Any, Any, T]) -> T:
    """Run one ledger coroutine; LedgerError becomes a one-line message and exit code 1."""
    try:
        return asyncio.run(coro)
    except LedgerError as e:
        typer.echo(f"Error [{e.code}]: {e.message}", err=True)
        raise typer.Exit(1) from None
