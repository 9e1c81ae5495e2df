"""Markets subcommand: create, list, show, resolve, quote."""

from __future__ import annotations

import time
from enum import Enum

import typer

from predledger.cli.runtime import open_ledger, run_ledger_call
from predledger.ledger.engine import MarketLedger
from predledger.models import Market, MarketStatus
from predledger.pricing.engine import implied_probabilities, odds, quote

app = typer.Typer(help="Market creation, listing and resolution")


class Side(str, Enum):
    YES = "yes"
    NO = "no"

    @property
    def prediction(self) -> bool:
        return self is Side.YES


def _print_market(market: Market, status: MarketStatus) -> None:
    yes, no = market.total_yes_amount, market.total_no_amount
    yes_odds, no_odds = odds(yes, no)
    yes_prob, _ = implied_probabilities(yes, no)
    typer.echo(f"Market: {market.address}")
    typer.echo(f"  Question: {market.question}")
    if market.category:
        typer.echo(f"  Category: {market.category}")
    typer.echo(f"  Creator: {market.creator}")
    typer.echo(f"  Status: {status.value}  Ends: {market.end_time}  Resolves: {market.resolution_time}")
    typer.echo(f"  Pools: yes={yes} no={no}  Odds: yes={yes_odds:.3f} no={no_odds:.3f}  P(yes)={yes_prob:.2%}")
    if market.resolved:
        typer.echo(f"  Outcome: {'YES' if market.outcome else 'NO'}")


@app.command("create")
def create(
    ctx: typer.Context,
    creator: str = typer.Option(..., "--creator", help="Creator address (64 hex chars)"),
    question: str = typer.Option(..., "--question", "-q", help="Market question"),
    description: str = typer.Option("", "--description", "-d"),
    end_time: int | None = typer.Option(None, "--end-time", help="Unix seconds; default now + --duration"),
    duration: int = typer.Option(86400, "--duration", help="Seconds from now until betting ends"),
    resolution_time: int | None = typer.Option(None, "--resolution-time", help="Unix seconds; default end time"),
    category: str | None = typer.Option(None, "--category", "-c"),
    oracle_event: str | None = typer.Option(None, "--oracle-event", help="Oracle event id that must confirm the outcome"),
) -> None:
    """Create a market with empty pools."""
    end = end_time if end_time is not None else int(time.time()) + duration
    resolves = resolution_time if resolution_time is not None else end
    with open_ledger(ctx) as ledger:
        market = run_ledger_call(
            ledger.create_market(
                creator,
                question,
                description,
                end,
                resolves,
                category=category,
                oracle_event_id=oracle_event,
            )
        )
        _print_market(market, ledger.status(market))


@app.command("list")
def list_markets(
    ctx: typer.Context,
    status: MarketStatus | None = typer.Option(None, "--status", "-s", help="active, ended or resolved"),
) -> None:
    """List markets, newest first."""
    with open_ledger(ctx) as ledger:
        markets = run_ledger_call(ledger.list_markets(status=status))
        for m in markets:
            typer.echo(
                f"  {m.address[:16]}...  {ledger.status(m).value:8}  "
                f"{m.total_pool:>12}  {m.question[:60]}"
            )
        typer.echo(f"Total: {len(markets)} markets")


@app.command("show")
def show(ctx: typer.Context, market: str = typer.Argument(..., help="Market address")) -> None:
    """Show one market with pools and odds."""
    with open_ledger(ctx) as ledger:
        record = run_ledger_call(ledger.get_market(market))
        _print_market(record, ledger.status(record))


@app.command("resolve")
def resolve(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market address"),
    resolver: str = typer.Option(..., "--resolver", help="Resolver address (must be the creator)"),
    outcome: Side = typer.Option(..., "--outcome", "-o", help="yes or no"),
) -> None:
    """Resolve a market once its end time has passed."""
    with open_ledger(ctx) as ledger:
        record = run_ledger_call(ledger.resolve_market(market, resolver, outcome.prediction))
        _print_market(record, ledger.status(record))


@app.command("quote")
def quote_cmd(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market address"),
    amount: int = typer.Option(..., "--amount", "-a"),
    side: Side = typer.Option(Side.YES, "--side", help="yes or no"),
) -> None:
    """Potential payout of a new stake at current pools."""
    with open_ledger(ctx) as ledger:
        potential = run_ledger_call(_quote(ledger, market, amount, side.prediction))
        typer.echo(f"Potential payout: {potential}")


async def _quote(ledger: MarketLedger, market: str, amount: int, prediction: bool) -> int:
    record = await ledger.get_market(market)
    return quote(amount, prediction, record.total_yes_amount, record.total_no_amount)
