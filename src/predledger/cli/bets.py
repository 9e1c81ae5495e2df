"""Bets subcommand: place, claim, position, positions."""

from __future__ import annotations

import typer

from predledger.cli.markets import Side
from predledger.cli.runtime import open_ledger, run_ledger_call
from predledger.ledger.engine import MarketLedger
from predledger.models import ClaimResult

app = typer.Typer(help="Bets, claims and positions")


@app.command("place")
def place(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market address"),
    bettor: str = typer.Option(..., "--bettor", help="Bettor address (64 hex chars)"),
    amount: int = typer.Option(..., "--amount", "-a", help="Stake in smallest units"),
    side: Side = typer.Option(..., "--side", help="yes or no"),
) -> None:
    """Place (or top up) a bet on an active market."""
    with open_ledger(ctx) as ledger:
        receipt = run_ledger_call(ledger.place_bet(market, bettor, amount, side.prediction))
        typer.echo(f"Bet: {receipt.bet.address}  amount={receipt.bet.amount}")
        typer.echo(f"Pools: yes={receipt.market.total_yes_amount} no={receipt.market.total_no_amount}")
        typer.echo(f"Potential payout: {receipt.position.current_value}")


@app.command("claim")
def claim(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market address"),
    bettor: str = typer.Option(..., "--bettor", help="Bettor address"),
) -> None:
    """Claim winnings for the bettor's bet on a resolved market."""
    with open_ledger(ctx) as ledger:
        result = run_ledger_call(_claim(ledger, market, bettor))
        typer.echo(f"Claimed {result.payout} for bet {result.bet.address}")


@app.command("position")
def position(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market address"),
    user: str = typer.Option(..., "--user", help="User address"),
) -> None:
    """Show a user's position on a market."""
    with open_ledger(ctx) as ledger:
        p = run_ledger_call(ledger.get_position(market, user))
        typer.echo(f"Yes: {p.yes_amount}  No: {p.no_amount}  Invested: {p.total_invested}")
        typer.echo(f"Value: {p.current_value}  PnL: {p.unrealized_pnl}  Claimed: {p.claimed}")


@app.command("positions")
def positions(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", help="User address"),
) -> None:
    """List every position a user holds across markets."""
    with open_ledger(ctx) as ledger:
        held = run_ledger_call(ledger.positions_for_user(user))
        for p in held:
            typer.echo(
                f"  {p.market[:16]}...  yes={p.yes_amount} no={p.no_amount}  "
                f"value={p.current_value} pnl={p.unrealized_pnl} claimed={p.claimed}"
            )
        typer.echo(f"Total: {len(held)} positions")


async def _claim(ledger: MarketLedger, market: str, bettor: str) -> ClaimResult:
    return await ledger.claim_winnings(market, ledger.bet_address(market, bettor))
