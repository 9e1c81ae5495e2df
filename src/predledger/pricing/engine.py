"""Pari-mutuel pricing: odds, implied probabilities, payouts, settlement.

Money is integer smallest-units throughout. Floats appear only in the
display-oriented odds and probabilities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from predledger.errors import InvalidAmount

BPS = 10_000


def _check_pools(yes: int, no: int) -> None:
    if yes < 0 or no < 0:
        raise InvalidAmount(f"pool totals must be non-negative, got yes={yes} no={no}")


def odds(yes: int, no: int) -> tuple[float, float]:
    """Decimal odds (total/side) for yes and no. (1.0, 1.0) when either side is empty."""
    _check_pools(yes, no)
    if yes == 0 or no == 0:
        return (1.0, 1.0)
    total = yes + no
    return (total / yes, total / no)


def implied_probabilities(yes: int, no: int) -> tuple[float, float]:
    """Share of the pool on each side. (0.5, 0.5) for an empty pool."""
    _check_pools(yes, no)
    total = yes + no
    if total == 0:
        return (0.5, 0.5)
    return (yes / total, no / total)


def implied_probabilities_bps(yes: int, no: int) -> tuple[int, int]:
    """Integer basis-point probabilities; the pair always sums to 10_000."""
    _check_pools(yes, no)
    total = yes + no
    if total == 0:
        return (BPS // 2, BPS - BPS // 2)
    yes_bps = yes * BPS // total
    return (yes_bps, BPS - yes_bps)


def payout(amount: int, prediction: bool, yes: int, no: int) -> int:
    """Winning payout for a stake given final pools: amount * total // winning_pool.

    Zero when the winning pool is empty; the protocol keeps the funds.
    """
    _check_pools(yes, no)
    if amount < 0:
        raise InvalidAmount(f"stake must be non-negative, got {amount}")
    winning_pool = yes if prediction else no
    if winning_pool == 0 or amount == 0:
        return 0
    return amount * (yes + no) // winning_pool


def quote(amount: int, prediction: bool, yes: int, no: int) -> int:
    """Potential payout of a new stake if it were added now and its side won."""
    if amount <= 0:
        raise InvalidAmount(f"stake must be positive, got {amount}")
    if prediction:
        return payout(amount, True, yes + amount, no)
    return payout(amount, False, yes, no + amount)


def position_value(
    yes_amount: int,
    no_amount: int,
    yes: int,
    no: int,
    outcome: bool | None = None,
) -> int:
    """Mark-to-pool value of per-side stakes.

    Open market: potential payout of each side if it won at current pools.
    Resolved market: actual payout of the winning side, losing side is worth 0.
    """
    if outcome is None:
        return payout(yes_amount, True, yes, no) + payout(no_amount, False, yes, no)
    winning_amount = yes_amount if outcome else no_amount
    return payout(winning_amount, outcome, yes, no)


@dataclass
class Settlement:
    """Payouts for every stake of a resolved market."""

    total_pool: int
    payouts: list[int] = field(default_factory=list)
    paid: int = 0
    dust: int = 0  # truncation remainder retained by the protocol
    winning_bets: int = 0


def settle(stakes: Iterable[tuple[int, bool]], outcome: bool, yes: int, no: int) -> Settlement:
    """Compute payouts for (amount, prediction) stakes against final pools.

    For winning stakes that add up to the winning pool, paid + dust == total
    pool and dust < number of winning bets.
    """
    _check_pools(yes, no)
    result = Settlement(total_pool=yes + no)
    for amount, prediction in stakes:
        if prediction == outcome:
            result.winning_bets += 1
            value = payout(amount, prediction, yes, no)
        else:
            value = 0
        result.payouts.append(value)
        result.paid += value
    result.dust = result.total_pool - result.paid
    return result
